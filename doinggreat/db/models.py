import json
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, JSON
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

# Match migration 001: client ids are stored as canonical UUID strings
ID_TYPE = String(36)


class UTCDateTime(TypeDecorator):
    """Stores UTC wall time; always hands back aware UTC datetimes (SQLite drops tzinfo)."""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    pass


def new_client_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Moment(Base):
    """
    A logged moment. Offline-first: created locally with a client UUID, then
    reconciled with the server copy (server_id, praise, tags) by SyncService.
    """
    __tablename__ = "moments"
    client_id = Column(ID_TYPE, primary_key=True, default=new_client_id)  # stable for the object's lifetime
    server_id = Column(String(64), index=True)  # set once create-on-server succeeds

    text = Column(Text, nullable=False)
    submitted_at = Column(UTCDateTime(), nullable=False)
    happened_at = Column(UTCDateTime(), nullable=False)
    timezone = Column(String(64), nullable=False)
    time_ago = Column(Integer)  # seconds before submitted_at, None = just now

    # Server-enriched
    praise = Column(Text)
    praise_enriched_json = Column(JSON)  # {"cards": [{"text": ..., "highlights": [...]}]}
    action = Column(String(255))
    tags_json = Column(JSON, nullable=False, default=list)
    is_favorite = Column(Boolean, nullable=False, default=False)

    # Local-only
    offline_praise = Column(Text, nullable=False, default="")
    is_synced = Column(Boolean, nullable=False, default=False, index=True)
    sync_error = Column(Text)

    def __init__(self, **kwargs):
        tags = kwargs.pop("tags", None)
        kwargs.setdefault("client_id", new_client_id())
        kwargs.setdefault("tags_json", list(tags or []))
        kwargs.setdefault("is_favorite", False)
        kwargs.setdefault("is_synced", False)
        kwargs.setdefault("offline_praise", "")
        super().__init__(**kwargs)

    @property
    def tags(self) -> list[str]:
        return list(self.tags_json or [])

    @tags.setter
    def tags(self, value: list[str] | None) -> None:
        self.tags_json = list(value or [])

    @property
    def display_praise(self) -> str:
        return self.praise or self.offline_praise

    @property
    def has_praise(self) -> bool:
        return bool(self.praise)

    @property
    def praise_enriched(self):
        """Structured praise cards, or None when the server only sent plain praise."""
        from doinggreat.schemas.moment import EnrichedPraise

        if not self.praise_enriched_json:
            return None
        return EnrichedPraise.model_validate(self.praise_enriched_json)

    @praise_enriched.setter
    def praise_enriched(self, value) -> None:
        self.praise_enriched_json = value.model_dump(mode="json") if value is not None else None

    def __repr__(self) -> str:
        return f"<Moment {self.client_id} server_id={self.server_id} synced={self.is_synced}>"


class AppState(Base):
    """Small key/value store: anonymous user id, paywall limit state, subscription cache."""
    __tablename__ = "app_state"
    key = Column(String(128), primary_key=True)
    value = Column(Text)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<AppState {self.key}={json.dumps(self.value)}>"
