"""
Local persistence for moments.

MomentRepository is the seam the services depend on; SqlMomentRepository is the
SQLAlchemy implementation. Each call opens and closes its own session so the
background sync thread and the foreground never share one.
"""
import abc
import logging
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from doinggreat.db.models import Moment

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("submitted_at", "happened_at")
UPDATABLE_COLUMNS = tuple(c.key for c in Moment.__table__.columns if c.key != "client_id")


class MomentRepository(abc.ABC):
    @abc.abstractmethod
    def save(self, moment: Moment) -> None:
        """Insert a new moment."""

    @abc.abstractmethod
    def update(self, moment: Moment, fields: tuple[str, ...] | None = None) -> bool:
        """Persist changes to an existing moment. Returns False when it was deleted meanwhile."""

    @abc.abstractmethod
    def delete(self, moment: Moment) -> None: ...

    @abc.abstractmethod
    def fetch_all(self, sort_by: str = "submitted_at", descending: bool = True) -> list[Moment]: ...

    @abc.abstractmethod
    def fetch_unsynced(self) -> list[Moment]:
        """Moments not yet reconciled with the server, newest submitted first."""

    @abc.abstractmethod
    def fetch_by_client_id(self, client_id: str) -> Moment | None: ...

    @abc.abstractmethod
    def fetch_by_server_id(self, server_id: str) -> Moment | None: ...

    @abc.abstractmethod
    def delete_all(self) -> int: ...

    @abc.abstractmethod
    def fetch_by_tag(self, tag: str) -> list[Moment]:
        """Moments carrying `tag`, newest happened first."""

    def fetch_favorites(self) -> list[Moment]:
        return [m for m in self.fetch_all() if m.is_favorite]


class SqlMomentRepository(MomentRepository):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, moment: Moment) -> None:
        with self._session_factory() as db:
            db.add(moment)
            db.commit()
            db.expunge(moment)
        logger.info("Saved moment with clientId: %s", moment.client_id)

    def update(self, moment: Moment, fields: tuple[str, ...] | None = None) -> bool:
        """Copy `fields` (default: every column) onto the stored row. Never re-inserts a deleted moment."""
        with self._session_factory() as db:
            row = db.get(Moment, moment.client_id)
            if row is None:
                logger.warning("Moment %s no longer exists locally, skipping update", moment.client_id)
                return False
            for name in fields or UPDATABLE_COLUMNS:
                setattr(row, name, getattr(moment, name))
            db.commit()
        return True

    def delete(self, moment: Moment) -> None:
        client_id = moment.client_id
        with self._session_factory() as db:
            row = db.get(Moment, client_id)
            if row is not None:
                db.delete(row)
                db.commit()
        logger.info("Deleted moment with clientId: %s", client_id)

    def fetch_all(self, sort_by: str = "submitted_at", descending: bool = True) -> list[Moment]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"cannot sort moments by {sort_by!r}")
        column = getattr(Moment, sort_by)
        with self._session_factory() as db:
            moments = list(db.scalars(select(Moment).order_by(column.desc() if descending else column.asc())))
        logger.debug("Fetched %d moments", len(moments))
        return moments

    def fetch_unsynced(self) -> list[Moment]:
        with self._session_factory() as db:
            moments = list(
                db.scalars(
                    select(Moment).where(Moment.is_synced.is_(False)).order_by(Moment.submitted_at.desc())
                )
            )
        logger.debug("Fetched %d unsynced moments", len(moments))
        return moments

    def fetch_by_client_id(self, client_id: str) -> Moment | None:
        with self._session_factory() as db:
            return db.get(Moment, str(client_id))

    def fetch_by_server_id(self, server_id: str) -> Moment | None:
        with self._session_factory() as db:
            return db.scalars(select(Moment).where(Moment.server_id == server_id).limit(1)).first()

    def delete_all(self) -> int:
        with self._session_factory() as db:
            n = db.query(Moment).delete(synchronize_session=False)
            db.commit()
        logger.info("Cleared local database: %d moments", n)
        return n

    def fetch_by_tag(self, tag: str) -> list[Moment]:
        # Tags live in a JSON column; filter in Python to stay dialect-neutral
        moments = [m for m in self.fetch_all(sort_by="happened_at") if tag in m.tags]
        logger.debug("Fetched %d moments with tag: %s", len(moments), tag)
        return moments
