"""Key/value persistence on the app_state table (the client's stand-in for keychain/user defaults)."""
from sqlalchemy.orm import sessionmaker
from doinggreat.db.models import AppState


class StateStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as db:
            row = db.get(AppState, key)
            return row.value if row else None

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self.delete(key)
            return
        with self._session_factory() as db:
            row = db.get(AppState, key)
            if row is None:
                db.add(AppState(key=key, value=value))
            else:
                row.value = value
            db.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            row = db.get(AppState, key)
            if row is not None:
                db.delete(row)
                db.commit()

    def get_bool(self, key: str) -> bool:
        return (self.get(key) or "").lower() == "true"

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, "true" if value else "false")
