"""Anonymous per-device identity sent as the x-user-id header."""
import logging
import uuid

from doinggreat.db.state_store import StateStore

logger = logging.getLogger(__name__)

USER_ID_KEY = "user_id"


class UserIDProvider:
    """Generates a UUID on first use and persists it; reuses it thereafter."""

    def __init__(self, store: StateStore):
        self._store = store
        self._user_id: str | None = None

    @property
    def user_id(self) -> str:
        if self._user_id is None:
            existing = self._store.get(USER_ID_KEY)
            if existing:
                self._user_id = existing
                logger.info("Loaded existing user ID from local store")
            else:
                self._user_id = str(uuid.uuid4())
                self._store.set(USER_ID_KEY, self._user_id)
                logger.info("Generated and saved new anonymous user ID")
        return self._user_id

    def update_user_id(self, new_user_id: str) -> None:
        """Switch to an authenticated id (future auth migration)."""
        self._user_id = new_user_id
        self._store.set(USER_ID_KEY, new_user_id)
        logger.info("Updated user ID to authenticated ID")

    def reset_user_id(self) -> str:
        """Start over with a fresh anonymous identity."""
        self._user_id = str(uuid.uuid4())
        self._store.set(USER_ID_KEY, self._user_id)
        logger.info("Reset to new anonymous user ID")
        return self._user_id

    @property
    def masked_user_id(self) -> str:
        uid = self.user_id
        if len(uid) <= 8:
            return uid
        return f"{uid[:4]}...{uid[-4:]}"
