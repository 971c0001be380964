"""
Session lifecycle: restore, login, logout and the language preference.

``SessionStore`` is the single source of truth for "who is calling and are
they signed in". It reads and writes a handful of keys in an injected
``KeyValueStore`` and mirrors them in memory:

    email, token, userId, displayName, picture   identity (cleared together)
    language                                     preference (never cleared)

A partially persisted identity is treated as no identity at all: ``restore``
wipes the fragments and reports unauthorized instead of raising.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from biocaching.config import DEFAULT_LANGUAGE
from biocaching.errors import LoginError
from biocaching.normalize import ObservationNormalizer, canonical_id
from biocaching.schemas import Session

if TYPE_CHECKING:
    from biocaching.store import KeyValueStore

logger = logging.getLogger(__name__)

# Persisted keys
EMAIL = "email"
TOKEN = "token"
USER_ID = "userId"
DISPLAY_NAME = "displayName"
PICTURE = "picture"
LANGUAGE = "language"

IDENTITY_KEYS = (EMAIL, TOKEN, USER_ID, DISPLAY_NAME, PICTURE)


def display_name_from(response: dict[str, Any]) -> str | None:
    """``displayname`` if the server sent one, else ``"firstname lastname"``.

    None when the response carries no name at all.
    """
    name = str(response.get("displayname") or "").strip()
    if name:
        return name
    parts = (str(response.get(key) or "").strip() for key in ("firstname", "lastname"))
    return " ".join(part for part in parts if part) or None


class SessionStore:
    """Persisted identity + credentials for one client."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.email: str | None = None
        self.user_id: str | None = None
        self.token: str | None = None
        self.display_name: str | None = None
        self.picture: str | None = None
        self.language: str = store.get(LANGUAGE) or DEFAULT_LANGUAGE

    @property
    def authorized(self) -> bool:
        return bool(self.email and self.user_id and self.token)

    @property
    def session(self) -> Session:
        """Immutable snapshot of the in-memory state."""
        return Session(
            email=self.email,
            user_id=self.user_id,
            token=self.token,
            display_name=self.display_name,
            picture=self.picture,
            language=self.language,
        )

    def restore(self) -> bool:
        """
        Load the persisted identity into memory.

        Returns True when email, token and user id are all present. Otherwise
        every identity key is removed from the store and False is returned.
        Never raises.
        """
        self.email = self.store.get(EMAIL) or None
        self.token = self.store.get(TOKEN) or None
        self.user_id = self.store.get(USER_ID) or None
        self.display_name = self.store.get(DISPLAY_NAME) or None
        self.picture = self.store.get(PICTURE) or None

        if self.authorized:
            logger.debug("Restored session for user %s", self.user_id)
            return True

        if any(self.store.get(key) is not None for key in IDENTITY_KEYS):
            logger.info("Discarding incomplete persisted session")
        self.clear()
        return False

    def clear(self) -> None:
        """Forget the identity in memory and in the store. Language is kept."""
        for key in IDENTITY_KEYS:
            self.store.delete(key)
        self.email = None
        self.token = None
        self.user_id = None
        self.display_name = None
        self.picture = None

    def ensure_language(self, default: str = DEFAULT_LANGUAGE) -> str:
        """
        Seed the language preference on first run.

        If a language is already persisted it wins, whatever ``default`` is.
        """
        persisted = self.store.get(LANGUAGE)
        if persisted:
            self.language = persisted
        else:
            self.store.set(LANGUAGE, default)
            self.language = default
        return self.language

    def apply_login_result(self, response: dict[str, Any]) -> Session:
        """
        Commit a successful sign-in response.

        Raises:
            LoginError: the response lacks email, token or user id. Nothing
                is persisted in that case.
        """
        email = response.get("email")
        token = response.get("authentication_token")
        user_id = canonical_id(response.get("id"))
        if not (email and token and user_id):
            raise LoginError("Sign-in response is missing email, token or user id")

        picture = (response.get("picture") or {}).get("thumb")
        display_name = display_name_from(response)
        values = {EMAIL: str(email), TOKEN: str(token), USER_ID: user_id}
        for key, optional in ((DISPLAY_NAME, display_name), (PICTURE, picture)):
            if optional:
                values[key] = str(optional)
            else:
                self.store.delete(key)
        for key, value in values.items():
            self.store.set(key, value)

        self.email = values[EMAIL]
        self.token = values[TOKEN]
        self.user_id = user_id
        self.display_name = values.get(DISPLAY_NAME)
        self.picture = values.get(PICTURE)
        logger.info("Signed in as user %s", user_id)
        return self.session

    def auth_headers(self) -> dict[str, str]:
        """Headers identifying the signed-in user; empty when unauthorized."""
        if not self.authorized:
            return {}
        return {"X-User-Email": self.email or "", "X-User-Token": self.token or ""}

    def normalizer(self) -> ObservationNormalizer:
        """Normalizer bound to the current user and language."""
        return ObservationNormalizer(current_user_id=self.user_id, language=self.language)
