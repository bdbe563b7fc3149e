"""Local stand-in for user accounts.

Sign-in and sign-up both create an :class:`~lumina.core.models.Account`
from the submitted username and email.  No password is checked or stored:
the account only personalises the studio and gates saving to history.
A real deployment must delegate this to an identity provider.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .models import Account
from .storage import USER_KEY, LocalStorage

logger = logging.getLogger(__name__)


class AccountStore:
    """Holds the single active account and persists it across restarts."""

    def __init__(self, storage: LocalStorage, key: str = USER_KEY) -> None:
        self._storage = storage
        self._key = key
        self._account = self._load()

    def _load(self) -> Account | None:
        record = self._storage.get(self._key)
        if record is None:
            return None
        try:
            return Account.model_validate(record)
        except ValidationError:
            logger.warning("Discarding unreadable stored account")
            self._storage.remove(self._key)
            return None

    def login(self, username: str, email: str, password: str | None = None) -> Account:
        """Sign in (or sign up) and make the new account active.

        Args:
            username: Display name; may be empty on the sign-in form.
            email: Email address.
            password: Accepted for form compatibility and ignored.

        Returns:
            The newly active account.
        """
        account = Account(username=username.strip(), email=email.strip())
        self._storage.set(self._key, account.to_record())
        self._account = account
        logger.info(f"Signed in as {account.username or account.email} ({account.id})")
        return account

    def logout(self) -> None:
        if self._account is not None:
            logger.info(f"Signed out {self._account.id}")
        self._storage.remove(self._key)
        self._account = None

    def current(self) -> Account | None:
        return self._account

    @property
    def is_authenticated(self) -> bool:
        return self._account is not None
