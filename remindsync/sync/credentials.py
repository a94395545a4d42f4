"""
Storage of the long-lived refresh credential. The credential belongs to the single signed-in user.
"""

from __future__ import annotations

import abc
import logging

import keyring
from keyring.errors import PasswordDeleteError

from remindsync import settings


class CredentialStore(abc.ABC):
    """
    Opaque get/set/delete of the refresh credential.
    """

    @abc.abstractmethod
    def get_refresh_token(self) -> str | None:
        ...

    @abc.abstractmethod
    def set_refresh_token(self, token: str) -> None:
        ...

    @abc.abstractmethod
    def delete_refresh_token(self) -> None:
        ...


class KeyringCredentialStore(CredentialStore):
    """
    Keeps the refresh credential in the system keyring (the macOS Keychain on a Mac).
    """

    def __init__(self, service: str = settings.KEYRING_SERVICE, key: str = settings.KEYRING_REFRESH_KEY):
        self.service = service
        self.key = key

    def get_refresh_token(self) -> str | None:
        return keyring.get_password(self.service, self.key)

    def set_refresh_token(self, token: str) -> None:
        keyring.set_password(self.service, self.key, token)

    def delete_refresh_token(self) -> None:
        try:
            keyring.delete_password(self.service, self.key)
        except PasswordDeleteError:
            logging.debug('No refresh credential in keyring to delete.')
