"""
Storage of the Supabase API key in the operating system keyring.
"""

from __future__ import annotations

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import CredentialsError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "barbershop"


class CredentialStore:
    """
    Keeps one API key per Supabase project URL in the keyring.

    Reads never fail: an unavailable backend is logged and treated as "no
    key stored", so the application can fall back to the mock store.
    """

    def __init__(self, service_name: str = KEYRING_SERVICE_NAME):
        self.service_name = service_name

    @staticmethod
    def _key_identifier(url: str) -> str:
        return url.rstrip("/").lower()

    def get_api_key(self, url: str) -> Optional[str]:
        """Return the stored key for ``url``, or None."""
        try:
            return keyring.get_password(self.service_name, self._key_identifier(url))
        except KeyringError as exc:
            logger.warning("Secure credential storage unavailable (reading failed: %s)", exc)
            return None

    def set_api_key(self, url: str, api_key: str) -> None:
        """
        Store the key for ``url``.

        Raises:
            CredentialsError: If the keyring backend rejects the write
        """
        if not api_key.strip():
            raise CredentialsError("API key must not be empty")

        try:
            keyring.set_password(self.service_name, self._key_identifier(url), api_key.strip())
        except KeyringError as exc:
            raise CredentialsError(f"Could not store API key in keyring: {exc}") from exc

    def delete_api_key(self, url: str) -> bool:
        """
        Remove the key for ``url``.

        Returns:
            False when no key was stored

        Raises:
            CredentialsError: If the keyring backend fails
        """
        try:
            keyring.delete_password(self.service_name, self._key_identifier(url))
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            raise CredentialsError(f"Could not remove API key from keyring: {exc}") from exc
        return True
