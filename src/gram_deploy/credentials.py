from __future__ import annotations

from collections.abc import Callable

from gram_deploy.config import Settings
from gram_deploy.keychain import load_api_key

API_KEY_PREFIX = "gram"


class CredentialError(RuntimeError):
    pass


class MissingCredential(CredentialError):
    pass


class MissingProjectScope(MissingCredential):
    pass


class MalformedCredential(CredentialError):
    pass


def validate_api_key(raw: str) -> str:
    """Check the key's shape; the key itself is opaque and returned unchanged."""
    if not raw.startswith(API_KEY_PREFIX):
        raise MalformedCredential(f"API key is malformed: expected prefix '{API_KEY_PREFIX}'")
    return raw


class CredentialProvider:
    def __init__(
        self,
        settings: Settings,
        keychain_lookup: Callable[[str], str | None] | None = load_api_key,
    ) -> None:
        self._settings = settings
        self._keychain_lookup = keychain_lookup

    def credential(self) -> str:
        raw = self._settings.api_key
        if not raw and self._keychain_lookup is not None:
            raw = self._keychain_lookup(self._settings.keyring_service)
        if not raw:
            raise MissingCredential(
                "Missing API key: set GRAM_API_KEY or run 'gram-deploy set-key'"
            )
        return self.validate(raw)

    def validate(self, raw: str) -> str:
        return validate_api_key(raw)

    def project_scope(self) -> str:
        slug = self._settings.project_slug
        if not slug:
            raise MissingProjectScope("Missing project: set GRAM_PROJECT_SLUG")
        return slug
