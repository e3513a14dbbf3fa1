from __future__ import annotations

import logging

import keyring
from keyring.errors import KeyringError, NoKeyringError, PasswordDeleteError

from gram_deploy.config import KEYRING_USERNAME

logger = logging.getLogger(__name__)


class KeychainError(RuntimeError):
    pass


def store_api_key(service: str, api_key: str) -> None:
    try:
        keyring.set_password(service, KEYRING_USERNAME, api_key)
    except KeyringError as exc:
        raise KeychainError(f"Could not store API key in keyring '{service}': {exc}") from exc


def load_api_key(service: str) -> str | None:
    try:
        api_key = keyring.get_password(service, KEYRING_USERNAME)
    except NoKeyringError:
        # headless hosts have no backend; that just means nothing is stored
        logger.debug("No keyring backend available, skipping stored API key")
        return None
    except KeyringError as exc:
        raise KeychainError(f"Could not read API key from keyring '{service}': {exc}") from exc
    return api_key or None


def forget_api_key(service: str) -> bool:
    try:
        keyring.delete_password(service, KEYRING_USERNAME)
    except PasswordDeleteError:
        return False
    except KeyringError as exc:
        raise KeychainError(f"Could not delete API key from keyring '{service}': {exc}") from exc
    return True
