"""Resolution of the otpauth:// URI from a literal value or an env key."""

from __future__ import annotations

import logging

from stepcode.config import ConfigStore, EnvStore
from stepcode.errors import ConfigurationError
from stepcode.models import ProvisioningSource

logger = logging.getLogger(__name__)


def resolve_provisioning_uri(source: ProvisioningSource, store: ConfigStore | None = None) -> str:
    """Return the raw provisioning string for ``source``.

    A non-blank literal wins; otherwise the env key is looked up in ``store``
    (a fresh EnvStore over the live environment when omitted). Nothing is
    cached here.
    """
    if source.uri is not None and source.uri.strip():
        return source.uri.strip()

    if source.env_key:
        store = store if store is not None else EnvStore()
        if not store.has(source.env_key):
            logger.error("OTP env key %s is missing or empty", source.env_key)
            raise ConfigurationError(f"OTP: environment variable {source.env_key} is missing or empty")
        value = store.get_string(source.env_key)
        if value:
            return value
        raise ConfigurationError(f"OTP: environment variable {source.env_key} is blank")

    raise ConfigurationError("OTP: no URI or env key provided")
