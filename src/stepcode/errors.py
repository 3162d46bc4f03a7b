"""Exceptions raised for unusable configuration.

A code that fails to verify is not an error; see VerificationResult.
"""

from __future__ import annotations


class StepcodeError(Exception):
    """Base class for all stepcode errors."""


class ConfigurationError(StepcodeError):
    """No provisioning string could be resolved, or a required env key is missing."""


class EnvValueError(ConfigurationError):
    """An environment value is present but cannot be parsed into the requested type."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class MalformedConfigurationError(StepcodeError):
    """The provisioning string is present but structurally unusable."""

    def __init__(self, message: str, field: str | None = None, source: str | None = None):
        if source:
            message = f"{message} ({source})"
        super().__init__(message)
        self.field = field
        self.source = source


class InvalidSecretError(MalformedConfigurationError):
    """The shared secret is not valid base32."""

    def __init__(self, message: str = "secret is not valid base32", source: str | None = None):
        super().__init__(message, field="secret", source=source)


class UnsupportedTypeError(MalformedConfigurationError):
    """The provisioning string describes an OTP type other than TOTP."""

    def __init__(self, otp_type: str, source: str | None = None):
        super().__init__(f"unsupported OTP type: {otp_type!r}", field="type", source=source)
        self.otp_type = otp_type
