"""Pydantic models shared by the resolver, parser and engine."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stepcode.errors import ConfigurationError


class Algorithm(StrEnum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"


class ProvisioningSource(BaseModel):
    """Where the otpauth:// URI comes from: a literal value or an env key.

    Exactly one of ``uri`` and ``env_key`` is set.
    """

    model_config = ConfigDict(frozen=True)

    uri: str | None = Field(default=None, repr=False)
    env_key: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> ProvisioningSource:
        if (self.uri is None) == (self.env_key is None):
            raise ConfigurationError("OTP: exactly one of a URI or an env key must be provided")
        return self

    @classmethod
    def from_uri(cls, uri: str) -> ProvisioningSource:
        return cls(uri=uri)

    @classmethod
    def from_env(cls, env_key: str) -> ProvisioningSource:
        return cls(env_key=env_key)

    def describe(self) -> str:
        """Name suitable for log lines and errors; never the URI itself."""
        return self.env_key if self.env_key is not None else "direct"


class TotpSpec(BaseModel):
    """Parsed TOTP parameters."""

    model_config = ConfigDict(frozen=True)

    secret: bytes = Field(min_length=1, repr=False)
    algorithm: Algorithm = Algorithm.SHA1
    digits: int = Field(default=6, ge=1, le=10)
    period: int = Field(default=30, gt=0)
    label: str = ""
    issuer: str = ""


class VerificationResult(BaseModel):
    """Outcome of checking a candidate code.

    ``delta`` is the signed number of steps between the matching step and the
    current one, None when nothing matched.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    delta: int | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def _consistent(self) -> VerificationResult:
        if self.ok and (self.delta is None or self.reason is not None):
            raise ValueError("a match carries a delta and no reason")
        if not self.ok and (self.delta is not None or not self.reason):
            raise ValueError("a rejection carries a reason and no delta")
        return self

    def __bool__(self) -> bool:
        return self.ok
