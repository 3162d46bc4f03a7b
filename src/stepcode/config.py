"""Central configuration loaded from environment variables and the .env file."""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, TypeVar

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepcode.errors import ConfigurationError, EnvValueError

T = TypeVar("T")

DEFAULT_ENV_FILE = ".env"

_TRUTHY = frozenset({"true", "1", "yes", "on"})
_FALSY = frozenset({"false", "0", "no", "off"})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=DEFAULT_ENV_FILE, env_file_encoding="utf-8", extra="ignore")

    # Env key holding the otpauth:// URI when none is given explicitly
    otp_env_key: str = "OTP_URI"

    # Steps of drift accepted on either side of the current one
    otp_window: int = Field(default=1, ge=0)

    # Logging
    log_level: str = "INFO"


class ConfigStore(Protocol):
    """What the resolver needs from a key/value store."""

    def has(self, key: str) -> bool: ...

    def get_string(
        self, key: str, required: bool = True, default: str | None = None, trim: bool = True
    ) -> str | None: ...


@dataclass(frozen=True)
class EnvOptions:
    """Retrieval semantics for a single lookup.

    required: raise ConfigurationError when the key is missing or empty.
    default: returned when the key is missing or empty and not required.
    trim: strip surrounding whitespace before parsing.
    """

    required: bool = True
    default: Any = None
    trim: bool = True


class EnvStore:
    """Typed access to environment variables.

    Values are read from ``environ`` at lookup time (the live process
    environment by default), falling back to the .env file, which is read
    once and can be re-read with ``reload()``.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = DEFAULT_ENV_FILE,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._env_file = Path(env_file) if env_file else None
        self._file_values: dict[str, str | None] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read the .env file."""
        if self._env_file is not None and self._env_file.is_file():
            self._file_values = dict(dotenv_values(self._env_file))
        else:
            self._file_values = {}

    def _raw(self, key: str) -> str | None:
        value = self._environ.get(key)
        if value is None or value == "":
            value = self._file_values.get(key)
        return value

    def has(self, key: str) -> bool:
        """True when the key is set to a non-empty value."""
        value = self._raw(key)
        return value is not None and value != ""

    def require(self, *keys: str) -> None:
        """Fail fast when any of ``keys`` is missing or empty."""
        missing = [k for k in keys if not self.has(k)]
        if missing:
            raise ConfigurationError(f"Missing required env var(s): {', '.join(missing)}")

    def _get(self, key: str, opts: EnvOptions, parser: Callable[[str], T] | None = None) -> Any:
        raw = self._raw(key)
        if raw is None or raw == "":
            if not opts.required:
                return opts.default
            raise ConfigurationError(f"Missing environment variable: {key}")
        if opts.trim:
            raw = raw.strip()
        if parser is None:
            return raw
        return parser(raw)

    def get_string(
        self, key: str, required: bool = True, default: str | None = None, trim: bool = True
    ) -> str | None:
        return self._get(key, EnvOptions(required=required, default=default, trim=trim))

    def get_number(
        self, key: str, required: bool = True, default: float | None = None, trim: bool = True
    ) -> int | float | None:
        """Parse as int when possible, float otherwise."""

        def parse(raw: str) -> int | float:
            try:
                return int(raw)
            except ValueError:
                pass
            try:
                return float(raw)
            except ValueError:
                raise EnvValueError(f"Environment variable {key} is not a valid number: {raw!r}", key) from None

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)

    def get_int(
        self, key: str, required: bool = True, default: int | None = None, trim: bool = True
    ) -> int | None:
        def parse(raw: str) -> int:
            try:
                return int(raw)
            except ValueError:
                raise EnvValueError(f"Environment variable {key} is not a valid integer: {raw!r}", key) from None

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)

    def get_boolean(
        self, key: str, required: bool = True, default: bool | None = None, trim: bool = True
    ) -> bool | None:
        def parse(raw: str) -> bool:
            value = raw.lower()
            if value in _TRUTHY:
                return True
            if value in _FALSY:
                return False
            raise EnvValueError(f"Environment variable {key} is not a valid boolean: {raw!r}", key)

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)

    def get_enum(
        self,
        key: str,
        allowed: Sequence[str],
        required: bool = True,
        default: str | None = None,
        trim: bool = True,
    ) -> str | None:
        def parse(raw: str) -> str:
            if raw not in allowed:
                raise EnvValueError(
                    f"Environment variable {key} must be one of [{', '.join(allowed)}], got {raw!r}", key
                )
            return raw

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)

    def get_list(
        self,
        key: str,
        sep: str = ",",
        required: bool = True,
        item_type: Callable[[str], T] | None = None,
        default: list[T] | None = None,
        trim: bool = True,
    ) -> list[Any] | None:
        """Split on ``sep``, dropping blank items; ``item_type`` converts each item."""

        def parse(raw: str) -> list[Any]:
            parts = [p.strip() for p in raw.split(sep)]
            parts = [p for p in parts if p]
            if item_type is None:
                return parts
            try:
                return [item_type(p) for p in parts]
            except ValueError as e:
                raise EnvValueError(f"Environment variable {key} has an invalid item: {e}", key) from e

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)

    def get_json(self, key: str, required: bool = True, default: Any = None, trim: bool = True) -> Any:
        def parse(raw: str) -> Any:
            try:
                return json.loads(raw)
            except json.JSONDecodeError as e:
                raise EnvValueError(f"Environment variable {key} is not valid JSON: {e.msg}", key) from e

        return self._get(key, EnvOptions(required=required, default=default, trim=trim), parse)


settings = Settings()
