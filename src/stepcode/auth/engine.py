"""OtpEngine: lazily resolved, cached TOTP parameters behind a small API.

    engine = OtpEngine.from_env("HEROKU_OTP_URI")
    code = engine.get_code()
    result = engine.verify(code, window=1)   # VerificationResult(ok=True, delta=0)
"""

from __future__ import annotations

import logging
import threading

from stepcode.auth.source import resolve_provisioning_uri
from stepcode.auth.totp import Instant, generate_code, remaining_seconds, verify_code
from stepcode.auth.uri import parse_provisioning_uri
from stepcode.config import ConfigStore
from stepcode.models import ProvisioningSource, TotpSpec, VerificationResult

logger = logging.getLogger(__name__)


class OtpEngine:
    """Generates and verifies codes for one provisioning source.

    The parsed TotpSpec is cached until ``refresh()``. The cache slot is
    guarded by a lock; readers only ever see None or a complete spec.
    """

    def __init__(self, source: ProvisioningSource, store: ConfigStore | None = None) -> None:
        self.source = source
        self._store = store
        self._lock = threading.Lock()
        self._spec: TotpSpec | None = None

    @classmethod
    def from_env(cls, env_key: str, store: ConfigStore | None = None) -> OtpEngine:
        """Engine reading its otpauth:// URI from ``env_key``."""
        return cls(ProvisioningSource.from_env(env_key), store=store)

    @classmethod
    def from_uri(cls, uri: str) -> OtpEngine:
        """Engine over a literal otpauth:// URI."""
        return cls(ProvisioningSource.from_uri(uri))

    def __repr__(self) -> str:
        return f"OtpEngine(source={self.source.describe()!r})"

    def get_spec(self) -> TotpSpec:
        spec = self._spec
        if spec is not None:
            return spec
        with self._lock:
            if self._spec is None:
                uri = resolve_provisioning_uri(self.source, self._store)
                self._spec = parse_provisioning_uri(uri, source=self.source.describe())
                logger.debug(
                    "Parsed TOTP config from %s (%s, %d digits, %ds)",
                    self.source.describe(),
                    self._spec.algorithm,
                    self._spec.digits,
                    self._spec.period,
                )
            return self._spec

    @property
    def spec(self) -> TotpSpec:
        return self.get_spec()

    def get_code(self, instant: Instant | None = None) -> str:
        """Code for ``instant`` (default: now)."""
        return generate_code(self.get_spec(), instant)

    def verify(
        self, candidate: object, window: int = 1, instant: Instant | None = None
    ) -> VerificationResult:
        """Check a user-supplied code, accepting +-``window`` steps of drift."""
        return verify_code(self.get_spec(), candidate, window=window, instant=instant)

    def verify_bool(self, candidate: object, window: int = 1, instant: Instant | None = None) -> bool:
        return self.verify(candidate, window=window, instant=instant).ok

    def remaining_seconds(self, instant: Instant | None = None) -> int:
        return remaining_seconds(self.get_spec(), instant)

    def refresh(self) -> None:
        """Drop the cached spec; the next call re-resolves and re-parses."""
        with self._lock:
            self._spec = None
        logger.info("TOTP config cache cleared for %s", self.source.describe())
