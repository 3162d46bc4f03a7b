"""TOTP (Time-based One-Time Password) code generation and verification.

Uses pyotp for the HMAC + dynamic truncation step of RFC 6238; time-step
arithmetic, the drift window and token normalization live here so they can be
driven by an explicit clock.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import math
import time
from collections.abc import Iterator
from datetime import datetime, timezone

import pyotp

from stepcode.models import Algorithm, TotpSpec, VerificationResult

Instant = datetime | int | float

REASON_MALFORMED = "empty or non-numeric-shaped"
REASON_NO_MATCH = "no match within window"

_DIGESTS = {
    Algorithm.SHA1: hashlib.sha1,
    Algorithm.SHA256: hashlib.sha256,
    Algorithm.SHA512: hashlib.sha512,
}

# Full-width digits U+FF10..U+FF19 -> ASCII 0..9
_FULLWIDTH_DIGITS = str.maketrans({chr(0xFF10 + i): str(i) for i in range(10)})


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars)."""
    return pyotp.random_base32()


def unix_seconds(instant: Instant | None = None) -> float:
    """Seconds since the epoch; naive datetimes are taken as UTC."""
    if instant is None:
        return time.time()
    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.timestamp()
    return float(instant)


def _seconds_since_epoch(instant: Instant | None) -> float:
    seconds = unix_seconds(instant)
    if seconds < 0:
        raise ValueError("instant precedes the Unix epoch")
    return seconds


def time_step(spec: TotpSpec, instant: Instant | None = None) -> int:
    """Counter of the step containing ``instant``."""
    return math.floor(_seconds_since_epoch(instant) / spec.period)


def remaining_seconds(spec: TotpSpec, instant: Instant | None = None) -> int:
    """Whole seconds until the code for ``instant`` rolls over (1..period)."""
    return spec.period - int(_seconds_since_epoch(instant)) % spec.period


def _otp(spec: TotpSpec) -> pyotp.TOTP:
    return pyotp.TOTP(
        base64.b32encode(spec.secret).decode("ascii"),
        digits=spec.digits,
        digest=_DIGESTS[spec.algorithm],
        interval=spec.period,
    )


def generate_code(spec: TotpSpec, instant: Instant | None = None) -> str:
    """Get the TOTP code for ``instant`` (default: now), zero-padded to ``spec.digits``."""
    return _otp(spec).generate_otp(time_step(spec, instant))


def normalize_token(value: object) -> str:
    """Strip all whitespace, map full-width digits to ASCII and upper-case.

    Never fails: anything that is not a string normalizes to "".
    """
    if not isinstance(value, str):
        return ""
    return "".join(value.translate(_FULLWIDTH_DIGITS).split()).upper()


def window_offsets(window: int) -> Iterator[int]:
    """0, -1, +1, -2, +2, ... out to +-window."""
    yield 0
    for d in range(1, window + 1):
        yield -d
        yield d


def verify_code(
    spec: TotpSpec,
    candidate: object,
    window: int = 1,
    instant: Instant | None = None,
) -> VerificationResult:
    """Check ``candidate`` against the steps within +-``window`` of ``instant``.

    The nearest matching step wins, the earlier one on ties. A mismatch is
    reported in the result, never raised.
    """
    if window < 0:
        raise ValueError("window must be non-negative")

    token = normalize_token(candidate)
    if len(token) != spec.digits or not (token.isascii() and token.isdigit()):
        return VerificationResult(ok=False, reason=REASON_MALFORMED)

    otp = _otp(spec)
    current = time_step(spec, instant)
    for delta in window_offsets(window):
        counter = current + delta
        if counter < 0:
            continue
        if hmac.compare_digest(otp.generate_otp(counter), token):
            return VerificationResult(ok=True, delta=delta)
    return VerificationResult(ok=False, reason=REASON_NO_MATCH)


def verify_code_bool(
    spec: TotpSpec,
    candidate: object,
    window: int = 1,
    instant: Instant | None = None,
) -> bool:
    """Boolean form of verify_code."""
    return verify_code(spec, candidate, window=window, instant=instant).ok
