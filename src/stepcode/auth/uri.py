"""Parsing and building of otpauth:// provisioning URIs."""

from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import parse_qs, quote, unquote, urlencode, urlparse

from pydantic import ValidationError

from stepcode.errors import InvalidSecretError, MalformedConfigurationError, UnsupportedTypeError
from stepcode.models import Algorithm, TotpSpec

SCHEME = "otpauth"
TOTP_TYPE = "totp"

_SECRET_CHARS = re.compile(r"^[A-Z2-7]+=*$")
_ALGORITHM_ALIASES = {
    "SHA-1": Algorithm.SHA1,
    "SHA-256": Algorithm.SHA256,
    "SHA-512": Algorithm.SHA512,
}


def decode_secret(secret: str, source: str | None = None) -> bytes:
    """Decode a base32 secret, tolerating spaces, hyphens, lower case and missing padding."""
    cleaned = re.sub(r"\s+", "", secret).replace("-", "").upper()
    if not cleaned:
        raise MalformedConfigurationError("otpauth URI has an empty secret", field="secret", source=source)
    if "=" not in cleaned:
        missing = len(cleaned) % 8
        if missing:
            cleaned += "=" * (8 - missing)
    if not _SECRET_CHARS.match(cleaned):
        raise InvalidSecretError("secret contains characters outside the base32 alphabet", source=source)
    try:
        decoded = base64.b32decode(cleaned)
    except binascii.Error:
        raise InvalidSecretError("secret has malformed base32 padding", source=source) from None
    if not decoded:
        raise InvalidSecretError("secret decodes to nothing", source=source)
    return decoded


def _parse_algorithm(value: str | None, source: str | None) -> Algorithm:
    if not value:
        return Algorithm.SHA1
    token = value.strip().upper()
    if token in _ALGORITHM_ALIASES:
        return _ALGORITHM_ALIASES[token]
    try:
        return Algorithm(token)
    except ValueError:
        raise MalformedConfigurationError(
            f"unknown algorithm {value!r}", field="algorithm", source=source
        ) from None


def _parse_int(value: str | None, default: int, field: str, source: str | None) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise MalformedConfigurationError(f"{field} must be an integer", field=field, source=source) from None


def parse_provisioning_uri(uri: str, source: str | None = None) -> TotpSpec:
    """Parse ``otpauth://totp/Issuer:account?secret=...`` into a TotpSpec.

    ``source`` only decorates error messages (e.g. the env key the URI came
    from). Messages name the offending field and never contain the secret.
    """
    if not uri or not uri.strip():
        raise MalformedConfigurationError("otpauth URI is empty", field="uri", source=source)

    try:
        parsed = urlparse(uri.strip())
    except ValueError:
        raise MalformedConfigurationError("otpauth URI is malformed", field="uri", source=source) from None
    if parsed.scheme.lower() != SCHEME:
        raise MalformedConfigurationError("not an otpauth:// URI", field="scheme", source=source)

    otp_type = parsed.netloc.lower()
    if otp_type != TOTP_TYPE:
        raise UnsupportedTypeError(otp_type, source=source)

    label = unquote(parsed.path[1:] if parsed.path.startswith("/") else parsed.path)
    if ":" in label:
        issuer_from_label, account = label.split(":", 1)
        issuer_from_label = issuer_from_label.strip()
        account = account.strip()
    else:
        issuer_from_label = ""
        account = label.strip()

    query = parse_qs(parsed.query, keep_blank_values=True)

    def first(key: str) -> str | None:
        values = query.get(key)
        if not values:
            return None
        return values[0]

    raw_secret = first("secret")
    if not raw_secret:
        raise MalformedConfigurationError("otpauth URI has no secret", field="secret", source=source)
    secret = decode_secret(raw_secret, source=source)

    algorithm = _parse_algorithm(first("algorithm"), source)
    digits = _parse_int(first("digits"), 6, "digits", source)
    period = _parse_int(first("period"), 30, "period", source)

    try:
        return TotpSpec(
            secret=secret,
            algorithm=algorithm,
            digits=digits,
            period=period,
            label=account,
            issuer=first("issuer") or issuer_from_label,
        )
    except ValidationError as e:
        # Only the field name is reported; input values may include the secret.
        loc = e.errors()[0]["loc"]
        field = str(loc[0]) if loc else None
        raise MalformedConfigurationError(f"{field} is out of range", field=field, source=source) from None


def build_provisioning_uri(spec: TotpSpec) -> str:
    """Render a TotpSpec as an otpauth://totp/ URI."""
    label = f"{spec.issuer}:{spec.label}" if spec.issuer else spec.label
    params = {"secret": base64.b32encode(spec.secret).decode("ascii").rstrip("=")}
    if spec.issuer:
        params["issuer"] = spec.issuer
    params["algorithm"] = spec.algorithm.value
    params["digits"] = str(spec.digits)
    params["period"] = str(spec.period)
    return f"{SCHEME}://{TOTP_TYPE}/{quote(label)}?{urlencode(params, quote_via=quote)}"
