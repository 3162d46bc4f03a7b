"""CLI entry point for stepcode.

Usage:
    stepcode code                       # Current code for $OTP_URI
    stepcode code --env-key HEROKU_OTP  # ...for another env key
    stepcode verify 123456 --window 1   # Check a code (exit 1 if rejected)
    stepcode new-secret --account me    # Fresh secret + otpauth:// URI
"""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape

from stepcode.auth.engine import OtpEngine
from stepcode.errors import StepcodeError

console = Console()


def _engine(env_key: str | None, uri: str | None) -> OtpEngine:
    from stepcode.config import settings

    if uri and env_key:
        raise click.UsageError("--uri and --env-key are mutually exclusive")
    if uri:
        return OtpEngine.from_uri(uri)
    return OtpEngine.from_env(env_key or settings.otp_env_key)


def _fail(e: StepcodeError) -> None:
    console.print(f"[red]{escape(str(e))}[/red]")
    sys.exit(2)


@click.group()
def main() -> None:
    """stepcode — TOTP codes for automated login flows."""
    from stepcode.config import settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@main.command()
@click.option("--env-key", help="Env var holding the otpauth:// URI")
@click.option("--uri", help="otpauth:// URI given directly")
@click.option("--at", "at", type=click.FloatRange(min=0), help="Unix timestamp (default: now)")
def code(env_key: str | None, uri: str | None, at: float | None) -> None:
    """Print the code for the current (or given) time."""
    engine = _engine(env_key, uri)
    try:
        value = engine.get_code(at)
        remaining = engine.remaining_seconds(at)
    except StepcodeError as e:
        _fail(e)
        return
    console.print(f"[bold]{value}[/bold]  ({remaining}s left)")


@main.command()
@click.argument("candidate")
@click.option("--env-key", help="Env var holding the otpauth:// URI")
@click.option("--uri", help="otpauth:// URI given directly")
@click.option("--window", type=click.IntRange(min=0), default=None, help="Steps of drift to accept")
@click.option("--at", "at", type=click.FloatRange(min=0), help="Unix timestamp (default: now)")
def verify(candidate: str, env_key: str | None, uri: str | None, window: int | None, at: float | None) -> None:
    """Verify CANDIDATE against the configured secret."""
    from stepcode.config import settings

    engine = _engine(env_key, uri)
    try:
        result = engine.verify(candidate, window=settings.otp_window if window is None else window, instant=at)
    except StepcodeError as e:
        _fail(e)
        return
    if result.ok:
        console.print(f"[green]OK[/green] (delta={result.delta:+d})")
    else:
        console.print(f"[red]REJECTED[/red] ({result.reason})")
        sys.exit(1)


@main.command("new-secret")
@click.option("--account", default="", help="Account name for the URI label")
@click.option("--issuer", default="", help="Issuer for the URI label")
def new_secret(account: str, issuer: str) -> None:
    """Generate a fresh secret and its provisioning URI."""
    from stepcode.auth.totp import generate_secret
    from stepcode.auth.uri import build_provisioning_uri, decode_secret
    from stepcode.models import TotpSpec

    secret = generate_secret()
    spec = TotpSpec(secret=decode_secret(secret), label=account, issuer=issuer)
    console.print(f"Secret: {secret}")
    console.print(f"URI:    {build_provisioning_uri(spec)}", soft_wrap=True)


if __name__ == "__main__":
    main()
