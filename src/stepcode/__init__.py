"""stepcode — TOTP codes and verification for automated login flows."""

__version__ = "0.1.0"
