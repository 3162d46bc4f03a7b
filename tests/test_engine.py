"""Tests for OtpEngine caching, refresh and resolution."""

from __future__ import annotations

import threading

import pytest

from stepcode.auth.engine import OtpEngine
from stepcode.auth.source import resolve_provisioning_uri
from stepcode.config import EnvStore
from stepcode.errors import (
    ConfigurationError,
    InvalidSecretError,
    MalformedConfigurationError,
    UnsupportedTypeError,
)
from stepcode.models import ProvisioningSource

URI = "otpauth://totp/Heroku:bob?secret=JBSWY3DPEHPK3PXP&issuer=Heroku"
OTHER_URI = "otpauth://totp/Heroku:bob?secret=GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ&digits=8"


class CountingStore(EnvStore):
    """EnvStore over a dict that counts lookups."""

    def __init__(self, values: dict[str, str]):
        super().__init__(values, env_file=None)
        self.lookups = 0

    def get_string(self, key, required=True, default=None, trim=True):
        self.lookups += 1
        return super().get_string(key, required=required, default=default, trim=trim)


class TestResolve:

    def test_literal_wins(self):
        src = ProvisioningSource.from_uri(f"  {URI}  ")
        assert resolve_provisioning_uri(src, EnvStore({}, env_file=None)) == URI

    def test_env_key(self):
        store = EnvStore({"OTP_URI": URI}, env_file=None)
        assert resolve_provisioning_uri(ProvisioningSource.from_env("OTP_URI"), store) == URI

    def test_missing_env_key(self):
        store = EnvStore({}, env_file=None)
        with pytest.raises(ConfigurationError, match="OTP_URI"):
            resolve_provisioning_uri(ProvisioningSource.from_env("OTP_URI"), store)

    def test_blank_env_value(self):
        store = EnvStore({"OTP_URI": "   "}, env_file=None)
        with pytest.raises(ConfigurationError):
            resolve_provisioning_uri(ProvisioningSource.from_env("OTP_URI"), store)

    def test_blank_literal(self):
        with pytest.raises(ConfigurationError):
            resolve_provisioning_uri(ProvisioningSource.from_uri("   "))

    def test_default_store_reads_process_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("STEPCODE_TEST_URI", URI)
        assert resolve_provisioning_uri(ProvisioningSource.from_env("STEPCODE_TEST_URI")) == URI


class TestEngine:

    def test_get_code(self):
        engine = OtpEngine.from_uri(URI)
        assert engine.get_code(59) == "996554"
        assert engine.spec.issuer == "Heroku"

    def test_end_to_end(self):
        engine = OtpEngine.from_env("OTP_URI", store=EnvStore({"OTP_URI": URI}, env_file=None))
        code = engine.get_code(59)
        assert code == "996554"
        result = engine.verify(code, window=1, instant=59 + 30)
        assert result.ok
        assert result.delta == -1
        assert engine.verify_bool(code, window=1, instant=59 + 30)

    def test_verify_reports_reasons(self):
        engine = OtpEngine.from_uri(URI)
        assert engine.verify("", instant=59).reason == "empty or non-numeric-shaped"
        assert engine.verify("000000", instant=59).reason == "no match within window"
        assert engine.verify_bool("000000", instant=59) is False

    def test_remaining_seconds(self):
        assert OtpEngine.from_uri(URI).remaining_seconds(59) == 1

    def test_caches_parsed_spec(self):
        store = CountingStore({"OTP_URI": URI})
        engine = OtpEngine.from_env("OTP_URI", store=store)
        first = engine.spec
        engine.get_code(59)
        engine.verify("996554", instant=59)
        assert engine.spec is first
        assert store.lookups == 1

    def test_change_observed_only_after_refresh(self):
        values = {"OTP_URI": URI}
        engine = OtpEngine.from_env("OTP_URI", store=EnvStore(values, env_file=None))
        assert engine.get_code(59) == "996554"

        values["OTP_URI"] = OTHER_URI
        assert engine.get_code(59) == "996554"

        engine.refresh()
        assert engine.get_code(59) == "94287082"
        assert engine.spec.digits == 8

    def test_invalid_secret_on_first_use(self):
        engine = OtpEngine.from_uri("otpauth://totp/x?secret=not-base32!")
        with pytest.raises(InvalidSecretError):
            engine.get_code(59)
        with pytest.raises(InvalidSecretError):
            engine.verify("123456", instant=59)

    def test_unsupported_type(self):
        engine = OtpEngine.from_uri("otpauth://hotp/x?secret=JBSWY3DPEHPK3PXP&counter=1")
        with pytest.raises(UnsupportedTypeError):
            engine.get_code()

    def test_missing_config_then_recovers(self):
        values: dict[str, str] = {}
        engine = OtpEngine.from_env("OTP_URI", store=EnvStore(values, env_file=None))
        with pytest.raises(ConfigurationError):
            engine.get_code(59)
        values["OTP_URI"] = URI
        assert engine.get_code(59) == "996554"

    def test_repr_hides_uri(self):
        assert "JBSWY3DPEHPK3PXP" not in repr(OtpEngine.from_uri(URI))

    def test_concurrent_first_use_parses_once(self):
        store = CountingStore({"OTP_URI": URI})
        engine = OtpEngine.from_env("OTP_URI", store=store)
        start = threading.Barrier(8)
        codes: list[str] = []

        def worker():
            start.wait()
            codes.append(engine.get_code(59))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert codes == ["996554"] * 8
        assert store.lookups == 1

    def test_unbalanced_bracket_is_malformed(self):
        engine = OtpEngine.from_uri("otpauth://[totp/x?secret=JBSWY3DPEHPK3PXP")
        with pytest.raises(MalformedConfigurationError) as exc:
            engine.get_code(59)
        assert exc.value.field == "uri"

    def test_concurrent_use_after_refresh_parses_once(self):
        store = CountingStore({"OTP_URI": URI})
        engine = OtpEngine.from_env("OTP_URI", store=store)
        assert engine.get_code(59) == "996554"
        engine.refresh()

        start = threading.Barrier(8)
        codes: list[str] = []

        def worker():
            start.wait()
            codes.append(engine.get_code(59))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert codes == ["996554"] * 8
        assert store.lookups == 2
