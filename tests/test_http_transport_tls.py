from __future__ import annotations

import timeclock_upload.http_transport as http_transport


def test_build_ssl_context_prefers_env_bundle(monkeypatch) -> None:
    calls: dict[str, str | None] = {}

    def fake_create_default_context(*, cafile=None):
        calls["cafile"] = cafile
        return object()

    monkeypatch.setattr(http_transport.ssl, "create_default_context", fake_create_default_context)
    monkeypatch.setenv("TIMECLOCK_CA_BUNDLE", "/tmp/custom-ca.pem")

    ctx = http_transport._build_ssl_context()
    assert ctx is not None
    assert calls["cafile"] == "/tmp/custom-ca.pem"


def test_build_ssl_context_unverified_when_disabled(monkeypatch) -> None:
    sentinel = object()
    monkeypatch.setattr(http_transport.ssl, "_create_unverified_context", lambda: sentinel)

    ctx = http_transport._build_ssl_context(verify=False)
    assert ctx is sentinel


def test_build_ssl_context_uses_certifi_bundle(monkeypatch) -> None:
    calls: dict[str, str | None] = {}

    def fake_create_default_context(*, cafile=None):
        calls["cafile"] = cafile
        return object()

    class FakeCertifi:
        @staticmethod
        def where() -> str:
            return "/tmp/certifi.pem"

    monkeypatch.setattr(http_transport.ssl, "create_default_context", fake_create_default_context)
    monkeypatch.setattr(http_transport, "certifi", FakeCertifi)
    monkeypatch.delenv("TIMECLOCK_CA_BUNDLE", raising=False)

    ctx = http_transport._build_ssl_context()
    assert ctx is not None
    assert calls["cafile"] == "/tmp/certifi.pem"


def test_unverified_transport_passes_unverified_context(monkeypatch) -> None:
    sentinel = object()
    seen: dict[str, object] = {}

    class _Resp:
        status = 200

        def read(self):
            return b"{}"

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def fake_urlopen(request, timeout, context):
        seen["context"] = context
        return _Resp()

    monkeypatch.setattr(http_transport.ssl, "_create_unverified_context", lambda: sentinel)
    monkeypatch.setattr(http_transport.urllib.request, "urlopen", fake_urlopen)

    transport = http_transport.HttpRecordTransport("https://collector", "k", verify_tls=False)
    result = transport.send_one([{"user_id": "1"}])
    assert result.success
    assert seen["context"] is sentinel
