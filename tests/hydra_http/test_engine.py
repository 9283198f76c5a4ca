"""Tests for the HTTPX-backed engine: requests, stubs, TLS and return codes."""

from __future__ import annotations

import socket
import ssl
import time

import httpx
import pytest

from HydraHTTP.engine import EngineOptions, EngineRequest, EngineResponse, ReturnCode, StubRegistry
from HydraHTTP.engine.request import _build_proxy, build_timeout
from HydraHTTP.engine.response import header_blob
from HydraHTTP.engine.return_codes import classify_exception, return_message
from HydraHTTP.engine.tls import build_ssl_context, parse_tls_version
from HydraHTTP.headers import parse_header_blob

URL = "https://api.example.org/items"


class TestEngineRequest:
    def test_successful_exchange(self, mock_router):
        mock_router.register("GET", URL, 200, b"[]", {"X-Request-Id": "abc"})
        req = EngineRequest(URL, transport=mock_router.transport)

        resp = req.perform()

        assert resp.code == 200
        assert resp.body == b"[]"
        assert resp.return_code is ReturnCode.OK
        assert resp.success
        assert not resp.mock
        assert resp.response_headers.startswith("HTTP/1.1 200 OK\r\n")
        assert "X-Request-Id: abc\r\n" in resp.response_headers
        assert resp.response_headers.endswith("\r\n\r\n")

    def test_sends_method_headers_and_body(self, mock_router):
        mock_router.register("POST", URL, 201)
        req = EngineRequest(
            URL,
            method="post",
            body=b'{"a": 1}',
            headers={"Content-Type": "application/json"},
            transport=mock_router.transport,
        )
        assert req.perform().code == 201
        sent = mock_router.requests[0]
        assert sent.method == "POST"
        assert sent.content == b'{"a": 1}'
        assert sent.headers["content-type"] == "application/json"

    def test_run_fires_callbacks_exactly_once(self, mock_router):
        mock_router.register("GET", URL, 204)
        req = EngineRequest(URL, transport=mock_router.transport)
        seen = []
        req.on_complete(seen.append)

        resp = req.run()

        assert seen == [resp]
        assert req.finish(EngineResponse(code=500)) is False
        assert seen == [resp]
        assert req.response is resp

    def test_timeout_is_reported_not_raised(self, mock_router):
        def _timeout(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        mock_router.register_handler("GET", URL, _timeout)
        resp = EngineRequest(URL, transport=mock_router.transport).perform()

        assert resp.code == 0
        assert resp.timed_out
        assert resp.return_code is ReturnCode.OPERATION_TIMEDOUT
        assert resp.return_message.startswith("Timeout was reached")
        assert isinstance(resp.exception, httpx.ReadTimeout)

    def test_connect_error_is_reported(self, mock_router):
        def _refused(request):
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        mock_router.register_handler("GET", URL, _refused)
        resp = EngineRequest(URL, transport=mock_router.transport).perform()

        assert resp.return_code is ReturnCode.COULDNT_CONNECT
        assert resp.return_message == "Couldn't connect to server: [Errno 111] Connection refused"
        assert not resp.timed_out

    def test_slow_body_exceeds_total_timeout(self, mock_router):
        def _trickle():
            for _ in range(5):
                time.sleep(0.05)
                yield b"x"

        mock_router.register_handler("GET", URL, lambda request: httpx.Response(200, content=_trickle()))
        resp = EngineRequest(
            URL, options=EngineOptions(timeout_ms=100), transport=mock_router.transport
        ).perform()

        assert resp.return_code is ReturnCode.OPERATION_TIMEDOUT
        assert resp.timed_out
        assert resp.code == 0

    def test_streamed_body_within_total_timeout(self, mock_router):
        def _chunks():
            yield b"hello "
            yield b"world"

        mock_router.register_handler("GET", URL, lambda request: httpx.Response(200, content=_chunks()))
        resp = EngineRequest(
            URL, options=EngineOptions(timeout_ms=5000), transport=mock_router.transport
        ).perform()

        assert resp.return_code is ReturnCode.OK
        assert resp.body == b"hello world"

    def test_unexpected_exceptions_propagate(self, mock_router):
        def _broken(request):
            raise RuntimeError("handler bug")

        mock_router.register_handler("GET", URL, _broken)
        with pytest.raises(RuntimeError, match="handler bug"):
            EngineRequest(URL, transport=mock_router.transport).perform()

    def test_missing_client_certificate_is_a_cert_problem(self):
        options = EngineOptions(sslcert="/nonexistent/client.pem")
        resp = EngineRequest(URL, options=options).perform()
        assert resp.return_code is ReturnCode.SSL_CERTPROBLEM
        assert resp.code == 0

    def test_unknown_tls_version_is_a_bad_argument(self):
        resp = EngineRequest(URL, options=EngineOptions(sslversion="SSLv2")).perform()
        assert resp.return_code is ReturnCode.BAD_FUNCTION_ARGUMENT


class TestStubs:
    def test_stub_short_circuits_transport(self, mock_router, stubs):
        stubs.stub(URL).and_return(EngineResponse(code=0))
        resp = EngineRequest(URL, transport=mock_router.transport, stubs=stubs).perform()
        assert resp.mock
        assert resp.code == 0
        assert mock_router.requests == []

    def test_last_response_repeats(self, stubs):
        stubs.stub(URL).and_return(EngineResponse(code=503), EngineResponse(code=200))
        codes = [stubs.match("GET", URL).code for _ in range(3)]
        assert codes == [503, 200, 200]

    def test_method_filter_and_regex(self, stubs):
        stubs.stub(r"re:^https://api\.example\.org/", method="post").and_return(
            EngineResponse(code=202)
        )
        assert stubs.match("GET", URL) is None
        assert stubs.match("POST", URL).code == 202

    def test_newest_expectation_wins(self, stubs):
        stubs.stub(URL).and_return(EngineResponse(code=200))
        stubs.stub(URL).and_return(EngineResponse(code=418))
        assert stubs.match("GET", URL).code == 418
        assert len(stubs) == 2
        stubs.clear()
        assert stubs.match("GET", URL) is None

    def test_registered_response_is_not_mutated(self, stubs):
        original = EngineResponse(code=200)
        stubs.stub(URL).and_return(original)
        assert stubs.match("GET", URL).mock
        assert original.mock is False


class TestTransportConfiguration:
    def test_timeout_applies_to_every_phase(self):
        timeout = build_timeout(EngineOptions(timeout_ms=2500))
        assert timeout.read == 2.5
        assert timeout.connect == 2.5

    def test_connect_timeout_overrides_connect_phase(self):
        timeout = build_timeout(EngineOptions(timeout_ms=2500, connecttimeout_ms=500))
        assert timeout.connect == 0.5
        assert timeout.read == 2.5

    def test_no_timeouts_means_no_deadline(self):
        timeout = build_timeout(EngineOptions())
        assert timeout.connect is None
        assert timeout.read is None

    def test_proxy_credentials_split(self):
        proxy = _build_proxy(
            EngineOptions(proxy="http://proxy.internal:3128", proxyuserpwd="alice:p:w")
        )
        assert proxy.url == httpx.URL("http://proxy.internal:3128")
        assert proxy.auth == ("alice", "p:w")

    def test_no_proxy(self):
        assert _build_proxy(EngineOptions()) is None

    def test_ssl_context_verification_disabled(self):
        ctx = build_ssl_context(EngineOptions(ssl_verifypeer=False, ssl_verifyhost=0))
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False

    def test_ssl_context_verification_default(self):
        ctx = build_ssl_context(EngineOptions())
        assert ctx.verify_mode == ssl.CERT_REQUIRED
        assert ctx.check_hostname is True

    def test_ssl_context_peer_only(self):
        ctx = build_ssl_context(EngineOptions(ssl_verifypeer=True, ssl_verifyhost=0))
        assert ctx.verify_mode == ssl.CERT_REQUIRED
        assert ctx.check_hostname is False

    def test_ssl_context_pins_version(self):
        ctx = build_ssl_context(EngineOptions(sslversion="1.2"))
        assert ctx.minimum_version == ssl.TLSVersion.TLSv1_2
        assert ctx.maximum_version == ssl.TLSVersion.TLSv1_2

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("TLSv1_2", ssl.TLSVersion.TLSv1_2),
            ("tlsv1.3", ssl.TLSVersion.TLSv1_3),
            ("1.2", ssl.TLSVersion.TLSv1_2),
            (ssl.TLSVersion.TLSv1_3, ssl.TLSVersion.TLSv1_3),
        ],
    )
    def test_parse_tls_version(self, value, expected):
        assert parse_tls_version(value) is expected

    def test_parse_tls_version_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_tls_version("SSLv2")


class TestReturnCodes:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (httpx.ConnectTimeout("connect"), ReturnCode.OPERATION_TIMEDOUT),
            (httpx.PoolTimeout("pool"), ReturnCode.OPERATION_TIMEDOUT),
            (httpx.ConnectError("[Errno 111] Connection refused"), ReturnCode.COULDNT_CONNECT),
            (
                httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed"),
                ReturnCode.PEER_FAILED_VERIFICATION,
            ),
            (
                httpx.RemoteProtocolError("Server disconnected without sending a response."),
                ReturnCode.GOT_NOTHING,
            ),
            (httpx.RemoteProtocolError("malformed chunk"), ReturnCode.RECV_ERROR),
            (httpx.ReadError("reset"), ReturnCode.RECV_ERROR),
            (httpx.WriteError("broken pipe"), ReturnCode.SEND_ERROR),
            (httpx.UnsupportedProtocol("ftp"), ReturnCode.UNSUPPORTED_PROTOCOL),
            (httpx.InvalidURL("bad"), ReturnCode.URL_MALFORMAT),
            (ssl.SSLError("handshake"), ReturnCode.SSL_CONNECT_ERROR),
            (ValueError("bad option"), ReturnCode.BAD_FUNCTION_ARGUMENT),
        ],
    )
    def test_classify_exception(self, exc, expected):
        assert classify_exception(exc) is expected

    def test_dns_failure_detected_through_cause(self):
        exc = httpx.ConnectError("connect failed")
        exc.__cause__ = socket.gaierror(-2, "Name or service not known")
        assert classify_exception(exc) is ReturnCode.COULDNT_RESOLVE_HOST

    def test_proxy_dns_failure(self):
        exc = httpx.ProxyError("proxy failed")
        exc.__cause__ = socket.gaierror(-2, "Name or service not known")
        assert classify_exception(exc) is ReturnCode.COULDNT_RESOLVE_PROXY

    def test_unknown_exception_is_not_classified(self):
        assert classify_exception(RuntimeError("boom")) is None

    def test_every_code_has_a_message(self):
        for code in ReturnCode:
            assert return_message(code)


class TestEngineResponse:
    def test_failure_combines_message_and_exception(self):
        resp = EngineResponse.failure(ReturnCode.COULDNT_CONNECT, OSError("refused"))
        assert resp.code == 0
        assert resp.return_message == "Couldn't connect to server: refused"
        assert not resp.success

    def test_default_message_follows_code(self):
        assert EngineResponse(return_code=ReturnCode.OK).return_message == "No error"

    def test_header_blob_includes_redirect_hops(self):
        hop = httpx.Response(301, headers={"Location": "/v2/items"})
        final = httpx.Response(200, headers={"Content-Type": "application/json"})
        blob = header_blob([hop, final])

        assert blob.count("HTTP/1.1 ") == 2
        assert blob.index("301 Moved Permanently") < blob.index("200 OK")
        parsed = parse_header_blob(blob)
        assert parsed == {"Content-Type": "application/json"}
