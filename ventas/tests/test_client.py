"""Tests for ventas.sifen.client and ventas.sifen.http."""

from __future__ import annotations

import os
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from ventas.sifen import http
from ventas.sifen.client import RESPUESTA_MAX_CHARS, SifenClientResponse, SifenHttpClient
from ventas.sifen.exceptions import TransportError

ENDPOINTS = {
    "SIFEN_ENDPOINT_DE_CERT": "https://sifen-test.example/recepcion",
    "SIFEN_ENDPOINT_CONSULTA_CERT": "https://sifen-test.example/consulta",
    "SIFEN_ENDPOINT_DE_PROD": "https://sifen.example/recepcion",
    "SIFEN_ENDPOINT_CONSULTA_PROD": "https://sifen.example/consulta",
}


class FakeHttp:
    def __init__(self, status: int = 200, body: str = "<ok/>", error: Exception | None = None) -> None:
        self.status = status
        self.body = body
        self.error = error
        self.calls: list[tuple] = []

    def __call__(self, method, url, headers, body=None):
        self.calls.append((method, url, dict(headers), body))
        if self.error is not None:
            raise self.error
        return self.status, self.body


@mock.patch.dict(os.environ, ENDPOINTS)
class SifenHttpClientTests(SimpleTestCase):
    def test_send_posts_signed_xml_to_environment_endpoint(self) -> None:
        fake = FakeHttp()
        response = SifenHttpClient(http_request=fake).enviar("<rDE/>", "certificacion")

        self.assertTrue(response.ok)
        method, url, headers, body = fake.calls[0]
        self.assertEqual(method, "POST")
        self.assertEqual(url, ENDPOINTS["SIFEN_ENDPOINT_DE_CERT"])
        self.assertEqual(body, b"<rDE/>")
        self.assertTrue(headers["Content-Type"].startswith("application/xml"))

    def test_production_endpoint(self) -> None:
        fake = FakeHttp()
        SifenHttpClient(http_request=fake).enviar("<rDE/>", "produccion")
        self.assertEqual(fake.calls[0][1], ENDPOINTS["SIFEN_ENDPOINT_DE_PROD"])

    def test_non_2xx_is_not_ok(self) -> None:
        response = SifenHttpClient(http_request=FakeHttp(status=500, body="fallo")).enviar("<rDE/>")
        self.assertFalse(response.ok)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.body, "fallo")

    def test_status_query_escapes_cdc(self) -> None:
        fake = FakeHttp()
        SifenHttpClient(http_request=fake).consultar_estado("01<&>", "certificacion")

        _, url, _, body = fake.calls[0]
        self.assertEqual(url, ENDPOINTS["SIFEN_ENDPOINT_CONSULTA_CERT"])
        self.assertEqual(body, b"<ConsultaDe><cdc>01&lt;&amp;&gt;</cdc></ConsultaDe>")

    def test_transport_errors_propagate(self) -> None:
        fake = FakeHttp(error=TransportError("sin red"))
        with self.assertRaises(TransportError):
            SifenHttpClient(http_request=fake).enviar("<rDE/>")

    def test_missing_endpoint(self) -> None:
        with mock.patch.dict(os.environ, {"SIFEN_ENDPOINT_DE_CERT": ""}), override_settings(SIFEN_ENDPOINT_DE_CERT=""):
            with self.assertRaises(TransportError):
                SifenHttpClient(http_request=FakeHttp()).enviar("<rDE/>", "certificacion")


class SifenClientResponseTests(SimpleTestCase):
    def test_summary_truncates_body(self) -> None:
        response = SifenClientResponse(ok=True, status_code=200, body="x" * (RESPUESTA_MAX_CHARS + 500))
        resumen = response.resumen("certificacion")

        self.assertEqual(len(resumen["body"]), RESPUESTA_MAX_CHARS)
        self.assertEqual(resumen["ambiente"], "certificacion")
        self.assertEqual(resumen["status"], 200)
        self.assertTrue(resumen["ok"])

    def test_from_error(self) -> None:
        response = SifenClientResponse.from_error(TransportError("timeout"))
        self.assertFalse(response.ok)
        self.assertEqual(response.status_code, 0)
        self.assertEqual(response.body, "timeout")


class RequestsHttpTests(SimpleTestCase):
    def test_wraps_requests_session(self) -> None:
        session = mock.Mock(spec=requests.Session)
        session.request.return_value = mock.Mock(status_code=202, text="<aceptado/>")

        http_request = http.build_requests_http_request(session=session, timeout=5)
        status, text = http_request("POST", "https://sifen.example", {"A": "b"}, b"<x/>")

        self.assertEqual((status, text), (202, "<aceptado/>"))
        session.request.assert_called_once_with(
            method="POST",
            url="https://sifen.example",
            data=b"<x/>",
            headers={"A": "b"},
            timeout=5,
        )

    def test_network_errors_become_transport_errors(self) -> None:
        session = mock.Mock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("refused")

        http_request = http.build_requests_http_request(session=session)
        with self.assertRaises(TransportError):
            http_request("POST", "https://sifen.example", {}, b"")
