"""Tests for ventas.sifen.qr."""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from urllib.parse import parse_qsl, urlsplit

from django.test import SimpleTestCase
from lxml import etree

from ventas.sifen import qr
from ventas.sifen.exceptions import SigningError
from ventas.sifen.signer import SifenXMLSigner
from ventas.sifen.xml_builder import SIFEN_NS

from .helpers import make_signing_context
from .test_signer import unsigned_xml


class QrPayloadTests(SimpleTestCase):
    def test_payload_fields_are_strings(self) -> None:
        payload = qr.construir_qr_payload(
            timbrado="12345678",
            numero="001-001-0000001",
            ruc_emisor="80132959-0",
            total=121000,
            fecha=dt.datetime(2024, 5, 15, 10, 30),
            cliente="Consumidor Final",
        )
        self.assertEqual(payload["total"], "121000")
        self.assertEqual(payload["fecha"], "2024-05-15T10:30:00")
        self.assertEqual(json.loads(qr.serializar_payload(payload)), payload)


class QrUrlTests(SimpleTestCase):
    @classmethod
    def setUpClass(cls) -> None:
        super().setUpClass()
        cls.signed_xml = SifenXMLSigner(make_signing_context()).sign_document(unsigned_xml()).xml

    def test_url_contains_hash_over_params_and_csc(self) -> None:
        url = qr.construir_url_qr(self.signed_xml, "ABCD0000000000000000000000000000", "0001", "certificacion")

        self.assertTrue(url.startswith(qr.QR_URL_TEST + "?"))
        query = urlsplit(url).query
        params, _, qr_hash = query.rpartition("&cHashQR=")
        self.assertEqual(
            qr_hash,
            hashlib.sha256((params + "ABCD0000000000000000000000000000").encode("utf-8")).hexdigest(),
        )
        values = dict(parse_qsl(query))
        self.assertEqual(values["nVersion"], "150")
        self.assertEqual(values["IdCSC"], "0001")
        self.assertEqual(values["cItems"], "1")
        self.assertEqual(values["dNumIDRec"], "0")
        self.assertEqual(bytes.fromhex(values["dFeEmiDE"]).decode("utf-8"), "2024-05-15T09:00:00")

    def test_production_url(self) -> None:
        url = qr.construir_url_qr(self.signed_xml, "csc", ambiente="produccion")
        self.assertTrue(url.startswith(qr.QR_URL_PROD + "?"))

    def test_requires_csc_and_signature(self) -> None:
        with self.assertRaises(SigningError):
            qr.construir_url_qr(self.signed_xml, "")
        with self.assertRaises(SigningError):
            qr.construir_url_qr(unsigned_xml(), "csc")

    def test_insert_qr_replaces_existing_node(self) -> None:
        first = qr.insertar_qr(self.signed_xml, "https://example.test/qr?a=1")
        second = qr.insertar_qr(first, "https://example.test/qr?a=2")

        root = etree.fromstring(second.encode("utf-8"))
        nodes = root.findall(f"{{{SIFEN_NS}}}gCamFuFD")
        self.assertEqual(len(nodes), 1)
        self.assertEqual(nodes[0].findtext(f"{{{SIFEN_NS}}}dCarQR"), "https://example.test/qr?a=2")
        self.assertEqual(etree.QName(root[-1]).localname, "gCamFuFD")
