"""Tests for ventas.sifen.kude."""

from __future__ import annotations

from decimal import Decimal

from django.test import SimpleTestCase

from ventas.sifen import kude

from .test_xml_builder import _documento


class FormatoGuaraniesTests(SimpleTestCase):
    def test_thousands_separator(self) -> None:
        self.assertEqual(kude.formato_guaranies(Decimal("121000")), "121.000")
        self.assertEqual(kude.formato_guaranies(Decimal("121000.50")), "121.000,50")
        self.assertEqual(kude.formato_guaranies(0), "0")

    def test_negative_amounts_keep_sign(self) -> None:
        self.assertEqual(kude.formato_guaranies(Decimal("-0.50")), "-0,50")
        self.assertEqual(kude.formato_guaranies(Decimal("-1500.25")), "-1.500,25")
        self.assertEqual(kude.formato_guaranies(Decimal("-0.001")), "0")


class RenderizarKudeTests(SimpleTestCase):
    def test_renders_pdf(self) -> None:
        documento = _documento()
        pdf = kude.renderizar_kude(
            documento,
            qr_contenido='{"numero": "001-001-0000042"}',
            cdc=documento.cdc,
            numero_control=documento.numero_control,
            ambiente="certificacion",
        )
        self.assertTrue(pdf.startswith(b"%PDF"))

    def test_cancelled_pdf_differs(self) -> None:
        documento = _documento()
        normal = kude.renderizar_kude(documento, qr_contenido="x", cdc=documento.cdc)
        anulada = kude.renderizar_kude(documento, qr_contenido="x", cdc=documento.cdc, anulada=True)

        self.assertTrue(anulada.startswith(b"%PDF"))
        self.assertGreater(len(anulada), 0)
        self.assertNotEqual(normal, anulada)
