"""Tests for ventas.sifen.cdc."""

from __future__ import annotations

import datetime as dt

from django.test import SimpleTestCase

from ventas.sifen import cdc


class CalcularDvTests(SimpleTestCase):
    def test_known_ruc_check_digits(self) -> None:
        self.assertEqual(cdc.calcular_dv("80132959"), 0)
        self.assertEqual(cdc.calcular_dv("44444401"), 7)

    def test_rejects_non_numeric(self) -> None:
        with self.assertRaises(ValueError):
            cdc.calcular_dv("80A")

    def test_separar_ruc(self) -> None:
        self.assertEqual(cdc.separar_ruc("80132959-0"), ("80132959", "0"))
        self.assertEqual(cdc.separar_ruc("44444401"), ("44444401", "7"))
        with self.assertRaises(ValueError):
            cdc.separar_ruc("sin-ruc")


class GenerarCdcTests(SimpleTestCase):
    def _cdc(self, **overrides) -> str:
        params = {
            "tipo_documento": cdc.TIPO_FACTURA_ELECTRONICA,
            "ruc": "80132959-0",
            "establecimiento": "001",
            "punto_expedicion": "001",
            "numero": "0000042",
            "tipo_contribuyente": 2,
            "fecha_emision": dt.datetime(2024, 5, 15, 10, 30),
            "tipo_emision": cdc.TIPO_EMISION_NORMAL,
            "codigo_seguridad": "123456",
        }
        params.update(overrides)
        return cdc.generar_cdc(**params)

    def test_layout_and_check_digit(self) -> None:
        value = self._cdc()

        self.assertEqual(len(value), cdc.CDC_LENGTH)
        self.assertTrue(value.startswith("01" + "80132959" + "0" + "001" + "001" + "0000042" + "2"))
        self.assertEqual(value[25:33], "20240515")
        self.assertEqual(value[33], "1")
        self.assertEqual(value[34:43], "000123456")
        self.assertTrue(cdc.es_cdc_valido(value))

    def test_security_code_is_padded_to_nine_digits(self) -> None:
        value = self._cdc(codigo_seguridad="7")
        self.assertEqual(value[34:43], "000000007")

    def test_tampered_cdc_is_invalid(self) -> None:
        value = self._cdc()
        tampered = value[:-1] + str((int(value[-1]) + 1) % 10)
        self.assertFalse(cdc.es_cdc_valido(tampered))
        self.assertFalse(cdc.es_cdc_valido(value[:-2]))

    def test_number_too_long_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._cdc(numero="123456789")
