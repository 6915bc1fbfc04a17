"""Tests for the SIFEN management commands."""

from __future__ import annotations

import datetime as dt
import json
import os
import tempfile
from io import StringIO
from pathlib import Path
from unittest import mock

import openpyxl
from django.core.management import CommandError, call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from ventas.management.commands.importar_codigos_geograficos import parse_rows
from ventas.models import FacturaElectronica, Venta
from ventas.sifen import geo
from ventas.sifen.exceptions import TransportError
from ventas.sifen.storage import ArtefactoStorage

CABECERA = (
    "DEPARTAMENTO CODIGO",
    "DEPARTAMENTO",
    "DISTRITO CODIGO",
    "DISTRITO",
    "CIUDAD CODIGO",
    "CIUDAD",
    "BARRIO CODIGO",
    "BARRIO",
)


class ParseRowsTests(SimpleTestCase):
    def test_skips_title_rows_and_converts_codes(self) -> None:
        rows = [
            ("Códigos geográficos e-Kuatia", None),
            (),
            CABECERA,
            (7.0, "ITAPUA", "143", "DOMINGO MARTINEZ DE IRALA", 3432, "SAN IGNACIO", None, None),
            (None, None, None, None, None, None, None, None),
            (11, "CENTRAL", 173, "LUQUE", 6023, "LUQUE"),
            (12, "ÑEEMBUCU", "", "PILAR", 6449, "PILAR", None, None),
        ]
        items = parse_rows(rows)

        self.assertEqual(len(items), 2)
        self.assertEqual(items[0]["departamentoCodigo"], 7)
        self.assertEqual(items[0]["distritoCodigo"], 143)
        self.assertEqual(items[0]["barrioCodigo"], "")
        self.assertEqual(items[1]["ciudad"], "LUQUE")
        self.assertEqual(items[1]["barrio"], "")
        self.assertEqual(geo.UbicacionGeografica.from_json(items[1]).ciudad_codigo, 6023)

    def test_missing_header(self) -> None:
        with self.assertRaises(CommandError):
            parse_rows([(1, 2, 3)])


class ImportarCodigosGeograficosTests(SimpleTestCase):
    def tearDown(self) -> None:
        geo.refresh_catalogo()
        super().tearDown()

    def test_exports_workbook_to_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            origen = Path(tmpdir) / "codigos.xlsx"
            workbook = openpyxl.Workbook()
            sheet = workbook.active
            sheet.append(CABECERA)
            sheet.append([7, "ITAPUA", 143, "DOMINGO MARTINEZ DE IRALA", 3432, "SAN IGNACIO", None, None])
            workbook.save(origen)

            salida = Path(tmpdir) / "geo.json"
            out = StringIO()
            call_command("importar_codigos_geograficos", str(origen), salida=str(salida), stdout=out)

            data = json.loads(salida.read_text(encoding="utf-8"))

        self.assertEqual(data["total"], 1)
        self.assertEqual(data["items"][0]["ciudadCodigo"], 3432)
        self.assertIn("1 filas", out.getvalue())

    def test_missing_workbook(self) -> None:
        with self.assertRaises(CommandError):
            call_command("importar_codigos_geograficos", "/no/existe.xlsx", stdout=StringIO())


class SifenReintentarTests(TestCase):
    def _factura(self, numero: str, **overrides) -> FacturaElectronica:
        secuencia = int(numero[-7:])
        params = {
            "venta": Venta.objects.create(),
            "numero": numero,
            "establecimiento": "001",
            "punto_expedicion": "001",
            "secuencia": secuencia,
            "timbrado": "12345678",
            "codigo_seguridad": "123456",
            "fecha_emision": timezone.make_aware(dt.datetime(2024, 6, 10, 9, secuencia)),
        }
        params.update(overrides)
        return FacturaElectronica.objects.create(**params)

    def test_nothing_pending(self) -> None:
        out = StringIO()
        call_command("sifen_reintentar", stdout=out)
        self.assertIn("No hay facturas pendientes", out.getvalue())

    def test_retries_pending_invoices_within_limit(self) -> None:
        pendiente = self._factura("001-001-0000001")
        self._factura("001-001-0000002", intentos=5)
        self._factura("001-001-0000003", estado=FacturaElectronica.Estado.ENVIADA)
        fallida = self._factura("001-001-0000004")

        enviada = mock.Mock(enviada=True, intentos=2)

        def emitir(venta_id):
            if venta_id == fallida.venta_id:
                raise TransportError("sin red")
            return enviada

        with mock.patch("ventas.management.commands.sifen_reintentar.FacturaElectronicaService") as service_cls, \
                mock.patch.dict(os.environ, {"SIFEN_MAX_INTENTOS": "5"}):
            service_cls.return_value.emitir.side_effect = emitir
            out, err = StringIO(), StringIO()
            call_command("sifen_reintentar", stdout=out, stderr=err)

        llamadas = [call.args[0] for call in service_cls.return_value.emitir.call_args_list]
        self.assertEqual(llamadas, [pendiente.venta_id, fallida.venta_id])
        self.assertIn("1 enviadas, 1 pendientes", out.getvalue())
        self.assertIn("sin red", err.getvalue())

    def test_limit_option(self) -> None:
        self._factura("001-001-0000001")
        self._factura("001-001-0000002")

        with mock.patch("ventas.management.commands.sifen_reintentar.FacturaElectronicaService") as service_cls:
            service_cls.return_value.emitir.return_value = mock.Mock(enviada=False, intentos=1)
            call_command("sifen_reintentar", limite=1, stdout=StringIO())

        self.assertEqual(service_cls.return_value.emitir.call_count, 1)


class SifenHuerfanosTests(TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.storage = ArtefactoStorage(tmpdir.name)
        env = mock.patch.dict(os.environ, {"SIFEN_STORAGE_DIR": tmpdir.name})
        env.start()
        self.addCleanup(env.stop)

        self.storage.escribir("001-001-0000001.pdf", b"%PDF")
        self.storage.escribir("001-001-0000001.xml", b"<x/>")
        self.storage.escribir("huerfano.pdf", b"%PDF")
        FacturaElectronica.objects.create(
            venta=Venta.objects.create(),
            numero="001-001-0000001",
            establecimiento="001",
            punto_expedicion="001",
            secuencia=1,
            timbrado="12345678",
            codigo_seguridad="123456",
            fecha_emision=timezone.now(),
            xml_path="001-001-0000001.xml",
            pdf_path="001-001-0000001.pdf",
        )

    def test_lists_orphans(self) -> None:
        out = StringIO()
        call_command("sifen_huerfanos", stdout=out)

        self.assertIn("huerfano.pdf", out.getvalue())
        self.assertNotIn("001-001-0000001.pdf", out.getvalue())
        self.assertTrue(self.storage.existe("huerfano.pdf"))

    def test_deletes_orphans(self) -> None:
        call_command("sifen_huerfanos", eliminar=True, stdout=StringIO())

        self.assertFalse(self.storage.existe("huerfano.pdf"))
        self.assertTrue(self.storage.existe("001-001-0000001.pdf"))
