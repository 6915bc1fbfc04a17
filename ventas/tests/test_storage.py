"""Tests for ventas.sifen.storage."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from unittest import mock

from django.test import SimpleTestCase, override_settings

from ventas.sifen import storage
from ventas.sifen.exceptions import PersistenceError
from ventas.sifen.storage import ArtefactoStorage


class ArtefactoStorageTests(SimpleTestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.storage = ArtefactoStorage(self.tmpdir.name)

    def test_paths_are_derived_from_invoice_number(self) -> None:
        rutas = self.storage.rutas("001-001-0000042")
        self.assertEqual(rutas.xml, "001-001-0000042.xml")
        self.assertEqual(rutas.xml_firmado, "001-001-0000042-firmado.xml")
        self.assertEqual(rutas.pdf, "001-001-0000042.pdf")
        self.assertEqual(storage.nombre_seguro("../x/y"), "___x_y")
        self.assertEqual(storage.nombre_seguro(""), "documento")

    def test_write_read_and_hash(self) -> None:
        destino = self.storage.escribir("a.pdf", b"%PDF-1.4 contenido")

        self.assertTrue(destino.is_file())
        self.assertEqual(self.storage.leer("a.pdf"), b"%PDF-1.4 contenido")
        self.assertEqual(self.storage.sha256("a.pdf"), hashlib.sha256(b"%PDF-1.4 contenido").hexdigest())
        self.assertTrue(self.storage.existe("a.pdf"))
        self.assertFalse(self.storage.existe("b.pdf"))
        self.assertFalse(self.storage.existe(""))

    def test_overwrite_leaves_no_temporary_files(self) -> None:
        self.storage.escribir("a.xml", b"<a/>")
        self.storage.escribir("a.xml", b"<b/>")

        self.assertEqual(os.listdir(self.tmpdir.name), ["a.xml"])
        self.assertEqual(self.storage.leer("a.xml"), b"<b/>")

    def test_failed_write_keeps_previous_file(self) -> None:
        self.storage.escribir("a.xml", b"<a/>")
        with mock.patch("ventas.sifen.storage.os.replace", side_effect=OSError("disco lleno")):
            with self.assertRaises(PersistenceError):
                self.storage.escribir("a.xml", b"<b/>")

        self.assertEqual(self.storage.leer("a.xml"), b"<a/>")
        self.assertEqual(os.listdir(self.tmpdir.name), ["a.xml"])

    def test_paths_outside_base_dir_are_rejected(self) -> None:
        with self.assertRaises(PersistenceError):
            self.storage.ruta_absoluta("../fuera.xml")
        with self.assertRaises(PersistenceError):
            self.storage.escribir("/etc/passwd", b"x")

    def test_missing_file_read_raises(self) -> None:
        with self.assertRaises(PersistenceError):
            self.storage.leer("no-existe.xml")
        with self.assertRaises(PersistenceError):
            self.storage.sha256("no-existe.pdf")

    def test_orphans(self) -> None:
        for name in ("a.xml", "a-firmado.xml", "a.pdf", "b.pdf", "notas.txt"):
            self.storage.escribir(name, b"x")

        huerfanos = self.storage.buscar_huerfanos(["a.xml", "a-firmado.xml", "a.pdf", ""])
        self.assertEqual([path.name for path in huerfanos], ["b.pdf"])

    def test_orphans_without_directory(self) -> None:
        missing = ArtefactoStorage(Path(self.tmpdir.name) / "nada")
        self.assertEqual(missing.buscar_huerfanos([]), [])

    def test_base_dir_from_settings(self) -> None:
        with mock.patch.dict(os.environ, {"SIFEN_STORAGE_DIR": ""}):
            with override_settings(SIFEN_STORAGE_DIR=self.tmpdir.name):
                self.assertEqual(ArtefactoStorage().base_dir, Path(self.tmpdir.name))
