import json
from pathlib import Path

import openpyxl
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from ventas.sifen.config import get_setting
from ventas.sifen.exceptions import PersistenceError
from ventas.sifen.geo import DEFAULT_DATA_FILE, refresh_catalogo
from ventas.sifen.storage import escribir_atomico

COLUMNAS = (
    "departamentoCodigo",
    "departamento",
    "distritoCodigo",
    "distrito",
    "ciudadCodigo",
    "ciudad",
    "barrioCodigo",
    "barrio",
)


def _celda(value):
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        return int(text) if text.isdigit() else text
    return value


def _fila_cabecera(rows: list[tuple]) -> int:
    for index, row in enumerate(rows):
        if any(isinstance(cell, str) and "departamento" in cell.lower() for cell in row):
            return index
    return -1


def parse_rows(rows: list[tuple]) -> list[dict]:
    """Convierte las filas de la planilla oficial de e-Kuatia al formato del catálogo."""

    header = _fila_cabecera(rows)
    if header == -1:
        raise CommandError("No se encontró la fila de cabecera con las columnas esperadas.")

    items = []
    for row in rows[header + 1:]:
        if not row:
            continue
        valores = [_celda(cell) for cell in list(row)[: len(COLUMNAS)]]
        valores += [""] * (len(COLUMNAS) - len(valores))
        item = dict(zip(COLUMNAS, valores))
        if not (item["departamentoCodigo"] or item["departamento"] or item["distrito"] or item["ciudad"]):
            continue
        if item["departamentoCodigo"] == "" or item["distritoCodigo"] == "" or item["ciudadCodigo"] == "":
            continue
        items.append(item)
    return items


class Command(BaseCommand):
    help = 'Importa el XLSX oficial de códigos geográficos de SIFEN al catálogo JSON'

    def add_arguments(self, parser):
        parser.add_argument('archivo', help='Ruta del XLSX publicado por la SET')
        parser.add_argument(
            '--salida',
            help='Archivo JSON de destino (default: SIFEN_GEO_DATA_FILE o el catálogo incluido)',
        )

    def handle(self, *args, **options):
        origen = Path(options['archivo'])
        destino = Path(options.get('salida') or get_setting('SIFEN_GEO_DATA_FILE') or DEFAULT_DATA_FILE)

        self.stdout.write(f'📄 Leyendo {origen}')
        try:
            workbook = openpyxl.load_workbook(origen, read_only=True, data_only=True)
        except (OSError, ValueError, KeyError) as exc:
            raise CommandError(f'No se pudo abrir el archivo {origen}: {exc}') from exc
        try:
            sheet = workbook.worksheets[0]
            rows = list(sheet.iter_rows(values_only=True))
        finally:
            workbook.close()

        items = parse_rows(rows)
        if not items:
            raise CommandError('No se pudo leer ningún código geográfico.')

        data = {
            'actualizado': timezone.localdate().isoformat(),
            'total': len(items),
            'items': items,
        }
        try:
            escribir_atomico(destino, json.dumps(data, ensure_ascii=False, indent=2).encode('utf-8'))
        except PersistenceError as exc:
            raise CommandError(str(exc)) from exc
        refresh_catalogo()

        self.stdout.write(
            self.style.SUCCESS(f'✅ Catálogo exportado ({len(items)} filas) -> {destino}')
        )
