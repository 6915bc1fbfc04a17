"""Resolución de códigos geográficos SIFEN (departamento/distrito/ciudad/barrio).

La tabla de referencia es un JSON generado a partir del catálogo oficial de
la SET (ver el comando ``importar_codigos_geograficos``). Se carga una sola
vez por proceso.

La resolución para emitir documentos es exacta: primero por códigos, luego
por nombres normalizados y, si nada coincide, se devuelve la ubicación del
establecimiento emisor. La búsqueda por subcadena sólo se usa para
autocompletar en la interfaz.
"""

from __future__ import annotations

import functools
import json
import logging
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from .config import Ubicacion, get_setting
from .exceptions import SifenError

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).resolve().parent / "data" / "codigos_geograficos.json"

ORIGEN_CODIGOS = "codigos"
ORIGEN_NOMBRES = "nombres"
ORIGEN_FALLBACK = "fallback"

_NON_WORD = re.compile(r"[^A-Z0-9 ]+")
_SPACES = re.compile(r"\s+")


def normalizar_texto(value: Any) -> str:
    """Mayúsculas sin tildes ni signos: ``'Asunción (Distrito)'`` -> ``'ASUNCION DISTRITO'``."""

    if value is None:
        return ""
    text = unicodedata.normalize("NFD", str(value))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = _NON_WORD.sub(" ", text.upper())
    return _SPACES.sub(" ", text).strip()


def _to_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class UbicacionGeografica:
    """Fila del catálogo geográfico."""

    departamento_codigo: int
    departamento: str
    distrito_codigo: int
    distrito: str
    ciudad_codigo: int
    ciudad: str
    barrio_codigo: Optional[int] = None
    barrio: str = ""

    @classmethod
    def from_json(cls, item: dict) -> "UbicacionGeografica":
        return cls(
            departamento_codigo=int(item["departamentoCodigo"]),
            departamento=str(item.get("departamento") or ""),
            distrito_codigo=int(item["distritoCodigo"]),
            distrito=str(item.get("distrito") or ""),
            ciudad_codigo=int(item["ciudadCodigo"]),
            ciudad=str(item.get("ciudad") or ""),
            barrio_codigo=_to_int(item.get("barrioCodigo")),
            barrio=str(item.get("barrio") or ""),
        )

    def as_ubicacion(self) -> Ubicacion:
        return Ubicacion(
            departamento_codigo=self.departamento_codigo,
            departamento=self.departamento,
            distrito_codigo=self.distrito_codigo,
            distrito=self.distrito,
            ciudad_codigo=self.ciudad_codigo,
            ciudad=self.ciudad,
            barrio_codigo=self.barrio_codigo,
            barrio=self.barrio,
        )


@dataclass(frozen=True)
class PistasUbicacion:
    """Códigos y/o nombres cargados en la ficha del cliente."""

    departamento_codigo: Optional[int] = None
    departamento: str = ""
    distrito_codigo: Optional[int] = None
    distrito: str = ""
    ciudad_codigo: Optional[int] = None
    ciudad: str = ""
    barrio_codigo: Optional[int] = None
    barrio: str = ""

    @classmethod
    def desde_cliente(cls, cliente: Any) -> "PistasUbicacion":
        if cliente is None:
            return cls()
        return cls(
            departamento_codigo=_to_int(getattr(cliente, "departamento_codigo", None)),
            departamento=getattr(cliente, "departamento", "") or "",
            distrito_codigo=_to_int(getattr(cliente, "distrito_codigo", None)),
            distrito=getattr(cliente, "distrito", "") or "",
            ciudad_codigo=_to_int(getattr(cliente, "ciudad_codigo", None)),
            ciudad=getattr(cliente, "ciudad", "") or "",
            barrio_codigo=_to_int(getattr(cliente, "barrio_codigo", None)),
            barrio=getattr(cliente, "barrio", "") or "",
        )


@functools.lru_cache(maxsize=4)
def _cargar_catalogo(path: str) -> tuple[UbicacionGeografica, ...]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        raise SifenError(f"No se pudo leer el catálogo geográfico {path}: {exc}") from exc

    items = data.get("items", []) if isinstance(data, dict) else data
    rows = tuple(UbicacionGeografica.from_json(item) for item in items)
    logger.info("SIFEN: catálogo geográfico cargado (%s filas) desde %s", len(rows), path)
    return rows


def get_catalogo() -> tuple[UbicacionGeografica, ...]:
    path = get_setting("SIFEN_GEO_DATA_FILE") or str(DEFAULT_DATA_FILE)
    return _cargar_catalogo(path)


def refresh_catalogo() -> None:
    """Descartar la tabla en memoria (por ejemplo tras importar un catálogo nuevo)."""

    _cargar_catalogo.cache_clear()


def buscar_por_codigos(
    pistas: PistasUbicacion,
    catalogo: Optional[Sequence[UbicacionGeografica]] = None,
) -> Optional[UbicacionGeografica]:
    criterios = {
        "departamento_codigo": pistas.departamento_codigo,
        "distrito_codigo": pistas.distrito_codigo,
        "ciudad_codigo": pistas.ciudad_codigo,
        "barrio_codigo": pistas.barrio_codigo,
    }
    criterios = {key: value for key, value in criterios.items() if value is not None}
    if not criterios:
        return None

    rows = catalogo if catalogo is not None else get_catalogo()
    for row in rows:
        if all(getattr(row, key) == value for key, value in criterios.items()):
            return row
    return None


def buscar_por_nombres(
    pistas: PistasUbicacion,
    catalogo: Optional[Sequence[UbicacionGeografica]] = None,
) -> Optional[UbicacionGeografica]:
    departamento = normalizar_texto(pistas.departamento)
    distrito = normalizar_texto(pistas.distrito)
    ciudad = normalizar_texto(pistas.ciudad)
    if not (departamento and distrito and ciudad):
        return None

    barrio = normalizar_texto(pistas.barrio)
    rows = catalogo if catalogo is not None else get_catalogo()
    candidatos = [
        row
        for row in rows
        if normalizar_texto(row.departamento) == departamento
        and normalizar_texto(row.distrito) == distrito
        and normalizar_texto(row.ciudad) == ciudad
    ]
    if barrio:
        for row in candidatos:
            if normalizar_texto(row.barrio) == barrio:
                return row
    return candidatos[0] if candidatos else None


Estrategia = Callable[[PistasUbicacion, Optional[Sequence[UbicacionGeografica]]], Optional[UbicacionGeografica]]

ESTRATEGIAS: tuple[tuple[str, Estrategia], ...] = (
    (ORIGEN_CODIGOS, buscar_por_codigos),
    (ORIGEN_NOMBRES, buscar_por_nombres),
)


def resolver_ubicacion_con_origen(
    pistas: PistasUbicacion,
    fallback: Ubicacion,
    catalogo: Optional[Sequence[UbicacionGeografica]] = None,
) -> tuple[Ubicacion, str]:
    """Devuelve la ubicación resuelta y la estrategia que la encontró."""

    rows = catalogo if catalogo is not None else get_catalogo()
    for origen, estrategia in ESTRATEGIAS:
        row = estrategia(pistas, rows)
        if row is not None:
            return row.as_ubicacion(), origen
    return fallback, ORIGEN_FALLBACK


def resolver_ubicacion(
    pistas: PistasUbicacion,
    fallback: Ubicacion,
    catalogo: Optional[Sequence[UbicacionGeografica]] = None,
) -> Ubicacion:
    ubicacion, _ = resolver_ubicacion_con_origen(pistas, fallback, catalogo)
    return ubicacion


def buscar_ubicaciones(
    termino: str,
    limite: int = 20,
    catalogo: Optional[Iterable[UbicacionGeografica]] = None,
) -> list[UbicacionGeografica]:
    """Búsqueda por subcadena para autocompletar direcciones."""

    needle = normalizar_texto(termino)
    if not needle or limite <= 0:
        return []

    rows = catalogo if catalogo is not None else get_catalogo()
    resultados: list[UbicacionGeografica] = []
    for row in rows:
        haystack = " ".join(
            normalizar_texto(part) for part in (row.departamento, row.distrito, row.ciudad, row.barrio)
        )
        if needle in haystack:
            resultados.append(row)
            if len(resultados) >= limite:
                break
    return resultados


__all__ = [
    "DEFAULT_DATA_FILE",
    "ESTRATEGIAS",
    "ORIGEN_CODIGOS",
    "ORIGEN_FALLBACK",
    "ORIGEN_NOMBRES",
    "PistasUbicacion",
    "UbicacionGeografica",
    "buscar_por_codigos",
    "buscar_por_nombres",
    "buscar_ubicaciones",
    "get_catalogo",
    "normalizar_texto",
    "refresh_catalogo",
    "resolver_ubicacion",
    "resolver_ubicacion_con_origen",
]
