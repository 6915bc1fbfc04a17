"""Lectura de la configuración SIFEN del emisor.

Cada valor se busca primero en las variables de entorno y luego en
``django.conf.settings``; de esta forma el despliegue puede sobreescribir
cualquier parámetro sin tocar ``settings.py`` y las pruebas pueden usar
``override_settings``.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from django.conf import settings

from .exceptions import TimbradoError

logger = logging.getLogger(__name__)

AMBIENTE_CERTIFICACION = "certificacion"
AMBIENTE_PRODUCCION = "produccion"
AMBIENTES = (AMBIENTE_CERTIFICACION, AMBIENTE_PRODUCCION)


def get_setting(name: str) -> Optional[str]:
    value = os.environ.get(name) or getattr(settings, name, None)
    if value is None:
        return None
    return str(value).strip()


def _get_int(name: str, default: int) -> int:
    raw = get_setting(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("SIFEN: valor inválido para %s (%r); se usa %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Ubicacion:
    departamento_codigo: Optional[int]
    departamento: str
    distrito_codigo: Optional[int]
    distrito: str
    ciudad_codigo: Optional[int]
    ciudad: str
    barrio_codigo: Optional[int] = None
    barrio: str = ""


@dataclass(frozen=True)
class Establecimiento:
    codigo: str
    punto_expedicion: str
    direccion: str
    numero_casa: str
    ubicacion: Ubicacion
    telefono: str
    email: str
    denominacion: str


@dataclass(frozen=True)
class ActividadEconomica:
    codigo: str
    descripcion: str


@dataclass(frozen=True)
class Emisor:
    """Parámetros del contribuyente que emite los documentos."""

    version: int
    ruc: str
    razon_social: str
    nombre_fantasia: str
    tipo_contribuyente: int
    tipo_regimen: int
    actividades: tuple[ActividadEconomica, ...]
    establecimiento: Establecimiento

    @property
    def ruc_numero(self) -> str:
        return self.ruc.split("-", 1)[0].strip()

    @property
    def ruc_dv(self) -> str:
        parts = self.ruc.split("-", 1)
        return parts[1].strip() if len(parts) == 2 else ""


@dataclass(frozen=True)
class Timbrado:
    numero: str
    vigencia_inicio: Optional[dt.date]
    vigencia_fin: Optional[dt.date]
    establecimiento: str
    punto_expedicion: str


@dataclass(frozen=True)
class Endpoints:
    recepcion: str
    consulta: str


def get_ambiente(value: Optional[str] = None) -> str:
    """Normaliza el ambiente; cualquier valor desconocido es certificación."""

    raw = (value if value is not None else get_setting("SIFEN_AMBIENTE")) or ""
    if raw.strip().lower() == AMBIENTE_PRODUCCION:
        return AMBIENTE_PRODUCCION
    return AMBIENTE_CERTIFICACION


def get_endpoints(ambiente: Optional[str] = None) -> Endpoints:
    suffix = "PROD" if get_ambiente(ambiente) == AMBIENTE_PRODUCCION else "CERT"
    return Endpoints(
        recepcion=get_setting(f"SIFEN_ENDPOINT_DE_{suffix}") or "",
        consulta=get_setting(f"SIFEN_ENDPOINT_CONSULTA_{suffix}") or "",
    )


def get_timeout() -> float:
    raw = get_setting("SIFEN_TIMEOUT")
    try:
        return float(raw) if raw else 15.0
    except ValueError:
        logger.warning("SIFEN: SIFEN_TIMEOUT inválido (%r); se usa 15s", raw)
        return 15.0


def get_iva_defecto() -> int:
    return _get_int("SIFEN_IVA_DEFECTO", 10)


def get_max_intentos() -> int:
    return _get_int("SIFEN_MAX_INTENTOS", 5)


def get_csc() -> tuple[str, str]:
    return get_setting("SIFEN_CSC") or "", get_setting("SIFEN_CSC_ID") or "0001"


def get_storage_dir() -> Path:
    configured = get_setting("SIFEN_STORAGE_DIR")
    if configured:
        return Path(configured)
    return Path(settings.MEDIA_ROOT) / "facturas_digitales"


def _optional_int(name: str) -> Optional[int]:
    raw = get_setting(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def get_emisor() -> Emisor:
    ubicacion = Ubicacion(
        departamento_codigo=_optional_int("SIFEN_DEPARTAMENTO_CODIGO"),
        departamento=get_setting("SIFEN_DEPARTAMENTO") or "",
        distrito_codigo=_optional_int("SIFEN_DISTRITO_CODIGO"),
        distrito=get_setting("SIFEN_DISTRITO") or "",
        ciudad_codigo=_optional_int("SIFEN_CIUDAD_CODIGO"),
        ciudad=get_setting("SIFEN_CIUDAD") or "",
    )
    establecimiento = Establecimiento(
        codigo=(get_setting("SIFEN_ESTABLECIMIENTO") or "001").zfill(3),
        punto_expedicion=(get_setting("SIFEN_PUNTO_EXPEDICION") or "001").zfill(3),
        direccion=get_setting("SIFEN_DIRECCION") or "",
        numero_casa=get_setting("SIFEN_NUMERO_CASA") or "0",
        ubicacion=ubicacion,
        telefono=get_setting("SIFEN_TELEFONO") or "",
        email=get_setting("SIFEN_EMAIL") or "",
        denominacion=get_setting("SIFEN_DENOMINACION_SUCURSAL") or "",
    )
    actividad = ActividadEconomica(
        codigo=get_setting("SIFEN_ACTIVIDAD_CODIGO") or "",
        descripcion=get_setting("SIFEN_ACTIVIDAD_DESCRIPCION") or "",
    )
    return Emisor(
        version=_get_int("SIFEN_VERSION", 150),
        ruc=get_setting("SIFEN_RUC") or "",
        razon_social=get_setting("SIFEN_RAZON_SOCIAL") or "",
        nombre_fantasia=get_setting("SIFEN_NOMBRE_FANTASIA") or "",
        tipo_contribuyente=_get_int("SIFEN_TIPO_CONTRIBUYENTE", 2),
        tipo_regimen=_get_int("SIFEN_TIPO_REGIMEN", 8),
        actividades=(actividad,) if actividad.codigo else (),
        establecimiento=establecimiento,
    )


def parse_fecha(value: Optional[str]) -> Optional[dt.date]:
    """Acepta ``dd/mm/yyyy`` o ``yyyy-mm-dd``."""

    if not value:
        return None
    text = value.strip()
    for fmt in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise TimbradoError(
        TimbradoError.NO_CONFIGURADO,
        f"Fecha de timbrado inválida: {value!r}",
    )


def get_timbrado() -> Timbrado:
    emisor = get_emisor()
    return Timbrado(
        numero=get_setting("SIFEN_TIMBRADO") or "",
        vigencia_inicio=parse_fecha(get_setting("SIFEN_TIMBRADO_INICIO")),
        vigencia_fin=parse_fecha(get_setting("SIFEN_TIMBRADO_FIN")),
        establecimiento=emisor.establecimiento.codigo,
        punto_expedicion=emisor.establecimiento.punto_expedicion,
    )


__all__ = [
    "AMBIENTES",
    "AMBIENTE_CERTIFICACION",
    "AMBIENTE_PRODUCCION",
    "ActividadEconomica",
    "Emisor",
    "Endpoints",
    "Establecimiento",
    "Timbrado",
    "Ubicacion",
    "get_ambiente",
    "get_csc",
    "get_emisor",
    "get_endpoints",
    "get_iva_defecto",
    "get_max_intentos",
    "get_storage_dir",
    "get_timbrado",
    "get_setting",
    "get_timeout",
    "parse_fecha",
]
