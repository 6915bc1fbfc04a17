"""Almacenamiento de XML y PDF de facturas electrónicas.

Los archivos se escriben primero en un temporal del mismo directorio y luego
se renombran con ``os.replace``; un lector nunca ve un archivo a medio
escribir. Las rutas guardadas en la base son relativas al directorio de
almacenamiento.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from . import config
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^0-9A-Za-z_-]")
EXTENSIONES = (".xml", ".pdf")


def nombre_seguro(numero: str) -> str:
    return _UNSAFE.sub("_", numero or "") or "documento"


@dataclass(frozen=True)
class RutasArtefactos:
    xml: str
    xml_firmado: str
    pdf: str


class ArtefactoStorage:
    """Escritura y lectura de artefactos bajo ``SIFEN_STORAGE_DIR``."""

    def __init__(self, base_dir: Optional[Path | str] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else None

    @property
    def base_dir(self) -> Path:
        return self._base_dir or config.get_storage_dir()

    def rutas(self, numero: str) -> RutasArtefactos:
        nombre = nombre_seguro(numero)
        return RutasArtefactos(
            xml=f"{nombre}.xml",
            xml_firmado=f"{nombre}-firmado.xml",
            pdf=f"{nombre}.pdf",
        )

    def ruta_absoluta(self, relativa: str) -> Path:
        base = self.base_dir.resolve()
        path = (base / relativa).resolve()
        if base not in path.parents:
            raise PersistenceError(f"Ruta de artefacto fuera del almacenamiento: {relativa}")
        return path

    def escribir(self, relativa: str, data: bytes) -> Path:
        destino = self.ruta_absoluta(relativa)
        escribir_atomico(destino, data)
        return destino

    def existe(self, relativa: Optional[str]) -> bool:
        return bool(relativa) and self.ruta_absoluta(relativa).is_file()

    def leer(self, relativa: str) -> bytes:
        try:
            return self.ruta_absoluta(relativa).read_bytes()
        except OSError as exc:
            raise PersistenceError(f"No se pudo leer el artefacto {relativa}: {exc}") from exc

    def sha256(self, relativa: str) -> str:
        return sha256_archivo(self.ruta_absoluta(relativa))

    def buscar_huerfanos(self, referenciados: Iterable[str]) -> list[Path]:
        """Archivos de artefactos que ningún registro fiscal referencia."""

        base = self.base_dir
        if not base.is_dir():
            return []
        conocidos = {self.ruta_absoluta(ruta) for ruta in referenciados if ruta}
        return sorted(
            path.resolve()
            for path in base.iterdir()
            if path.is_file() and path.suffix in EXTENSIONES and path.resolve() not in conocidos
        )


def escribir_atomico(destino: Path, data: bytes) -> None:
    tmp_name: Optional[str] = None
    try:
        destino.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=destino.parent, prefix=f".{destino.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, destino)
        tmp_name = None
    except OSError as exc:
        raise PersistenceError(f"No se pudo escribir {destino}: {exc}") from exc
    finally:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def sha256_archivo(path: Path | str) -> str:
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(65536), b""):
                digest.update(chunk)
    except OSError as exc:
        raise PersistenceError(f"No se pudo leer {path}: {exc}") from exc
    return digest.hexdigest()


__all__ = [
    "ArtefactoStorage",
    "RutasArtefactos",
    "escribir_atomico",
    "nombre_seguro",
    "sha256_archivo",
]
