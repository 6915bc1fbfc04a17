"""Errores del subsistema de facturación electrónica SIFEN."""

from __future__ import annotations

from typing import Optional


class SifenError(RuntimeError):
    """Base para todos los errores de facturación electrónica."""


class ValidationError(SifenError):
    """Datos de venta insuficientes o inválidos para armar el documento."""


class TimbradoError(SifenError):
    """El timbrado configurado no permite emitir documentos."""

    NO_CONFIGURADO = "TIMBRADO_NO_CONFIGURADO"
    NO_VIGENTE = "TIMBRADO_NO_VIGENTE"
    VENCIDO = "TIMBRADO_VENCIDO"

    def __init__(self, code: str, message: Optional[str] = None) -> None:
        self.code = code
        super().__init__(message or code)


class SigningError(SifenError):
    """Fallo al cargar el certificado o al firmar el XML."""


class TransportError(SifenError):
    """Fallo de red o HTTP al comunicarse con SIFEN."""


class PersistenceError(SifenError):
    """Fallo al guardar el registro fiscal o sus artefactos."""


__all__ = [
    "PersistenceError",
    "SifenError",
    "SigningError",
    "TimbradoError",
    "TransportError",
    "ValidationError",
]
