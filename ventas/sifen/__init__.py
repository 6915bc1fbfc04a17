"""Facturación electrónica SIFEN (Paraguay).

El orquestador vive en ``ventas.sifen.service`` y se importa por separado,
porque depende de los modelos de ``ventas``.
"""

from .cdc import calcular_dv, es_cdc_valido, generar_cdc
from .client import SifenClientResponse, SifenHttpClient
from .config import Emisor, Timbrado, get_ambiente, get_emisor, get_timbrado
from .documento import DocumentoElectronico, construir_documento
from .exceptions import (
    PersistenceError,
    SifenError,
    SigningError,
    TimbradoError,
    TransportError,
    ValidationError,
)
from .geo import buscar_ubicaciones, resolver_ubicacion
from .http import HttpRawRequest, build_requests_http_request
from .impuestos import DesgloseIva, calcular_desglose, separar_iva
from .kude import renderizar_kude
from .qr import construir_qr_payload, construir_url_qr
from .signer import SifenXMLSigner, SigningContext, load_signing_context, refresh_signing_context
from .storage import ArtefactoStorage, escribir_atomico, sha256_archivo
from .xml_builder import construir_xml_de

__all__ = [
    "calcular_dv",
    "es_cdc_valido",
    "generar_cdc",
    "SifenClientResponse",
    "SifenHttpClient",
    "Emisor",
    "Timbrado",
    "get_ambiente",
    "get_emisor",
    "get_timbrado",
    "DocumentoElectronico",
    "construir_documento",
    "PersistenceError",
    "SifenError",
    "SigningError",
    "TimbradoError",
    "TransportError",
    "ValidationError",
    "buscar_ubicaciones",
    "resolver_ubicacion",
    "HttpRawRequest",
    "build_requests_http_request",
    "DesgloseIva",
    "calcular_desglose",
    "separar_iva",
    "renderizar_kude",
    "construir_qr_payload",
    "construir_url_qr",
    "SifenXMLSigner",
    "SigningContext",
    "load_signing_context",
    "refresh_signing_context",
    "ArtefactoStorage",
    "escribir_atomico",
    "sha256_archivo",
    "construir_xml_de",
]
