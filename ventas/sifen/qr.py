"""Contenido del código QR del KuDE.

El registro fiscal guarda un payload estructurado con los datos visibles de
la factura. Para el documento impreso y el nodo ``gCamFuFD/dCarQR`` se arma
la URL oficial de consulta de la SET, que incluye el digest de la firma y un
hash con el CSC (Código de Seguridad del Contribuyente).
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from typing import Any, Optional

from lxml import etree

from .config import AMBIENTE_PRODUCCION, get_ambiente
from .exceptions import SigningError
from .signer import DS_NS
from .xml_builder import SIFEN_NS

logger = logging.getLogger(__name__)

QR_URL_TEST = "https://www.ekuatia.set.gov.py/consultas-test/qr"
QR_URL_PROD = "https://www.ekuatia.set.gov.py/consultas/qr"

_NS = {"s": SIFEN_NS, "ds": DS_NS}


def construir_qr_payload(
    *,
    timbrado: str,
    numero: str,
    ruc_emisor: str,
    total: Any,
    fecha: Any,
    cliente: str,
) -> dict[str, str]:
    return {
        "timbrado": str(timbrado),
        "numero": str(numero),
        "ruc_emisor": str(ruc_emisor),
        "total": str(total),
        "fecha": fecha.isoformat() if hasattr(fecha, "isoformat") else str(fecha),
        "cliente": str(cliente),
    }


def serializar_payload(payload: dict[str, str]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def _text(root: etree._Element, path: str, default: str = "") -> str:
    value = root.findtext(path, namespaces=_NS)
    return value.strip() if value else default


def construir_url_qr(
    signed_xml: str | bytes,
    csc: str,
    csc_id: str = "0001",
    ambiente: Optional[str] = None,
) -> str:
    """URL oficial del QR a partir del XML ya firmado."""

    if not csc:
        raise SigningError("SIFEN_CSC no está configurado; no se puede generar el QR oficial")

    data = signed_xml.encode("utf-8") if isinstance(signed_xml, str) else signed_xml
    root = etree.fromstring(data)
    de = root.find("s:DE", _NS)
    if de is None:
        raise SigningError("El XML firmado no contiene el nodo DE")
    cdc = de.get("Id", "")

    digest = ""
    for reference in root.iterfind("ds:Signature/ds:SignedInfo/ds:Reference", _NS):
        if reference.get("URI") == f"#{cdc}":
            digest = _text(reference, "ds:DigestValue")
            break
    if not digest:
        raise SigningError("El XML no está firmado; falta el DigestValue del DE")

    ruc_rec = _text(de, ".//s:gDatRec/s:dRucRec")
    if ruc_rec:
        id_receptor = f"dRucRec={re.sub(r'[^0-9]', '', ruc_rec)}"
    else:
        id_receptor = f"dNumIDRec={_text(de, './/s:gDatRec/s:dNumIDRec', '0')}"

    params = "&".join(
        (
            f"nVersion={_text(root, 's:dVerFor', '150')}",
            f"Id={cdc}",
            f"dFeEmiDE={_text(de, './/s:gDatGralOpe/s:dFeEmiDE').encode('utf-8').hex()}",
            id_receptor,
            f"dTotGralOpe={_text(de, './/s:gTotSub/s:dTotGralOpe', '0')}",
            f"dTotIVA={_text(de, './/s:gTotSub/s:dTotIVA', '0')}",
            f"cItems={len(de.findall('.//s:gDtipDE/s:gCamItem', _NS))}",
            f"DigestValue={digest.encode('utf-8').hex()}",
            f"IdCSC={csc_id}",
        )
    )
    qr_hash = hashlib.sha256((params + csc).encode("utf-8")).hexdigest()
    base_url = QR_URL_PROD if get_ambiente(ambiente) == AMBIENTE_PRODUCCION else QR_URL_TEST
    return f"{base_url}?{params}&cHashQR={qr_hash}"


def insertar_qr(signed_xml: str | bytes, url: str) -> str:
    """Agrega ``gCamFuFD/dCarQR`` después de la firma, fuera del nodo firmado."""

    data = signed_xml.encode("utf-8") if isinstance(signed_xml, str) else signed_xml
    root = etree.fromstring(data)
    for old in root.findall("s:gCamFuFD", _NS):
        root.remove(old)
    g_cam = etree.SubElement(root, f"{{{SIFEN_NS}}}gCamFuFD")
    etree.SubElement(g_cam, f"{{{SIFEN_NS}}}dCarQR").text = url
    return etree.tostring(root, encoding="UTF-8", xml_declaration=True).decode("utf-8")


__all__ = [
    "QR_URL_PROD",
    "QR_URL_TEST",
    "construir_qr_payload",
    "construir_url_qr",
    "insertar_qr",
    "serializar_payload",
]
