"""Cliente de recepción y consulta de documentos SIFEN."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from xml.sax.saxutils import escape

from . import config
from .exceptions import TransportError
from .http import HttpRawRequest, build_requests_http_request

logger = logging.getLogger(__name__)

USER_AGENT = "TridentPOS-SIFEN/1.0"
RESPUESTA_MAX_CHARS = 2000


@dataclass
class SifenClientResponse:
    """Resultado HTTP crudo; el cuerpo no se interpreta."""

    ok: bool
    status_code: int
    body: str = ""

    def resumen(self, ambiente: str, limit: int = RESPUESTA_MAX_CHARS) -> dict[str, Any]:
        return {
            "ambiente": ambiente,
            "status": self.status_code,
            "ok": self.ok,
            "body": (self.body or "")[:limit],
        }

    @classmethod
    def from_error(cls, exc: Exception) -> "SifenClientResponse":
        return cls(ok=False, status_code=0, body=str(exc))


class SifenHttpClient:
    """Envía XML firmado a SIFEN y consulta el estado por CDC."""

    def __init__(self, *, http_request: Optional[HttpRawRequest] = None) -> None:
        self._http_request = http_request

    def _request(self) -> HttpRawRequest:
        if self._http_request is None:
            self._http_request = build_requests_http_request(timeout=config.get_timeout())
        return self._http_request

    def _post(self, url: str, body: str) -> SifenClientResponse:
        if not url:
            raise TransportError("No hay endpoint SIFEN configurado para el ambiente")
        headers = {
            "Content-Type": "application/xml; charset=utf-8",
            "Accept": "application/xml, text/xml, */*",
            "User-Agent": USER_AGENT,
        }
        status_code, text = self._request()("POST", url, headers, body.encode("utf-8"))
        return SifenClientResponse(ok=200 <= status_code < 300, status_code=status_code, body=text)

    def enviar(self, signed_xml: str, ambiente: Optional[str] = None) -> SifenClientResponse:
        endpoints = config.get_endpoints(ambiente)
        response = self._post(endpoints.recepcion, signed_xml)
        logger.info(
            "SIFEN: envío a %s (%s) -> HTTP %s",
            endpoints.recepcion,
            config.get_ambiente(ambiente),
            response.status_code,
        )
        return response

    def consultar_estado(self, cdc: str, ambiente: Optional[str] = None) -> SifenClientResponse:
        endpoints = config.get_endpoints(ambiente)
        body = f"<ConsultaDe><cdc>{escape(cdc)}</cdc></ConsultaDe>"
        return self._post(endpoints.consulta, body)


__all__ = ["RESPUESTA_MAX_CHARS", "SifenClientResponse", "SifenHttpClient"]
