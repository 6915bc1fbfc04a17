import logging
from dataclasses import asdict

from django.contrib.auth.decorators import login_required
from django.http import FileResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from ventas.models import FacturaElectronica, Venta
from ventas.sifen import geo
from ventas.sifen.exceptions import (
    PersistenceError,
    SifenError,
    SigningError,
    TimbradoError,
    TransportError,
    ValidationError,
)
from ventas.sifen.service import FacturaElectronicaService

logger = logging.getLogger(__name__)


def _serialize_factura(factura: FacturaElectronica) -> dict[str, object]:
    return {
        "id": factura.pk,
        "venta": factura.venta_id,
        "numero": factura.numero,
        "timbrado": factura.timbrado,
        "cdc": factura.cdc,
        "codigo_seguridad": factura.codigo_seguridad,
        "fecha_emision": factura.fecha_emision.isoformat(),
        "condicion_venta": factura.condicion_venta,
        "moneda": factura.moneda,
        "totales": {
            "exentas": str(factura.total_exentas),
            "gravada_5": str(factura.total_gravada_5),
            "iva_5": str(factura.total_iva_5),
            "gravada_10": str(factura.total_gravada_10),
            "iva_10": str(factura.total_iva_10),
            "total_iva": str(factura.total_iva),
            "total": str(factura.total),
        },
        "estado": factura.estado,
        "intentos": factura.intentos,
        "ambiente": factura.ambiente,
        "hash_pdf": factura.hash_pdf,
        "numero_control": factura.numero_control,
        "qr_payload": factura.qr_payload,
        "qr_url": factura.qr_url,
        "respuesta_set": factura.respuesta_set,
        "enviado_at": factura.enviado_at.isoformat() if factura.enviado_at else "",
    }


def _error_response(exc: SifenError) -> JsonResponse:
    if isinstance(exc, TimbradoError):
        return JsonResponse({"error": str(exc), "code": exc.code}, status=422)
    if isinstance(exc, ValidationError):
        return JsonResponse({"error": str(exc)}, status=400)
    if isinstance(exc, TransportError):
        logger.exception("SIFEN: %s", exc)
        return JsonResponse({"error": str(exc)}, status=502)
    if isinstance(exc, (SigningError, PersistenceError)):
        logger.exception("SIFEN: %s", exc)
    return JsonResponse({"error": str(exc)}, status=500)


@login_required
@require_POST
def facturar_venta(request, venta_id: int):
    venta = get_object_or_404(Venta, pk=venta_id)
    try:
        factura = FacturaElectronicaService().emitir(venta.pk)
    except SifenError as exc:
        return _error_response(exc)

    if factura.enviada:
        message = "Factura electrónica enviada a SIFEN."
    else:
        message = "Factura generada; el envío a SIFEN quedó pendiente."
    return JsonResponse({"success": True, "factura": _serialize_factura(factura), "message": message})


@login_required
@require_POST
def anular_venta(request, venta_id: int):
    venta = get_object_or_404(Venta, pk=venta_id)
    try:
        factura = FacturaElectronicaService().anular_venta(venta.pk)
    except SifenError as exc:
        return _error_response(exc)

    return JsonResponse({
        "success": True,
        "venta": venta.pk,
        "factura": _serialize_factura(factura) if factura else None,
        "message": "Venta anulada.",
    })


@login_required
@require_GET
def factura_detalle(request, factura_id: int):
    factura = get_object_or_404(FacturaElectronica, pk=factura_id)
    return JsonResponse({"factura": _serialize_factura(factura)})


def _descargar(ruta: str, content_type: str, as_attachment: bool):
    storage = FacturaElectronicaService().storage
    try:
        if not storage.existe(ruta):
            return JsonResponse({"error": "El archivo de la factura no existe."}, status=404)
        path = storage.ruta_absoluta(ruta)
    except PersistenceError as exc:
        return _error_response(exc)
    return FileResponse(
        open(path, "rb"),
        as_attachment=as_attachment,
        filename=path.name,
        content_type=content_type,
    )


@login_required
@require_GET
def factura_pdf(request, factura_id: int):
    factura = get_object_or_404(FacturaElectronica, pk=factura_id)
    return _descargar(factura.pdf_path, "application/pdf", as_attachment=False)


@login_required
@require_GET
def factura_xml(request, factura_id: int):
    factura = get_object_or_404(FacturaElectronica, pk=factura_id)
    ruta = factura.xml_firmado_path or factura.xml_path
    return _descargar(ruta, "application/xml", as_attachment=True)


@login_required
@require_GET
def factura_estado(request, factura_id: int):
    factura = get_object_or_404(FacturaElectronica, pk=factura_id)
    try:
        resultado = FacturaElectronicaService().consultar_estado(factura.pk)
    except SifenError as exc:
        return _error_response(exc)
    return JsonResponse({"factura": factura.pk, "estado": factura.estado, "consulta": resultado})


@login_required
@require_GET
def ubicaciones_api(request):
    termino = request.GET.get("q", "")
    try:
        limite = min(int(request.GET.get("limite", 20)), 100)
    except ValueError:
        return JsonResponse({"error": "Límite inválido"}, status=400)
    try:
        resultados = geo.buscar_ubicaciones(termino, limite=limite)
    except SifenError as exc:
        return _error_response(exc)
    return JsonResponse({"results": [asdict(row) for row in resultados]})
