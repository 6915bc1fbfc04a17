"""Orquestador del ciclo de vida de la factura electrónica.

``emitir`` es idempotente por venta: la primera llamada reserva el número y
el código de seguridad; las siguientes reutilizan ambos, vuelven a firmar,
regeneran los artefactos y reenvían. Un fallo de red no es fatal: el
documento queda ``PENDIENTE`` con el intento registrado.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Max
from django.utils import timezone

from ventas.models import DetalleVenta, FacturaElectronica, SecuenciaTimbrado, Venta

from . import config
from .client import SifenClientResponse, SifenHttpClient
from .documento import DocumentoElectronico, Numeracion, construir_documento, generar_codigo_seguridad
from .exceptions import PersistenceError, TimbradoError, TransportError, ValidationError
from .impuestos import normalizar_tasa_defecto
from .kude import renderizar_kude
from .qr import construir_qr_payload, construir_url_qr, insertar_qr, serializar_payload
from .signer import SifenXMLSigner
from .storage import ArtefactoStorage
from .xml_builder import construir_xml_de

logger = logging.getLogger(__name__)

REINTENTOS_NUMERACION = 3


def validar_timbrado(timbrado: config.Timbrado, now: Optional[dt.datetime] = None) -> None:
    """La vigencia es inclusiva: desde el inicio 00:00:00 hasta el fin 23:59:59."""

    if not timbrado.numero or timbrado.vigencia_inicio is None or timbrado.vigencia_fin is None:
        raise TimbradoError(
            TimbradoError.NO_CONFIGURADO,
            "Configura SIFEN_TIMBRADO, SIFEN_TIMBRADO_INICIO y SIFEN_TIMBRADO_FIN antes de facturar.",
        )

    now = now or timezone.now()
    if timezone.is_naive(now):
        now = timezone.make_aware(now)
    fecha = timezone.localtime(now).date()

    if fecha < timbrado.vigencia_inicio:
        raise TimbradoError(
            TimbradoError.NO_VIGENTE,
            f"El timbrado {timbrado.numero} rige desde el {timbrado.vigencia_inicio:%d/%m/%Y}.",
        )
    if fecha > timbrado.vigencia_fin:
        raise TimbradoError(
            TimbradoError.VENCIDO,
            f"El timbrado {timbrado.numero} venció el {timbrado.vigencia_fin:%d/%m/%Y}.",
        )


def reservar_secuencia(timbrado: config.Timbrado) -> int:
    """Siguiente número del timbrado/establecimiento/punto, bajo bloqueo de fila."""

    filtros = {
        "timbrado": timbrado.numero,
        "establecimiento": timbrado.establecimiento,
        "punto_expedicion": timbrado.punto_expedicion,
    }
    for _ in range(REINTENTOS_NUMERACION):
        try:
            with transaction.atomic():
                secuencia = SecuenciaTimbrado.objects.select_for_update().filter(**filtros).first()
                if secuencia is None:
                    ultimo = (
                        FacturaElectronica.objects.filter(**filtros)
                        .aggregate(ultimo=Max("secuencia"))
                        .get("ultimo")
                    )
                    secuencia = SecuenciaTimbrado.objects.create(ultimo_numero=ultimo or 0, **filtros)
                secuencia.ultimo_numero = F("ultimo_numero") + 1
                secuencia.save(update_fields=["ultimo_numero", "updated_at"])
                secuencia.refresh_from_db(fields=["ultimo_numero"])
                return secuencia.ultimo_numero
        except IntegrityError:
            logger.warning(
                "SIFEN: conflicto al crear la secuencia del timbrado %s (%s-%s); reintentando",
                timbrado.numero,
                timbrado.establecimiento,
                timbrado.punto_expedicion,
            )
    raise PersistenceError("No se pudo reservar un número de factura para el timbrado.")


def _timbrado_de_factura(factura: FacturaElectronica) -> config.Timbrado:
    return config.Timbrado(
        numero=factura.timbrado,
        vigencia_inicio=factura.timbrado_vigencia_inicio,
        vigencia_fin=factura.timbrado_vigencia_fin,
        establecimiento=factura.establecimiento,
        punto_expedicion=factura.punto_expedicion,
    )


class FacturaElectronicaService:
    """Emite, consulta y regenera facturas electrónicas de ventas."""

    def __init__(
        self,
        *,
        http_client: Optional[SifenHttpClient] = None,
        signer: Optional[SifenXMLSigner] = None,
        storage: Optional[ArtefactoStorage] = None,
    ) -> None:
        self.http_client = http_client or SifenHttpClient()
        self.signer = signer or SifenXMLSigner()
        self.storage = storage or ArtefactoStorage()

    def emitir(self, venta_id: int, now: Optional[dt.datetime] = None) -> FacturaElectronica:
        now = now or timezone.now()
        timbrado = config.get_timbrado()
        validar_timbrado(timbrado, now)
        ambiente = config.get_ambiente()

        try:
            with transaction.atomic():
                venta = Venta.objects.select_for_update().select_related("cliente").get(pk=venta_id)
                detalles = self._detalles(venta)
                factura = FacturaElectronica.objects.select_for_update().filter(venta=venta).first()
                if factura is None:
                    if venta.anulada:
                        raise ValidationError("No se puede facturar una venta anulada.")
                    factura = self._registrar_numeracion(venta, timbrado, now)
                signed_xml = self._generar_artefactos(factura, venta, detalles, ambiente)
                if venta.estado == Venta.Estado.PENDIENTE:
                    venta.estado = Venta.Estado.FACTURADO
                    venta.save(update_fields=["estado", "updated_at"])
        except DatabaseError as exc:
            raise PersistenceError(f"No se pudo guardar la factura de la venta {venta_id}: {exc}") from exc

        respuesta = self._enviar(factura, signed_xml, ambiente)
        return self._registrar_envio(factura, respuesta, ambiente)

    def obtener_artefactos(self, factura_id: int) -> dict[str, Optional[str]]:
        factura = FacturaElectronica.objects.get(pk=factura_id)
        return {
            campo: str(self.storage.ruta_absoluta(ruta)) if ruta else None
            for campo, ruta in (
                ("xml_path", factura.xml_path),
                ("xml_firmado_path", factura.xml_firmado_path),
                ("pdf_path", factura.pdf_path),
            )
        }

    def consultar_estado(self, factura_id: int) -> dict:
        factura = FacturaElectronica.objects.get(pk=factura_id)
        if not factura.cdc:
            raise ValidationError("La factura no tiene CDC para consultar.")
        ambiente = config.get_ambiente(factura.ambiente or None)
        try:
            respuesta = self.http_client.consultar_estado(factura.cdc, ambiente)
        except TransportError as exc:
            logger.exception("SIFEN: error consultando el estado de %s", factura.numero)
            respuesta = SifenClientResponse.from_error(exc)
        return respuesta.resumen(ambiente)

    def anular_venta(self, venta_id: int) -> Optional[FacturaElectronica]:
        try:
            with transaction.atomic():
                venta = Venta.objects.select_for_update().get(pk=venta_id)
                if not venta.anulada:
                    venta.estado = Venta.Estado.ANULADA
                    venta.save(update_fields=["estado", "updated_at"])
                    logger.info("SIFEN: venta %s anulada", venta.pk)
        except DatabaseError as exc:
            raise PersistenceError(f"No se pudo anular la venta {venta_id}: {exc}") from exc
        return self.regenerar_artefactos(venta_id)

    def regenerar_artefactos(self, venta_id: int) -> Optional[FacturaElectronica]:
        """Vuelve a generar el KuDE; el estado fiscal no cambia."""

        try:
            with transaction.atomic():
                venta = Venta.objects.select_for_update().select_related("cliente").get(pk=venta_id)
                factura = FacturaElectronica.objects.select_for_update().filter(venta=venta).first()
                if factura is None:
                    return None
                documento = self._construir_documento(factura, venta, self._detalles(venta))
                qr_contenido = factura.qr_url or serializar_payload(factura.qr_payload or {})
                self._guardar_pdf(factura, documento, qr_contenido, factura.ambiente, venta.anulada)
                factura.save(update_fields=["pdf_path", "hash_pdf", "updated_at"])
        except DatabaseError as exc:
            raise PersistenceError(f"No se pudo actualizar la factura de la venta {venta_id}: {exc}") from exc
        logger.info("SIFEN: KuDE de %s regenerado", factura.numero)
        return factura

    def _detalles(self, venta: Venta) -> list[DetalleVenta]:
        detalles = list(venta.detalles.select_related("producto"))
        if not detalles:
            raise ValidationError("La venta no tiene detalles para facturar.")
        return detalles

    def _registrar_numeracion(
        self,
        venta: Venta,
        timbrado: config.Timbrado,
        now: dt.datetime,
    ) -> FacturaElectronica:
        fecha_emision = timezone.localtime(now).replace(microsecond=0)
        codigo_seguridad = generar_codigo_seguridad()
        for _ in range(REINTENTOS_NUMERACION):
            secuencia = reservar_secuencia(timbrado)
            try:
                with transaction.atomic():
                    factura = FacturaElectronica.objects.create(
                        venta=venta,
                        numero=f"{timbrado.establecimiento}-{timbrado.punto_expedicion}-{secuencia:07d}",
                        establecimiento=timbrado.establecimiento,
                        punto_expedicion=timbrado.punto_expedicion,
                        secuencia=secuencia,
                        timbrado=timbrado.numero,
                        timbrado_vigencia_inicio=timbrado.vigencia_inicio,
                        timbrado_vigencia_fin=timbrado.vigencia_fin,
                        codigo_seguridad=codigo_seguridad,
                        fecha_emision=fecha_emision,
                    )
            except IntegrityError:
                logger.warning(
                    "SIFEN: el número %s ya está asignado en el timbrado %s; se reserva otro",
                    secuencia,
                    timbrado.numero,
                )
                continue
            logger.info("SIFEN: número %s asignado a la venta %s", factura.numero, venta.pk)
            return factura
        raise PersistenceError("No se pudo asignar un número de factura único.")

    def _construir_documento(
        self,
        factura: FacturaElectronica,
        venta: Venta,
        detalles: list[DetalleVenta],
    ) -> DocumentoElectronico:
        return construir_documento(
            venta,
            venta.cliente,
            detalles,
            config.get_emisor(),
            _timbrado_de_factura(factura),
            numeracion=Numeracion(
                secuencia=factura.secuencia,
                codigo_seguridad=factura.codigo_seguridad,
                fecha_emision=factura.fecha_emision,
            ),
            tasa_defecto=normalizar_tasa_defecto(config.get_iva_defecto()),
        )

    def _generar_artefactos(
        self,
        factura: FacturaElectronica,
        venta: Venta,
        detalles: list[DetalleVenta],
        ambiente: str,
    ) -> str:
        documento = self._construir_documento(factura, venta, detalles)
        xml = construir_xml_de(documento, fecha_firma=timezone.localtime().replace(microsecond=0))
        firmado = self.signer.sign_document(xml)

        payload = construir_qr_payload(
            timbrado=factura.timbrado,
            numero=documento.numero_documento,
            ruc_emisor=documento.emisor.ruc,
            total=documento.total,
            fecha=documento.fecha_emision,
            cliente=documento.cliente.nombre,
        )
        csc, csc_id = config.get_csc()
        signed_xml = firmado.xml
        qr_url = ""
        if csc:
            qr_url = construir_url_qr(signed_xml, csc, csc_id, ambiente)
            signed_xml = insertar_qr(signed_xml, qr_url)
        else:
            logger.warning("SIFEN: SIFEN_CSC no configurado; el QR de %s no es el oficial", factura.numero)

        rutas = self.storage.rutas(factura.numero)
        self.storage.escribir(rutas.xml, xml.encode("utf-8"))
        self.storage.escribir(rutas.xml_firmado, signed_xml.encode("utf-8"))
        self._guardar_pdf(
            factura,
            documento,
            qr_url or serializar_payload(payload),
            ambiente,
            venta.anulada,
        )

        desglose = documento.desglose
        factura.cdc = documento.cdc
        factura.condicion_venta = venta.condicion
        factura.moneda = documento.moneda
        factura.total_exentas = desglose.exentas
        factura.total_gravada_5 = desglose.gravado_5
        factura.total_iva_5 = desglose.iva_5
        factura.total_gravada_10 = desglose.gravado_10
        factura.total_iva_10 = desglose.iva_10
        factura.total_iva = desglose.total_iva
        factura.total = desglose.total
        factura.xml_path = rutas.xml
        factura.xml_firmado_path = rutas.xml_firmado
        factura.qr_payload = payload
        factura.qr_url = qr_url
        factura.numero_control = documento.numero_control
        factura.certificado = firmado.certificado
        factura.save()
        return signed_xml

    def _guardar_pdf(
        self,
        factura: FacturaElectronica,
        documento: DocumentoElectronico,
        qr_contenido: str,
        ambiente: str,
        anulada: bool,
    ) -> None:
        pdf = renderizar_kude(
            documento,
            qr_contenido=qr_contenido,
            cdc=documento.cdc,
            numero_control=documento.numero_control,
            ambiente=ambiente,
            anulada=anulada,
        )
        ruta = self.storage.rutas(factura.numero).pdf
        self.storage.escribir(ruta, pdf)
        factura.pdf_path = ruta
        factura.hash_pdf = self.storage.sha256(ruta)

    def _enviar(self, factura: FacturaElectronica, signed_xml: str, ambiente: str) -> SifenClientResponse:
        try:
            respuesta = self.http_client.enviar(signed_xml, ambiente)
        except TransportError as exc:
            logger.exception("SIFEN: error de transporte al enviar %s", factura.numero)
            return SifenClientResponse.from_error(exc)
        if not respuesta.ok:
            logger.warning(
                "SIFEN: SIFEN respondió HTTP %s para %s",
                respuesta.status_code,
                factura.numero,
            )
        return respuesta

    def _registrar_envio(
        self,
        factura: FacturaElectronica,
        respuesta: SifenClientResponse,
        ambiente: str,
    ) -> FacturaElectronica:
        ahora = timezone.now()
        campos = {
            "intentos": F("intentos") + 1,
            "ambiente": ambiente,
            "respuesta_set": respuesta.resumen(ambiente),
            "updated_at": ahora,
        }
        if respuesta.ok:
            campos["estado"] = FacturaElectronica.Estado.ENVIADA
            campos["enviado_at"] = ahora
        try:
            with transaction.atomic():
                FacturaElectronica.objects.filter(pk=factura.pk).update(**campos)
        except DatabaseError as exc:
            raise PersistenceError(f"No se pudo registrar el envío de {factura.numero}: {exc}") from exc
        factura.refresh_from_db()
        logger.info(
            "SIFEN: factura %s estado=%s intentos=%s",
            factura.numero,
            factura.estado,
            factura.intentos,
        )
        return factura


__all__ = ["FacturaElectronicaService", "reservar_secuencia", "validar_timbrado"]
