"""Serialización del Documento Electrónico al esquema SIFEN (rDE v150)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from django.utils import timezone
from lxml import etree

from .documento import (
    CONDICION_CONTADO,
    MONEDA_LOCAL,
    MONEDAS,
    DocumentoElectronico,
    ItemDocumento,
)
from .impuestos import redondear

SIFEN_NS = "http://ekuatia.set.gov.py/sifen/xsd"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = f"{SIFEN_NS} siRecepDE_v150.xsd"

TIPOS_DOCUMENTO = {1: "Factura electrónica"}
TIPOS_EMISION = {1: "Normal", 2: "Contingencia"}
TIPOS_TRANSACCION = {1: "Venta de mercadería", 2: "Prestación de servicios"}
TIPOS_IMPUESTO = {1: "IVA"}
AFECTACION_IVA = {1: "Gravado IVA", 3: "Exento"}


def _q(tag: str) -> str:
    return f"{{{SIFEN_NS}}}{tag}"


def _format_decimal(value: Any, places: int = 2) -> str:
    """Números sin ceros de relleno: ``121000.00`` -> ``121000``, ``9090.91`` se mantiene."""

    if value is None:
        value = Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantum = Decimal(1).scaleb(-places)
    text = f"{value.quantize(quantum, rounding=ROUND_HALF_UP):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _add_text(parent: etree._Element, tag: str, text: Any) -> etree._Element:
    elem = etree.SubElement(parent, _q(tag))
    elem.text = "" if text is None else str(text)
    return elem


def _add_optional(parent: etree._Element, tag: str, text: Optional[str]) -> None:
    if text:
        _add_text(parent, tag, text)


def _fecha(value) -> str:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def _build_g_ope_de(de: etree._Element, doc: DocumentoElectronico) -> None:
    g_ope = etree.SubElement(de, _q("gOpeDE"))
    _add_text(g_ope, "iTipEmi", doc.tipo_emision)
    _add_text(g_ope, "dDesTipEmi", TIPOS_EMISION.get(doc.tipo_emision, "Normal"))
    _add_text(g_ope, "dCodSeg", doc.codigo_seguridad.zfill(9))
    _add_optional(g_ope, "dInfoEmi", doc.descripcion[:3000])


def _build_g_timb(de: etree._Element, doc: DocumentoElectronico) -> None:
    g_timb = etree.SubElement(de, _q("gTimb"))
    _add_text(g_timb, "iTiDE", doc.tipo_documento)
    _add_text(g_timb, "dDesTiDE", TIPOS_DOCUMENTO.get(doc.tipo_documento, ""))
    _add_text(g_timb, "dNumTim", doc.timbrado.numero)
    _add_text(g_timb, "dEst", doc.establecimiento)
    _add_text(g_timb, "dPunExp", doc.punto_expedicion)
    _add_text(g_timb, "dNumDoc", doc.numero)
    if doc.timbrado.vigencia_inicio:
        _add_text(g_timb, "dFeIniT", doc.timbrado.vigencia_inicio.isoformat())


def _build_g_emis(parent: etree._Element, doc: DocumentoElectronico) -> None:
    emisor = doc.emisor
    est = emisor.establecimiento
    g_emis = etree.SubElement(parent, _q("gEmis"))
    _add_text(g_emis, "dRucEm", emisor.ruc_numero)
    _add_text(g_emis, "dDVEmi", emisor.ruc_dv)
    _add_text(g_emis, "iTipCont", emisor.tipo_contribuyente)
    _add_text(g_emis, "cTipReg", emisor.tipo_regimen)
    _add_text(g_emis, "dNomEmi", emisor.razon_social)
    _add_optional(g_emis, "dNomFanEmi", emisor.nombre_fantasia)
    _add_text(g_emis, "dDirEmi", est.direccion)
    _add_text(g_emis, "dNumCas", est.numero_casa)
    _add_text(g_emis, "cDepEmi", est.ubicacion.departamento_codigo)
    _add_text(g_emis, "dDesDepEmi", est.ubicacion.departamento)
    if est.ubicacion.distrito_codigo is not None:
        _add_text(g_emis, "cDisEmi", est.ubicacion.distrito_codigo)
        _add_text(g_emis, "dDesDisEmi", est.ubicacion.distrito)
    _add_text(g_emis, "cCiuEmi", est.ubicacion.ciudad_codigo)
    _add_text(g_emis, "dDesCiuEmi", est.ubicacion.ciudad)
    _add_text(g_emis, "dTelEmi", est.telefono)
    _add_text(g_emis, "dEmailE", est.email)
    _add_optional(g_emis, "dDenSuc", est.denominacion)
    for actividad in emisor.actividades:
        g_act = etree.SubElement(g_emis, _q("gActEco"))
        _add_text(g_act, "cActEco", actividad.codigo)
        _add_text(g_act, "dDesActEco", actividad.descripcion)


def _build_g_dat_rec(parent: etree._Element, doc: DocumentoElectronico) -> None:
    cliente = doc.cliente
    g_rec = etree.SubElement(parent, _q("gDatRec"))
    _add_text(g_rec, "iNatRec", 1 if cliente.contribuyente else 2)
    _add_text(g_rec, "iTiOpe", 1 if cliente.contribuyente else 2)
    _add_text(g_rec, "cPaisRec", "PRY")
    _add_text(g_rec, "dDesPaisRe", "Paraguay")
    if cliente.contribuyente:
        ruc_numero, ruc_dv = cliente.ruc_partes
        _add_text(g_rec, "iTiContRec", 1)
        _add_text(g_rec, "dRucRec", ruc_numero)
        _add_text(g_rec, "dDVRec", ruc_dv)
    elif cliente.documento:
        _add_text(g_rec, "iTipIDRec", 1)
        _add_text(g_rec, "dDTipIDRec", "Cédula paraguaya")
        _add_text(g_rec, "dNumIDRec", cliente.documento)
    else:
        _add_text(g_rec, "iTipIDRec", 5)
        _add_text(g_rec, "dDTipIDRec", "Innominado")
        _add_text(g_rec, "dNumIDRec", "0")
    _add_text(g_rec, "dNomRec", cliente.nombre)
    if cliente.direccion and cliente.ubicacion is not None:
        ubicacion = cliente.ubicacion
        _add_text(g_rec, "dDirRec", cliente.direccion)
        _add_text(g_rec, "dNumCasRec", cliente.numero_casa or "0")
        _add_text(g_rec, "cDepRec", ubicacion.departamento_codigo)
        _add_text(g_rec, "dDesDepRec", ubicacion.departamento)
        if ubicacion.distrito_codigo is not None:
            _add_text(g_rec, "cDisRec", ubicacion.distrito_codigo)
            _add_text(g_rec, "dDesDisRec", ubicacion.distrito)
        _add_text(g_rec, "cCiuRec", ubicacion.ciudad_codigo)
        _add_text(g_rec, "dDesCiuRec", ubicacion.ciudad)
    _add_optional(g_rec, "dTelRec", cliente.telefono)
    _add_optional(g_rec, "dCelRec", cliente.celular)
    _add_optional(g_rec, "dEmailRec", cliente.email)
    _add_optional(g_rec, "dCodCliente", cliente.codigo)


def _build_g_dat_gral_ope(de: etree._Element, doc: DocumentoElectronico) -> None:
    g_gral = etree.SubElement(de, _q("gDatGralOpe"))
    _add_text(g_gral, "dFeEmiDE", _fecha(doc.fecha_emision))

    g_ope_com = etree.SubElement(g_gral, _q("gOpeCom"))
    _add_text(g_ope_com, "iTipTra", doc.tipo_transaccion)
    _add_text(g_ope_com, "dDesTipTra", TIPOS_TRANSACCION.get(doc.tipo_transaccion, ""))
    _add_text(g_ope_com, "iTImp", doc.tipo_impuesto)
    _add_text(g_ope_com, "dDesTImp", TIPOS_IMPUESTO.get(doc.tipo_impuesto, ""))
    _add_text(g_ope_com, "cMoneOpe", doc.moneda)
    _add_text(g_ope_com, "dDesMoneOpe", MONEDAS.get(doc.moneda, doc.moneda))
    if doc.moneda != MONEDA_LOCAL:
        _add_text(g_ope_com, "dCondTiCam", 1)
        _add_text(g_ope_com, "dTiCam", _format_decimal(doc.tipo_cambio, 4))

    _build_g_emis(g_gral, doc)
    _build_g_dat_rec(g_gral, doc)


def _build_g_cam_cond(parent: etree._Element, doc: DocumentoElectronico) -> None:
    condicion = doc.condicion
    g_cond = etree.SubElement(parent, _q("gCamCond"))
    _add_text(g_cond, "iCondOpe", condicion.tipo)
    _add_text(g_cond, "dDCondOpe", condicion.descripcion)
    if condicion.tipo == CONDICION_CONTADO:
        for entrega in condicion.entregas:
            g_pago = etree.SubElement(g_cond, _q("gPaConEIni"))
            _add_text(g_pago, "iTiPago", entrega.tipo_pago)
            _add_text(g_pago, "dDesTiPag", entrega.descripcion)
            _add_text(g_pago, "dMonTiPag", _format_decimal(entrega.monto))
            _add_text(g_pago, "cMoneTiPag", entrega.moneda)
            _add_text(g_pago, "dDMoneTiPag", MONEDAS.get(entrega.moneda, entrega.moneda))
    else:
        g_cred = etree.SubElement(g_cond, _q("gPagCred"))
        _add_text(g_cred, "iCondCred", 1)
        _add_text(g_cred, "dDCondCred", "Plazo")
        _add_text(g_cred, "dPlazoCre", f"{condicion.plazo_dias} días")


def _build_g_cam_item(parent: etree._Element, item: ItemDocumento) -> None:
    g_item = etree.SubElement(parent, _q("gCamItem"))
    _add_text(g_item, "dCodInt", item.codigo or "0")
    _add_text(g_item, "dDesProSer", item.descripcion)
    _add_text(g_item, "cUniMed", item.unidad_codigo)
    _add_text(g_item, "dDesUniMed", item.unidad_descripcion)
    _add_text(g_item, "dCantProSer", _format_decimal(item.cantidad, 4))

    g_valor = etree.SubElement(g_item, _q("gValorItem"))
    _add_text(g_valor, "dPUniProSer", _format_decimal(item.precio_unitario))
    _add_text(g_valor, "dTotBruOpeItem", _format_decimal(item.total_bruto))
    g_resta = etree.SubElement(g_valor, _q("gValorRestaItem"))
    _add_text(g_resta, "dDescItem", _format_decimal(item.descuento))
    _add_text(g_resta, "dTotOpeItem", _format_decimal(item.subtotal))

    impuesto = item.impuesto
    afectacion = 3 if impuesto.exento else 1
    g_iva = etree.SubElement(g_item, _q("gCamIVA"))
    _add_text(g_iva, "iAfecIVA", afectacion)
    _add_text(g_iva, "dDesAfecIVA", AFECTACION_IVA[afectacion])
    _add_text(g_iva, "dPropIVA", 0 if impuesto.exento else 100)
    _add_text(g_iva, "dTasaIVA", impuesto.tasa)
    _add_text(g_iva, "dBasGravIVA", _format_decimal(0 if impuesto.exento else impuesto.base))
    _add_text(g_iva, "dLiqIVAItem", _format_decimal(impuesto.iva))
    _add_text(g_iva, "dBasExe", _format_decimal(impuesto.subtotal if impuesto.exento else 0))


def _build_g_dtip_de(de: etree._Element, doc: DocumentoElectronico) -> None:
    g_dtip = etree.SubElement(de, _q("gDtipDE"))
    g_cam_fe = etree.SubElement(g_dtip, _q("gCamFE"))
    _add_text(g_cam_fe, "iIndPres", 1)
    _add_text(g_cam_fe, "dDesIndPres", "Operación presencial")
    _build_g_cam_cond(g_dtip, doc)
    for item in doc.items:
        _build_g_cam_item(g_dtip, item)


def _build_g_tot_sub(de: etree._Element, doc: DocumentoElectronico) -> None:
    desglose = doc.desglose
    descuentos = redondear(sum((item.descuento for item in doc.items), Decimal("0")))
    g_tot = etree.SubElement(de, _q("gTotSub"))
    _add_text(g_tot, "dSubExe", _format_decimal(desglose.exentas))
    _add_text(g_tot, "dSubExo", "0")
    _add_text(g_tot, "dSub5", _format_decimal(desglose.gravado_5))
    _add_text(g_tot, "dSub10", _format_decimal(desglose.gravado_10))
    _add_text(g_tot, "dTotOpe", _format_decimal(desglose.total))
    _add_text(g_tot, "dTotDesc", _format_decimal(descuentos))
    _add_text(g_tot, "dTotDescGlotem", "0")
    _add_text(g_tot, "dTotAntItem", "0")
    _add_text(g_tot, "dTotAnt", "0")
    _add_text(g_tot, "dPorcDescTotal", "0")
    _add_text(g_tot, "dDescTotal", _format_decimal(descuentos))
    _add_text(g_tot, "dAnticipo", "0")
    _add_text(g_tot, "dRedon", "0")
    _add_text(g_tot, "dTotGralOpe", _format_decimal(desglose.total))
    _add_text(g_tot, "dIVA5", _format_decimal(desglose.iva_5))
    _add_text(g_tot, "dIVA10", _format_decimal(desglose.iva_10))
    _add_text(g_tot, "dLiqTotIVA5", "0")
    _add_text(g_tot, "dLiqTotIVA10", "0")
    _add_text(g_tot, "dTotIVA", _format_decimal(desglose.total_iva))
    _add_text(g_tot, "dBaseGrav5", _format_decimal(desglose.base_5))
    _add_text(g_tot, "dBaseGrav10", _format_decimal(desglose.base_10))
    _add_text(g_tot, "dTBasGraIVA", _format_decimal(desglose.base_5 + desglose.base_10))
    if doc.moneda != MONEDA_LOCAL and doc.tipo_cambio:
        _add_text(g_tot, "dTotalGs", _format_decimal(desglose.total * doc.tipo_cambio))


def construir_xml_de(
    documento: DocumentoElectronico,
    *,
    fecha_firma=None,
    include_declaration: bool = True,
) -> str:
    """Devuelve el XML ``rDE`` sin firmar del documento."""

    root = etree.Element(
        _q("rDE"),
        nsmap={None: SIFEN_NS, "xsi": XSI_NS},
    )
    root.set(f"{{{XSI_NS}}}schemaLocation", SCHEMA_LOCATION)
    _add_text(root, "dVerFor", documento.emisor.version)

    cdc = documento.cdc
    de = etree.SubElement(root, _q("DE"), Id=cdc)
    _add_text(de, "dDVId", cdc[-1])
    _add_text(de, "dFecFirma", _fecha(fecha_firma or timezone.localtime()))
    _add_text(de, "dSisFact", 1)

    _build_g_ope_de(de, documento)
    _build_g_timb(de, documento)
    _build_g_dat_gral_ope(de, documento)
    _build_g_dtip_de(de, documento)
    _build_g_tot_sub(de, documento)

    return etree.tostring(root, encoding="UTF-8", xml_declaration=include_declaration).decode("utf-8")


__all__ = ["SIFEN_NS", "construir_xml_de"]
