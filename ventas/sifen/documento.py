"""Armado del Documento Electrónico a partir de una venta.

``construir_documento`` reúne emisor, timbrado, cliente, ítems, condición de
pago y totales en un :class:`DocumentoElectronico`. La serialización a XML
queda a cargo de :mod:`ventas.sifen.xml_builder`.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from django.utils import timezone

from . import cdc as cdc_utils
from .config import Emisor, Timbrado, Ubicacion
from .exceptions import ValidationError
from .geo import PistasUbicacion, resolver_ubicacion_con_origen
from .impuestos import (
    DesgloseIva,
    ImpuestoItem,
    LineaImpuesto,
    calcular_desglose,
    calcular_item,
    redondear,
    to_decimal,
)

logger = logging.getLogger(__name__)

MONEDA_LOCAL = "PYG"
RUC_CONSUMIDOR_FINAL = "44444401-7"
NOMBRE_CONSUMIDOR_FINAL = "Consumidor Final"

UNIDAD_POR_DEFECTO = 77
UNIDADES_MEDIDA = {
    "UNIDAD": 77,
    "UNIDADES": 77,
    "UN": 77,
    "UNI": 77,
    "KG": 6,
    "KILOGRAMO": 6,
    "L": 7,
    "LITRO": 7,
    "HORA": 96,
    "HORAS": 96,
}
DESCRIPCION_UNIDAD = {77: "UNI", 6: "KG", 7: "L", 96: "HORA"}

CONDICION_CONTADO = 1
CONDICION_CREDITO = 2

# iTiPago
MEDIOS_PAGO = {
    "efectivo": (1, "Efectivo"),
    "cheque": (2, "Cheque"),
    "tarjeta_credito": (3, "Tarjeta de crédito"),
    "tarjeta_debito": (4, "Tarjeta de débito"),
    "transferencia": (5, "Transferencia"),
}

MONEDAS = {
    "PYG": "Guarani",
    "USD": "US Dollar",
    "BRL": "Brazilian Real",
    "ARS": "Argentine Peso",
    "EUR": "Euro",
}


def generar_codigo_seguridad() -> str:
    return f"{secrets.randbelow(10**6):06d}"


def resolver_unidad_medida(codigo: Any, unidad: Any) -> int:
    if codigo not in (None, ""):
        try:
            return int(codigo)
        except (TypeError, ValueError):
            logger.warning("SIFEN: código de unidad inválido %r; se busca por nombre", codigo)
    clave = str(unidad or "").strip().upper()
    return UNIDADES_MEDIDA.get(clave, UNIDAD_POR_DEFECTO)


@dataclass(frozen=True)
class ClienteDocumento:
    contribuyente: bool
    ruc: str
    nombre: str
    documento: str = ""
    direccion: str = ""
    numero_casa: str = ""
    telefono: str = ""
    celular: str = ""
    email: str = ""
    codigo: str = ""
    ubicacion: Optional[Ubicacion] = None
    origen_ubicacion: str = ""

    @property
    def ruc_partes(self) -> tuple[str, str]:
        return cdc_utils.separar_ruc(self.ruc)


@dataclass(frozen=True)
class ItemDocumento:
    codigo: str
    descripcion: str
    unidad_codigo: int
    cantidad: Decimal
    precio_unitario: Decimal
    descuento: Decimal
    subtotal: Decimal
    impuesto: ImpuestoItem

    @property
    def unidad_descripcion(self) -> str:
        return DESCRIPCION_UNIDAD.get(self.unidad_codigo, "UNI")

    @property
    def total_bruto(self) -> Decimal:
        return redondear(self.precio_unitario * self.cantidad)


@dataclass(frozen=True)
class Entrega:
    tipo_pago: int
    descripcion: str
    monto: Decimal
    moneda: str = MONEDA_LOCAL


@dataclass(frozen=True)
class CondicionPago:
    tipo: int
    entregas: tuple[Entrega, ...] = ()
    plazo_dias: Optional[int] = None

    @property
    def descripcion(self) -> str:
        return "Contado" if self.tipo == CONDICION_CONTADO else "Crédito"

    @property
    def etiqueta(self) -> str:
        return "CONTADO" if self.tipo == CONDICION_CONTADO else "CRÉDITO"


@dataclass(frozen=True)
class Numeracion:
    """Datos que el orquestador fija una vez y reutiliza en cada reenvío."""

    secuencia: int
    codigo_seguridad: str
    fecha_emision: dt.datetime


@dataclass(frozen=True)
class DocumentoElectronico:
    emisor: Emisor
    timbrado: Timbrado
    secuencia: int
    codigo_seguridad: str
    fecha_emision: dt.datetime
    cliente: ClienteDocumento
    items: tuple[ItemDocumento, ...]
    desglose: DesgloseIva
    condicion: CondicionPago
    moneda: str = MONEDA_LOCAL
    tipo_cambio: Optional[Decimal] = None
    descripcion: str = ""
    tipo_documento: int = cdc_utils.TIPO_FACTURA_ELECTRONICA
    tipo_emision: int = cdc_utils.TIPO_EMISION_NORMAL
    tipo_transaccion: int = 1
    tipo_impuesto: int = 1

    @property
    def establecimiento(self) -> str:
        return self.timbrado.establecimiento

    @property
    def punto_expedicion(self) -> str:
        return self.timbrado.punto_expedicion

    @property
    def numero(self) -> str:
        return f"{self.secuencia:07d}"

    @property
    def numero_documento(self) -> str:
        return f"{self.establecimiento}-{self.punto_expedicion}-{self.numero}"

    @property
    def total(self) -> Decimal:
        return self.desglose.total

    @property
    def cdc(self) -> str:
        return cdc_utils.generar_cdc(
            tipo_documento=self.tipo_documento,
            ruc=self.emisor.ruc,
            establecimiento=self.establecimiento,
            punto_expedicion=self.punto_expedicion,
            numero=self.numero,
            tipo_contribuyente=self.emisor.tipo_contribuyente,
            fecha_emision=self.fecha_emision,
            tipo_emision=self.tipo_emision,
            codigo_seguridad=self.codigo_seguridad,
        )

    @property
    def numero_control(self) -> str:
        base = "|".join(
            (self.numero_documento, self.timbrado.numero, str(self.total), self.fecha_emision.isoformat())
        )
        return hashlib.md5(base.encode("utf-8")).hexdigest()[:16].upper()


def _resolver_cliente(cliente: Any, emisor: Emisor) -> ClienteDocumento:
    fallback = emisor.establecimiento.ubicacion
    if cliente is None:
        return ClienteDocumento(
            contribuyente=False,
            ruc=RUC_CONSUMIDOR_FINAL,
            nombre=NOMBRE_CONSUMIDOR_FINAL,
            ubicacion=fallback,
            origen_ubicacion="fallback",
        )

    ruc = (getattr(cliente, "ruc", "") or "").strip()
    if ruc:
        try:
            cdc_utils.separar_ruc(ruc)
        except ValueError as exc:
            raise ValidationError(f"El RUC del cliente no es válido: {ruc!r}") from exc
    ubicacion, origen = resolver_ubicacion_con_origen(PistasUbicacion.desde_cliente(cliente), fallback)
    return ClienteDocumento(
        contribuyente=bool(ruc),
        ruc=ruc or RUC_CONSUMIDOR_FINAL,
        nombre=(getattr(cliente, "nombre_razon_social", "") or "").strip() or NOMBRE_CONSUMIDOR_FINAL,
        documento=(getattr(cliente, "documento", "") or "").strip(),
        direccion=(getattr(cliente, "direccion", "") or "").strip(),
        numero_casa=(getattr(cliente, "numero_casa", "") or "").strip(),
        telefono=(getattr(cliente, "telefono", "") or "").strip(),
        celular=(getattr(cliente, "celular", "") or "").strip(),
        email=(getattr(cliente, "correo", "") or "").strip(),
        codigo=str(getattr(cliente, "pk", "") or ""),
        ubicacion=ubicacion,
        origen_ubicacion=origen,
    )


def _monto(value: Any, campo: str, nombre: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise ValidationError(f"{campo} inválido para el producto '{nombre}': {value!r}") from exc


def _construir_items(lineas: Iterable[Any], tasa_defecto: int) -> tuple[list[ItemDocumento], list[LineaImpuesto]]:
    items: list[ItemDocumento] = []
    lineas_impuesto: list[LineaImpuesto] = []

    for detalle in lineas:
        producto = getattr(detalle, "producto", None)
        nombre = getattr(producto, "nombre", "") or "Producto"

        precio = getattr(detalle, "precio_unitario", None)
        if precio is None:
            precio = getattr(producto, "precio_venta", None)
        if precio is None:
            raise ValidationError(f"El producto '{nombre}' no tiene precio de venta.")

        cantidad = _monto(getattr(detalle, "cantidad", None), "Cantidad", nombre)
        if cantidad <= 0:
            raise ValidationError(f"La cantidad del producto '{nombre}' debe ser mayor a cero.")

        precio = _monto(precio, "Precio", nombre)
        descuento = _monto(getattr(detalle, "descuento", None), "Descuento", nombre)
        subtotal = redondear(precio * cantidad - descuento)
        if subtotal < 0:
            raise ValidationError(f"El descuento del producto '{nombre}' supera su precio.")

        linea_impuesto = LineaImpuesto(
            subtotal=subtotal,
            iva_item=getattr(detalle, "iva_porcentaje", None),
            iva_producto=getattr(producto, "iva_porcentaje", None),
        )
        lineas_impuesto.append(linea_impuesto)
        items.append(
            ItemDocumento(
                codigo=str(getattr(producto, "sku", "") or getattr(producto, "pk", "") or ""),
                descripcion=nombre,
                unidad_codigo=resolver_unidad_medida(
                    getattr(producto, "unidad_codigo", None),
                    getattr(producto, "unidad", None),
                ),
                cantidad=cantidad,
                precio_unitario=precio,
                descuento=redondear(descuento),
                subtotal=subtotal,
                impuesto=calcular_item(linea_impuesto, tasa_defecto),
            )
        )

    if not items:
        raise ValidationError("La venta no tiene detalles para facturar.")
    return items, lineas_impuesto


def _resolver_moneda(venta: Any) -> tuple[str, Optional[Decimal]]:
    moneda = (getattr(venta, "moneda", "") or MONEDA_LOCAL).strip().upper()
    if moneda == MONEDA_LOCAL:
        return moneda, None
    tipo_cambio = getattr(venta, "tipo_cambio", None)
    try:
        valor = to_decimal(tipo_cambio) if tipo_cambio not in (None, "") else None
    except ValueError:
        valor = None
    if valor is None or valor <= 0:
        raise ValidationError(f"La venta en {moneda} requiere un tipo de cambio válido.")
    return moneda, valor


def _resolver_condicion(venta: Any, total: Decimal, moneda: str) -> CondicionPago:
    if (getattr(venta, "condicion", "") or "").lower() == "credito":
        return CondicionPago(tipo=CONDICION_CREDITO, plazo_dias=getattr(venta, "plazo_credito_dias", None) or 30)
    tipo_pago, descripcion = MEDIOS_PAGO.get(
        (getattr(venta, "metodo_pago", "") or "efectivo").lower(), MEDIOS_PAGO["efectivo"]
    )
    return CondicionPago(
        tipo=CONDICION_CONTADO,
        entregas=(Entrega(tipo_pago=tipo_pago, descripcion=descripcion, monto=total, moneda=moneda),),
    )


def _numeracion_existente(venta: Any) -> Optional[Numeracion]:
    factura = getattr(venta, "factura_electronica", None)
    if factura is None or not getattr(factura, "secuencia", None):
        return None
    return Numeracion(
        secuencia=int(factura.secuencia),
        codigo_seguridad=factura.codigo_seguridad,
        fecha_emision=factura.fecha_emision,
    )


def construir_documento(
    venta: Any,
    cliente: Any,
    lineas: Iterable[Any],
    emisor: Emisor,
    timbrado: Timbrado,
    *,
    numeracion: Optional[Numeracion] = None,
    tasa_defecto: Optional[int] = None,
) -> DocumentoElectronico:
    """Arma el documento de una venta.

    La numeración se toma de ``numeracion`` (asignada por el orquestador), o
    de la factura ya existente de la venta. Sin ninguna de las dos se usa el
    id de la venta y un código de seguridad nuevo, lo que sólo sirve para
    vistas previas.
    """

    numeracion = numeracion or _numeracion_existente(venta)
    if numeracion is None:
        venta_id = getattr(venta, "pk", None) or getattr(venta, "id", None)
        if not venta_id:
            raise ValidationError("La venta no tiene identificador para numerar el documento.")
        numeracion = Numeracion(
            secuencia=int(venta_id),
            codigo_seguridad=generar_codigo_seguridad(),
            fecha_emision=timezone.localtime(),
        )

    tasa_venta = getattr(venta, "iva_porcentaje", None)
    tasa = tasa_venta if tasa_venta not in (None, "") else (tasa_defecto or 10)

    items, lineas_impuesto = _construir_items(lineas, tasa)
    desglose = calcular_desglose(lineas_impuesto, tasa)
    moneda, tipo_cambio = _resolver_moneda(venta)

    fecha = numeracion.fecha_emision
    if timezone.is_aware(fecha):
        fecha = timezone.localtime(fecha)

    return DocumentoElectronico(
        emisor=emisor,
        timbrado=timbrado,
        secuencia=numeracion.secuencia,
        codigo_seguridad=numeracion.codigo_seguridad,
        fecha_emision=fecha.replace(microsecond=0),
        cliente=_resolver_cliente(cliente, emisor),
        items=tuple(items),
        desglose=desglose,
        condicion=_resolver_condicion(venta, desglose.total, moneda),
        moneda=moneda,
        tipo_cambio=tipo_cambio,
        descripcion=(getattr(venta, "notas", "") or "").strip(),
    )


__all__ = [
    "ClienteDocumento",
    "CondicionPago",
    "DocumentoElectronico",
    "Entrega",
    "ItemDocumento",
    "MONEDA_LOCAL",
    "NOMBRE_CONSUMIDOR_FINAL",
    "Numeracion",
    "RUC_CONSUMIDOR_FINAL",
    "UNIDADES_MEDIDA",
    "construir_documento",
    "generar_codigo_seguridad",
    "resolver_unidad_medida",
]
