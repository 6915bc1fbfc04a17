"""Cálculo del IVA incluido en los precios de venta.

Los precios en Paraguay se expresan con IVA incluido, por lo que el impuesto
se extrae con divisores fijos: ``monto / 11`` para la tasa del 10 % y
``monto / 21`` para la del 5 %. Cualquier otra tasa (o ninguna) se trata como
exenta.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")
TASAS_GRAVADAS = (5, 10)
DIVISORES = {5: Decimal("21"), 10: Decimal("11")}
TASA_DEFECTO = 10


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Monto inválido: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Monto inválido: {value!r}")
    return result


def redondear(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def _to_tasa(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


def normalizar_tasa_defecto(tasa: Any) -> int:
    """La tasa por defecto de una venta sólo puede ser 5 o 10."""

    valor = _to_tasa(tasa)
    if valor in TASAS_GRAVADAS:
        return valor
    logger.warning("SIFEN: tasa de IVA por defecto inválida (%r); se usa %s%%", tasa, TASA_DEFECTO)
    return TASA_DEFECTO


def separar_iva(monto: Any, tasa: Optional[int]) -> tuple[Decimal, Decimal]:
    """Devuelve ``(base, iva)`` de un monto con IVA incluido."""

    total = to_decimal(monto)
    divisor = DIVISORES.get(tasa) if tasa is not None else None
    if divisor is None:
        return redondear(total), Decimal("0.00")
    iva = redondear(total / divisor)
    return redondear(total - iva), iva


@dataclass(frozen=True)
class LineaImpuesto:
    """Datos mínimos de un ítem para el cálculo del IVA."""

    subtotal: Decimal
    iva_item: Optional[int] = None
    iva_producto: Optional[int] = None

    def tasa_efectiva(self, tasa_defecto: int) -> int:
        for candidata in (self.iva_item, self.iva_producto):
            valor = _to_tasa(candidata)
            if valor is not None:
                return valor
        return tasa_defecto


@dataclass(frozen=True)
class ImpuestoItem:
    tasa: int
    subtotal: Decimal
    base: Decimal
    iva: Decimal

    @property
    def exento(self) -> bool:
        return self.tasa not in TASAS_GRAVADAS


@dataclass(frozen=True)
class DesgloseIva:
    """Totales por categoría de IVA. Los montos gravados incluyen el impuesto."""

    exentas: Decimal = Decimal("0.00")
    gravado_5: Decimal = Decimal("0.00")
    iva_5: Decimal = Decimal("0.00")
    gravado_10: Decimal = Decimal("0.00")
    iva_10: Decimal = Decimal("0.00")

    @property
    def base_5(self) -> Decimal:
        return self.gravado_5 - self.iva_5

    @property
    def base_10(self) -> Decimal:
        return self.gravado_10 - self.iva_10

    @property
    def total_iva(self) -> Decimal:
        return self.iva_5 + self.iva_10

    @property
    def total(self) -> Decimal:
        return self.exentas + self.gravado_5 + self.gravado_10

    def as_dict(self) -> dict[str, str]:
        return {
            "exentas": str(self.exentas),
            "gravado_5": str(self.gravado_5),
            "iva_5": str(self.iva_5),
            "gravado_10": str(self.gravado_10),
            "iva_10": str(self.iva_10),
            "total_iva": str(self.total_iva),
            "total": str(self.total),
        }


def calcular_item(linea: LineaImpuesto, tasa_defecto: int = TASA_DEFECTO) -> ImpuestoItem:
    tasa = linea.tasa_efectiva(normalizar_tasa_defecto(tasa_defecto))
    gravada = tasa in TASAS_GRAVADAS
    base, iva = separar_iva(linea.subtotal, tasa if gravada else None)
    return ImpuestoItem(tasa=tasa if gravada else 0, subtotal=redondear(linea.subtotal), base=base, iva=iva)


def calcular_desglose(lineas: Iterable[LineaImpuesto], tasa_defecto: Any = TASA_DEFECTO) -> DesgloseIva:
    """Agrupa los subtotales por tasa y calcula el IVA de cada grupo."""

    tasa = normalizar_tasa_defecto(tasa_defecto)
    exentas = gravado_5 = iva_5 = gravado_10 = iva_10 = Decimal("0")

    for linea in lineas:
        item = calcular_item(linea, tasa)
        if item.tasa == 10:
            gravado_10 += item.subtotal
            iva_10 += item.iva
        elif item.tasa == 5:
            gravado_5 += item.subtotal
            iva_5 += item.iva
        else:
            exentas += item.subtotal

    return DesgloseIva(
        exentas=redondear(exentas),
        gravado_5=redondear(gravado_5),
        iva_5=redondear(iva_5),
        gravado_10=redondear(gravado_10),
        iva_10=redondear(iva_10),
    )


__all__ = [
    "DIVISORES",
    "DesgloseIva",
    "ImpuestoItem",
    "LineaImpuesto",
    "TASAS_GRAVADAS",
    "calcular_desglose",
    "calcular_item",
    "normalizar_tasa_defecto",
    "redondear",
    "separar_iva",
    "to_decimal",
]
