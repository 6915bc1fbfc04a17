"""Código de Control (CDC) de 44 dígitos y dígito verificador módulo 11."""

from __future__ import annotations

import datetime as dt

CDC_LENGTH = 44
TIPO_FACTURA_ELECTRONICA = 1
TIPO_EMISION_NORMAL = 1


def calcular_dv(numero: str, base_max: int = 11) -> int:
    """Dígito verificador módulo 11 con pesos 2..``base_max`` desde la derecha."""

    digits = (numero or "").strip()
    if not digits.isdigit():
        raise ValueError(f"Se esperaba un número, se recibió {numero!r}")

    total = 0
    peso = 2
    for ch in reversed(digits):
        if peso > base_max:
            peso = 2
        total += int(ch) * peso
        peso += 1

    resto = total % 11
    return 0 if resto <= 1 else 11 - resto


def separar_ruc(ruc: str) -> tuple[str, str]:
    """``'80132959-0'`` -> ``('80132959', '0')``; calcula el DV si falta."""

    text = (ruc or "").strip()
    if "-" in text:
        numero, dv = (part.strip() for part in text.split("-", 1))
    else:
        numero, dv = text, ""
    if not numero.isdigit():
        raise ValueError(f"RUC inválido: {ruc!r}")
    if not dv:
        dv = str(calcular_dv(numero))
    return numero, dv


def generar_cdc(
    *,
    tipo_documento: int,
    ruc: str,
    establecimiento: str,
    punto_expedicion: str,
    numero: str,
    tipo_contribuyente: int,
    fecha_emision: dt.datetime | dt.date,
    tipo_emision: int,
    codigo_seguridad: str,
) -> str:
    ruc_numero, ruc_dv = separar_ruc(ruc)
    base = "".join(
        (
            f"{int(tipo_documento):02d}",
            ruc_numero.zfill(8),
            ruc_dv,
            str(establecimiento).zfill(3),
            str(punto_expedicion).zfill(3),
            str(numero).zfill(7),
            str(int(tipo_contribuyente)),
            fecha_emision.strftime("%Y%m%d"),
            str(int(tipo_emision)),
            str(codigo_seguridad).zfill(9),
        )
    )
    if len(base) != CDC_LENGTH - 1 or not base.isdigit():
        raise ValueError(f"No se pudo armar el CDC, base inválida: {base!r}")
    return base + str(calcular_dv(base))


def es_cdc_valido(cdc: str) -> bool:
    text = (cdc or "").strip()
    if len(text) != CDC_LENGTH or not text.isdigit():
        return False
    return int(text[-1]) == calcular_dv(text[:-1])


__all__ = [
    "CDC_LENGTH",
    "TIPO_EMISION_NORMAL",
    "TIPO_FACTURA_ELECTRONICA",
    "calcular_dv",
    "es_cdc_valido",
    "generar_cdc",
    "separar_ruc",
]
