"""KuDE: representación impresa de la factura electrónica."""

from __future__ import annotations

import io
from decimal import Decimal
from typing import Any, Optional
from xml.sax.saxutils import escape

import qrcode
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .documento import DocumentoElectronico
from .impuestos import redondear


def formato_guaranies(value: Any) -> str:
    """``Decimal('121000.50')`` -> ``'121.000,50'``; sin decimales si son cero."""

    amount = redondear(value)
    signo = "-" if amount < 0 else ""
    amount = abs(amount)
    entero = int(amount)
    texto = f"{entero:,}".replace(",", ".")
    centavos = amount - Decimal(entero)
    if centavos:
        texto += "," + f"{centavos:.2f}"[2:]
    return signo + texto


def _qr_image(contenido: str, size: float) -> Image:
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=6, border=1)
    qr.add_data(contenido)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return Image(buffer, width=size, height=size)


def _marca_anulada(canvas, doc) -> None:
    canvas.saveState()
    canvas.setFont("Helvetica-Bold", 90)
    canvas.setFillColor(colors.Color(0.85, 0.1, 0.1, alpha=0.25))
    canvas.translate(A4[0] / 2, A4[1] / 2)
    canvas.rotate(45)
    canvas.drawCentredString(0, 0, "ANULADA")
    canvas.restoreState()


def _sin_marca(canvas, doc) -> None:
    return None


def renderizar_kude(
    documento: DocumentoElectronico,
    *,
    qr_contenido: str,
    cdc: Optional[str] = None,
    numero_control: Optional[str] = None,
    ambiente: str = "",
    anulada: bool = False,
) -> bytes:
    """Genera el PDF de la factura y lo devuelve en bytes."""

    buffer = io.BytesIO()
    pdf = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=1.2 * cm,
        leftMargin=1.2 * cm,
        topMargin=1.2 * cm,
        bottomMargin=1.2 * cm,
        title=f"Factura {documento.numero_documento}",
    )
    styles = getSampleStyleSheet()
    normal = styles["Normal"]
    small = ParagraphStyle("Small", parent=normal, fontSize=8, leading=10)
    title = ParagraphStyle("Title", parent=styles["Heading1"], fontSize=15, spaceAfter=4)
    numero_style = ParagraphStyle(
        "Numero", parent=styles["Heading2"], textColor=colors.HexColor("#b91c1c"), alignment=TA_CENTER
    )
    right = ParagraphStyle("Right", parent=normal, alignment=TA_RIGHT)

    emisor = documento.emisor
    est = emisor.establecimiento
    timbrado = documento.timbrado
    elements: list[Any] = []

    emisor_info = [
        Paragraph(escape(emisor.nombre_fantasia or emisor.razon_social), title),
        Paragraph(escape(emisor.razon_social), normal),
        Paragraph(f"{est.direccion} Nº {est.numero_casa} - {est.ubicacion.ciudad}", small),
        Paragraph(f"Tel.: {est.telefono} - {est.email}", small),
    ]
    for actividad in emisor.actividades:
        emisor_info.append(Paragraph(f"Actividad: {actividad.codigo} {actividad.descripcion}", small))

    timbrado_info = [
        Paragraph(f"<b>TIMBRADO Nº {timbrado.numero or '-'}</b>", normal),
        Paragraph(
            f"Vigencia: {timbrado.vigencia_inicio.strftime('%d/%m/%Y') if timbrado.vigencia_inicio else '-'}"
            f" al {timbrado.vigencia_fin.strftime('%d/%m/%Y') if timbrado.vigencia_fin else '-'}",
            small,
        ),
        Paragraph(f"R.U.C. {emisor.ruc}", normal),
        Paragraph("<b>FACTURA ELECTRÓNICA</b>", normal),
        Paragraph(documento.numero_documento, numero_style),
    ]
    header = Table([[emisor_info, timbrado_info]], colWidths=[11 * cm, 7.5 * cm])
    header.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOX", (1, 0), (1, 0), 1, colors.black),
            ]
        )
    )
    elements.append(header)
    elements.append(Spacer(1, 0.4 * cm))

    cliente = documento.cliente
    operacion = Table(
        [
            ["FECHA DE EMISIÓN", "CONDICIÓN DE VENTA", "MONEDA"],
            [
                documento.fecha_emision.strftime("%d/%m/%Y %H:%M"),
                documento.condicion.etiqueta,
                documento.moneda + (f" (T.C. {documento.tipo_cambio})" if documento.tipo_cambio else ""),
            ],
            ["NOMBRE O RAZÓN SOCIAL", "R.U.C. / DOCUMENTO", "DIRECCIÓN"],
            [
                Paragraph(escape(cliente.nombre), small),
                cliente.ruc if cliente.contribuyente else (cliente.documento or "S/D"),
                Paragraph(escape(cliente.direccion or "-"), small),
            ],
        ],
        colWidths=[6.5 * cm, 5 * cm, 7 * cm],
    )
    operacion.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    elements.append(operacion)
    elements.append(Spacer(1, 0.4 * cm))

    filas = [["CANT.", "DESCRIPCIÓN", "PRECIO UNIT.", "EXENTAS", "5%", "10%"]]
    for item in documento.items:
        columnas = {0: "", 5: "", 10: ""}
        columnas[item.impuesto.tasa if not item.impuesto.exento else 0] = formato_guaranies(item.subtotal)
        filas.append(
            [
                f"{item.cantidad.normalize():f}",
                Paragraph(escape(item.descripcion), small),
                formato_guaranies(item.precio_unitario),
                columnas[0],
                columnas[5],
                columnas[10],
            ]
        )
    desglose = documento.desglose
    filas.append(
        [
            "",
            "SUBTOTALES",
            "",
            formato_guaranies(desglose.exentas),
            formato_guaranies(desglose.gravado_5),
            formato_guaranies(desglose.gravado_10),
        ]
    )
    filas.append(["", "TOTAL A PAGAR", "", "", "", formato_guaranies(desglose.total)])
    detalle = Table(filas, colWidths=[1.5 * cm, 7.5 * cm, 2.6 * cm, 2.3 * cm, 2.3 * cm, 2.3 * cm], repeatRows=1)
    detalle.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e5e7eb")),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, -2), (-1, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    elements.append(detalle)
    elements.append(Spacer(1, 0.3 * cm))

    liquidacion = Table(
        [
            [
                "LIQUIDACIÓN DEL IVA",
                f"(5%) {formato_guaranies(desglose.iva_5)}",
                f"(10%) {formato_guaranies(desglose.iva_10)}",
                f"TOTAL IVA {formato_guaranies(desglose.total_iva)}",
            ]
        ],
        colWidths=[5 * cm, 4.5 * cm, 4.5 * cm, 4.5 * cm],
    )
    liquidacion.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("FONTNAME", (0, 0), (0, 0), "Helvetica-Bold"),
                ("BOX", (0, 0), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    elements.append(liquidacion)
    elements.append(Spacer(1, 0.5 * cm))

    pie = [
        Paragraph("Consulte la validez de esta factura electrónica con el CDC en:", small),
        Paragraph("https://ekuatia.set.gov.py/consultas", small),
    ]
    if cdc:
        grupos = " ".join(cdc[i : i + 4] for i in range(0, len(cdc), 4))
        pie.append(Paragraph(f"<b>CDC:</b> {grupos}", small))
    if numero_control:
        pie.append(Paragraph(f"Nº de control: {numero_control}", small))
    if ambiente:
        pie.append(Paragraph(f"Ambiente SIFEN: {ambiente}", small))
    pie.append(
        Paragraph(
            "ESTE DOCUMENTO ES UNA REPRESENTACIÓN GRÁFICA DE UN DOCUMENTO ELECTRÓNICO (XML)",
            small,
        )
    )
    if anulada:
        pie.append(Paragraph("<b>VENTA ANULADA</b>", right))

    footer = Table([[_qr_image(qr_contenido, 3.5 * cm), pie]], colWidths=[4 * cm, 14.5 * cm])
    footer.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.append(footer)

    on_page = _marca_anulada if anulada else _sin_marca
    pdf.build(elements, onFirstPage=on_page, onLaterPages=on_page)
    return buffer.getvalue()


__all__ = ["formato_guaranies", "renderizar_kude"]
