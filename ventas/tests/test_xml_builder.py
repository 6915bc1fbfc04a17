"""Tests for ventas.sifen.xml_builder."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase
from lxml import etree

from ventas.sifen import xml_builder
from ventas.sifen.documento import Numeracion, construir_documento

from .helpers import make_emisor, make_timbrado

NS = {"s": xml_builder.SIFEN_NS}


def _documento(**venta_overrides):
    producto = SimpleNamespace(
        pk=1,
        sku="SERV-01",
        nombre="Servicio de soporte",
        precio_venta=Decimal("100000"),
        iva_porcentaje=10,
        unidad="UNIDAD",
        unidad_codigo=None,
    )
    libro = SimpleNamespace(
        pk=2,
        sku="LIB-01",
        nombre="Libro",
        precio_venta=Decimal("21000"),
        iva_porcentaje=5,
        unidad="UNIDAD",
        unidad_codigo=None,
    )
    lineas = [
        SimpleNamespace(producto=producto, cantidad=Decimal("1"), precio_unitario=None, descuento=0, iva_porcentaje=None),
        SimpleNamespace(producto=libro, cantidad=Decimal("1"), precio_unitario=None, descuento=0, iva_porcentaje=None),
    ]
    venta = SimpleNamespace(
        pk=7,
        iva_porcentaje=10,
        moneda="PYG",
        tipo_cambio=None,
        condicion="contado",
        metodo_pago="efectivo",
        plazo_credito_dias=None,
        notas="Entrega en sucursal",
        factura_electronica=None,
    )
    for key, value in venta_overrides.items():
        setattr(venta, key, value)
    return construir_documento(
        venta,
        None,
        lineas,
        make_emisor(),
        make_timbrado(),
        numeracion=Numeracion(42, "123456", dt.datetime(2024, 5, 15, 10, 30)),
    )


class ConstruirXmlTests(SimpleTestCase):
    def setUp(self) -> None:
        self.documento = _documento()
        xml = xml_builder.construir_xml_de(self.documento, fecha_firma=dt.datetime(2024, 5, 15, 10, 31))
        self.root = etree.fromstring(xml.encode("utf-8"))

    def _text(self, path: str) -> str:
        return self.root.findtext(path, namespaces=NS)

    def test_root_and_identifier(self) -> None:
        self.assertEqual(etree.QName(self.root).localname, "rDE")
        de = self.root.find("s:DE", NS)
        self.assertEqual(de.get("Id"), self.documento.cdc)
        self.assertEqual(self._text("s:DE/s:dDVId"), self.documento.cdc[-1])
        self.assertEqual(self._text("s:dVerFor"), "150")
        self.assertEqual(self._text("s:DE/s:dFecFirma"), "2024-05-15T10:31:00")

    def test_numbering_and_timbrado(self) -> None:
        self.assertEqual(self._text("s:DE/s:gOpeDE/s:dCodSeg"), "000123456")
        self.assertEqual(self._text("s:DE/s:gTimb/s:dNumTim"), "12345678")
        self.assertEqual(self._text("s:DE/s:gTimb/s:dNumDoc"), "0000042")
        self.assertEqual(self._text("s:DE/s:gTimb/s:dFeIniT"), "2024-05-01")
        self.assertEqual(self._text("s:DE/s:gDatGralOpe/s:dFeEmiDE"), "2024-05-15T10:30:00")

    def test_issuer_and_final_consumer(self) -> None:
        self.assertEqual(self._text(".//s:gEmis/s:dRucEm"), "80132959")
        self.assertEqual(self._text(".//s:gEmis/s:dDVEmi"), "0")
        self.assertEqual(self._text(".//s:gEmis/s:cCiuEmi"), "3432")
        self.assertEqual(self._text(".//s:gEmis/s:gActEco/s:cActEco"), "62010")
        self.assertEqual(self._text(".//s:gDatRec/s:iNatRec"), "2")
        self.assertEqual(self._text(".//s:gDatRec/s:iTipIDRec"), "5")

    def test_items_and_totals(self) -> None:
        items = self.root.findall(".//s:gDtipDE/s:gCamItem", NS)
        self.assertEqual(len(items), 2)
        self.assertEqual(items[0].findtext("s:gCamIVA/s:dTasaIVA", namespaces=NS), "10")
        self.assertEqual(items[0].findtext("s:gCamIVA/s:dLiqIVAItem", namespaces=NS), "9090.91")
        self.assertEqual(items[1].findtext("s:gCamIVA/s:dTasaIVA", namespaces=NS), "5")

        self.assertEqual(self._text(".//s:gTotSub/s:dTotGralOpe"), "121000")
        self.assertEqual(self._text(".//s:gTotSub/s:dIVA10"), "9090.91")
        self.assertEqual(self._text(".//s:gTotSub/s:dIVA5"), "1000")
        self.assertEqual(self._text(".//s:gTotSub/s:dTotIVA"), "10090.91")
        self.assertEqual(self._text(".//s:gTotSub/s:dBaseGrav10"), "90909.09")

    def test_cash_payment(self) -> None:
        self.assertEqual(self._text(".//s:gCamCond/s:iCondOpe"), "1")
        self.assertEqual(self._text(".//s:gCamCond/s:gPaConEIni/s:dMonTiPag"), "121000")

    def test_credit_and_foreign_currency(self) -> None:
        documento = _documento(condicion="credito", plazo_credito_dias=15, moneda="USD", tipo_cambio=Decimal("7300"))
        root = etree.fromstring(xml_builder.construir_xml_de(documento).encode("utf-8"))

        self.assertEqual(root.findtext(".//s:gCamCond/s:iCondOpe", namespaces=NS), "2")
        self.assertEqual(root.findtext(".//s:gPagCred/s:dPlazoCre", namespaces=NS), "15 días")
        self.assertEqual(root.findtext(".//s:gOpeCom/s:cMoneOpe", namespaces=NS), "USD")
        self.assertEqual(root.findtext(".//s:gOpeCom/s:dTiCam", namespaces=NS), "7300")
        self.assertIsNotNone(root.find(".//s:gTotSub/s:dTotalGs", NS))


class FormatDecimalTests(SimpleTestCase):
    def test_trailing_zeros_are_dropped(self) -> None:
        self.assertEqual(xml_builder._format_decimal(Decimal("121000.00")), "121000")
        self.assertEqual(xml_builder._format_decimal(Decimal("1000.50")), "1000.5")
        self.assertEqual(xml_builder._format_decimal(None), "0")
        self.assertEqual(xml_builder._format_decimal("2.5", 4), "2.5")
