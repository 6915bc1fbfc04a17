from django.urls import path

from . import views

app_name = "ventas"

urlpatterns = [
    path("ventas/<int:venta_id>/facturar/", views.facturar_venta, name="facturar_venta"),
    path("ventas/<int:venta_id>/anular/", views.anular_venta, name="anular_venta"),
    path("facturas/<int:factura_id>/", views.factura_detalle, name="factura_detalle"),
    path("facturas/<int:factura_id>/pdf/", views.factura_pdf, name="factura_pdf"),
    path("facturas/<int:factura_id>/xml/", views.factura_xml, name="factura_xml"),
    path("facturas/<int:factura_id>/estado/", views.factura_estado, name="factura_estado"),
    path("ubicaciones/", views.ubicaciones_api, name="ubicaciones"),
]
