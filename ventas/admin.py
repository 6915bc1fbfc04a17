from django.contrib import admin

from .models import (
    Cliente,
    DetalleVenta,
    FacturaElectronica,
    Producto,
    SecuenciaTimbrado,
    Venta,
)


@admin.register(Cliente)
class ClienteAdmin(admin.ModelAdmin):
    list_display = ("nombre_razon_social", "ruc", "documento", "telefono", "ciudad")
    search_fields = ("nombre_razon_social", "ruc", "documento")
    fieldsets = (
        (None, {
            "fields": ("nombre_razon_social", "ruc", "documento", "telefono", "celular", "correo")
        }),
        ("Dirección", {
            "fields": (
                "direccion",
                "numero_casa",
                ("departamento_codigo", "departamento"),
                ("distrito_codigo", "distrito"),
                ("ciudad_codigo", "ciudad"),
                ("barrio_codigo", "barrio"),
            )
        }),
    )


@admin.register(Producto)
class ProductoAdmin(admin.ModelAdmin):
    list_display = ("sku", "nombre", "precio_venta", "iva_porcentaje", "unidad", "stock", "activo")
    list_filter = ("iva_porcentaje", "activo")
    search_fields = ("sku", "nombre")


class DetalleVentaInline(admin.TabularInline):
    model = DetalleVenta
    extra = 0


@admin.register(Venta)
class VentaAdmin(admin.ModelAdmin):
    list_display = ("id", "cliente", "fecha", "condicion", "metodo_pago", "estado", "total")
    list_filter = ("estado", "condicion", "metodo_pago", "fecha")
    search_fields = ("cliente__nombre_razon_social", "cliente__ruc", "id")
    date_hierarchy = "fecha"
    inlines = [DetalleVentaInline]


@admin.register(SecuenciaTimbrado)
class SecuenciaTimbradoAdmin(admin.ModelAdmin):
    list_display = ("timbrado", "establecimiento", "punto_expedicion", "ultimo_numero", "updated_at")
    readonly_fields = ("timbrado", "establecimiento", "punto_expedicion", "ultimo_numero", "created_at", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(FacturaElectronica)
class FacturaElectronicaAdmin(admin.ModelAdmin):
    list_display = (
        "numero",
        "venta",
        "timbrado",
        "total",
        "estado",
        "intentos",
        "ambiente",
        "fecha_emision",
    )
    list_filter = ("estado", "ambiente", "fecha_emision")
    search_fields = ("numero", "cdc", "venta__id", "timbrado")
    date_hierarchy = "fecha_emision"
    fieldsets = (
        (None, {
            "fields": ("venta", "numero", "cdc", "estado", "intentos", "ambiente", "enviado_at")
        }),
        ("Timbrado", {
            "fields": (
                "timbrado",
                "timbrado_vigencia_inicio",
                "timbrado_vigencia_fin",
                "establecimiento",
                "punto_expedicion",
                "secuencia",
                "codigo_seguridad",
                "fecha_emision",
            )
        }),
        ("Totales", {
            "fields": (
                "condicion_venta",
                "moneda",
                "total_exentas",
                ("total_gravada_5", "total_iva_5"),
                ("total_gravada_10", "total_iva_10"),
                "total_iva",
                "total",
            )
        }),
        ("Artefactos", {
            "fields": ("xml_path", "xml_firmado_path", "pdf_path", "hash_pdf", "numero_control", "qr_url", "qr_payload")
        }),
        ("SIFEN", {
            "fields": ("respuesta_set", "certificado"),
            "classes": ("collapse",)
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
