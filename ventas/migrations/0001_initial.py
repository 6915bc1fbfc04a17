import decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

TASAS_IVA = [(0, "Exenta"), (5, "5%"), (10, "10%")]
TASAS_IVA_VENTA = [(5, "5%"), (10, "10%")]


def timestamps():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def monto(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=15, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Cliente",
            fields=timestamps()
            + [
                ("nombre_razon_social", models.CharField(max_length=200)),
                (
                    "ruc",
                    models.CharField(
                        blank=True,
                        max_length=12,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\d{1,8}-\\d$", "El RUC debe tener el formato NNNNNNNN-D."
                            )
                        ],
                        verbose_name="RUC",
                    ),
                ),
                ("documento", models.CharField(blank=True, max_length=20, verbose_name="Cédula / documento")),
                ("direccion", models.CharField(blank=True, max_length=255)),
                ("numero_casa", models.CharField(blank=True, max_length=10)),
                ("telefono", models.CharField(blank=True, max_length=20)),
                ("celular", models.CharField(blank=True, max_length=20)),
                ("correo", models.EmailField(blank=True, max_length=254)),
                ("departamento_codigo", models.PositiveIntegerField(blank=True, null=True)),
                ("departamento", models.CharField(blank=True, max_length=80)),
                ("distrito_codigo", models.PositiveIntegerField(blank=True, null=True)),
                ("distrito", models.CharField(blank=True, max_length=80)),
                ("ciudad_codigo", models.PositiveIntegerField(blank=True, null=True)),
                ("ciudad", models.CharField(blank=True, max_length=80)),
                ("barrio_codigo", models.PositiveIntegerField(blank=True, null=True)),
                ("barrio", models.CharField(blank=True, max_length=80)),
            ],
            options={
                "verbose_name": "Cliente",
                "verbose_name_plural": "Clientes",
                "ordering": ("nombre_razon_social",),
            },
        ),
        migrations.CreateModel(
            name="Producto",
            fields=timestamps()
            + [
                ("sku", models.CharField(max_length=50, unique=True, verbose_name="SKU")),
                ("nombre", models.CharField(max_length=150)),
                ("descripcion", models.TextField(blank=True)),
                (
                    "precio_venta",
                    monto(blank=True, null=True, validators=[django.core.validators.MinValueValidator(0)]),
                ),
                (
                    "iva_porcentaje",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        choices=TASAS_IVA,
                        help_text="Vacío para usar la tasa de la venta.",
                        null=True,
                        verbose_name="IVA %",
                    ),
                ),
                ("unidad", models.CharField(blank=True, help_text="Ej.: UNI, KG, L, HORA.", max_length=20)),
                (
                    "unidad_codigo",
                    models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Código de unidad SIFEN"),
                ),
                ("stock", models.IntegerField(default=0)),
                ("activo", models.BooleanField(default=True)),
            ],
            options={
                "verbose_name": "Producto",
                "verbose_name_plural": "Productos",
                "ordering": ("nombre",),
            },
        ),
        migrations.CreateModel(
            name="Venta",
            fields=timestamps()
            + [
                ("fecha", models.DateTimeField(default=django.utils.timezone.now)),
                ("moneda", models.CharField(default="PYG", max_length=3)),
                (
                    "tipo_cambio",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "iva_porcentaje",
                    models.PositiveSmallIntegerField(choices=TASAS_IVA_VENTA, default=10, verbose_name="IVA %"),
                ),
                (
                    "condicion",
                    models.CharField(
                        choices=[("contado", "Contado"), ("credito", "Crédito")],
                        default="contado",
                        max_length=10,
                    ),
                ),
                (
                    "plazo_credito_dias",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        validators=[django.core.validators.MaxValueValidator(365)],
                    ),
                ),
                (
                    "metodo_pago",
                    models.CharField(
                        choices=[
                            ("efectivo", "Efectivo"),
                            ("cheque", "Cheque"),
                            ("tarjeta_credito", "Tarjeta de crédito"),
                            ("tarjeta_debito", "Tarjeta de débito"),
                            ("transferencia", "Transferencia"),
                        ],
                        default="efectivo",
                        max_length=20,
                    ),
                ),
                (
                    "estado",
                    models.CharField(
                        choices=[("pendiente", "Pendiente"), ("facturado", "Facturado"), ("anulada", "Anulada")],
                        default="pendiente",
                        max_length=10,
                    ),
                ),
                ("notas", models.TextField(blank=True)),
                (
                    "cliente",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ventas",
                        to="ventas.cliente",
                    ),
                ),
                (
                    "vendedor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ventas_registradas",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Venta",
                "verbose_name_plural": "Ventas",
                "ordering": ("-fecha",),
            },
        ),
        migrations.CreateModel(
            name="DetalleVenta",
            fields=timestamps()
            + [
                (
                    "cantidad",
                    models.DecimalField(
                        decimal_places=3,
                        default=1,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(decimal.Decimal("0.001"))],
                    ),
                ),
                (
                    "precio_unitario",
                    monto(
                        blank=True,
                        help_text="Vacío para usar el precio del producto.",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("descuento", monto(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                (
                    "iva_porcentaje",
                    models.PositiveSmallIntegerField(blank=True, choices=TASAS_IVA, null=True, verbose_name="IVA %"),
                ),
                (
                    "producto",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="detalles_venta",
                        to="ventas.producto",
                    ),
                ),
                (
                    "venta",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="detalles",
                        to="ventas.venta",
                    ),
                ),
            ],
            options={
                "verbose_name": "Detalle de venta",
                "verbose_name_plural": "Detalles de venta",
                "ordering": ("venta", "id"),
            },
        ),
        migrations.CreateModel(
            name="SecuenciaTimbrado",
            fields=timestamps()
            + [
                ("timbrado", models.CharField(max_length=8)),
                ("establecimiento", models.CharField(max_length=3)),
                ("punto_expedicion", models.CharField(max_length=3)),
                ("ultimo_numero", models.PositiveIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Secuencia de timbrado",
                "verbose_name_plural": "Secuencias de timbrado",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("timbrado", "establecimiento", "punto_expedicion"),
                        name="unique_secuencia_timbrado",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="FacturaElectronica",
            fields=timestamps()
            + [
                ("numero", models.CharField(max_length=15)),
                ("establecimiento", models.CharField(max_length=3)),
                ("punto_expedicion", models.CharField(max_length=3)),
                ("secuencia", models.PositiveIntegerField()),
                ("timbrado", models.CharField(max_length=8)),
                ("timbrado_vigencia_inicio", models.DateField(blank=True, null=True)),
                ("timbrado_vigencia_fin", models.DateField(blank=True, null=True)),
                ("codigo_seguridad", models.CharField(max_length=9)),
                ("cdc", models.CharField(blank=True, max_length=44, verbose_name="CDC")),
                ("fecha_emision", models.DateTimeField()),
                (
                    "condicion_venta",
                    models.CharField(
                        choices=[("contado", "Contado"), ("credito", "Crédito")],
                        default="contado",
                        max_length=10,
                    ),
                ),
                ("moneda", models.CharField(default="PYG", max_length=3)),
                ("total_exentas", monto(default=0)),
                ("total_gravada_5", monto(default=0)),
                ("total_iva_5", monto(default=0)),
                ("total_gravada_10", monto(default=0)),
                ("total_iva_10", monto(default=0)),
                ("total_iva", monto(default=0)),
                ("total", monto(default=0)),
                ("xml_path", models.CharField(blank=True, max_length=255)),
                ("xml_firmado_path", models.CharField(blank=True, max_length=255)),
                ("pdf_path", models.CharField(blank=True, max_length=255)),
                ("hash_pdf", models.CharField(blank=True, max_length=64, verbose_name="SHA-256 del PDF")),
                ("qr_payload", models.JSONField(blank=True, default=dict)),
                ("qr_url", models.TextField(blank=True)),
                ("numero_control", models.CharField(blank=True, max_length=16)),
                (
                    "estado",
                    models.CharField(
                        choices=[
                            ("PENDIENTE", "Pendiente de envío"),
                            ("ENVIADA", "Enviada"),
                            ("ERROR", "Error"),
                        ],
                        default="PENDIENTE",
                        max_length=10,
                    ),
                ),
                ("intentos", models.PositiveIntegerField(default=0)),
                ("ambiente", models.CharField(blank=True, max_length=20)),
                ("respuesta_set", models.JSONField(blank=True, null=True)),
                ("certificado", models.JSONField(blank=True, default=dict)),
                ("enviado_at", models.DateTimeField(blank=True, null=True)),
                (
                    "venta",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="factura_electronica",
                        to="ventas.venta",
                    ),
                ),
            ],
            options={
                "verbose_name": "Factura electrónica",
                "verbose_name_plural": "Facturas electrónicas",
                "ordering": ("-fecha_emision", "-created_at"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("timbrado", "establecimiento", "punto_expedicion", "secuencia"),
                        name="unique_factura_electronica_numero",
                    )
                ],
            },
        ),
    ]
