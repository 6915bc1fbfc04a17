from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from TridentPOS.base_models import TimeStampedModel
from ventas.sifen.exceptions import PersistenceError

TASAS_IVA = [(0, "Exenta"), (5, "5%"), (10, "10%")]
TASAS_IVA_VENTA = [(5, "5%"), (10, "10%")]

ruc_validator = RegexValidator(r"^\d{1,8}-\d$", "El RUC debe tener el formato NNNNNNNN-D.")


class Cliente(TimeStampedModel):
    """Clientes del punto de venta."""

    nombre_razon_social = models.CharField(max_length=200)
    ruc = models.CharField("RUC", max_length=12, blank=True, validators=[ruc_validator])
    documento = models.CharField("Cédula / documento", max_length=20, blank=True)
    direccion = models.CharField(max_length=255, blank=True)
    numero_casa = models.CharField(max_length=10, blank=True)
    telefono = models.CharField(max_length=20, blank=True)
    celular = models.CharField(max_length=20, blank=True)
    correo = models.EmailField(blank=True)
    departamento_codigo = models.PositiveIntegerField(null=True, blank=True)
    departamento = models.CharField(max_length=80, blank=True)
    distrito_codigo = models.PositiveIntegerField(null=True, blank=True)
    distrito = models.CharField(max_length=80, blank=True)
    ciudad_codigo = models.PositiveIntegerField(null=True, blank=True)
    ciudad = models.CharField(max_length=80, blank=True)
    barrio_codigo = models.PositiveIntegerField(null=True, blank=True)
    barrio = models.CharField(max_length=80, blank=True)

    class Meta:
        verbose_name = "Cliente"
        verbose_name_plural = "Clientes"
        ordering = ("nombre_razon_social",)

    def __str__(self) -> str:
        if self.ruc:
            return f"{self.nombre_razon_social} ({self.ruc})"
        return self.nombre_razon_social


class Producto(TimeStampedModel):
    """Productos y servicios facturables."""

    sku = models.CharField("SKU", max_length=50, unique=True)
    nombre = models.CharField(max_length=150)
    descripcion = models.TextField(blank=True)
    precio_venta = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    iva_porcentaje = models.PositiveSmallIntegerField(
        "IVA %",
        choices=TASAS_IVA,
        null=True,
        blank=True,
        help_text="Vacío para usar la tasa de la venta.",
    )
    unidad = models.CharField(max_length=20, blank=True, help_text="Ej.: UNI, KG, L, HORA.")
    unidad_codigo = models.PositiveSmallIntegerField(
        "Código de unidad SIFEN",
        null=True,
        blank=True,
    )
    stock = models.IntegerField(default=0)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Producto"
        verbose_name_plural = "Productos"
        ordering = ("nombre",)

    def __str__(self) -> str:
        return f"{self.sku} - {self.nombre}"


class Venta(TimeStampedModel):
    """Encabezado de ventas."""

    class Estado(models.TextChoices):
        PENDIENTE = "pendiente", "Pendiente"
        FACTURADO = "facturado", "Facturado"
        ANULADA = "anulada", "Anulada"

    class Condicion(models.TextChoices):
        CONTADO = "contado", "Contado"
        CREDITO = "credito", "Crédito"

    class MetodoPago(models.TextChoices):
        EFECTIVO = "efectivo", "Efectivo"
        CHEQUE = "cheque", "Cheque"
        TARJETA_CREDITO = "tarjeta_credito", "Tarjeta de crédito"
        TARJETA_DEBITO = "tarjeta_debito", "Tarjeta de débito"
        TRANSFERENCIA = "transferencia", "Transferencia"

    cliente = models.ForeignKey(
        Cliente,
        on_delete=models.PROTECT,
        related_name="ventas",
        null=True,
        blank=True,
    )
    vendedor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="ventas_registradas",
        null=True,
        blank=True,
    )
    fecha = models.DateTimeField(default=timezone.now)
    moneda = models.CharField(max_length=3, default="PYG")
    tipo_cambio = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    iva_porcentaje = models.PositiveSmallIntegerField("IVA %", choices=TASAS_IVA_VENTA, default=10)
    condicion = models.CharField(max_length=10, choices=Condicion.choices, default=Condicion.CONTADO)
    plazo_credito_dias = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(365)],
    )
    metodo_pago = models.CharField(max_length=20, choices=MetodoPago.choices, default=MetodoPago.EFECTIVO)
    estado = models.CharField(max_length=10, choices=Estado.choices, default=Estado.PENDIENTE)
    notas = models.TextField(blank=True)

    class Meta:
        verbose_name = "Venta"
        verbose_name_plural = "Ventas"
        ordering = ("-fecha",)

    def __str__(self) -> str:
        cliente = self.cliente.nombre_razon_social if self.cliente else "Consumidor final"
        return f"Venta #{self.pk} - {cliente}"

    @property
    def anulada(self) -> bool:
        return self.estado == self.Estado.ANULADA


class DetalleVenta(TimeStampedModel):
    """Detalle de productos vendidos."""

    venta = models.ForeignKey(Venta, on_delete=models.CASCADE, related_name="detalles")
    producto = models.ForeignKey(Producto, on_delete=models.PROTECT, related_name="detalles_venta")
    cantidad = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=1,
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    precio_unitario = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Vacío para usar el precio del producto.",
    )
    descuento = models.DecimalField(max_digits=15, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    iva_porcentaje = models.PositiveSmallIntegerField("IVA %", choices=TASAS_IVA, null=True, blank=True)

    class Meta:
        verbose_name = "Detalle de venta"
        verbose_name_plural = "Detalles de venta"
        ordering = ("venta", "id")

    def __str__(self) -> str:
        return f"{self.producto} x {self.cantidad}"


class SecuenciaTimbrado(TimeStampedModel):
    """Último número asignado por timbrado, establecimiento y punto de expedición."""

    timbrado = models.CharField(max_length=8)
    establecimiento = models.CharField(max_length=3)
    punto_expedicion = models.CharField(max_length=3)
    ultimo_numero = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Secuencia de timbrado"
        verbose_name_plural = "Secuencias de timbrado"
        constraints = [
            models.UniqueConstraint(
                fields=["timbrado", "establecimiento", "punto_expedicion"],
                name="unique_secuencia_timbrado",
            )
        ]

    def __str__(self) -> str:
        return f"{self.timbrado} {self.establecimiento}-{self.punto_expedicion}: {self.ultimo_numero}"


class FacturaElectronica(TimeStampedModel):
    """Documento fiscal electrónico (SIFEN) asociado a una venta."""

    CAMPOS_INMUTABLES = (
        "numero",
        "codigo_seguridad",
        "secuencia",
        "timbrado",
        "cdc",
        "fecha_emision",
    )

    class Estado(models.TextChoices):
        PENDIENTE = "PENDIENTE", "Pendiente de envío"
        ENVIADA = "ENVIADA", "Enviada"
        ERROR = "ERROR", "Error"

    venta = models.OneToOneField(
        Venta,
        on_delete=models.PROTECT,
        related_name="factura_electronica",
    )
    numero = models.CharField(max_length=15)
    establecimiento = models.CharField(max_length=3)
    punto_expedicion = models.CharField(max_length=3)
    secuencia = models.PositiveIntegerField()
    timbrado = models.CharField(max_length=8)
    timbrado_vigencia_inicio = models.DateField(null=True, blank=True)
    timbrado_vigencia_fin = models.DateField(null=True, blank=True)
    codigo_seguridad = models.CharField(max_length=9)
    cdc = models.CharField("CDC", max_length=44, blank=True)
    fecha_emision = models.DateTimeField()
    condicion_venta = models.CharField(max_length=10, choices=Venta.Condicion.choices, default=Venta.Condicion.CONTADO)
    moneda = models.CharField(max_length=3, default="PYG")
    total_exentas = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_gravada_5 = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_iva_5 = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_gravada_10 = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_iva_10 = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_iva = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    xml_path = models.CharField(max_length=255, blank=True)
    xml_firmado_path = models.CharField(max_length=255, blank=True)
    pdf_path = models.CharField(max_length=255, blank=True)
    hash_pdf = models.CharField("SHA-256 del PDF", max_length=64, blank=True)
    qr_payload = models.JSONField(default=dict, blank=True)
    qr_url = models.TextField(blank=True)
    numero_control = models.CharField(max_length=16, blank=True)
    estado = models.CharField(max_length=10, choices=Estado.choices, default=Estado.PENDIENTE)
    intentos = models.PositiveIntegerField(default=0)
    ambiente = models.CharField(max_length=20, blank=True)
    respuesta_set = models.JSONField(null=True, blank=True)
    certificado = models.JSONField(default=dict, blank=True)
    enviado_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Factura electrónica"
        verbose_name_plural = "Facturas electrónicas"
        ordering = ("-fecha_emision", "-created_at")
        constraints = [
            models.UniqueConstraint(
                fields=["timbrado", "establecimiento", "punto_expedicion", "secuencia"],
                name="unique_factura_electronica_numero",
            )
        ]

    def __str__(self) -> str:
        return f"{self.numero} ({self.get_estado_display()})"

    def save(self, *args, **kwargs):
        if self.pk:
            original = (
                type(self).objects.filter(pk=self.pk).values(*self.CAMPOS_INMUTABLES).first()
            )
            if original:
                cambiados = [
                    campo
                    for campo in self.CAMPOS_INMUTABLES
                    if original[campo] and original[campo] != getattr(self, campo)
                ]
                if cambiados:
                    raise PersistenceError(
                        "La factura electrónica no admite cambios en: " + ", ".join(cambiados)
                    )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PersistenceError("Las facturas electrónicas no se eliminan.")

    @property
    def enviada(self) -> bool:
        return self.estado == self.Estado.ENVIADA
