from django.core.management.base import BaseCommand

from ventas.models import FacturaElectronica
from ventas.sifen.config import get_max_intentos
from ventas.sifen.exceptions import SifenError
from ventas.sifen.service import FacturaElectronicaService


class Command(BaseCommand):
    help = 'Reenvía a SIFEN las facturas electrónicas pendientes'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limite',
            type=int,
            default=50,
            help='Cantidad máxima de facturas a reenviar (default: 50)',
        )

    def handle(self, *args, **options):
        max_intentos = get_max_intentos()
        queryset = (
            FacturaElectronica.objects.filter(
                estado=FacturaElectronica.Estado.PENDIENTE,
                intentos__lt=max_intentos,
            )
            .order_by('fecha_emision', 'id')
        )
        total_count = queryset.count()
        if total_count == 0:
            self.stdout.write(self.style.SUCCESS('✅ No hay facturas pendientes de envío'))
            return

        limite = options['limite']
        pendientes = list(queryset.values_list('venta_id', 'numero')[:limite])
        self.stdout.write(f'🔄 Reintentando {len(pendientes)} de {total_count} facturas pendientes...')

        service = FacturaElectronicaService()
        enviadas = 0
        fallidas = 0
        for venta_id, numero in pendientes:
            try:
                factura = service.emitir(venta_id)
            except SifenError as exc:
                fallidas += 1
                self.stderr.write(self.style.ERROR(f'❌ {numero}: {exc}'))
                continue
            if factura.enviada:
                enviadas += 1
                self.stdout.write(f'   {numero}: enviada')
            else:
                fallidas += 1
                self.stdout.write(f'   {numero}: sigue pendiente (intento {factura.intentos})')

        self.stdout.write(
            self.style.SUCCESS(f'✅ Completado: {enviadas} enviadas, {fallidas} pendientes')
        )
