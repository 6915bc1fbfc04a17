import itertools

from django.core.management.base import BaseCommand, CommandError

from ventas.models import FacturaElectronica
from ventas.sifen.storage import ArtefactoStorage


class Command(BaseCommand):
    help = 'Lista los XML/PDF de facturas que ningún registro referencia'

    def add_arguments(self, parser):
        parser.add_argument(
            '--eliminar',
            action='store_true',
            help='Eliminar los archivos huérfanos encontrados',
        )

    def handle(self, *args, **options):
        storage = ArtefactoStorage()
        referenciados = itertools.chain.from_iterable(
            FacturaElectronica.objects.values_list('xml_path', 'xml_firmado_path', 'pdf_path')
        )
        huerfanos = storage.buscar_huerfanos(referenciados)

        if not huerfanos:
            self.stdout.write(self.style.SUCCESS(f'✅ Sin artefactos huérfanos en {storage.base_dir}'))
            return

        self.stdout.write(f'📋 {len(huerfanos)} artefactos huérfanos en {storage.base_dir}')
        for path in huerfanos:
            self.stdout.write(f'   {path.name}')

        if not options['eliminar']:
            return

        for path in huerfanos:
            try:
                path.unlink()
            except OSError as exc:
                raise CommandError(f'No se pudo eliminar {path}: {exc}') from exc
        self.stdout.write(self.style.SUCCESS(f'✅ Eliminados {len(huerfanos)} archivos'))
