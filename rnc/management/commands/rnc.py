"""
Management command for the DGII RNC registry.

Usage:
    python manage.py rnc download [--yes] [--no-spinner] [--append]
    python manage.py rnc find Banco Popular
    python manage.py rnc status [--json]
"""

import io
import json

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError
from rich.console import Console
from rich.table import Table

from rnc.etl_pipeline import DownloadManager, LoadManager, RNCConfig, RNCOrchestrator
from rnc.etl_pipeline.orchestrator import PipelineStatus
from rnc.query import MAX_RESULTS, build_registry_search_queryset


class Command(BaseCommand):
    help = 'Busqueda de Empresas por RNC: download the DGII registry and search it'

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest='command', help='RNC command to run')

        download_parser = subparsers.add_parser('download', help='Descargar Base de Datos de RNC de la DGII')
        download_parser.add_argument(
            '--yes', '-y',
            action='store_true',
            help='Overwrite a previously extracted file without asking',
        )
        download_parser.add_argument(
            '--no-spinner',
            action='store_true',
            help='Do not show the progress spinner',
        )
        download_parser.add_argument(
            '--append',
            action='store_true',
            help='Keep existing records instead of replacing them',
        )
        download_parser.add_argument(
            '--json',
            action='store_true',
            help='Output the run result as JSON',
        )

        find_parser = subparsers.add_parser('find', help='Find company in database by RNC or Razon Social')
        find_parser.add_argument('terms', nargs='+', help='Search terms, all must match')

        status_parser = subparsers.add_parser('status', help='Show registry paths and record count')
        status_parser.add_argument(
            '--json',
            action='store_true',
            help='Output status as JSON',
        )

    def handle(self, *args, **options):
        command = options.get('command')

        if not command:
            self.print_help('manage.py', 'rnc')
            return

        config = RNCConfig.from_env()

        if command == 'download':
            self.handle_download(config, options)
        elif command == 'find':
            self.handle_find(config, options)
        elif command == 'status':
            self.handle_status(config, options)
        else:
            raise CommandError(f"Unknown command: {command}")

    def handle_download(self, config: RNCConfig, options: dict):
        config.assume_yes = options.get('yes', False)
        config.show_progress = not options.get('no_spinner', False)
        if options.get('append'):
            config.load.replace_existing = False

        result = RNCOrchestrator(config).execute()

        if options.get('json'):
            self.stdout.write(json.dumps(result.to_dict(), indent=2))
        elif result.status == PipelineStatus.SKIPPED:
            self.stdout.write(self.style.WARNING(result.message))
        else:
            for stage, stage_result in result.stages.items():
                status = self.style.SUCCESS('✓') if stage_result.success else self.style.ERROR('✗')
                self.stdout.write(f'  {status} {stage.value}: {stage_result.duration:.1f}s')
            if result.summary:
                summary = result.summary
                self.stdout.write(f'  Rows read: {summary.rows_read:,}')
                self.stdout.write(f'  Rows loaded: {summary.rows_loaded:,}')
                self.stdout.write(f'  Skipped (parse): {summary.rows_skipped_parse:,}')
                self.stdout.write(f'  Skipped (persistence): {summary.rows_skipped_persistence:,}')

        if not result.success:
            raise CommandError(
                'Error al descargar la base de datos: ' + '; '.join(result.errors)
            )

        if result.status == PipelineStatus.COMPLETED and not options.get('json'):
            self.stdout.write(self.style.SUCCESS(result.message))

    def handle_find(self, config: RNCConfig, options: dict):
        query = ' '.join(options['terms'])
        try:
            results = list(build_registry_search_queryset(query))
        except ValueError as e:
            raise CommandError(str(e))
        except DatabaseError as e:
            raise CommandError(
                f"Error al buscar en la base de datos: {e}. Run 'manage.py rnc download' first."
            )

        if not results:
            self.stdout.write('No se encontraron resultados para su búsqueda.')
            return

        table = Table(title='Resultados de búsqueda')
        table.add_column('RNC', width=15)
        table.add_column('Razón Social', width=40)
        table.add_column('Actividad Económica', width=30)
        table.add_column('Fecha Inicio', width=15)
        table.add_column('Estado', width=12)
        table.add_column('Régimen Pago', width=15)

        for record in results:
            table.add_row(
                record.rnc,
                record.legal_name,
                record.economic_activity,
                record.activity_start_date,
                record.status,
                record.payment_regime,
            )

        buffer = io.StringIO()
        Console(file=buffer, width=140).print(table)
        self.stdout.write(buffer.getvalue())

        total = f'Total de resultados: {len(results)}'
        if len(results) >= MAX_RESULTS:
            total += f' (limitado a {MAX_RESULTS})'
        self.stdout.write(total)

    def handle_status(self, config: RNCConfig, options: dict):
        download_manager = DownloadManager(config)

        status = {
            'config': config.to_dict(),
            'archive_downloaded': download_manager.is_downloaded(),
            'extracted_files': [str(p) for p in download_manager.find_existing_artifacts()],
            'record_count': None,
        }

        if config.db_path.exists():
            try:
                status['record_count'] = LoadManager(config).get_record_count()
            except DatabaseError:
                status['record_count'] = None

        if options.get('json'):
            self.stdout.write(json.dumps(status, indent=2))
            return

        self.stdout.write(self.style.WARNING('RNC Registry Status'))
        self.stdout.write(f"  Source URL: {config.source_url or '(not configured)'}")
        self.stdout.write(f'  Archive: {config.archive_path}')
        downloaded = self.style.SUCCESS('✓') if status['archive_downloaded'] else self.style.ERROR('✗')
        self.stdout.write(f'  Downloaded: {downloaded}')
        self.stdout.write(f"  Extracted files: {len(status['extracted_files'])}")
        count = status['record_count']
        self.stdout.write(f"  Records: {count:,}" if count is not None else '  Records: (no database)')
