"""
Integration tests for the RNC pipeline.

The network is mocked; archive extraction, parsing and the ``rnc``
database are real.
"""

import io
import shutil
import tempfile
import zipfile
from pathlib import Path
from unittest.mock import Mock, patch

import requests
from django.core.management import call_command
from django.db import connections
from django.db.migrations.recorder import MigrationRecorder
from django.test import TestCase, TransactionTestCase

from rnc.etl_pipeline import RNCConfig, RNCOrchestrator
from rnc.etl_pipeline.config import LoggingConfig
from rnc.etl_pipeline.load import LoadManager, SchemaMismatchError
from rnc.etl_pipeline.logging import ETLLogger
from rnc.etl_pipeline.orchestrator import PipelineStage, PipelineStatus
from rnc.etl_pipeline.transform import ParsedRow, ParseStats
from rnc.models import RegistryRecord


REGISTRY_CSV = (
    'RNC,Nombre,Actividad,Fecha,Estado,Regimen\n'
    '"123456789","Acme SRL","Comercio","2020-01-01","ACTIVO","NORMAL"\n'
    '987654321,Short Co,Servicios,2021-01-01\n'
)


def build_zip(entries) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()


def mock_download(payload: bytes) -> Mock:
    response = Mock()
    response.status_code = 200
    response.iter_content.return_value = [payload]
    response.raise_for_status = Mock()
    response.__enter__ = Mock(return_value=response)
    response.__exit__ = Mock(return_value=False)
    return response


def make_row(line_number, rnc, legal_name) -> ParsedRow:
    return ParsedRow(line_number, rnc, legal_name, 'Comercio', '2020-01-01', 'ACTIVO', 'NORMAL')


class PipelineTestMixin:

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config = RNCConfig(
            config_root=Path(self.tmpdir),
            source_url='https://dgii.example.com/DGII_RNC.zip',
            logging=LoggingConfig(log_to_file=False),
            show_progress=False,
        )
        self.logger = ETLLogger(name='rnc.test.integration', log_to_file=False)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)


class TestPipelineEndToEnd(PipelineTestMixin, TestCase):
    """Full fetch, extract, parse and load runs."""

    databases = {'default', 'rnc'}

    @patch('requests.Session.get')
    def test_header_valid_and_short_row(self, mock_get):
        mock_get.return_value = mock_download(
            build_zip([('RNC_Contribuyentes.csv', REGISTRY_CSV)])
        )

        result = RNCOrchestrator(self.config, self.logger).execute()

        assert result.status == PipelineStatus.COMPLETED
        assert result.success
        records = list(RegistryRecord.objects.all())
        assert len(records) == 1
        assert records[0].rnc == '123456789'
        assert records[0].legal_name == 'Acme SRL'
        assert records[0].economic_activity == 'Comercio'
        assert result.summary.rows_loaded == 1
        assert result.summary.rows_skipped_parse == 1
        assert result.summary.rows_read == 2
        assert result.summary.header_skipped is True
        assert 'RNC_Contribuyentes.csv' in result.message

    @patch('requests.Session.get')
    def test_stage_metrics_reflect_the_run(self, mock_get):
        payload = build_zip([('RNC_Contribuyentes.csv', REGISTRY_CSV)])
        mock_get.return_value = mock_download(payload)

        RNCOrchestrator(self.config, self.logger).execute()

        metrics = self.logger.get_all_metrics()
        assert metrics['fetch']['bytes_downloaded'] == len(payload)
        assert metrics['extract']['files_extracted'] == 1
        assert metrics['load']['records_processed'] == 2
        assert metrics['load']['records_success'] == 1
        assert metrics['load']['records_skipped'] == 1
        assert metrics['load']['records_failed'] == 0

    @patch('requests.Session.get')
    def test_records_persisted_in_file_order(self, mock_get):
        mock_get.return_value = mock_download(build_zip([(
            'RNC_Contribuyentes.csv',
            '300000001,Zeta SRL,Comercio,2000,ACTIVO,NORMAL\n'
            '100000001,Alfa SRL,Comercio,2000,ACTIVO,NORMAL\n'
            '200000001,Beta SRL,Comercio,2000,ACTIVO,NORMAL\n',
        )]))

        RNCOrchestrator(self.config, self.logger).execute()

        rncs = list(RegistryRecord.objects.order_by('pk').values_list('rnc', flat=True))
        assert rncs == ['300000001', '100000001', '200000001']

    @patch('requests.Session.get')
    def test_archive_without_files_halts_before_load(self, mock_get):
        mock_get.return_value = mock_download(build_zip([('TMP/', '')]))

        with patch.object(LoadManager, 'load') as mock_load:
            result = RNCOrchestrator(self.config, self.logger).execute()

        assert result.status == PipelineStatus.FAILED
        assert 'no file was extracted' in result.errors[0]
        assert result.stages[PipelineStage.EXTRACT].success is False
        assert PipelineStage.LOAD not in result.stages
        mock_load.assert_not_called()

    @patch('requests.Session.get')
    def test_declined_overwrite_does_no_work(self, mock_get):
        RegistryRecord.objects.create(rnc='111111111', legal_name='Existente SRL')
        self.config.staging_dir.mkdir(parents=True)
        (self.config.staging_dir / 'RNC_Contribuyentes.csv').write_text(REGISTRY_CSV)

        orchestrator = RNCOrchestrator(self.config, self.logger, confirm=lambda name: 'no')
        with patch.object(orchestrator.extract_manager, 'extract_archive') as mock_extract:
            result = orchestrator.execute()

        assert result.status == PipelineStatus.SKIPPED
        assert result.success
        assert result.message == 'Descarga cancelada por el usuario.'
        mock_get.assert_not_called()
        mock_extract.assert_not_called()
        assert list(RegistryRecord.objects.values_list('rnc', flat=True)) == ['111111111']

    @patch('requests.Session.get')
    def test_replace_existing_clears_previous_import(self, mock_get):
        RegistryRecord.objects.create(rnc='111111111', legal_name='Viejo SRL')
        mock_get.return_value = mock_download(
            build_zip([('RNC_Contribuyentes.csv', REGISTRY_CSV)])
        )

        RNCOrchestrator(self.config, self.logger).execute()

        assert list(RegistryRecord.objects.values_list('rnc', flat=True)) == ['123456789']

    @patch('requests.Session.get')
    def test_append_keeps_previous_import(self, mock_get):
        RegistryRecord.objects.create(rnc='111111111', legal_name='Viejo SRL')
        self.config.load.replace_existing = False
        mock_get.return_value = mock_download(
            build_zip([('RNC_Contribuyentes.csv', REGISTRY_CSV)])
        )

        RNCOrchestrator(self.config, self.logger).execute()

        assert RegistryRecord.objects.count() == 2

    @patch('requests.Session.get')
    def test_network_failure_reports_failed(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout('timed out')

        result = RNCOrchestrator(self.config, self.logger).execute()

        assert result.status == PipelineStatus.FAILED
        assert not result.success
        assert result.stages[PipelineStage.FETCH].success is False
        assert result.to_dict()['status'] == 'failed'


class TestLoadManager(PipelineTestMixin, TestCase):
    """Per-record persistence."""

    databases = {'default', 'rnc'}

    def test_constraint_failure_skips_only_that_row(self):
        manager = LoadManager(self.config, self.logger)
        rows = [
            make_row(1, '101000001', 'Acme SRL'),
            make_row(2, '', 'Sin RNC SRL'),
            make_row(3, '101000003', 'Gamma EIRL'),
        ]

        with self.assertLogs('rnc.test.integration', level='ERROR') as logs:
            summary = manager.load(rows)

        assert summary.rows_loaded == 2
        assert summary.rows_skipped_persistence == 1
        assert 'Line 2' in logs.output[0]
        assert sorted(RegistryRecord.objects.values_list('rnc', flat=True)) == [
            '101000001', '101000003',
        ]

    def test_parse_stats_folded_into_summary(self):
        stats = ParseStats(rows_read=5, rows_skipped=2, header_skipped=True)

        summary = LoadManager(self.config, self.logger).load(
            [make_row(2, '101000001', 'Acme SRL')], parse_stats=stats,
        )

        assert summary.rows_read == 5
        assert summary.rows_skipped_parse == 2
        assert summary.rows_skipped == 2
        assert summary.header_skipped is True

    def test_record_count(self):
        RegistryRecord.objects.create(rnc='101000001', legal_name='Acme SRL')

        assert LoadManager(self.config, self.logger).get_record_count() == 1


class TestSchema(PipelineTestMixin, TransactionTestCase):
    """Table creation and mismatch detection outside a transaction."""

    databases = {'rnc'}

    def setUp(self):
        super().setUp()
        self.connection = connections['rnc']
        with self.connection.schema_editor() as editor:
            editor.delete_model(RegistryRecord)

    def tearDown(self):
        table = RegistryRecord._meta.db_table
        with self.connection.cursor() as cursor:
            tables = self.connection.introspection.table_names(cursor)
        if table in tables:
            with self.connection.cursor() as cursor:
                cursor.execute(f'DROP TABLE {table}')
        with self.connection.schema_editor() as editor:
            editor.create_model(RegistryRecord)
        super().tearDown()

    def test_missing_table_is_created(self):
        manager = LoadManager(self.config, self.logger)

        assert manager.ensure_schema() is True
        assert manager.ensure_schema() is False
        assert manager.get_record_count() == 0

    def test_created_table_is_recorded_as_migrated(self):
        recorder = MigrationRecorder(self.connection)
        recorder.migration_qs.filter(app='rnc').delete()

        LoadManager(self.config, self.logger).ensure_schema()

        assert ('rnc', '0001_initial') in recorder.applied_migrations()
        call_command('migrate', 'rnc', database='rnc', verbosity=0)

    def test_mismatched_table_is_reported(self):
        table = RegistryRecord._meta.db_table
        with self.connection.cursor() as cursor:
            cursor.execute(f'CREATE TABLE {table} (id integer PRIMARY KEY, rnc varchar(20))')

        with self.assertRaises(SchemaMismatchError) as ctx:
            LoadManager(self.config, self.logger).ensure_schema()

        assert 'legal_name' in str(ctx.exception)
