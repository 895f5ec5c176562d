from datetime import datetime
from unittest.mock import patch

from django.test import SimpleTestCase

from rnc.etl_pipeline.orchestrator import PipelineResult, PipelineStatus
from rnc.tasks import refresh_rnc_registry


class RefreshTaskTests(SimpleTestCase):

    @patch('rnc.tasks.RNCOrchestrator')
    def test_runs_unattended(self, mock_orchestrator):
        mock_orchestrator.return_value.execute.return_value = PipelineResult(
            status=PipelineStatus.COMPLETED,
            started_at=datetime.now(),
            completed_at=datetime.now(),
        )

        result = refresh_rnc_registry()

        config = mock_orchestrator.call_args[0][0]
        assert config.assume_yes is True
        assert config.show_progress is False
        assert result['status'] == 'completed'

    @patch('rnc.tasks.RNCOrchestrator')
    def test_failure_is_logged(self, mock_orchestrator):
        mock_orchestrator.return_value.execute.return_value = PipelineResult(
            status=PipelineStatus.FAILED,
            started_at=datetime.now(),
            errors=['bad status: 503'],
        )

        with self.assertLogs('rnc.tasks', level='ERROR') as logs:
            result = refresh_rnc_registry()

        assert result['status'] == 'failed'
        assert 'bad status: 503' in logs.output[0]
