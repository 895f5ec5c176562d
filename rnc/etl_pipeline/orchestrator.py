"""
RNC Pipeline Orchestrator

Runs fetch, extract and parse/load strictly in order. A declined
overwrite ends the run early with nothing done; any fatal error stops the
run at the failing stage.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import PipelineError, RNCConfig
from .download import DownloadManager, FetchResult
from .extract import ExtractManager, ExtractResult
from .load import IngestSummary, LoadManager
from .logging import ETLLogger, ETLMetrics
from .progress import ProgressIndicator
from .transform import ParseStats, RegistryParser


class PipelineStage(Enum):
    FETCH = "fetch"
    EXTRACT = "extract"
    LOAD = "load"


class PipelineStatus(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageResult:
    """Result for a single pipeline stage."""
    stage: PipelineStage
    success: bool
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0


@dataclass
class PipelineResult:
    """Overall pipeline execution result."""
    status: PipelineStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    stages: Dict[PipelineStage, StageResult] = field(default_factory=dict)
    source_file: Optional[Path] = None
    summary: Optional[IngestSummary] = None
    message: str = ''
    errors: List[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def success(self) -> bool:
        return self.status in (PipelineStatus.COMPLETED, PipelineStatus.SKIPPED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': round(self.duration, 2),
            'source_file': str(self.source_file) if self.source_file else None,
            'summary': self.summary.to_dict() if self.summary else None,
            'message': self.message,
            'stages': {
                stage.value: {
                    'success': result.success,
                    'duration': round(result.duration, 2),
                    'error': result.error,
                    'metrics': result.metrics,
                }
                for stage, result in self.stages.items()
            },
            'errors': self.errors,
        }


class RNCOrchestrator:
    """Coordinates the registry import.

    Args:
        config: Pipeline configuration (default: RNCConfig.from_env())
        logger: Optional ETLLogger shared by every stage
        confirm: Overwrite prompt passed to the DownloadManager
    """

    def __init__(
        self,
        config: Optional[RNCConfig] = None,
        logger: Optional[ETLLogger] = None,
        confirm: Optional[Callable[[str], str]] = None,
    ):
        self.config = config or RNCConfig.from_env()
        self.logger = logger or ETLLogger.from_config(self.config)

        self.download_manager = DownloadManager(self.config, self.logger, confirm=confirm)
        self.extract_manager = ExtractManager(self.config, self.logger)
        self.parser = RegistryParser(self.config, self.logger)
        self.load_manager = LoadManager(self.config, self.logger)

        self.result: Optional[PipelineResult] = None

    def execute(self) -> PipelineResult:
        """Run the full pipeline.

        Returns:
            PipelineResult; ``status`` is SKIPPED when the operator kept the
            existing artifact and FAILED when a stage raised
        """
        self.result = PipelineResult(
            status=PipelineStatus.RUNNING,
            started_at=datetime.now(),
        )

        self.logger.info("Starting RNC import pipeline")

        try:
            fetch_result = self._execute_fetch()
            if fetch_result.skipped:
                self.result.status = PipelineStatus.SKIPPED
                self.result.source_file = fetch_result.local_path
                self.result.message = "Descarga cancelada por el usuario."
                return self.result

            extract_result = self._execute_extract(fetch_result.local_path)
            self.result.source_file = extract_result.extracted_path

            summary = self._execute_load(extract_result.extracted_path)
            self.result.summary = summary
            self.result.status = PipelineStatus.COMPLETED
            self.result.message = (
                f"Procesamiento de {extract_result.extracted_path.name} completado. {summary}."
            )
            self.logger.info(self.result.message)

        except PipelineError as e:
            self.result.status = PipelineStatus.FAILED
            self.result.errors.append(str(e))
            self.logger.error(f"Pipeline execution failed: {e}")
        except Exception as e:
            self.result.status = PipelineStatus.FAILED
            self.result.errors.append(str(e))
            self.logger.exception("Pipeline execution failed")

        finally:
            self.result.completed_at = datetime.now()
            self.logger.info(
                f"Pipeline {self.result.status.value}: {self.result.duration:.1f}s total"
            )

        return self.result

    def _run_stage(
        self,
        stage: PipelineStage,
        func: Callable[[StageResult, ETLMetrics], Any],
    ) -> Any:
        """Run ``func`` as ``stage``, recording its StageResult either way."""
        stage_result = StageResult(stage=stage, success=True)
        self.result.stages[stage] = stage_result

        with self.logger.stage(stage.value) as stage_metrics:
            try:
                return func(stage_result, stage_metrics)
            except Exception as e:
                stage_result.success = False
                stage_result.error = str(e)
                raise
            finally:
                stage_result.completed_at = datetime.now()

    def _execute_fetch(self) -> FetchResult:
        def run(stage_result: StageResult, stage_metrics: ETLMetrics) -> FetchResult:
            fetch_result = self.download_manager.fetch()
            stage_metrics.bytes_downloaded = fetch_result.bytes_downloaded
            stage_result.metrics = {
                'skipped': fetch_result.skipped,
                'bytes_downloaded': fetch_result.bytes_downloaded,
                'local_path': str(fetch_result.local_path),
            }
            return fetch_result

        return self._run_stage(PipelineStage.FETCH, run)

    def _execute_extract(self, archive_path: Path) -> ExtractResult:
        def run(stage_result: StageResult, stage_metrics: ETLMetrics) -> ExtractResult:
            extract_result = self.extract_manager.extract_archive(archive_path)
            stage_metrics.files_extracted = len(extract_result.files_extracted)
            stage_result.metrics = {
                'files_extracted': len(extract_result.files_extracted),
                'bytes_extracted': extract_result.bytes_extracted,
                'extracted_path': str(extract_result.extracted_path),
            }
            return extract_result

        return self._run_stage(PipelineStage.EXTRACT, run)

    def _execute_load(self, source_path: Path) -> IngestSummary:
        """Parse and load in one pass; rows stream from parser to loader."""
        def run(stage_result: StageResult, stage_metrics: ETLMetrics) -> IngestSummary:
            stats = ParseStats()
            with ProgressIndicator(
                f"Procesando {source_path.name}...",
                enabled=self.config.show_progress,
                logger=self.logger,
            ):
                summary = self.load_manager.load(
                    self.parser.iter_rows(source_path, stats),
                    parse_stats=stats,
                )
            stage_metrics.records_processed = summary.rows_read
            stage_metrics.records_success = summary.rows_loaded
            stage_metrics.records_skipped = summary.rows_skipped_parse
            stage_metrics.records_failed = summary.rows_skipped_persistence
            stage_result.metrics = summary.to_dict()
            return summary

        return self._run_stage(PipelineStage.LOAD, run)
