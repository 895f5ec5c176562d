"""
ETL Pipeline Package for the DGII RNC registry

Downloads the DGII taxpayer registry archive, extracts it, parses the
delimited file and loads one RegistryRecord per valid row.

Modules:
    config: Paths, source URL and per-stage settings
    download: Archive fetch with overwrite confirmation
    extract: Archive extraction into the staging directory
    transform: Row-by-row parsing with malformed-row tolerance
    load: Schema check and per-record persistence
    orchestrator: Stage coordination and run result
    progress: Cosmetic spinner
    logging: Logging and stage metrics

Usage:
    from rnc.etl_pipeline import RNCOrchestrator, RNCConfig

    config = RNCConfig.from_env()
    result = RNCOrchestrator(config).execute()
"""

from .config import RNCConfig, PipelineError, ConfigurationError, FilesystemError
from .download import DownloadManager, FetchResult, NetworkError, BadStatusError
from .extract import ExtractManager, ExtractResult, ArchiveError, NothingExtractedError, UnsafeArchiveEntryError
from .transform import RegistryParser, ParsedRow, ParseStats, ParseAbortedError
from .load import LoadManager, IngestSummary, SchemaError, SchemaMismatchError
from .orchestrator import RNCOrchestrator, PipelineResult, PipelineStatus
from .logging import ETLLogger

__all__ = [
    'RNCConfig',
    'PipelineError',
    'ConfigurationError',
    'FilesystemError',
    'DownloadManager',
    'FetchResult',
    'NetworkError',
    'BadStatusError',
    'ExtractManager',
    'ExtractResult',
    'ArchiveError',
    'NothingExtractedError',
    'UnsafeArchiveEntryError',
    'RegistryParser',
    'ParsedRow',
    'ParseStats',
    'ParseAbortedError',
    'LoadManager',
    'IngestSummary',
    'SchemaError',
    'SchemaMismatchError',
    'RNCOrchestrator',
    'PipelineResult',
    'PipelineStatus',
    'ETLLogger',
]

__version__ = '1.0.0'
