"""
RNC Pipeline Configuration Module

Provides configuration for the DGII registry import: source URL, on-disk
layout under the config root, and per-stage behavior. Components receive
an RNCConfig in their constructor and never read Django settings directly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Any
import logging

from django.conf import settings


logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base class for errors that abort a pipeline run."""
    pass


class ConfigurationError(PipelineError):
    """Raised when a required setting (e.g. the source URL) is missing."""
    pass


class FilesystemError(PipelineError):
    """Raised when a pipeline directory or file cannot be created or written."""
    pass


def _default_config_root() -> Path:
    return Path(getattr(settings, 'ORGM_CONFIG_PATH', Path.home() / '.config' / 'orgm'))


def _default_source_url() -> str:
    return getattr(settings, 'ORGM_URLS', {}).get('dgii', '')


@dataclass
class DownloadConfig:
    """Configuration for the fetch stage."""
    timeout: int = 300  # seconds
    chunk_size: int = 8192  # bytes
    verify_ssl: bool = True
    archive_name: str = 'DGII_RNC.zip'
    artifact_patterns: List[str] = field(default_factory=lambda: ['*.txt', '*.csv'])
    affirmative_tokens: List[str] = field(default_factory=lambda: ['s', 'si', 'y', 'yes'])


@dataclass
class ExtractConfig:
    """Configuration for extraction operations."""
    staging_subdir: str = 'TMP'
    directory_mode: int = 0o755


@dataclass
class TransformConfig:
    """Configuration for parsing the registry file."""
    encoding_fallbacks: List[str] = field(
        default_factory=lambda: ['utf-8', 'cp1252', 'latin-1']
    )
    delimiter: str = ','
    header_tokens: List[str] = field(default_factory=lambda: ['RNC', 'CEDULA'])


@dataclass
class LoadConfig:
    """Configuration for load operations."""
    database: str = 'rnc'
    replace_existing: bool = True
    progress_interval: int = 10000


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""
    level: str = "INFO"
    log_to_file: bool = True
    max_log_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    structured_logging: bool = False


@dataclass
class RNCConfig:
    """Main configuration class for the RNC import pipeline.

    All paths hang off ``config_root``:

        <config_root>/bd/DGII_RNC.zip   downloaded archive
        <config_root>/bd/TMP/           extracted entries
        <config_root>/bd/dgii.db        registry store
        <config_root>/logs/             pipeline logs
    """
    config_root: Path = field(default_factory=_default_config_root)
    source_url: str = field(default_factory=_default_source_url)
    db_name: str = 'dgii.db'

    download: DownloadConfig = field(default_factory=DownloadConfig)
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    transform: TransformConfig = field(default_factory=TransformConfig)
    load: LoadConfig = field(default_factory=LoadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Pipeline behavior
    assume_yes: bool = False
    show_progress: bool = True

    def __post_init__(self):
        self.config_root = Path(self.config_root).expanduser()

    @property
    def bd_dir(self) -> Path:
        return self.config_root / 'bd'

    @property
    def staging_dir(self) -> Path:
        return self.bd_dir / self.extract.staging_subdir

    @property
    def archive_path(self) -> Path:
        return self.bd_dir / self.download.archive_name

    @property
    def db_path(self) -> Path:
        return self.bd_dir / self.db_name

    @property
    def log_dir(self) -> Path:
        return self.config_root / 'logs'

    def require_source_url(self) -> str:
        """Return the source URL or raise ConfigurationError."""
        if not self.source_url:
            raise ConfigurationError("DGII source URL not found in config (ORGM_DGII_URL)")
        return self.source_url

    @classmethod
    def from_env(cls) -> 'RNCConfig':
        """Create configuration from settings plus RNC_* environment overrides."""
        config = cls()

        source_url = os.getenv('RNC_SOURCE_URL')
        if source_url:
            config.source_url = source_url

        timeout = os.getenv('RNC_TIMEOUT')
        if timeout:
            config.download.timeout = int(timeout)

        if os.getenv('RNC_APPEND', '').lower() in ('true', '1', 'yes'):
            config.load.replace_existing = False

        if os.getenv('RNC_STRUCTURED_LOGS', '').lower() in ('true', '1', 'yes'):
            config.logging.structured_logging = True

        log_level = os.getenv('RNC_LOG_LEVEL') or getattr(settings, 'LOG_LEVEL', None)
        if log_level:
            config.logging.level = log_level

        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RNCConfig':
        """Create configuration from a dictionary."""
        config = cls()

        for key in ['source_url', 'db_name', 'assume_yes', 'show_progress']:
            if key in data:
                setattr(config, key, data[key])

        if 'config_root' in data:
            config.config_root = Path(data['config_root']).expanduser()

        for section in ['download', 'extract', 'transform', 'load', 'logging']:
            if section in data:
                target = getattr(config, section)
                for k, v in data[section].items():
                    if hasattr(target, k):
                        setattr(target, k, v)
                    else:
                        logger.warning(f"Ignoring unknown {section} option: {k}")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary for serialization."""
        return {
            'config_root': str(self.config_root),
            'source_url': self.source_url,
            'bd_dir': str(self.bd_dir),
            'staging_dir': str(self.staging_dir),
            'archive_path': str(self.archive_path),
            'db_path': str(self.db_path),
            'database': self.load.database,
            'replace_existing': self.load.replace_existing,
        }
