"""
RNC Pipeline Download Manager

Fetches the DGII registry archive into ``<config_root>/bd``. Asks the
operator before overwriting a previously extracted file and shows a
spinner while the transfer runs. Failures are raised as typed errors;
nothing is retried.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import requests

from .config import FilesystemError, PipelineError, RNCConfig
from .logging import ETLLogger
from .progress import ProgressIndicator


@dataclass
class FetchResult:
    """Result of a fetch operation.

    ``skipped`` means the operator declined to overwrite an existing
    artifact; ``local_path`` then points at that artifact.
    """
    local_path: Path
    skipped: bool = False
    url: Optional[str] = None
    bytes_downloaded: int = 0
    duration: float = 0.0

    def __str__(self) -> str:
        status = "SKIPPED" if self.skipped else "SUCCESS"
        return f"FetchResult({self.local_path.name}: {status})"


class DownloadError(PipelineError):
    """Base exception for fetch failures."""
    pass


class NetworkError(DownloadError):
    """Raised when the archive cannot be retrieved (connection, timeout)."""
    pass


class BadStatusError(NetworkError):
    """Raised when the server answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def is_affirmative(answer: Optional[str], tokens: List[str]) -> bool:
    """Return True if ``answer`` is one of the accepted yes-tokens."""
    if answer is None:
        return False
    return answer.strip().lower() in {t.lower() for t in tokens}


def stdin_confirm(filename: str) -> str:
    """Ask on stdin whether an existing file may be overwritten."""
    try:
        return input(
            f"File exists ({filename}). Do you want to continue and overwrite it? (y/n): "
        )
    except EOFError:
        return ''


class DownloadManager:
    """Downloads the registry archive.

    Args:
        config: Pipeline configuration
        logger: Optional ETLLogger
        confirm: Callable receiving the existing artifact's file name and
            returning the operator's raw answer
    """

    def __init__(
        self,
        config: RNCConfig,
        logger: Optional[ETLLogger] = None,
        confirm: Optional[Callable[[str], str]] = None,
    ):
        self.config = config
        self.download_config = config.download
        self.logger = logger or ETLLogger(name='rnc.download', log_to_file=False)
        self.confirm = confirm or stdin_confirm
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({'User-Agent': 'orgm-rnc/1.0'})
        return session

    def prepare_directories(self) -> None:
        """Create the bd and staging directories."""
        mode = self.config.extract.directory_mode
        for directory in (self.config.bd_dir, self.config.staging_dir):
            try:
                directory.mkdir(mode=mode, parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"failed to create directory {directory}: {e}") from e

    def find_existing_artifacts(self) -> List[Path]:
        """Extracted text/CSV files left in the staging directory by a previous run."""
        staging = self.config.staging_dir
        if not staging.is_dir():
            return []
        found: List[Path] = []
        for pattern in self.download_config.artifact_patterns:
            found.extend(sorted(staging.glob(pattern)))
        return found

    def is_downloaded(self) -> bool:
        archive = self.config.archive_path
        return archive.exists() and archive.stat().st_size > 0

    def _should_overwrite(self, existing: Path) -> bool:
        if self.config.assume_yes:
            return True
        answer = self.confirm(existing.name)
        return is_affirmative(answer, self.download_config.affirmative_tokens)

    def fetch(self) -> FetchResult:
        """Download the archive, unless the operator keeps the existing artifact.

        Raises:
            ConfigurationError: no source URL configured
            FilesystemError: directories or archive file cannot be written
            NetworkError: connection failure or timeout
            BadStatusError: non-success HTTP status
        """
        url = self.config.require_source_url()
        self.prepare_directories()

        existing = self.find_existing_artifacts()
        if existing and not self._should_overwrite(existing[0]):
            self.logger.info(f"Keeping existing artifact {existing[0]}")
            return FetchResult(local_path=existing[0], skipped=True, url=url)

        dest_path = self.config.archive_path
        self.logger.info(f"Downloading DGII registry from {url}")

        start_time = time.time()
        with ProgressIndicator(
            "Descargando Base de Datos...DGII",
            enabled=self.config.show_progress,
            logger=self.logger,
        ):
            bytes_downloaded = self._download(url, dest_path)

        duration = time.time() - start_time
        self.logger.info(
            f"Downloaded {dest_path.name}: {bytes_downloaded:,} bytes in {duration:.1f}s"
        )
        return FetchResult(
            local_path=dest_path,
            url=url,
            bytes_downloaded=bytes_downloaded,
            duration=duration,
        )

    def _download(self, url: str, dest_path: Path) -> int:
        try:
            with self.session.get(
                url,
                stream=True,
                timeout=self.download_config.timeout,
                verify=self.download_config.verify_ssl,
            ) as response:
                try:
                    response.raise_for_status()
                except requests.exceptions.HTTPError as e:
                    raise BadStatusError(
                        f"bad status: {e}",
                        status_code=getattr(response, 'status_code', None),
                    ) from e
                return self._write_stream(response, dest_path)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"failed to initiate download: {e}") from e

    def _write_stream(self, response: requests.Response, dest_path: Path) -> int:
        try:
            fh = open(dest_path, 'wb')
        except OSError as e:
            raise FilesystemError(f"failed to create zip file: {e}") from e

        bytes_downloaded = 0
        with fh:
            for chunk in response.iter_content(chunk_size=self.download_config.chunk_size):
                if not chunk:
                    continue
                try:
                    fh.write(chunk)
                except OSError as e:
                    raise FilesystemError(f"failed to write zip file: {e}") from e
                bytes_downloaded += len(chunk)
        return bytes_downloaded
