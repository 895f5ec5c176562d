"""
RNC Pipeline Extract Manager

Unpacks the downloaded registry archive into the staging directory. Entry
paths are checked against the staging root before anything is written, and
any entry failure aborts the whole extraction.
"""

import os
import shutil
import stat
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import FilesystemError, PipelineError, RNCConfig
from .logging import ETLLogger


@dataclass
class ExtractResult:
    """Result of an extraction operation."""
    archive_path: Path
    extracted_path: Path
    files_extracted: List[str] = field(default_factory=list)
    bytes_extracted: int = 0

    def __str__(self) -> str:
        return f"ExtractResult({self.extracted_path.name}, {len(self.files_extracted)} files)"


class ArchiveError(PipelineError):
    """Raised when the archive or one of its entries cannot be read or written."""
    pass


class UnsafeArchiveEntryError(ArchiveError):
    """Raised when an entry would be written outside the staging directory."""
    pass


class NothingExtractedError(ArchiveError):
    """Raised when the archive holds no file entries."""
    pass


def _entry_mode(member: zipfile.ZipInfo) -> int:
    """Unix permission bits recorded for an entry (0 if none)."""
    return (member.external_attr >> 16) & 0o777


class ExtractManager:
    """Extracts the registry archive into ``<config_root>/bd/TMP``."""

    def __init__(
        self,
        config: RNCConfig,
        logger: Optional[ETLLogger] = None,
    ):
        self.config = config
        self.extract_config = config.extract
        self.logger = logger or ETLLogger(name='rnc.extract', log_to_file=False)

    def resolve_entry_path(self, dest_dir: Path, name: str) -> Path:
        """Map an archive entry name to a path inside ``dest_dir``.

        Raises:
            UnsafeArchiveEntryError: absolute names or names escaping dest_dir
        """
        root = dest_dir.resolve()
        if not name or os.path.isabs(name) or name.startswith(('/', '\\')):
            raise UnsafeArchiveEntryError(f"unsafe archive entry: {name!r}")

        target = (root / name).resolve()
        if target != root and root not in target.parents:
            raise UnsafeArchiveEntryError(f"archive entry escapes staging directory: {name!r}")
        return target

    def extract_archive(
        self,
        archive_path: Optional[Path] = None,
        dest_dir: Optional[Path] = None,
    ) -> ExtractResult:
        """Extract every entry and return the first extracted file.

        Raises:
            ArchiveError: archive cannot be opened or an entry fails
            UnsafeArchiveEntryError: an entry path escapes ``dest_dir``
            NothingExtractedError: the archive has no file entries
        """
        archive_path = archive_path or self.config.archive_path
        dest_dir = dest_dir or self.config.staging_dir

        self.logger.info(f"Extracting {archive_path.name} into {dest_dir}")

        try:
            dest_dir.mkdir(mode=self.extract_config.directory_mode, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"failed to create TMP directory: {e}") from e

        try:
            zf = zipfile.ZipFile(archive_path, 'r')
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"failed to open zip file: {e}") from e

        extracted_path: Optional[Path] = None
        files: List[str] = []
        total_bytes = 0

        with zf:
            for member in zf.infolist():
                target = self.resolve_entry_path(dest_dir, member.filename)
                mode = _entry_mode(member)

                if member.is_dir():
                    try:
                        target.mkdir(mode=mode or self.extract_config.directory_mode,
                                      parents=True, exist_ok=True)
                    except OSError as e:
                        raise ArchiveError(f"failed to create directory {member.filename}: {e}") from e
                    continue

                total_bytes += self._extract_member(zf, member, target, mode)
                files.append(member.filename)
                if extracted_path is None:
                    extracted_path = target

        if extracted_path is None:
            raise NothingExtractedError("no file was extracted from the zip archive")

        self.logger.info(
            f"Extracted {len(files)} files ({total_bytes:,} bytes) from {archive_path.name}"
        )
        return ExtractResult(
            archive_path=archive_path,
            extracted_path=extracted_path,
            files_extracted=files,
            bytes_extracted=total_bytes,
        )

    def _extract_member(
        self,
        zf: zipfile.ZipFile,
        member: zipfile.ZipInfo,
        target: Path,
        mode: int,
    ) -> int:
        try:
            target.parent.mkdir(mode=self.extract_config.directory_mode, parents=True, exist_ok=True)
            with zf.open(member) as src, open(target, 'wb') as dst:
                shutil.copyfileobj(src, dst)
            if mode:
                # owner keeps write access so the next run can overwrite
                os.chmod(target, mode | stat.S_IWUSR)
        except (OSError, zipfile.BadZipFile, zlib.error, RuntimeError) as e:
            raise ArchiveError(f"failed to extract {member.filename}: {e}") from e
        return member.file_size
