"""
RNC Pipeline Transform Module

Streams the extracted DGII registry file row by row and maps each row
positionally onto the registry record shape. Malformed rows are logged
and skipped; read failures abort the parse.
"""

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from .config import PipelineError, RNCConfig
from .logging import ETLLogger


# Positional layout of the DGII file
REGISTRY_COLUMNS = [
    'rnc',
    'legal_name',
    'economic_activity',
    'activity_start_date',
    'status',
    'payment_regime',
]

DETECT_CHUNK_SIZE = 1024 * 1024  # characters


class ParseAbortedError(PipelineError):
    """Raised when the source file cannot be read or decoded."""
    pass


@dataclass
class ParsedRow:
    """One well-formed data row, values already trimmed."""
    line_number: int
    rnc: str
    legal_name: str
    economic_activity: str
    activity_start_date: str
    status: str
    payment_regime: str

    def to_record(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in REGISTRY_COLUMNS}


@dataclass
class RowError:
    """A row that was skipped during parsing."""
    line_number: int
    message: str
    content: str


@dataclass
class ParseStats:
    """Counters for a parse run.

    ``rows_read`` counts data rows only; a detected header line is
    reported through ``header_skipped``.
    """
    rows_read: int = 0
    rows_skipped: int = 0
    header_skipped: bool = False
    errors: List[RowError] = field(default_factory=list)
    max_stored_errors: int = 100

    def skip(self, line_number: int, message: str, content: str) -> None:
        self.rows_skipped += 1
        if len(self.errors) < self.max_stored_errors:
            self.errors.append(RowError(line_number, message, content))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows_read': self.rows_read,
            'rows_skipped': self.rows_skipped,
            'header_skipped': self.header_skipped,
        }


class RegistryParser:
    """Parses the comma-delimited DGII registry file.

    Each physical line is parsed on its own in strict mode, so a quote that
    is never closed costs one row instead of swallowing the rest of the
    file. Bare quotes inside unquoted fields are kept as data.
    """

    def __init__(
        self,
        config: RNCConfig,
        logger: Optional[ETLLogger] = None,
    ):
        self.config = config
        self.transform_config = config.transform
        self.logger = logger or ETLLogger(name='rnc.transform', log_to_file=False)

    def _detect_encoding(self, filepath: Path) -> str:
        """Return the first fallback encoding that decodes the whole file.

        Raises:
            ParseAbortedError: no fallback decodes the file
        """
        for encoding in self.transform_config.encoding_fallbacks:
            try:
                with open(filepath, 'r', encoding=encoding) as f:
                    while f.read(DETECT_CHUNK_SIZE):
                        pass
                return encoding
            except UnicodeDecodeError:
                continue
        raise ParseAbortedError(
            f"cannot decode {filepath.name} with any of "
            f"{', '.join(self.transform_config.encoding_fallbacks)}"
        )

    def parse_line(self, line: str) -> List[str]:
        """Split one line into fields.

        Raises:
            csv.Error: unbalanced or misplaced quotes
        """
        reader = csv.reader([line], delimiter=self.transform_config.delimiter, strict=True)
        return next(reader, [])

    def is_header(self, row: List[str]) -> bool:
        if not row:
            return False
        tokens = {t.upper() for t in self.transform_config.header_tokens}
        return row[0].strip().upper() in tokens

    def iter_rows(
        self,
        filepath: Path,
        stats: Optional[ParseStats] = None,
    ) -> Generator[ParsedRow, None, ParseStats]:
        """Yield every well-formed data row in file order.

        Args:
            filepath: Extracted registry file
            stats: Optional ParseStats to update while streaming

        Returns:
            The ParseStats (as the generator's return value)

        Raises:
            ParseAbortedError: the file cannot be opened, read or decoded
        """
        stats = stats if stats is not None else ParseStats()
        expected = len(REGISTRY_COLUMNS)

        try:
            encoding = self._detect_encoding(filepath)
            fh = open(filepath, 'r', encoding=encoding, newline='')
        except OSError as e:
            raise ParseAbortedError(f"error opening source file ({filepath}): {e}") from e

        self.logger.debug(f"Reading {filepath.name} as {encoding}")

        first_row = True
        line_number = 0
        with fh:
            try:
                for line_number, line in enumerate(fh, start=1):
                    if not line.strip():
                        continue
                    content = line.rstrip('\r\n')

                    try:
                        row = self.parse_line(line)
                    except csv.Error as e:
                        stats.rows_read += 1
                        stats.skip(line_number, f"CSV parse error: {e}", content)
                        self.logger.warning(
                            f"Line {line_number}: CSV parse error: {e}. Content: {content!r}. Skipping.",
                            line_number=line_number,
                            row=content,
                        )
                        continue

                    if first_row:
                        first_row = False
                        if self.is_header(row):
                            stats.header_skipped = True
                            self.logger.info(f"Header detected and skipped (line {line_number}): {row}")
                            continue

                    stats.rows_read += 1

                    if len(row) < expected:
                        stats.skip(line_number, f"fewer than {expected} columns", content)
                        self.logger.warning(
                            f"Line {line_number}: row has {len(row)} of {expected} columns. "
                            f"Content: {row}. Skipping.",
                            line_number=line_number,
                            row=content,
                        )
                        continue

                    values = [value.strip() for value in row[:expected]]
                    yield ParsedRow(line_number, *values)
            except (OSError, UnicodeDecodeError) as e:
                raise ParseAbortedError(
                    f"error reading source file (line {line_number}): {e}"
                ) from e

        return stats
