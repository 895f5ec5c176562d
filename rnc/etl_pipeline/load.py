"""
RNC Pipeline Load Manager

Persists parsed registry rows into the ``rnc`` database. The table is
created on first use; an existing table whose columns do not match the
model is reported instead of being altered. Every record is its own unit
of work, so one bad row never costs the rest of the file.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from django.db import DatabaseError, connections, transaction
from django.db.migrations.loader import MigrationLoader
from django.db.migrations.recorder import MigrationRecorder

from rnc.models import RegistryRecord

from .config import PipelineError, RNCConfig
from .logging import ETLLogger
from .transform import ParsedRow, ParseStats


SQLITE_PRAGMAS = [
    "PRAGMA synchronous = OFF;",
    "PRAGMA journal_mode = MEMORY;",
    "PRAGMA temp_store = MEMORY;",
]


@dataclass
class IngestSummary:
    """Tally of one import run."""
    rows_read: int = 0
    rows_skipped_parse: int = 0
    rows_skipped_persistence: int = 0
    rows_loaded: int = 0
    header_skipped: bool = False

    @property
    def rows_skipped(self) -> int:
        return self.rows_skipped_parse + self.rows_skipped_persistence

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows_read': self.rows_read,
            'rows_skipped_parse': self.rows_skipped_parse,
            'rows_skipped_persistence': self.rows_skipped_persistence,
            'rows_loaded': self.rows_loaded,
            'header_skipped': self.header_skipped,
        }

    def __str__(self) -> str:
        return (
            f"{self.rows_read:,} rows read, {self.rows_loaded:,} loaded, "
            f"{self.rows_skipped_parse:,} skipped (parse), "
            f"{self.rows_skipped_persistence:,} skipped (persistence)"
        )


class SchemaError(PipelineError):
    """Raised when the registry table cannot be created or inspected."""
    pass


class SchemaMismatchError(SchemaError):
    """Raised when an existing registry table does not match the model."""
    pass


class LoadManager:
    """Loads registry rows one record at a time."""

    def __init__(
        self,
        config: RNCConfig,
        logger: Optional[ETLLogger] = None,
    ):
        self.config = config
        self.load_config = config.load
        self.database = config.load.database
        self.logger = logger or ETLLogger(name='rnc.load', log_to_file=False)

    @property
    def connection(self):
        return connections[self.database]

    def _get_table_name(self) -> str:
        return RegistryRecord._meta.db_table

    def ensure_schema(self) -> bool:
        """Create the registry table if it does not exist.

        Returns:
            True if the table was created

        Raises:
            SchemaMismatchError: the table exists with different columns
            SchemaError: the database cannot be inspected or altered
        """
        conn = self.connection
        table_name = self._get_table_name()

        try:
            with conn.cursor() as cursor:
                tables = conn.introspection.table_names(cursor)

            if table_name not in tables:
                self.logger.info(f"Creating table {table_name} in database '{self.database}'")
                with conn.schema_editor() as editor:
                    editor.create_model(RegistryRecord)
                self._record_migrations()
                return True

            with conn.cursor() as cursor:
                description = conn.introspection.get_table_description(cursor, table_name)
        except DatabaseError as e:
            raise SchemaError(f"failed to prepare table {table_name}: {e}") from e

        existing = {column.name for column in description}
        expected = {f.column for f in RegistryRecord._meta.local_fields}
        missing = sorted(expected - existing)
        if missing:
            raise SchemaMismatchError(
                f"Table {table_name} in database '{self.database}' is missing columns "
                f"{', '.join(missing)}. Remove {self.config.db_path} and import again."
            )
        return False

    def _record_migrations(self) -> None:
        """Mark the app's migrations applied so a later ``migrate`` is a no-op."""
        conn = self.connection
        app_label = RegistryRecord._meta.app_label
        recorder = MigrationRecorder(conn)
        applied = recorder.applied_migrations()
        loader = MigrationLoader(conn, ignore_no_migrations=True)
        for key in sorted(loader.disk_migrations):
            if key[0] == app_label and key not in applied:
                recorder.record_applied(*key)

    def tune_connection(self) -> None:
        """Relax SQLite durability for the bulk import."""
        conn = self.connection
        if conn.vendor != 'sqlite' or conn.in_atomic_block:
            return
        try:
            with conn.cursor() as cursor:
                for pragma in SQLITE_PRAGMAS:
                    cursor.execute(pragma)
        except DatabaseError as e:
            self.logger.warning(f"Could not tune SQLite connection: {e}")

    def clear_records(self) -> int:
        deleted, _ = RegistryRecord.objects.using(self.database).all().delete()
        self.logger.info(f"Removed {deleted:,} existing registry records")
        return deleted

    def get_record_count(self) -> int:
        return RegistryRecord.objects.using(self.database).count()

    def save_row(self, row: ParsedRow) -> RegistryRecord:
        with transaction.atomic(using=self.database):
            return RegistryRecord.objects.using(self.database).create(**row.to_record())

    def load(
        self,
        rows: Iterable[ParsedRow],
        parse_stats: Optional[ParseStats] = None,
    ) -> IngestSummary:
        """Persist rows in order and return the run tally.

        ``parse_stats`` is the object the parser updates while ``rows`` is
        consumed; its counters are folded into the summary once the
        iterable is exhausted.
        """
        self.ensure_schema()
        self.tune_connection()

        if self.load_config.replace_existing:
            self.clear_records()

        summary = IngestSummary()

        for row in rows:
            try:
                self.save_row(row)
            except DatabaseError as e:
                summary.rows_skipped_persistence += 1
                self.logger.error(
                    f"Line {row.line_number}, RNC {row.rnc}: error saving record: {e}. "
                    f"Data: [{row.rnc}, {row.legal_name}, ...]. Skipping.",
                    line_number=row.line_number,
                    rnc=row.rnc,
                )
                continue

            summary.rows_loaded += 1
            self.logger.log_progress(summary.rows_loaded, self.load_config.progress_interval)

        if parse_stats is not None:
            summary.rows_read = parse_stats.rows_read
            summary.rows_skipped_parse = parse_stats.rows_skipped
            summary.header_skipped = parse_stats.header_skipped
        else:
            summary.rows_read = summary.rows_loaded + summary.rows_skipped_persistence

        self.logger.info(f"Load complete: {summary}")
        return summary
