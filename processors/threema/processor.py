#!/usr/bin/env python3
"""
Threema Backup Processor

Reorganizes an unpacked Threema backup in place:
- Flat folder of attachment files named ``<kind>_<uid>_<identity>``
- ``contacts.csv`` and ``groups.csv`` describing the identities
- One ``message_<identity>.csv`` / ``group_message_<group>.csv`` per conversation

Every attachment is moved into a folder named after its conversation,
renamed after the time its message was sent and given its real extension.
Message texts are written to one transcript per conversation, thumbnails of
existing originals and byte-identical duplicates are removed.

The run is a fixed sequence of stages:

    Enumerate -> IndexIdentities -> IndexTimestampsAndExtractText ->
    ThumbnailElimination -> ClassifyAndRename -> WithinFolderDedup ->
    ArchiveWideDedupReport -> EmptyFolderCleanup -> Done

The last three stages before Done can be switched off in the configuration.
No single file or table can abort the run; only an unusable source
directory raises SourceDirectoryError.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from common.config import (
    CONTACTS_TABLE,
    GROUPS_TABLE,
    MESSAGE_TABLE_HEADERS,
    SKIP_TABLES,
    RunConfig,
)
from common.csv_reader import TableReadError, read_table
from common.failure_tracker import ItemResult, StageReport
from common.file_utils import (
    enumerate_files,
    make_dirs,
    move_file,
    remove_empty_folders,
    sniff_extension,
    unique_destination,
    write_text_file,
)
from common.progress import PHASE_INDEX, PHASE_RENAME, progress_bar
from common.utils import sanitize_platform_name, singular_plural, update_file_timestamps
from processors.base import ProcessorBase
from processors.threema.duplicates import (
    eliminate_thumbnails,
    remove_duplicates_within_folder,
    write_manifest,
)
from processors.threema.hashing import compute_fingerprints
from processors.threema.identities import build_identity_index
from processors.threema.matching import match_identity, replace_parts, tokenize
from processors.threema.models import (
    ConversationTable,
    FileEntry,
    Identity,
    TimestampIndexEntry,
)
from processors.threema.naming import resolve_destination
from processors.threema.timestamps import (
    build_timestamp_index,
    message_records,
    transcript_lines,
)

logger = logging.getLogger(__name__)

TABLE_EXTENSION = "csv"


class SourceDirectoryError(Exception):
    """The source directory is missing, not a directory, or holds no files."""


class PipelineStage(Enum):
    """Stages of a reconciliation run, in execution order."""
    ENUMERATE = "enumerate"
    INDEX_IDENTITIES = "index identities"
    INDEX_TIMESTAMPS_AND_EXTRACT_TEXT = "index timestamps and extract text"
    THUMBNAIL_ELIMINATION = "thumbnail elimination"
    CLASSIFY_AND_RENAME = "classify and rename"
    WITHIN_FOLDER_DEDUP = "within-folder dedup"
    ARCHIVE_WIDE_DEDUP_REPORT = "archive-wide dedup report"
    EMPTY_FOLDER_CLEANUP = "empty folder cleanup"
    DONE = "done"


STAGE_ORDER = list(PipelineStage)


@dataclass
class RunSummary:
    """Counts and stage reports of one run."""
    source_dir: Path
    files_found: int = 0
    tables_found: int = 0
    conversations: int = 0
    transcripts_written: int = 0
    thumbnails_removed: int = 0
    thumbnails_marked: int = 0
    renamed: int = 0
    unchanged: int = 0
    types_undetermined: int = 0
    duplicates_removed: int = 0
    duplicate_groups: int = 0
    folders_removed: int = 0
    stages_run: List[PipelineStage] = field(default_factory=list)
    reports: List[StageReport] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return sum(len(r.failures) for r in self.reports)

    @property
    def anomalies(self) -> int:
        return sum(len(r.anomalies) for r in self.reports)

    def extra_stats(self) -> Dict[str, int]:
        return {
            "Renamed/moved": self.renamed,
            "Unchanged": self.unchanged,
            "Conversations": self.conversations,
            "Transcripts written": self.transcripts_written,
            "Thumbnails removed": self.thumbnails_removed,
            "Thumbnails marked": self.thumbnails_marked,
            "Duplicates removed": self.duplicates_removed,
            "Duplicate groups listed": self.duplicate_groups,
            "Empty folders removed": self.folders_removed,
            "Integrity anomalies": self.anomalies,
        }


@dataclass
class RunState:
    """Collections shared by the stages of one run; owned by the processor."""
    source_dir: Path
    recursive: bool
    files: List[FileEntry] = field(default_factory=list)
    tables: List[ConversationTable] = field(default_factory=list)
    identities: Mapping[str, Identity] = field(default_factory=dict)
    timestamp_index: Mapping[str, TimestampIndexEntry] = field(default_factory=dict)
    tables_by_identity: Dict[str, ConversationTable] = field(default_factory=dict)
    fingerprinted: bool = False


# ============================================================================
# Processor Detection and Registration
# ============================================================================


def detect(input_path: Path) -> bool:
    """Check if a directory looks like an unpacked Threema backup.

    Detection criteria:
    - contacts.csv exists
    - OR: at least one message_*.csv / group_message_*.csv exists

    Args:
        input_path: Path to the input directory

    Returns:
        True if this is a Threema backup, False otherwise
    """
    try:
        input_path = Path(input_path)
        if not input_path.is_dir():
            return False
        for child in input_path.iterdir():
            name = child.name.lower()
            if not child.is_file() or not name.endswith(f".{TABLE_EXTENSION}"):
                continue
            if name == f"{CONTACTS_TABLE}.{TABLE_EXTENSION}" or "message_" in name:
                return True
        return False
    except OSError as e:
        logger.debug(f"Detection failed for Threema: {e}")
        return False


class ThreemaProcessor(ProcessorBase):
    """Processor for unpacked Threema backups."""

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        sniff: Callable[[Path], Optional[str]] = sniff_extension,
    ):
        self.config = config or RunConfig()
        self.sniff = sniff
        self.stage: Optional[PipelineStage] = None

    @staticmethod
    def detect(input_path: Path) -> bool:
        """Check if this processor can handle the input."""
        return detect(input_path)

    @staticmethod
    def get_name() -> str:
        """Return processor name."""
        return "Threema"

    def stage_enabled(self, stage: PipelineStage) -> bool:
        """Whether a stage runs under the current configuration."""
        if stage is PipelineStage.WITHIN_FOLDER_DEDUP:
            return self.config.remove_duplicates_within_folder
        if stage is PipelineStage.ARCHIVE_WIDE_DEDUP_REPORT:
            return bool(self.config.save_duplicate_file_names_to)
        if stage is PipelineStage.EMPTY_FOLDER_CLEANUP:
            return self.config.remove_empty_folders
        return True

    def process(self, input_dir: str, recursive: bool = False, **kwargs) -> RunSummary:
        """Reorganize a backup directory in place.

        Args:
            input_dir: Path to the unpacked backup
            recursive: Also process files in sub-folders
            **kwargs: Ignored

        Returns:
            RunSummary with counts and per-stage reports

        Raises:
            SourceDirectoryError: If the directory is missing or holds no files
        """
        state = RunState(source_dir=Path(input_dir).resolve(), recursive=recursive)
        summary = RunSummary(source_dir=state.source_dir)
        handlers = {
            PipelineStage.ENUMERATE: self._enumerate,
            PipelineStage.INDEX_IDENTITIES: self._index_identities,
            PipelineStage.INDEX_TIMESTAMPS_AND_EXTRACT_TEXT: self._index_timestamps,
            PipelineStage.THUMBNAIL_ELIMINATION: self._eliminate_thumbnails,
            PipelineStage.CLASSIFY_AND_RENAME: self._classify_and_rename,
            PipelineStage.WITHIN_FOLDER_DEDUP: self._dedup_within_folder,
            PipelineStage.ARCHIVE_WIDE_DEDUP_REPORT: self._report_duplicates,
            PipelineStage.EMPTY_FOLDER_CLEANUP: self._cleanup_folders,
        }

        for stage in STAGE_ORDER:
            self.stage = stage
            if stage is PipelineStage.DONE:
                break
            if not self.stage_enabled(stage):
                logger.info(f"stage '{stage.value}' disabled by configuration")
                continue

            logger.info(f"stage '{stage.value}'")
            report = StageReport(stage.value)
            handlers[stage](state, summary, report)
            report.log_summary()
            summary.reports.append(report)
            summary.stages_run.append(stage)

        logger.info(
            f"done; {singular_plural(summary.failures, 'failure')}, "
            f"{singular_plural(summary.anomalies, 'anomaly')}"
        )
        return summary

    # ------------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------------

    def _enumerate(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        source = state.source_dir
        logger.info(
            f"look for files in folder '{source}' "
            f"{'and' if state.recursive else 'but not'} in its sub-folders"
        )
        if not source.exists():
            raise SourceDirectoryError(f"directory '{source}' doesn't exist")
        if not source.is_dir():
            raise SourceDirectoryError(f"'{source}' is not a directory")

        # The run log is written into the source directory while it is listed
        run_log = [source / self.config.log_to] if self.config.log_to else []
        try:
            listed = enumerate_files(source, state.recursive, exclude=run_log)
        except OSError as e:
            raise SourceDirectoryError(f"could not get list of files from directory '{source}'; {e}") from e
        if not listed:
            raise SourceDirectoryError(f"no files found in directory '{source}'")

        state.files = [FileEntry.from_listing(item) for item in listed]
        summary.files_found = len(state.files)
        logger.info(f"{singular_plural(summary.files_found, 'file')} found")

    def _tables(self, state: RunState) -> List[FileEntry]:
        return [f for f in state.files if f.extension.lower() == TABLE_EXTENSION]

    def _read_identity_rows(self, tables: List[FileEntry], report: StageReport) -> List[dict]:
        rows: List[dict] = []
        for table in tables:
            try:
                rows.extend(read_table(table.full_path))
            except TableReadError as e:
                report.add_failure(table.full_path, "read table", str(e))
        return rows

    def _index_identities(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        tables = self._tables(state)
        summary.tables_found = len(tables)
        logger.info(f"{singular_plural(len(tables), 'CSV file')} found")

        contacts = [t for t in tables if t.base_name.lower() == CONTACTS_TABLE]
        groups = [t for t in tables if t.base_name.lower() == GROUPS_TABLE]
        state.identities = build_identity_index(
            self._read_identity_rows(contacts, report),
            self._read_identity_rows(groups, report),
            report,
        )

    def _index_timestamps(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        for entry in progress_bar(self._tables(state), PHASE_INDEX, "Reading tables", unit="table"):
            table = self._conversation_table(entry, state, report)
            state.tables.append(table)
            if not table.is_conversation:
                continue

            summary.conversations += 1
            attachments = sum(1 for r in table.rows if not r.is_text)
            logger.debug(f"table '{entry.full_path}': {singular_plural(attachments, 'attachment')}")

            if table.matched_identity is not None:
                state.tables_by_identity.setdefault(table.matched_identity.identity, table)

            table.extracted_texts = transcript_lines(table.rows, state.identities, self.config)
            if table.extracted_texts and self.config.save_messages_texts_to:
                transcript = table.folder / self.config.save_messages_texts_to
                result = report.record(write_text_file(transcript, "\n".join(table.extracted_texts)))
                if result.ok:
                    summary.transcripts_written += 1
                    logger.debug(f"wrote {singular_plural(len(table.extracted_texts), 'text')} to '{transcript}'")

        state.timestamp_index = build_timestamp_index(state.tables, report)
        logger.info(f"{singular_plural(len(state.timestamp_index), 'file timestamp')} found")

    def _conversation_table(
        self, entry: FileEntry, state: RunState, report: StageReport
    ) -> ConversationTable:
        """Read one table; create its folder if it holds messages."""
        tokens = tokenize(entry.base_name)
        folder_name = replace_parts(tokens, state.identities, self.config, substitute_parts=True)
        table = ConversationTable(
            source_path=entry.full_path,
            source_name=entry.base_name,
            matched_identity=match_identity(tokens, state.identities),
            resolved_folder_name=folder_name or sanitize_platform_name(entry.base_name),
            skipped=entry.base_name.lower() in SKIP_TABLES,
        )
        if table.skipped:
            return table

        try:
            rows = read_table(entry.full_path, MESSAGE_TABLE_HEADERS)
        except TableReadError as e:
            report.add_failure(entry.full_path, "read table", str(e))
            return table
        if not rows:
            return table

        table.rows = message_records(rows, entry.base_name, report)
        folder = state.source_dir / table.resolved_folder_name
        if report.record(make_dirs(folder)).ok:
            table.folder = folder
        return table

    def _eliminate_thumbnails(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        before = len(state.files)
        state.files = eliminate_thumbnails(state.files, self.config, report)
        summary.thumbnails_removed = before - len(state.files)
        summary.thumbnails_marked = sum(1 for f in state.files if f.thumbnail_marked)
        logger.info(
            f"{singular_plural(summary.thumbnails_removed, 'thumbnail')} removed, "
            f"{summary.thumbnails_marked} marked"
        )

    def _classify_and_rename(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        for entry in progress_bar(state.files, PHASE_RENAME, "Renaming files"):
            destination = resolve_destination(
                entry,
                state.timestamp_index,
                state.identities,
                state.tables_by_identity,
                self.config,
                sniff=self.sniff,
                report=report,
            )
            entry.destination = destination
            if not destination.type_determined:
                summary.types_undetermined += 1

            counter = 0
            target = destination.folder / destination.filename
            if target != entry.full_path:
                try:
                    target, counter = unique_destination(
                        destination.folder, destination.name, destination.extension, source=entry.full_path
                    )
                except OSError as e:
                    report.add_failure(entry.full_path, "rename", f"target '{target}'; {e}")
                else:
                    if report.record(move_file(entry.full_path, target)).ok:
                        entry.final_path = target
                        summary.renamed += 1
            else:
                logger.debug(f"file '{entry.full_path}' does not need to be renamed")
                summary.unchanged += 1
            entry.duplicate_rank = (counter, destination.name)

            if destination.timestamp is not None:
                if update_file_timestamps(entry.current_path, destination.timestamp.epoch_seconds):
                    logger.debug(f"adjusted file timestamps for file '{entry.current_path}'")
                else:
                    report.record(
                        ItemResult.failure(entry.current_path, "adjust file timestamps for", "utime failed"),
                        log=False,
                    )

    def _ensure_fingerprints(self, state: RunState, report: StageReport) -> None:
        if not state.fingerprinted:
            compute_fingerprints(state.files, report)
            state.fingerprinted = True

    def _dedup_within_folder(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        self._ensure_fingerprints(state, report)
        before = len(state.files)
        state.files = remove_duplicates_within_folder(state.files, report)
        summary.duplicates_removed = before - len(state.files)
        logger.info(f"{singular_plural(summary.duplicates_removed, 'duplicate')} removed")

    def _report_duplicates(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        self._ensure_fingerprints(state, report)
        manifest = state.source_dir / self.config.save_duplicate_file_names_to
        summary.duplicate_groups = len(write_manifest(state.files, manifest, report))

    def _cleanup_folders(self, state: RunState, summary: RunSummary, report: StageReport) -> None:
        results = [report.record(result) for result in remove_empty_folders(state.source_dir)]
        summary.folders_removed = sum(1 for r in results if r.ok)
        logger.info(f"{singular_plural(summary.folders_removed, 'empty folder')} removed")


def get_processor():
    """Return processor class for auto-discovery.

    Returns:
        ThreemaProcessor class
    """
    return ThreemaProcessor
