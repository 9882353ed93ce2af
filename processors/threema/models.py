"""Data models for Threema backup reconciliation."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from common.file_utils import ListedFile


@dataclass(frozen=True)
class Identity:
    """A contact or group, keyed by its identity."""
    identity: str
    display_name: str
    kind: str  # "contact" or "group"
    secondary_id: Optional[str] = None  # group id; None for contacts
    fields: Dict[str, str] = field(default_factory=dict, compare=False)


@dataclass
class MessageRecord:
    """One row of a conversation table."""
    uid: str
    type: str
    created_at: float  # epoch milliseconds
    timestamp: datetime  # local wall-clock time
    row_index: int
    body: str = ""
    caption: str = ""
    author_identity: Optional[str] = None
    inferred_extension: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.type.lower() == "text"

    @property
    def epoch_seconds(self) -> float:
        return self.created_at / 1000.0


@dataclass(frozen=True)
class TimestampIndexEntry:
    """Timestamp, folder and extension hint for one message uid."""
    uid: str
    timestamp: datetime
    epoch_seconds: float
    destination_folder: Path
    inferred_extension: Optional[str] = None


@dataclass
class ConversationTable:
    """A CSV table of the backup: administrative data or one conversation."""
    source_path: Path
    source_name: str
    matched_identity: Optional[Identity] = None
    resolved_folder_name: str = ""
    folder: Optional[Path] = None
    skipped: bool = False
    rows: List[MessageRecord] = field(default_factory=list)
    extracted_texts: List[str] = field(default_factory=list)

    @property
    def is_conversation(self) -> bool:
        return self.folder is not None and not self.skipped


@dataclass(frozen=True)
class Destination:
    """Computed placement of a file."""
    folder: Path
    name: str
    extension: str  # without dot; may be empty
    timestamp: Optional[TimestampIndexEntry] = None
    type_determined: bool = True

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.extension}" if self.extension else self.name


@dataclass
class FileEntry:
    """One file of the backup and everything derived for it during a run."""
    full_path: Path
    directory: Path
    base_name: str
    extension: str
    size: int = 0
    mtime: float = 0.0
    atime: float = 0.0

    # Derived during processing
    working_name: str = ""
    thumbnail_marked: bool = False
    destination: Optional[Destination] = None
    final_path: Optional[Path] = None
    fingerprint: Optional[str] = None
    duplicate_rank: Tuple[int, str] = (0, "")

    def __post_init__(self):
        if not self.working_name:
            self.working_name = self.base_name

    @classmethod
    def from_listing(cls, listed: ListedFile) -> "FileEntry":
        return cls(
            full_path=listed.path,
            directory=listed.directory,
            base_name=listed.base_name,
            extension=listed.extension,
            size=listed.size,
            mtime=listed.mtime,
            atime=listed.atime,
        )

    @property
    def current_path(self) -> Path:
        """Where the file lives now (after renaming, if it was renamed)."""
        return self.final_path or self.full_path
