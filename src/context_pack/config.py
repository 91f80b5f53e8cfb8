from __future__ import annotations

from collections.abc import Callable  # noqa: TC003
from enum import StrEnum, auto
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from context_pack.exceptions import FileReadError
from context_pack.patterns import normalize_path


class OutputFormat(StrEnum):
    """Wire formats a chunk can be rendered to."""

    XML = "xml"
    MARKDOWN = "md"
    JSON = "json"


class SkipReason(StrEnum):
    """Why the filter pipeline dropped a file."""

    IGNORED_PATTERN = auto()
    IGNORED_EXTENSION = auto()
    TOO_LARGE = auto()
    BINARY_CONTENT = auto()
    UNREADABLE = auto()


ALL_BUNDLES = "all"

MAX_FILE_SIZE = 500 * 1024
DEFAULT_MAX_TOKENS = 25_000
CHARS_PER_TOKEN = 4

# Envelope allowances, in characters, charged against the chunk budget.
CHUNK_OVERHEAD = 100
PER_FILE_OVERHEAD = 200
MIN_USABLE_SPACE = 500

SPLIT_SEARCH_WINDOW = 1_000
SPLIT_SEARCH_RATIO = 0.2

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".next",
    "dist",
    "build",
    "coverage",
    ".vscode",
    ".idea",
    "__pycache__",
    "target",  # Rust/Java
    "bin",
    "obj",
)

DEFAULT_IGNORED_EXTENSIONS: tuple[str, ...] = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".mp4",
    ".mov",
    ".mp3",
    ".wav",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
    ".7z",
    ".rar",
    ".exe",
    ".dll",
    ".so",
    ".dylib",
    ".class",
    ".jar",
    ".pyc",
    ".tsbuildinfo",
    ".lock",
)


def extension_of(name: str) -> str:
    """Return the last dot-separated segment of a file name, lowercased.

    Args:
        name (str): the file name (not a path)

    Returns:
        str: the extension without its dot, or "" when the name has no dot
    """
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def normalize_extension(ext: str) -> str:
    """Normalize a denied-extension entry to the `.ext` lowercase form."""
    ext = ext.strip().lower()
    if not ext:
        return ""
    return ext if ext.startswith(".") else f".{ext}"


class FileRecord(BaseModel):
    """A file that survived filtering, with its content already read.

    Attributes:
        path: Slash-normalized path relative to the project root. Unique within a run.
        name: Base file name.
        content: Full decoded text content.
        size: Size in bytes as reported by the upstream reader.
        extension: Lowercase extension without the leading dot (may be empty).
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Relative, slash-normalized path")
    name: str = Field(..., description="Base file name")
    content: str = Field(..., description="Decoded text content")
    size: int = Field(..., ge=0, description="File size in bytes")
    extension: str = Field(default="", description="Lowercase extension, no dot")

    @model_validator(mode="before")
    @classmethod
    def _derive_extension(cls, data: Any) -> Any:  # noqa: ANN401
        if isinstance(data, dict) and not data.get("extension"):
            return {**data, "extension": extension_of(str(data.get("name", "")))}
        return data

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return normalize_path(value)

    @field_validator("extension")
    @classmethod
    def _normalize_extension(cls, value: str) -> str:
        return value.lstrip(".").lower()


class RawFile(BaseModel):
    """A file as handed over by the upstream reader, before any filtering.

    Content is either already in memory (`content`) or produced on demand by
    `loader`, so that cheap path/extension/size checks run before any read.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str = Field(..., min_length=1, description="Relative path as reported upstream")
    name: str = Field(..., description="Base file name")
    size: int = Field(..., ge=0, description="File size in bytes")
    content: str | None = Field(default=None, description="In-memory content, if already read")
    loader: Callable[[], str] | None = Field(default=None, exclude=True, repr=False)

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return normalize_path(value)

    def read(self) -> str:
        """Return the file content, loading it if needed.

        Raises:
            FileReadError: if the record carries neither content nor a loader.

        Returns:
            str: the decoded text content
        """
        if self.content is not None:
            return self.content
        if self.loader is None:
            raise FileReadError(path=self.path)
        return self.loader()

    def to_record(self, content: str) -> FileRecord:
        """Freeze this raw file into a FileRecord carrying `content`."""
        return FileRecord(path=self.path, name=self.name, content=content, size=self.size)


class Bundle(BaseModel):
    """A named group of path patterns giving a focused view of the project."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique bundle identifier")
    name: str = Field(..., description="Human readable name")
    patterns: tuple[str, ...] = Field(default=(), description="Glob or shorthand patterns")
    description: str = Field(default="", description="Optional free text")


DEFAULT_BUNDLES: tuple[Bundle, ...] = (
    Bundle(
        id="default-frontend",
        name="Frontend",
        patterns=("src/components/**/*", "src/pages/**/*", "src/app/**/*"),
    ),
    Bundle(
        id="default-backend",
        name="Backend",
        patterns=("api/**/*", "server/**/*", "src/backend/**/*"),
    ),
    Bundle(
        id="default-config",
        name="Config & Types",
        patterns=("*.config.*", "package.json", "src/types/**/*"),
    ),
)


class FilePart(BaseModel):
    """A contiguous slice of one file's content placed in a chunk.

    Joining the `content` of every part of a file in `part_index` order gives
    back the file's original content.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    extension: str = ""
    content: str
    size: int = Field(..., ge=0, description="Size of the whole original file")
    part_index: int = Field(default=1, ge=1)
    total_parts: int = Field(default=1, ge=1)

    @computed_field
    @property
    def is_split(self) -> bool:
        """Whether the file was spread over more than one part."""
        return self.total_parts > 1

    @classmethod
    def whole(cls, record: FileRecord) -> FilePart:
        """Build the single, unsplit part for a record."""
        return cls(
            path=record.path,
            name=record.name,
            extension=record.extension,
            content=record.content,
            size=record.size,
        )


class Chunk(BaseModel):
    """One rendered, size-bounded output unit."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description='"Full Context" or "Part i of N"')
    content: str = Field(..., description="Rendered chunk in the selected format")
    files: tuple[FilePart, ...] = Field(default=(), description="Parts in input order")
    index: int = Field(default=1, ge=1)
    total: int = Field(default=1, ge=1)
    estimated_tokens: int = Field(default=0, ge=0)


class SkippedFile(BaseModel):
    """A file dropped by the filter pipeline, with the reason."""

    model_config = ConfigDict(frozen=True)

    path: str
    reason: SkipReason
    detail: str = ""


class ProcessingStats(BaseModel):
    """Counters describing one filtering run."""

    model_config = ConfigDict(frozen=True)

    total_files: int = 0
    processed_files: int = 0
    skipped_files: int = 0
    total_size: int = 0


class FilterResult(BaseModel):
    """Outcome of the filter pipeline: kept files in canonical order plus what was dropped."""

    model_config = ConfigDict(frozen=True)

    files: tuple[FileRecord, ...] = ()
    skipped: tuple[SkippedFile, ...] = ()
    stats: ProcessingStats = Field(default_factory=ProcessingStats)


class ExtensionStat(BaseModel):
    """Number of files and bytes sharing one extension."""

    model_config = ConfigDict(frozen=True)

    extension: str
    count: int
    size: int
