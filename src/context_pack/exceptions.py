from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ContextPackError(Exception):
    """Base exception for errors in the context_pack package."""

    def __str__(self) -> str:
        message = getattr(self, "message", "")
        return message or self.__class__.__name__


@dataclass(frozen=True)
class InvalidPatternError(ContextPackError):
    """Raised when an ignore or bundle pattern cannot be compiled."""

    pattern: str
    message: str = "The pattern could not be compiled to a regular expression."


@dataclass(frozen=True)
class FileReadError(ContextPackError):
    """Raised when a raw file record has no content and no way to load it."""

    path: str
    message: str = "The file has neither content nor a loader."


@dataclass(frozen=True)
class ConfigFileError(ContextPackError):
    """Raised when a project configuration file is unreadable or invalid."""

    file: Path
    message: str = "The configuration file is invalid."


@dataclass(frozen=True)
class NotAGitRepositoryError(ContextPackError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."
