"""
Error types for the mapper comparison report.

All fatal errors derive from MapperComparisonError so the CLI can report them
uniformly. Empty aggregation cells are not errors; they are signalled with
EmptyGroupWarning and left out of the output tables.
"""

from pathlib import Path
from typing import Optional, Union


class MapperComparisonError(Exception):
    """Base class for all fatal report errors."""


class ConfigError(MapperComparisonError):
    """Invalid or inconsistent report configuration."""


class LoadError(MapperComparisonError):
    """
    A per-read statistics file could not be loaded.

    Raised for missing or unreadable files, empty files and header/schema
    mismatches. Carries enough context to locate the offending input.
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 mapper: Optional[str] = None, sample: Optional[str] = None):
        self.message = message
        self.path = Path(path) if path is not None else None
        self.mapper = mapper
        self.sample = sample
        super().__init__(self._format())

    def _context(self) -> str:
        parts = []
        if self.mapper is not None:
            parts.append(f"mapper={self.mapper}")
        if self.sample is not None:
            parts.append(f"sample={self.sample}")
        if self.path is not None:
            parts.append(f"file={self.path}")
        return ", ".join(parts)

    def _format(self) -> str:
        context = self._context()
        return f"{self.message} ({context})" if context else self.message

    def with_context(self, mapper: Optional[str] = None, sample: Optional[str] = None) -> "LoadError":
        """Attach mapper/sample identifiers after the fact and refresh the message."""
        if mapper is not None:
            self.mapper = mapper
        if sample is not None:
            self.sample = sample
        self.args = (self._format(),)
        return self


class ParseError(LoadError):
    """A data row could not be parsed (wrong column count or non-numeric value)."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 line: Optional[int] = None, mapper: Optional[str] = None,
                 sample: Optional[str] = None):
        self.line = line
        super().__init__(message, path=path, mapper=mapper, sample=sample)

    def _context(self) -> str:
        context = super()._context()
        if self.line is not None:
            context = f"{context}, line={self.line}" if context else f"line={self.line}"
        return context


class EmptyGroupWarning(UserWarning):
    """An aggregation cell had no contributing values and was omitted."""
