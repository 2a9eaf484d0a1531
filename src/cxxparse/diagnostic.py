#!/usr/bin/env python3

import logging
from enum import IntEnum
from typing import List, NamedTuple, Optional

from cxxparse.logs import setup_logging

logger = setup_logging().getChild("diagnostic")

class Severity(IntEnum):
    """Severity of a diagnostic, ordered"""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4

_LOGGING_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}

class SourceLocation(NamedTuple):
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        if not self.file:
            return "<unknown>"
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"

class Diagnostic(NamedTuple):
    message: str
    location: SourceLocation = SourceLocation()
    severity: Severity = Severity.INFO

class DiagnosticLogger:
    """Sink for diagnostics emitted while parsing

    The default implementation forwards to the `cxxparse` logger. Debug
    diagnostics are dropped unless the logger is verbose. Subclasses
    override `do_log` to send diagnostics elsewhere.
    """

    def __init__(self, verbose: bool = False):
        self._verbose = verbose

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    def set_verbose(self, value: bool):
        self._verbose = value

    def log(self, source: str, diagnostic: Diagnostic) -> bool:
        """Log a diagnostic coming from `source`, returns whether it was emitted"""
        if diagnostic.severity == Severity.DEBUG and not self._verbose:
            return False
        return self.do_log(source, diagnostic)

    def do_log(self, source: str, diagnostic: Diagnostic) -> bool:
        logger.log(_LOGGING_LEVELS[diagnostic.severity],
                   f"[{source}] [{diagnostic.severity.name.lower()}] {diagnostic.location}: {diagnostic.message}")
        return True

class RecordingLogger(DiagnosticLogger):
    """Keeps every emitted diagnostic, together with its source"""

    def __init__(self, verbose: bool = True):
        super().__init__(verbose)
        self.records: List[tuple] = []

    def do_log(self, source: str, diagnostic: Diagnostic) -> bool:
        self.records.append((source, diagnostic))
        return True

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [diagnostic for _, diagnostic in self.records]

    def of_severity(self, severity: Severity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

_default_logger = DiagnosticLogger(verbose=False)
_default_verbose_logger = DiagnosticLogger(verbose=True)

def default_logger() -> DiagnosticLogger:
    return _default_logger

def default_verbose_logger() -> DiagnosticLogger:
    return _default_verbose_logger
