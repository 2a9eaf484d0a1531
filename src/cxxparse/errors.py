#!/usr/bin/env python3

from enum import Enum
from typing import Optional

class ErrorKind(Enum):
    """Kinds of failures reported by the parsing core"""
    DATABASE_LOAD_ERROR = "database_load_error"
    CONFIG_NOT_FOUND = "config_not_found"
    INVALID_ARGUMENT = "invalid_argument"
    PREPROCESS_FAILED = "preprocess_failed"
    PARSE_FAILED = "parse_failed"
    IO_ERROR = "io_error"

class LibclangError(RuntimeError):
    """Base error of the libclang parsing core, carries a message and a kind"""
    kind: ErrorKind = ErrorKind.PARSE_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

class DatabaseLoadError(LibclangError):
    """The compilation database directory is missing, unreadable or malformed"""
    kind = ErrorKind.DATABASE_LOAD_ERROR

class ConfigNotFound(LibclangError):
    """No compilation database entry for a file, even after extension fallback"""
    kind = ErrorKind.CONFIG_NOT_FOUND

    def __init__(self, file_name: str, message: Optional[str] = None):
        super().__init__(message or f"unable to find configuration for file '{file_name}'")
        self.file_name = file_name

class InvalidArgument(LibclangError, ValueError):
    """Wrong configuration kind for a parser, or an unrecognized standard token"""
    kind = ErrorKind.INVALID_ARGUMENT

class PreprocessFailed(LibclangError):
    """The compiler binary exited non-zero, timed out or could not be launched"""
    kind = ErrorKind.PREPROCESS_FAILED

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

class ParseFailed(LibclangError):
    """A fatal diagnostic was reported, or the AST could not be built"""
    kind = ErrorKind.PARSE_FAILED

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

class SourceIOError(LibclangError):
    """Reading the source or writing the preprocessed file failed"""
    kind = ErrorKind.IO_ERROR
