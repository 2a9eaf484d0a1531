"""
Parse C++ files into a typed AST by driving libclang.

Compile configurations are built by hand or taken from a
`compile_commands.json` compilation database, the parser preprocesses each
file with the clang binary of its configuration and lifts the libclang
cursor tree into `CppEntity` objects registered in a shared `EntityIndex`.
"""

from cxxparse.ast import CppEntity, CppFile, EntityIndex
from cxxparse.batch import FileParser, parse_database, parse_files, parse_files_with
from cxxparse.compile_config import (
    CompileConfig,
    CompileFlags,
    CppStandard,
    LibclangCompileConfig,
)
from cxxparse.database import LibclangCompilationDatabase
from cxxparse.diagnostic import (
    Diagnostic,
    DiagnosticLogger,
    RecordingLogger,
    Severity,
    SourceLocation,
    default_logger,
    default_verbose_logger,
)
from cxxparse.errors import (
    ConfigNotFound,
    DatabaseLoadError,
    ErrorKind,
    InvalidArgument,
    LibclangError,
    ParseFailed,
    PreprocessFailed,
    SourceIOError,
)
from cxxparse.lookup import CANDIDATE_EXTENSIONS, find_config_for
from cxxparse.parser import LibclangParser, ParseState, Parser

__all__ = [
    # AST
    "CppEntity",
    "CppFile",
    "EntityIndex",
    # Configuration
    "CompileConfig",
    "CompileFlags",
    "CppStandard",
    "LibclangCompileConfig",
    "LibclangCompilationDatabase",
    "CANDIDATE_EXTENSIONS",
    "find_config_for",
    # Parsing
    "Parser",
    "LibclangParser",
    "ParseState",
    "FileParser",
    "parse_files",
    "parse_files_with",
    "parse_database",
    # Diagnostics
    "Diagnostic",
    "DiagnosticLogger",
    "RecordingLogger",
    "Severity",
    "SourceLocation",
    "default_logger",
    "default_verbose_logger",
    # Errors
    "ErrorKind",
    "LibclangError",
    "DatabaseLoadError",
    "ConfigNotFound",
    "InvalidArgument",
    "PreprocessFailed",
    "ParseFailed",
    "SourceIOError",
]
