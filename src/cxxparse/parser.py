#!/usr/bin/env python3

import os
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import clang.cindex
from clang.cindex import CursorKind, TranslationUnit

from cxxparse.ast import CppEntity, CppFile, EntityIndex
from cxxparse.compile_config import CompileConfig, LibclangConfigView, config_access
from cxxparse.config import get_settings
from cxxparse.diagnostic import Diagnostic, DiagnosticLogger, Severity, SourceLocation, default_logger
from cxxparse.errors import InvalidArgument, LibclangError, ParseFailed
from cxxparse.logs import setup_logging
from cxxparse.preprocessor import Preprocessor, PreprocessResult
from cxxparse.toolchain import configure_libclang

logger = setup_logging().getChild("parser")

def _cursor_kinds(*names):
    # Newer cursor kinds are missing from older bindings
    return frozenset(getattr(CursorKind, name) for name in names if hasattr(CursorKind, name))

# Cursors that become entities of the AST
ENTITY_KINDS = _cursor_kinds(
    "NAMESPACE", "NAMESPACE_ALIAS", "USING_DIRECTIVE", "USING_DECLARATION",
    "CLASS_DECL", "STRUCT_DECL", "UNION_DECL", "ENUM_DECL", "ENUM_CONSTANT_DECL",
    "CLASS_TEMPLATE", "CLASS_TEMPLATE_PARTIAL_SPECIALIZATION", "CXX_BASE_SPECIFIER",
    "CXX_ACCESS_SPEC_DECL", "FRIEND_DECL", "FIELD_DECL", "VAR_DECL",
    "FUNCTION_DECL", "FUNCTION_TEMPLATE", "CXX_METHOD", "CONSTRUCTOR", "DESTRUCTOR",
    "CONVERSION_FUNCTION", "PARM_DECL", "TEMPLATE_TYPE_PARAMETER",
    "TEMPLATE_NON_TYPE_PARAMETER", "TEMPLATE_TEMPLATE_PARAMETER",
    "TYPEDEF_DECL", "TYPE_ALIAS_DECL", "TYPE_ALIAS_TEMPLATE_DECL",
    "CONCEPT_DECL", "STATIC_ASSERT", "MACRO_DEFINITION",
)

# Cursors whose children belong to the enclosing entity
TRANSPARENT_KINDS = _cursor_kinds("LINKAGE_SPEC", "UNEXPOSED_DECL")

# libclang diagnostic severities
_SEVERITIES = {
    clang.cindex.Diagnostic.Note: Severity.INFO,
    clang.cindex.Diagnostic.Warning: Severity.WARNING,
    clang.cindex.Diagnostic.Error: Severity.ERROR,
    clang.cindex.Diagnostic.Fatal: Severity.CRITICAL,
}

class ParseState(Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    PARSING = "parsing"
    LIFTING = "lifting"
    DONE = "done"
    FAILED = "failed"

class Parser(ABC):
    """Parses one file into a `CppFile`, reporting through a diagnostic logger"""

    def __init__(self, logger: Optional[DiagnosticLogger] = None):
        self.logger = logger or default_logger()

    @property
    @abstractmethod
    def name(self) -> str:
        """Name tag of the configurations this parser accepts"""

    @abstractmethod
    def parse(self, index: EntityIndex, path: str, config: CompileConfig) -> CppFile:
        ...

class LibclangParser(Parser):
    """A parser that uses libclang

    Owns one libclang index for its lifetime; `close()` releases it. A parser
    handles one file at a time, use several parsers to parse in parallel.
    """

    def __init__(self, logger: Optional[DiagnosticLogger] = None, timeout: Optional[float] = None):
        """Create a parser

        Args:
            logger: Receives diagnostics, the default logger if None
            timeout: Seconds a preprocessor run may take, `parser.preprocess_timeout` if None
        """
        super().__init__(logger)
        if not configure_libclang():
            raise ImportError("libclang is not properly configured. Parser functionality is unavailable.")
        self._index = clang.cindex.Index.create()
        if timeout is None:
            timeout = get_settings().get('parser.preprocess_timeout')
        self._preprocessor = Preprocessor(self.logger, timeout)
        self._running = threading.Lock()
        self.state = ParseState.IDLE
        self.failure: Optional[LibclangError] = None

    @property
    def name(self) -> str:
        return "libclang"

    def close(self):
        """Release the libclang index, killing a running preprocessor"""
        self._preprocessor.terminate()
        self._index = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def parse(self, index: EntityIndex, path: str, config: CompileConfig) -> CppFile:
        """Parse a file and register its entities in `index`

        Args:
            index: Index shared between parses, receives every entity in source order
            path: File to parse
            config: A libclang compile configuration

        Returns:
            The root of the file, `had_errors` is set if libclang reported non fatal errors

        Raises:
            InvalidArgument: `config` is not a libclang configuration, has no clang binary,
                or the parser is closed or already busy
            PreprocessFailed: Preprocessing the file failed
            SourceIOError: The source could not be read or the preprocessed file written
            ParseFailed: libclang reported a fatal error or produced no translation unit
        """
        view = config_access(config)
        if not view.clang_binary:
            raise InvalidArgument("no clang binary configured, cannot preprocess "
                                  f"'{path}'; use set_compiler_binary()")
        if self._index is None:
            raise InvalidArgument("parser has been closed")
        if not self._running.acquire(blocking=False):
            raise InvalidArgument("parser is already parsing a file")
        path = os.path.abspath(path)
        try:
            self.failure = None
            root = self._parse(index, path, view)
            self.state = ParseState.DONE
            return root
        except LibclangError as e:
            self.state = ParseState.FAILED
            self.failure = e
            raise
        finally:
            self._running.release()

    def _parse(self, index: EntityIndex, path: str, view: LibclangConfigView) -> CppFile:
        self.state = ParseState.PREPROCESSING
        logger.info(f"Parsing {path} with args: {list(view.flags)}")
        preprocessed = self._preprocessor.run(path, view)

        self.state = ParseState.PARSING
        translation_unit = self._parse_translation_unit(path, preprocessed, view)
        try:
            had_errors = self._drain_diagnostics(path, translation_unit)
            self.state = ParseState.LIFTING
            root = CppFile(path)
            root.had_errors = had_errors
            root.includes = list(preprocessed.includes)
            root.full_include_paths = preprocessed.full_include_paths
            self._lift(index, root, translation_unit.cursor, path)
        finally:
            # drops the last reference, libclang disposes the translation unit
            translation_unit = None
        index.register_file(root)
        logger.info(f"Successfully parsed {sum(1 for _ in root.entities())} entities from {path}")
        return root

    def _parse_translation_unit(self, path: str, preprocessed: PreprocessResult, view: LibclangConfigView):
        try:
            translation_unit = self._index.parse(
                path, args=list(view.flags),
                unsaved_files=[(path, preprocessed.source)],
                options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD)
        except clang.cindex.TranslationUnitLoadError as e:
            raise ParseFailed(f"libclang could not parse '{path}': {e}", path) from e
        if translation_unit is None or translation_unit.cursor is None:
            raise ParseFailed(f"libclang produced no translation unit for '{path}'", path)
        return translation_unit

    def _drain_diagnostics(self, path: str, translation_unit) -> bool:
        """Send libclang diagnostics to the logger, returns whether errors occurred

        Raises:
            ParseFailed: A fatal diagnostic was reported
        """
        error_count = 0
        warning_count = 0
        for diag in translation_unit.diagnostics:
            severity = _SEVERITIES.get(diag.severity)
            if severity is None:
                continue
            location = SourceLocation()
            if diag.location.file:
                location = SourceLocation(diag.location.file.name, diag.location.line, diag.location.column)
            self.logger.log("libclang", Diagnostic(diag.spelling, location, severity))
            if severity == Severity.CRITICAL:
                raise ParseFailed(f"fatal error while parsing '{path}': {location}: {diag.spelling}", path)
            elif severity == Severity.ERROR:
                error_count += 1
            elif severity == Severity.WARNING:
                warning_count += 1
        if error_count:
            logger.error(f"Parsing diagnostics for {path}: {error_count} errors, {warning_count} warnings")
        elif warning_count:
            logger.warning(f"Parsing diagnostics for {path}: {warning_count} warnings")
        return error_count > 0

    def _lift(self, index: EntityIndex, parent: CppEntity, cursor, path: str):
        """Create entities for the children of `cursor` located in `path`, in source order"""
        for child in cursor.get_children():
            try:
                kind = child.kind
            except ValueError as e:
                # cursor kind unknown to the bindings
                logger.debug(f"Skipping cursor in {path}: {e}")
                continue
            if not child.location.file or not _same_file(child.location.file.name, path):
                continue
            if kind in TRANSPARENT_KINDS:
                self._lift(index, parent, child, path)
            elif kind in ENTITY_KINDS:
                entity = self._create_entity(child, parent)
                parent.add_child(entity)
                index.register_entity(entity)
                self._lift(index, entity, child, path)

    @staticmethod
    def _create_entity(cursor, parent: CppEntity) -> CppEntity:
        start = cursor.extent.start
        end = cursor.extent.end
        if start.file:
            location = (os.path.realpath(start.file.name), start.line, start.column, end.line, end.column)
        else:
            location = (os.path.realpath(cursor.location.file.name), cursor.location.line,
                        cursor.location.column, cursor.location.line, cursor.location.column)
        type_info = cursor.type.spelling if cursor.type and cursor.type.spelling else None
        entity = CppEntity(cursor.spelling, cursor.kind.name, location, parent,
                           usr=cursor.get_usr() or "", type_info=type_info,
                           comment=cursor.raw_comment or "")
        entity.is_definition = bool(cursor.is_definition())
        return entity

def _same_file(a: str, b: str) -> bool:
    return os.path.normcase(os.path.realpath(a)) == os.path.normcase(os.path.realpath(b))
