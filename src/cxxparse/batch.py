#!/usr/bin/env python3

from typing import Callable, Iterable, List, Optional, Tuple

from cxxparse.ast import CppFile, EntityIndex
from cxxparse.compile_config import CompileConfig, LibclangCompileConfig
from cxxparse.errors import ConfigNotFound, InvalidArgument, LibclangError
from cxxparse.logs import setup_logging
from cxxparse.lookup import find_config_for
from cxxparse.parser import LibclangParser, Parser

logger = setup_logging().getChild("batch")

class FileParser:
    """Parses files one after the other with a single parser and a shared index

    With `stop_on_error` the first failing file aborts the batch. Otherwise
    failures are collected in `errors` as (file, error) pairs and the batch
    moves on to the next file.
    """

    def __init__(self, parser: Parser, index: Optional[EntityIndex] = None, stop_on_error: bool = True):
        self.parser = parser
        self.index = index if index is not None else EntityIndex()
        self.stop_on_error = stop_on_error
        self.files: List[CppFile] = []
        self.errors: List[Tuple[str, LibclangError]] = []

    def parse(self, path: str, config: CompileConfig) -> Optional[CppFile]:
        """Parse one file, None if it failed and failures are collected"""
        try:
            result = self.parser.parse(self.index, path, config)
        except LibclangError as e:
            self.fail(path, e)
            return None
        self.files.append(result)
        return result

    def fail(self, path: str, error: LibclangError):
        if self.stop_on_error:
            raise error
        logger.error(f"Failed to parse {path}: {error}")
        self.errors.append((path, error))

    @property
    def had_errors(self) -> bool:
        return bool(self.errors) or any(f.had_errors for f in self.files)

def _require_libclang_parser(file_parser: FileParser):
    if not isinstance(file_parser.parser, LibclangParser):
        raise InvalidArgument(f"parser '{type(file_parser.parser).__name__}' cannot use "
                              "libclang compilation database configurations")

def parse_files_with(file_parser: FileParser, file_names: Iterable[str],
                     get_config: Callable[[str], CompileConfig]) -> List[CppFile]:
    """Parse every file with the configuration `get_config` returns for it

    Returns:
        The roots of the files that were parsed
    """
    parsed = []
    for file_name in file_names:
        try:
            config = get_config(file_name)
        except LibclangError as e:
            file_parser.fail(file_name, e)
            continue
        result = file_parser.parse(file_name, config)
        if result is not None:
            parsed.append(result)
    return parsed

def parse_files(file_parser: FileParser, file_names: Iterable[str], database) -> List[CppFile]:
    """Parse files with configurations found in a compilation database

    Configurations are resolved with `find_config_for`, so headers use the
    configuration of a sibling source file.

    Raises:
        InvalidArgument: The file parser does not use a `LibclangParser`
        ConfigNotFound: No configuration for a file (when stopping on errors)
    """
    _require_libclang_parser(file_parser)

    def get_config(file_name: str) -> LibclangCompileConfig:
        config = find_config_for(database, file_name)
        if config is None:
            raise ConfigNotFound(file_name)
        return config

    return parse_files_with(file_parser, file_names, get_config)

def parse_database(file_parser: FileParser, database) -> List[CppFile]:
    """Parse every file recorded in a compilation database with its recorded configuration

    Raises:
        InvalidArgument: The file parser does not use a `LibclangParser`
    """
    _require_libclang_parser(file_parser)
    parsed: List[CppFile] = []

    def parse_record(file_name: str):
        parsed.extend(parse_files_with(file_parser, [file_name],
                                       lambda name: LibclangCompileConfig.from_database(database, name)))

    database.for_each_file(parse_record)
    logger.info(f"Parsed {len(parsed)} files from compilation database")
    return parsed
