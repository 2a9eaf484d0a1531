#!/usr/bin/env python3

import os
from typing import Callable, Dict, List, Tuple

import clang.cindex

from cxxparse.errors import DatabaseLoadError, InvalidArgument
from cxxparse.logs import setup_logging
from cxxparse.toolchain import configure_libclang

logger = setup_logging().getChild("database")

COMPILE_COMMANDS_JSON = "compile_commands.json"

Command = Tuple[str, List[str]]

class LibclangCompilationDatabase:
    """A compilation database

    Represents a `compile_commands.json` file, which stores the commands
    needed to compile a set of files. CMake generates one with the
    `CMAKE_EXPORT_COMPILE_COMMANDS` option. The file is loaded by libclang
    itself, the handle is exclusively owned by this object: it cannot be
    copied, `take()` moves it to a new owner and `close()` releases it.

    The key of a record is its `file`, prefixed with its `directory` when
    relative. Lookups match keys exactly: libclang would otherwise guess a
    command for files it has no record of.
    """

    def __init__(self, build_directory: str):
        """Load the database of a build directory

        Args:
            build_directory: Directory containing `compile_commands.json`

        Raises:
            DatabaseLoadError: The database could not be found or loaded
        """
        self.build_directory = os.fspath(build_directory)
        self._database = None
        self._records: Dict[str, List[Command]] = {}
        json_path = os.path.join(self.build_directory, COMPILE_COMMANDS_JSON)
        if not os.path.isfile(json_path):
            raise DatabaseLoadError(f"no {COMPILE_COMMANDS_JSON} in '{self.build_directory}'")
        if not configure_libclang():
            raise DatabaseLoadError("libclang is not properly configured, cannot load compilation databases")
        try:
            self._database = clang.cindex.CompilationDatabase.fromDirectory(self.build_directory)
        except clang.cindex.CompilationDatabaseError as e:
            raise DatabaseLoadError(f"unable to load compilation database from '{self.build_directory}': {e}") from e

        commands = self._database.getAllCompileCommands()
        for command in (commands if commands is not None else []):
            key = command.filename
            if not os.path.isabs(key):
                key = os.path.join(command.directory, key)
            self._records.setdefault(key, []).append((command.directory, list(command.arguments)))
        logger.debug(f"Loaded {len(self._records)} files from compilation database {json_path}")

    def _handle(self):
        if self._database is None:
            raise InvalidArgument("compilation database has been closed or moved")
        return self._database

    @property
    def is_open(self) -> bool:
        return self._database is not None

    def has_config(self, file_name: str) -> bool:
        """Whether the database contains information about the given file"""
        self._handle()
        return os.fspath(file_name) in self._records

    has_record = has_config

    def commands_for(self, file_name: str) -> List[Command]:
        """Recorded invocations for a file as (directory, arguments) pairs, program name first"""
        self._handle()
        return [(directory, list(arguments)) for directory, arguments in self._records.get(os.fspath(file_name), [])]

    def files(self) -> List[str]:
        """Key of every recorded file, in the order libclang yields them

        A file compiled by several commands is listed once.
        """
        self._handle()
        return list(self._records)

    def for_each_file(self, callback: Callable[[str], None]):
        """Call `callback` with the key of every recorded file

        The keys are collected before the first call, so the callback may
        close the database.
        """
        for file_name in self.files():
            callback(file_name)

    def take(self) -> 'LibclangCompilationDatabase':
        """Move the handle into a new database object, leaving this one closed"""
        moved = object.__new__(type(self))
        moved.build_directory = self.build_directory
        moved._database = self._handle()
        moved._records = self._records
        self._database = None
        self._records = {}
        return moved

    def close(self):
        """Release the libclang handle"""
        self._database = None
        self._records = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __copy__(self):
        raise TypeError("compilation databases cannot be copied, use take() to move them")

    def __deepcopy__(self, memo):
        raise TypeError("compilation databases cannot be copied, use take() to move them")

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"LibclangCompilationDatabase({self.build_directory!r}, {state})"
