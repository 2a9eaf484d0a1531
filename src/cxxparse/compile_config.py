#!/usr/bin/env python3

import os
import re
from abc import ABC, abstractmethod
from enum import Enum, Flag
from typing import Iterable, List, NamedTuple, Optional, Tuple, Union

from cxxparse.config import get_settings
from cxxparse.errors import ConfigNotFound, InvalidArgument
from cxxparse.logs import setup_logging
from cxxparse.toolchain import Toolchain, detect_toolchain
from cxxparse.version import get_version_info

logger = setup_logging().getChild("compile_config")

LIBCLANG_CONFIG_NAME = "libclang"

class CppStandard(Enum):
    """C++ standard versions a compile configuration can select"""
    CPP_98 = "c++98"
    CPP_03 = "c++03"
    CPP_11 = "c++11"
    CPP_14 = "c++14"
    CPP_1Z = "c++1z"
    CPP_17 = "c++17"
    CPP_2A = "c++2a"
    CPP_20 = "c++20"
    CPP_2B = "c++2b"
    CPP_23 = "c++23"

    @classmethod
    def parse(cls, token: Union[str, 'CppStandard']) -> 'CppStandard':
        """Standard for a token such as `c++17` (`gnu++17` is accepted too)

        Raises:
            InvalidArgument: The token names no known standard
        """
        if isinstance(token, cls):
            return token
        value = str(token).strip().lower()
        if value.startswith("gnu++"):
            value = "c++" + value[len("gnu++"):]
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"unrecognized C++ standard '{token}'") from None

    def spelling(self, gnu: bool = False) -> str:
        return ("gnu++" if gnu else "c++") + self.value[len("c++"):]

class CompileFlags(Flag):
    """Compiler extensions, independent of the standard"""
    NONE = 0
    GNU_EXTENSIONS = 1
    MS_EXTENSIONS = 2
    MS_COMPATIBILITY = 4

# Extensions spelled as their own argument; GNU extensions live in the -std= entry
EXTENSION_ARGUMENTS = {
    CompileFlags.MS_EXTENSIONS: "-fms-extensions",
    CompileFlags.MS_COMPATIBILITY: "-fms-compatibility",
}

ExtensionFlags = Union[CompileFlags, Iterable[CompileFlags], None]

def _as_compile_flags(flags: ExtensionFlags) -> CompileFlags:
    if flags is None:
        return CompileFlags.NONE
    if isinstance(flags, CompileFlags):
        return flags
    result = CompileFlags.NONE
    for flag in flags:
        result |= flag
    return result

def _macro_name(definition: str) -> str:
    """Name part of `NAME`, `NAME=value` or `NAME(args)=body`"""
    return re.split(r"[=(]", definition, maxsplit=1)[0]

class CompileConfig(ABC):
    """Compiler arguments of one translation unit, mutated through a small set of operations

    Concrete configurations decide how each operation is spelled by
    implementing the `_do_*` hooks. Every mutation returns the configuration
    so calls can be chained.
    """

    def __init__(self, flags: Optional[Iterable[str]] = None):
        self._flags: List[str] = list(flags or [])

    @property
    @abstractmethod
    def name(self) -> str:
        """Tag of the parser this configuration is meant for"""

    @property
    def flags(self) -> List[str]:
        """Copy of the argument list, in order"""
        return list(self._flags)

    def set_standard(self, standard: Union[str, CppStandard], extensions: ExtensionFlags = None) -> 'CompileConfig':
        """Select the standard, a `gnu++NN` token implies `CompileFlags.GNU_EXTENSIONS`

        Raises:
            InvalidArgument: The token names no known standard
        """
        parsed = CppStandard.parse(standard)
        extensions = _as_compile_flags(extensions)
        if isinstance(standard, str) and standard.strip().lower().startswith("gnu++"):
            extensions |= CompileFlags.GNU_EXTENSIONS
        self._do_set_standard(parsed, extensions)
        return self

    def add_include_dir(self, path: str) -> 'CompileConfig':
        self._do_add_include_dir(os.fspath(path))
        return self

    def define_macro(self, name: str, value: Optional[str] = None) -> 'CompileConfig':
        """Define `name`, as `-Dname` when `value` is None and `-Dname=value` otherwise"""
        self._do_define_macro(name, value)
        return self

    def undefine_macro(self, name: str) -> 'CompileConfig':
        self._do_undefine_macro(name)
        return self

    def _add_flag(self, flag: str):
        self._flags.append(flag)

    def _remove_flags(self, predicate):
        self._flags = [flag for flag in self._flags if not predicate(flag)]

    @abstractmethod
    def _do_set_standard(self, standard: CppStandard, extensions: CompileFlags):
        ...

    @abstractmethod
    def _do_add_include_dir(self, path: str):
        ...

    @abstractmethod
    def _do_define_macro(self, name: str, value: Optional[str]):
        ...

    @abstractmethod
    def _do_undefine_macro(self, name: str):
        ...

class LibclangConfigView(NamedTuple):
    """Read-only snapshot of a libclang configuration, as seen by the parser"""
    clang_binary: str
    clang_version: int
    flags: Tuple[str, ...]
    write_preprocessed: bool
    fast_preprocessing: bool
    keep_macro_comments: bool

class LibclangCompileConfig(CompileConfig):
    """Compilation config for the `LibclangParser`

    A fresh configuration uses the clang binary and the libclang system
    include directory of the build environment, selects the configured
    default standard, and defines `__cppast__` as `"libclang"` together with
    `__cppast_major__` and `__cppast_minor__`.
    """

    def __init__(self, toolchain: Optional[Toolchain] = None,
                 standard: Union[str, CppStandard, None] = None):
        super().__init__(["-x", "c++"])
        toolchain = toolchain or detect_toolchain()
        self._clang_binary = ""
        self._clang_version = 0
        self._standard: Optional[CppStandard] = None
        self._extensions = CompileFlags.NONE
        self._write_preprocessed = False
        self._fast_preprocessing = False
        self._keep_macro_comments = False

        self.set_compiler_binary(toolchain.clang_binary, toolchain.major, toolchain.minor, toolchain.patch)
        if toolchain.system_include_dir:
            self.add_include_dir(toolchain.system_include_dir)
        self.set_standard(standard or get_settings().get('parser.cpp_standard', 'c++17'))
        major, minor = get_version_info()
        self.define_macro("__cppast__", f'"{LIBCLANG_CONFIG_NAME}"')
        self.define_macro("__cppast_major__", str(major))
        self.define_macro("__cppast_minor__", str(minor))

    @classmethod
    def from_database(cls, database, file: str, toolchain: Optional[Toolchain] = None) -> 'LibclangCompileConfig':
        """Create the configuration stored in the database for `file`

        Only options that could also be set through the configuration
        operations are taken over: include directories, macro definitions
        and removals, the standard and the extension flags. Header files are
        not part of compilation databases, use `find_config_for` to fall back
        to the matching source file.

        Raises:
            ConfigNotFound: The database has no record for `file`
        """
        if not database.has_config(file):
            raise ConfigNotFound(file)
        config = cls(toolchain)
        for directory, arguments in database.commands_for(file):
            config._apply_command(directory, arguments)
        logger.debug(f"Configuration for {file} from database: {config.flags}")
        return config

    @property
    def name(self) -> str:
        return LIBCLANG_CONFIG_NAME

    @property
    def standard(self) -> CppStandard:
        return self._standard

    @property
    def extensions(self) -> CompileFlags:
        return self._extensions

    @property
    def compiler_version(self) -> int:
        """Version of the compiler binary packed as major * 10000 + minor * 100 + patch"""
        return self._clang_version

    def set_compiler_binary(self, binary: str, major: int, minor: int, patch: int) -> 'LibclangCompileConfig':
        """Set the `clang++` binary used for preprocessing and its version"""
        self._clang_binary = os.fspath(binary)
        self._clang_version = major * 10000 + minor * 100 + patch
        return self

    def set_write_preprocessed(self, enabled: bool) -> 'LibclangCompileConfig':
        """Persist the preprocessed file as `<file>.pp` next to the source (default off)"""
        self._write_preprocessed = bool(enabled)
        return self

    def set_fast_preprocessing(self, enabled: bool) -> 'LibclangCompileConfig':
        """Enable the two-pass preprocessor (default off)

        The macros of the translation unit are collected first, then the file
        is preprocessed without resolving includes but with those macros
        defined. This breaks if a macro is defined more than once in the
        parsed file (headers don't matter) or if the order of macro
        directives matters. Include directives keep only their spelling, the
        full path of the included file is not available.
        """
        self._fast_preprocessing = bool(enabled)
        return self

    def set_keep_macro_comments(self, enabled: bool) -> 'LibclangCompileConfig':
        """Keep comments inside macro expansions, `-CC` instead of `-C` (default off)"""
        self._keep_macro_comments = bool(enabled)
        return self

    def view(self) -> LibclangConfigView:
        return LibclangConfigView(self._clang_binary, self._clang_version, tuple(self._flags),
                                  self._write_preprocessed, self._fast_preprocessing,
                                  self._keep_macro_comments)

    def _do_set_standard(self, standard: CppStandard, extensions: CompileFlags):
        extension_args = set(EXTENSION_ARGUMENTS.values())
        self._remove_flags(lambda flag: flag.startswith("-std=") or flag in extension_args)
        self._add_flag("-std=" + standard.spelling(bool(extensions & CompileFlags.GNU_EXTENSIONS)))
        for flag, argument in EXTENSION_ARGUMENTS.items():
            if extensions & flag:
                self._add_flag(argument)
        self._standard = standard
        self._extensions = extensions

    def _do_add_include_dir(self, path: str):
        flag = "-I" + path
        if flag not in self._flags:
            self._add_flag(flag)

    def _do_define_macro(self, name: str, value: Optional[str]):
        self._forget_macro(name)
        self._add_flag(f"-D{name}" if value is None else f"-D{name}={value}")

    def _do_undefine_macro(self, name: str):
        self._forget_macro(name)
        self._add_flag(f"-U{_macro_name(name)}")

    def _forget_macro(self, name: str):
        # F and F(x) name the same macro
        name = _macro_name(name)
        self._remove_flags(lambda flag: flag[:2] in ("-D", "-U") and _macro_name(flag[2:]) == name)

    def _apply_command(self, directory: str, arguments: List[str]):
        """Lift the supported options of one recorded command, program name first"""
        for option, value in split_options(arguments[1:]):
            if option in ("-I", "-isystem", "-D", "-U") and not value:
                continue
            if option in ("-I", "-isystem"):
                if not os.path.isabs(value):
                    value = os.path.normpath(os.path.join(directory, value))
                self.add_include_dir(value)
            elif option == "-D":
                name, assigned, definition = value.partition("=")
                # -DNAME= defines NAME as empty, -DNAME as 1
                self.define_macro(name, definition if assigned else None)
            elif option == "-U":
                self.undefine_macro(value)
            elif option == "-std":
                try:
                    self.set_standard(value, self._extensions & ~CompileFlags.GNU_EXTENSIONS)
                except InvalidArgument:
                    logger.warning(f"Ignoring unsupported standard '-std={value}' from compilation database")
            elif option in EXTENSION_ARGUMENTS.values():
                flag = next(f for f, a in EXTENSION_ARGUMENTS.items() if a == option)
                self.set_standard(self._standard, self._extensions | flag)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LibclangCompileConfig):
            return NotImplemented
        return self.view() == other.view()

    def __repr__(self) -> str:
        return f"LibclangCompileConfig(binary={self._clang_binary!r}, flags={self._flags!r})"

# Options taking their value as the following argument when not glued to it
_OPTIONS_WITH_VALUE = {
    "-I", "-isystem", "-D", "-U", "-o", "-x", "-include", "-imacros", "-iquote",
    "-idirafter", "-iprefix", "-isysroot", "--sysroot", "-MF", "-MT", "-MQ", "-MJ",
    "-target", "--target", "-arch", "-Xclang", "-Xlinker", "-Xpreprocessor",
    "-working-directory", "-L", "-l",
}

def split_options(arguments: Iterable[str]) -> List[Tuple[str, str]]:
    """Normalize a compiler argument list into (option, value) pairs

    Glued and separate spellings (`-Ifoo`, `-I foo`) yield the same pair,
    `-std=c++14` yields `("-std", "c++14")`. Options the configuration cannot
    express come out unchanged and are dropped by the caller; stray
    non-option arguments such as the input file are skipped.
    """
    result = []
    arguments = list(arguments)
    i = 0
    while i < len(arguments):
        arg = arguments[i]
        i += 1
        if len(arg) < 2 or not arg.startswith("-"):
            continue
        if arg in _OPTIONS_WITH_VALUE:
            value = arguments[i] if i < len(arguments) else ""
            i += 1
            result.append((arg, value))
        elif arg.startswith("-std="):
            result.append(("-std", arg[len("-std="):]))
        elif arg.startswith("-isystem"):
            result.append(("-isystem", arg[len("-isystem"):]))
        elif arg[:2] in ("-I", "-D", "-U"):
            result.append((arg[:2], arg[2:]))
        else:
            result.append((arg, ""))
    return result

def config_access(config: CompileConfig) -> LibclangConfigView:
    """Read-only internals of a libclang configuration, for the parser driver

    Raises:
        InvalidArgument: `config` is not a libclang configuration
    """
    if not isinstance(config, LibclangCompileConfig) or config.name != LIBCLANG_CONFIG_NAME:
        raise InvalidArgument(f"configuration of kind '{getattr(config, 'name', type(config).__name__)}' "
                              f"cannot be used with the {LIBCLANG_CONFIG_NAME} parser")
    return config.view()
