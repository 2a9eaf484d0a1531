#!/usr/bin/env python3

import os
import re
import subprocess
import threading
from typing import Dict, List, NamedTuple, Optional

from cxxparse.compile_config import LibclangConfigView
from cxxparse.diagnostic import Diagnostic, DiagnosticLogger, Severity, SourceLocation
from cxxparse.errors import PreprocessFailed, SourceIOError
from cxxparse.logs import setup_logging

logger = setup_logging().getChild("preprocessor")

PREPROCESSED_SUFFIX = ".pp"

_LINE_MARKER = re.compile(r'^#\s*(?:line\s+)?(\d+)\s+"((?:[^"\\]|\\.)*)"((?:\s+\d+)*)\s*$')
_INCLUDE_DIRECTIVE = re.compile(r'^\s*#\s*include(?:_next)?\s*([<"])([^>"]+)[>"]')
_DEFINE = re.compile(r'^#define\s+([A-Za-z_]\w*(?:\([^)]*\))?)(?:\s+(.*))?$')
_INCLUDE_PLACEHOLDER = re.compile(r'^\s*#\s*pragma\s+cxxparse_include\s+(\d+)\s*$')

class Include(NamedTuple):
    """An include directive of the main file"""
    name: str
    line: int
    full_path: Optional[str]
    system: bool = False

class PreprocessResult(NamedTuple):
    source: str
    includes: List[Include]
    macros: Dict[str, str]
    full_include_paths: bool

def preprocessed_path(path: str) -> str:
    """Where the preprocessed form of `path` is written when requested"""
    return path + PREPROCESSED_SUFFIX

def _same_file(a: str, b: str) -> bool:
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))

def _place(lines: List[str], line_no: int, text: str):
    while len(lines) < line_no - 1:
        lines.append("")
    if line_no <= len(lines):
        lines[line_no - 1] = f"{lines[line_no - 1]} {text}" if lines[line_no - 1] else text
    else:
        lines.append(text)

def reduce_to_main_file(output: str, main_path: str):
    """Keep only the main file content of `clang -E` output

    Content of included files is dropped. Every header entered from the main
    file is replaced by an `#include` directive with its full path, on the
    line of the original directive, and blank lines are inserted so the
    result keeps the line numbers of the source.

    Returns:
        The reduced source and the list of includes found
    """
    lines: List[str] = []
    includes: List[Include] = []
    in_main = False
    next_line = 1
    pending = None
    for raw in output.splitlines():
        marker = _LINE_MARKER.match(raw)
        if marker:
            line_no = int(marker.group(1))
            file_name = marker.group(2).replace('\\\\', '\\').replace('\\"', '"')
            flags = marker.group(3).split()
            # <built-in>, <command line> and <stdin> are not files
            pseudo = file_name.startswith("<")
            is_main = not pseudo and _same_file(file_name, main_path)
            if in_main and not is_main and not pseudo and "1" in flags:
                pending = (file_name, "3" in flags)
            elif is_main and pending and "2" in flags and line_no > 1:
                header, system = pending
                _place(lines, line_no - 1, f'#include "{header}"')
                includes.append(Include(header, line_no - 1, header, system))
                pending = None
            in_main = is_main
            next_line = line_no
            continue
        if in_main:
            _place(lines, next_line, raw)
            next_line += 1
    return "\n".join(lines) + "\n", includes

def parse_macro_dump(output: str) -> Dict[str, str]:
    """Macros of a `-dM -E` dump as a mapping of declarator to replacement"""
    macros = {}
    for line in output.splitlines():
        match = _DEFINE.match(line.strip())
        if match:
            macros[match.group(1)] = match.group(2) or ""
    return macros

class Preprocessor:
    """Runs the clang binary of a configuration over one file

    Only one child process runs at a time, `terminate()` kills it from
    another thread.
    """

    def __init__(self, diagnostics: DiagnosticLogger, timeout: Optional[float] = None):
        self.diagnostics = diagnostics
        self.timeout = timeout
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()

    def terminate(self):
        with self._lock:
            process = self._process
        if process is not None and process.poll() is None:
            logger.debug(f"Killing preprocessor process {process.pid}")
            process.kill()

    def run(self, path: str, config: LibclangConfigView) -> PreprocessResult:
        """Preprocess `path` with the arguments of `config`

        Raises:
            PreprocessFailed: The clang binary failed, timed out or could not be launched
            SourceIOError: The source could not be read or the preprocessed file written
        """
        path = os.path.abspath(path)
        comments = "-CC" if config.keep_macro_comments else "-C"
        if config.fast_preprocessing:
            result = self._run_fast(path, config, comments)
        else:
            output = self._invoke(path, [config.clang_binary, *config.flags, "-E", "-dD", comments, path])
            source, includes = reduce_to_main_file(output, path)
            result = PreprocessResult(source, includes, {}, True)

        if config.write_preprocessed:
            target = preprocessed_path(path)
            try:
                with open(target, "w", encoding="utf-8") as f:
                    f.write(result.source)
            except OSError as e:
                raise SourceIOError(f"unable to write preprocessed file '{target}': {e}") from e
            logger.debug(f"Wrote preprocessed file {target}")
        return result

    def _run_fast(self, path: str, config: LibclangConfigView, comments: str) -> PreprocessResult:
        dump = self._invoke(path, [config.clang_binary, *config.flags, "-E", "-dM", path])
        macros = parse_macro_dump(dump)
        logger.debug(f"Collected {len(macros)} macros for {path}")

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                source_lines = f.read().splitlines()
        except OSError as e:
            raise SourceIOError(f"unable to read '{path}': {e}") from e

        directives = []
        for i, line in enumerate(source_lines):
            match = _INCLUDE_DIRECTIVE.match(line)
            if match:
                directives.append((line.strip(), Include(match.group(2), i + 1, None, match.group(1) == "<")))
                source_lines[i] = f"#pragma cxxparse_include {len(directives) - 1}"
        escaped = path.replace("\\", "\\\\").replace('"', '\\"')
        stdin = f'# 1 "{escaped}"\n' + "\n".join(source_lines) + "\n"

        defines = [f"-D{name}={value}" for name, value in macros.items()]
        output = self._invoke(path, [config.clang_binary, *config.flags, "-E", "-dD", comments,
                                     "-nostdinc", "-undef", *defines, "-"], stdin)
        source, _ = reduce_to_main_file(output, path)

        includes = []
        lines = source.splitlines()
        for i, line in enumerate(lines):
            match = _INCLUDE_PLACEHOLDER.match(line)
            if match:
                text, include = directives[int(match.group(1))]
                lines[i] = text
                includes.append(include)
        return PreprocessResult("\n".join(lines) + "\n", includes, macros, False)

    def _invoke(self, path: str, args: List[str], stdin: Optional[str] = None) -> str:
        logger.debug(f"Running preprocessor: {' '.join(args[:1] + args[-1:])} ({len(args)} arguments)")
        try:
            process = subprocess.Popen(args, stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                                       stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                       text=True, encoding="utf-8", errors="replace")
        except OSError as e:
            self._report(path, f"unable to launch '{args[0]}': {e}")
            raise PreprocessFailed(f"unable to launch preprocessor '{args[0]}': {e}") from e

        with self._lock:
            self._process = process
        try:
            stdout, stderr = process.communicate(input=stdin, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            self._report(path, f"preprocessor timed out after {self.timeout} seconds")
            raise PreprocessFailed(f"preprocessing '{path}' timed out after {self.timeout} seconds") from e
        finally:
            with self._lock:
                self._process = None

        if process.returncode != 0:
            self._report(path, stderr or f"preprocessor exited with code {process.returncode}")
            raise PreprocessFailed(f"preprocessing '{path}' failed with exit code {process.returncode}",
                                   process.returncode, stderr or "")
        if stderr:
            self._report(path, stderr, Severity.WARNING)
        return stdout

    def _report(self, path: str, message: str, severity: Severity = Severity.ERROR):
        self.diagnostics.log("preprocessor", Diagnostic(message.strip(), SourceLocation(path), severity))
