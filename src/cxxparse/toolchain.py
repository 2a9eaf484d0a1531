#!/usr/bin/env python3

import glob
import os
import re
import shutil
import subprocess
from functools import lru_cache
from typing import NamedTuple, Optional

from cxxparse.config import get_settings
from cxxparse.logs import setup_logging

logger = setup_logging().getChild("toolchain")

_VERSION_RE = re.compile(r"clang version (\d+)\.(\d+)(?:\.(\d+))?")

# Common library locations and versions
LIBCLANG_SEARCH_PATHS = [
    '/usr/lib',
    '/usr/lib/llvm-*/lib',
    '/usr/lib/x86_64-linux-gnu',
    '/usr/local/lib',
    '/usr/local/opt/llvm/lib',
    '/lib/x86_64-linux-gnu',
]

class Toolchain(NamedTuple):
    """The clang driver used for preprocessing, as found in the build environment"""
    clang_binary: str
    major: int
    minor: int
    patch: int
    system_include_dir: Optional[str]

    @property
    def version(self) -> int:
        return self.major * 10000 + self.minor * 100 + self.patch

def parse_clang_version(output: str):
    """Extract (major, minor, patch) from `clang --version` output, zeros if unknown"""
    match = _VERSION_RE.search(output)
    if not match:
        return 0, 0, 0
    return int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)

def _query(binary: str, *args: str) -> Optional[str]:
    try:
        result = subprocess.run([binary, *args], capture_output=True, text=True,
                                timeout=30, check=False)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Could not run {binary} {' '.join(args)}: {e}")
        return None
    if result.returncode != 0:
        logger.debug(f"{binary} {' '.join(args)} exited with {result.returncode}")
        return None
    return result.stdout

@lru_cache(maxsize=None)
def _detect(binary: Optional[str]) -> Toolchain:
    candidates = [binary] if binary else ["clang++", "clang"]
    resolved = None
    for candidate in candidates:
        resolved = shutil.which(candidate)
        if resolved:
            break
    if not resolved:
        logger.warning(f"No clang binary found (tried {', '.join(candidates)}), preprocessing is unavailable")
        return Toolchain("", 0, 0, 0, None)

    major, minor, patch = parse_clang_version(_query(resolved, "--version") or "")
    system_include = None
    resource_dir = (_query(resolved, "-print-resource-dir") or "").strip()
    if resource_dir and os.path.isdir(os.path.join(resource_dir, "include")):
        system_include = os.path.join(resource_dir, "include")
    logger.debug(f"Using clang binary {resolved} ({major}.{minor}.{patch}), system include: {system_include}")
    return Toolchain(resolved, major, minor, patch, system_include)

def detect_toolchain(binary: Optional[str] = None) -> Toolchain:
    """Find the clang binary, its version and the libclang system include directory

    Args:
        binary: Explicit binary name or path, `parser.clang_binary` or PATH lookup otherwise

    Returns:
        The detected toolchain, with an empty binary path if none could be found
    """
    return _detect(binary or get_settings().get('parser.clang_binary'))

_libclang_configured: Optional[bool] = None

def configure_libclang(libclang_path: Optional[str] = None) -> bool:
    """Configure libclang library path if necessary

    Only the first call probes the system, the outcome is remembered for
    the rest of the process.

    Args:
        libclang_path: Optional path to libclang library, `parser.libclang_path` otherwise
    """
    global _libclang_configured
    if _libclang_configured is not None:
        return _libclang_configured
    import clang.cindex
    logger.debug(f"Python libclang module loaded from: {clang.__file__}")
    libclang_path = libclang_path or get_settings().get('parser.libclang_path')
    if libclang_path:
        try:
            clang.cindex.Config.set_library_file(libclang_path)
            clang.cindex.Index.create()
            logger.info(f"Using libclang from configured path: {libclang_path}")
            _libclang_configured = True
            return True
        except Exception as e:
            logger.warning(f"Could not use configured libclang path '{libclang_path}': {e}")

    try:
        clang.cindex.Index.create()
        logger.debug("Default libclang configuration works without additional setup")
        _libclang_configured = True
        return True
    except Exception as e:
        logger.debug(f"Default libclang not accessible: {e}")

    logger.debug(f"Searching for libclang in common locations: {LIBCLANG_SEARCH_PATHS}")
    for base_path in LIBCLANG_SEARCH_PATHS:
        for path in glob.glob(base_path):
            if not os.path.isdir(path):
                continue
            lib_files = [f for f in os.listdir(path) if f.startswith('libclang') and f.endswith('.so')]
            for lib_file in lib_files:
                full_path = os.path.join(path, lib_file)
                if not os.path.exists(os.path.realpath(full_path)):
                    logger.warning(f"Symlink target of {full_path} does not exist!")
                    continue
                try:
                    clang.cindex.Config.set_library_file(full_path)
                    clang.cindex.Index.create()
                    logger.info(f"Successfully configured libclang with: {full_path}")
                    _libclang_configured = True
                    return True
                except Exception as e:
                    logger.debug(f"Failed to configure libclang with {full_path}: {e}")
    logger.warning("Could not find a working libclang library. "
                   "Set 'parser.libclang_path' to the location of libclang.so")
    _libclang_configured = False
    return False
