#!/usr/bin/env python3

import os
from typing import List, Optional

from cxxparse.compile_config import LibclangCompileConfig
from cxxparse.logs import setup_logging

logger = setup_logging().getChild("lookup")

# Tried in order when a file has no record of its own, sources before headers
CANDIDATE_EXTENSIONS = (
    ".cpp", ".cc", ".cxx", ".c++", ".C", ".c",
    ".hpp", ".hh", ".hxx", ".h++", ".H", ".h",
)

def candidate_files(file_name: str) -> List[str]:
    """File names tried after `file_name` itself, with each candidate extension substituted"""
    stem, _ = os.path.splitext(file_name)
    return [stem + extension for extension in CANDIDATE_EXTENSIONS]

def find_config_for(database, file_name: str) -> Optional[LibclangCompileConfig]:
    """Find a configuration for a given file

    Compilation databases record sources, not headers. When the database
    has no record for `file_name`, its extension is replaced by each of
    `CANDIDATE_EXTENSIONS` in turn and the first recorded sibling wins.

    Args:
        database: A `LibclangCompilationDatabase`
        file_name: File to find a configuration for

    Returns:
        The configuration of the file or its first recorded sibling, None if there is none
    """
    if database.has_config(file_name):
        return LibclangCompileConfig.from_database(database, file_name)
    for candidate in candidate_files(file_name):
        if candidate != file_name and database.has_config(candidate):
            logger.debug(f"Using configuration of {candidate} for {file_name}")
            return LibclangCompileConfig.from_database(database, candidate)
    logger.debug(f"No configuration found for {file_name}")
    return None
