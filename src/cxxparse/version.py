import importlib.metadata
from pathlib import Path
from typing import Tuple

def get_version() -> str:
    """Get the package version from package metadata or pyproject.toml"""
    try:
        return importlib.metadata.version("cxxparse")
    except importlib.metadata.PackageNotFoundError:
        # Not installed, read the version from pyproject.toml
        # src/cxxparse/version.py -> src/ -> project root
        pyproject_path = Path(__file__).parents[2] / "pyproject.toml"
        if not pyproject_path.exists():
            return "0.0.0"
        with open(pyproject_path, "r") as f:
            for line in f:
                if line.strip().startswith("version = "):
                    return line.split("=")[1].strip().strip('"\'')
        return "0.0.0"

def get_version_info() -> Tuple[int, int]:
    """Major and minor components of the package version"""
    parts = get_version().split(".")
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return 0, 0
    return major, minor
