#!/usr/bin/env python3

import os
from typing import Optional, Any
import yaml
from omegaconf import OmegaConf

from cxxparse.logs import setup_logging

logger = setup_logging()

# Default configuration schema
DEFAULT_CONFIG = {
    "logging": {
        "level": "INFO",        # Logging level (DEBUG, INFO, WARNING, ERROR)
        "colored": True,        # Whether to use colored logging
        "file": None,           # Log file path (None = console only)
    },
    "parser": {
        "libclang_path": None,      # Path to libclang library if not in standard locations
        "clang_binary": None,       # clang++ used for preprocessing, looked up on PATH if None
        "cpp_standard": "c++17",    # Standard of a freshly created compile configuration
        "preprocess_timeout": 120,  # Seconds before a preprocessor run is abandoned
    },
}

class Config:
    """Configuration handler for cxxparse through OmegaConf"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration

        Args:
            config_path: Path to YAML configuration file
        """
        self.config = OmegaConf.create(DEFAULT_CONFIG)
        if config_path:
            if os.path.exists(config_path):
                user_config = OmegaConf.load(config_path)
                self.config = OmegaConf.merge(self.config, user_config)
                logger.info(f"Loaded configuration from {config_path}")
            else:
                logger.warning(f"Configuration file not found: {config_path}")

        setup_logging(verbose=self.config.logging.level.upper() == "DEBUG",
                      colored=self.config.logging.colored,
                      log_file=self.config.logging.file)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key path

        Args:
            key: Dot-separated path to configuration value
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = OmegaConf.select(self.config, key, default=None)
        return default if value is None else value

    def save(self, path: str) -> bool:
        """Save current configuration to a YAML file

        Args:
            path: Path to save configuration file

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(path, 'w') as f:
                yaml.dump(OmegaConf.to_container(self.config), f, default_flow_style=False)
            logger.info(f"Saved configuration to {path}")
            return True
        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

    @staticmethod
    def generate_default_config(path: str) -> bool:
        """Generate default configuration file

        Args:
            path: Path to save default configuration

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(path, 'w') as f:
                yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False)
            logger.info(f"Generated default configuration at {path}")
            return True
        except OSError as e:
            logger.error(f"Error generating default configuration: {e}")
            return False

_settings: Optional[Config] = None

def get_settings() -> Config:
    """Process-wide settings, created with defaults on first use"""
    global _settings
    if _settings is None:
        _settings = Config()
    return _settings

def load_settings(config_path: Optional[str] = None) -> Config:
    """Replace the process-wide settings with the given YAML file merged over defaults"""
    global _settings
    _settings = Config(config_path)
    return _settings
