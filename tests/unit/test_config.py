#!/usr/bin/env python3

import os
import sys
import tempfile
import unittest
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))

import yaml

from cxxparse.logs import setup_logging
from cxxparse import config as settings_module
from cxxparse.config import DEFAULT_CONFIG, Config, get_settings, load_settings

logger = setup_logging(verbose=True).getChild('test.config')

class TestConfig(unittest.TestCase):
    def setUp(self):
        self.work_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.work_dir.cleanup)
        previous = settings_module._settings
        self.addCleanup(setattr, settings_module, "_settings", previous)

    def write_yaml(self, content):
        path = os.path.join(self.work_dir.name, "cxxparse.yaml")
        with open(path, "w") as f:
            yaml.dump(content, f)
        return path

    def test_defaults(self):
        config = Config()
        self.assertEqual(config.get("parser.cpp_standard"), "c++17")
        self.assertEqual(config.get("parser.preprocess_timeout"), 120)
        self.assertIsNone(config.get("parser.clang_binary"))
        self.assertEqual(config.get("parser.clang_binary", "clang++"), "clang++")
        self.assertEqual(config.get("no.such.key", 3), 3)

    def test_user_values_are_merged(self):
        path = self.write_yaml({"parser": {"cpp_standard": "c++20", "clang_binary": "/opt/llvm/bin/clang++"}})
        config = Config(path)
        self.assertEqual(config.get("parser.cpp_standard"), "c++20")
        self.assertEqual(config.get("parser.clang_binary"), "/opt/llvm/bin/clang++")
        self.assertEqual(config.get("parser.preprocess_timeout"), 120)
        self.assertEqual(config.get("logging.level"), "INFO")

    def test_missing_file_keeps_defaults(self):
        config = Config(os.path.join(self.work_dir.name, "missing.yaml"))
        self.assertEqual(config.get("parser.cpp_standard"), "c++17")

    def test_save_round_trip(self):
        path = self.write_yaml({"parser": {"preprocess_timeout": 30}})
        saved = os.path.join(self.work_dir.name, "saved.yaml")
        self.assertTrue(Config(path).save(saved))
        self.assertEqual(Config(saved).get("parser.preprocess_timeout"), 30)

    def test_generate_default_config(self):
        path = os.path.join(self.work_dir.name, "default.yaml")
        self.assertTrue(Config.generate_default_config(path))
        with open(path) as f:
            self.assertEqual(yaml.safe_load(f), DEFAULT_CONFIG)

    def test_save_to_unwritable_path(self):
        self.assertFalse(Config().save(os.path.join(self.work_dir.name, "missing", "dir", "out.yaml")))

    def test_process_settings(self):
        path = self.write_yaml({"parser": {"cpp_standard": "c++14"}})
        loaded = load_settings(path)
        self.assertIs(get_settings(), loaded)
        self.assertEqual(get_settings().get("parser.cpp_standard"), "c++14")

if __name__ == "__main__":
    unittest.main()
