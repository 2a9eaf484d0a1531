#!/usr/bin/env python3

import unittest
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))

from cxxparse.logs import setup_logging
from cxxparse.compile_config import (
    CompileConfig, CompileFlags, CppStandard, LibclangCompileConfig,
    config_access, split_options,
)
from cxxparse.errors import ConfigNotFound, InvalidArgument
from cxxparse.toolchain import Toolchain

logger = setup_logging(verbose=True).getChild('test.compile_config')

TOOLCHAIN = Toolchain("/usr/bin/clang++", 17, 0, 6, "/usr/lib/clang/17/include")

class FakeDatabase:
    """Stands in for a compilation database: file -> [(directory, arguments)]"""
    def __init__(self, records):
        self.records = records

    def has_config(self, file_name):
        return file_name in self.records

    def commands_for(self, file_name):
        return self.records.get(file_name, [])

def std_flags(config):
    return [f for f in config.flags if f.startswith("-std=")]

def check_invariants(test, config):
    test.assertEqual(len(std_flags(config)), 1)
    includes = [f for f in config.flags if f.startswith("-I")]
    test.assertEqual(len(includes), len(set(includes)))

class TestCppStandard(unittest.TestCase):
    def test_parse_tokens(self):
        self.assertEqual(CppStandard.parse("c++14"), CppStandard.CPP_14)
        self.assertEqual(CppStandard.parse("gnu++17"), CppStandard.CPP_17)
        self.assertEqual(CppStandard.parse(CppStandard.CPP_20), CppStandard.CPP_20)

    def test_unknown_token(self):
        with self.assertRaises(InvalidArgument):
            CppStandard.parse("c++42")

    def test_spelling(self):
        self.assertEqual(CppStandard.CPP_17.spelling(), "c++17")
        self.assertEqual(CppStandard.CPP_17.spelling(gnu=True), "gnu++17")

class TestLibclangCompileConfig(unittest.TestCase):
    def setUp(self):
        self.config = LibclangCompileConfig(TOOLCHAIN)

    def test_defaults(self):
        """Default configuration carries the toolchain and the predefined macros"""
        flags = self.config.flags
        self.assertEqual(self.config.name, "libclang")
        self.assertIn("-I/usr/lib/clang/17/include", flags)
        self.assertIn('-D__cppast__="libclang"', flags)
        self.assertTrue(any(f.startswith("-D__cppast_major__=") for f in flags))
        self.assertTrue(any(f.startswith("-D__cppast_minor__=") for f in flags))
        self.assertEqual(std_flags(self.config), ["-std=c++17"])
        self.assertEqual(self.config.compiler_version, 170006)
        view = config_access(self.config)
        self.assertEqual(view.clang_binary, "/usr/bin/clang++")
        self.assertFalse(view.write_preprocessed)
        self.assertFalse(view.fast_preprocessing)
        self.assertFalse(view.keep_macro_comments)

    def test_explicit_standard(self):
        config = LibclangCompileConfig(TOOLCHAIN, standard="c++11")
        self.assertEqual(std_flags(config), ["-std=c++11"])
        with self.assertRaises(InvalidArgument):
            LibclangCompileConfig(TOOLCHAIN, standard="c++0x1")

    def test_set_standard_replaces_extensions(self):
        """Switching standard drops the previous -std= and extension flags"""
        self.config.set_standard("c++17", {CompileFlags.GNU_EXTENSIONS, CompileFlags.MS_EXTENSIONS})
        self.assertEqual(std_flags(self.config), ["-std=gnu++17"])
        self.assertIn("-fms-extensions", self.config.flags)
        self.config.set_standard("c++20", {})
        self.assertEqual(std_flags(self.config), ["-std=c++20"])
        self.assertNotIn("-fms-extensions", self.config.flags)
        self.assertFalse(any("gnu++" in f for f in self.config.flags))
        self.assertEqual(self.config.extensions, CompileFlags.NONE)

    def test_set_standard_invalid(self):
        with self.assertRaises(InvalidArgument):
            self.config.set_standard("c++99")
        self.assertEqual(std_flags(self.config), ["-std=c++17"])

    def test_include_dirs_deduplicated(self):
        self.config.add_include_dir("/a").add_include_dir("/b").add_include_dir("/a")
        includes = [f for f in self.config.flags if f in ("-I/a", "-I/b")]
        self.assertEqual(includes, ["-I/a", "-I/b"])

    def test_define_macro(self):
        self.config.define_macro("FOO").define_macro("BAR", "2")
        self.assertIn("-DFOO", self.config.flags)
        self.assertIn("-DBAR=2", self.config.flags)
        self.config.define_macro("BAR", "3")
        self.assertNotIn("-DBAR=2", self.config.flags)
        self.assertEqual(self.config.flags.count("-DBAR=3"), 1)

    def test_macro_names_do_not_overlap(self):
        self.config.define_macro("X", "1").define_macro("XY", "2").undefine_macro("X")
        self.assertIn("-DXY=2", self.config.flags)
        self.assertNotIn("-DX=1", self.config.flags)

    def test_define_undefine_define(self):
        """A later definition supersedes an earlier removal, and vice versa"""
        self.config.define_macro("X", "1").undefine_macro("X")
        self.assertIn("-UX", self.config.flags)
        self.assertNotIn("-DX=1", self.config.flags)
        self.config.define_macro("X", "2")
        flags = self.config.flags
        self.assertIn("-DX=2", flags)
        self.assertNotIn("-DX=1", flags)
        self.assertNotIn("-UX", flags)

    def test_function_like_macros(self):
        """F and F(x) name the same macro"""
        self.config.define_macro("F(x)", "1").define_macro("F(x)", "2")
        macros = [f for f in self.config.flags if f.startswith(("-DF", "-UF"))]
        self.assertEqual(macros, ["-DF(x)=2"])

        self.config.undefine_macro("F(x)")
        macros = [f for f in self.config.flags if f.startswith(("-DF", "-UF"))]
        self.assertEqual(macros, ["-UF"])

        self.config.define_macro("F(a, b)", "a + b")
        macros = [f for f in self.config.flags if f.startswith(("-DF", "-UF"))]
        self.assertEqual(macros, ["-DF(a, b)=a + b"])

    def test_empty_definition(self):
        """An empty value is kept, None defines the macro without a value"""
        self.config.define_macro("EMPTY", "").define_macro("ONE")
        self.assertIn("-DEMPTY=", self.config.flags)
        self.assertIn("-DONE", self.config.flags)

    def test_gnu_standard_token(self):
        self.config.set_standard("gnu++17")
        self.assertEqual(std_flags(self.config), ["-std=gnu++17"])
        self.assertEqual(self.config.extensions, CompileFlags.GNU_EXTENSIONS)
        self.config.set_standard("c++17")
        self.assertEqual(std_flags(self.config), ["-std=c++17"])
        self.assertEqual(self.config.extensions, CompileFlags.NONE)

    def test_invariants_after_mutations(self):
        self.config.set_standard("c++11").add_include_dir("/x").define_macro("A")
        self.config.set_standard("c++14", CompileFlags.MS_COMPATIBILITY).add_include_dir("/x")
        self.config.undefine_macro("A").set_standard("c++2a")
        check_invariants(self, self.config)
        self.assertFalse(any(f.startswith("-DA") for f in self.config.flags))

    def test_boolean_setters(self):
        self.config.set_write_preprocessed(True).set_fast_preprocessing(True).set_keep_macro_comments(True)
        view = config_access(self.config)
        self.assertTrue(view.write_preprocessed)
        self.assertTrue(view.fast_preprocessing)
        self.assertTrue(view.keep_macro_comments)

    def test_set_compiler_binary(self):
        self.config.set_compiler_binary("/opt/clang/bin/clang++", 3, 9, 1)
        view = config_access(self.config)
        self.assertEqual(view.clang_binary, "/opt/clang/bin/clang++")
        self.assertEqual(view.clang_version, 30901)

    def test_view_is_a_snapshot(self):
        view = config_access(self.config)
        self.config.define_macro("LATER")
        self.assertNotIn("-DLATER", view.flags)

    def test_equality(self):
        self.assertEqual(self.config, LibclangCompileConfig(TOOLCHAIN))
        self.assertNotEqual(self.config, LibclangCompileConfig(TOOLCHAIN).define_macro("Z"))

class OtherConfig(CompileConfig):
    name = "other"

    def _do_set_standard(self, standard, extensions):
        pass

    def _do_add_include_dir(self, path):
        pass

    def _do_define_macro(self, name, value):
        pass

    def _do_undefine_macro(self, name):
        pass

class TestConfigAccess(unittest.TestCase):
    def test_rejects_other_kinds(self):
        with self.assertRaises(InvalidArgument):
            config_access(OtherConfig())

class TestDatabaseConfig(unittest.TestCase):
    def test_from_database(self):
        """Recorded options are lifted, program name and input file are dropped"""
        database = FakeDatabase({
            "/src/a.cpp": [("/build", ["clang++", "-std=c++14", "-I/src/inc", "-DFOO=1", "-c", "/src/a.cpp"])],
        })
        config = LibclangCompileConfig.from_database(database, "/src/a.cpp", TOOLCHAIN)
        flags = config.flags
        self.assertIn("-std=c++14", flags)
        self.assertIn("-I/src/inc", flags)
        self.assertIn("-DFOO=1", flags)
        self.assertIn('-D__cppast__="libclang"', flags)
        self.assertNotIn("clang++", flags)
        self.assertNotIn("/src/a.cpp", flags)
        self.assertNotIn("-c", flags)
        check_invariants(self, config)

    def test_filters_unsupported_options(self):
        database = FakeDatabase({
            "/src/b.cpp": [("/build", ["/usr/bin/g++", "-O2", "-Wall", "-o", "b.o", "-MF", "b.d",
                                       "-I", "inc", "-D", "BAR", "-UBAZ", "-std=gnu++11",
                                       "-fms-extensions", "-lpthread", "-c", "../src/b.cpp"])],
        })
        config = LibclangCompileConfig.from_database(database, "/src/b.cpp", TOOLCHAIN)
        flags = config.flags
        self.assertIn("-I/build/inc", flags)
        self.assertIn("-DBAR", flags)
        self.assertIn("-UBAZ", flags)
        self.assertIn("-std=gnu++11", flags)
        self.assertIn("-fms-extensions", flags)
        for dropped in ("-O2", "-Wall", "-o", "b.o", "-MF", "b.d", "-lpthread", "../src/b.cpp"):
            self.assertNotIn(dropped, flags)
        self.assertEqual(config.extensions, CompileFlags.GNU_EXTENSIONS | CompileFlags.MS_EXTENSIONS)

    def test_recorded_macro_forms(self):
        database = FakeDatabase({
            "/src/m.cpp": [("/build", ["clang++", "-DF(x)=1", "-DF(x)=2", "-DEMPTY=", "-DONE", "/src/m.cpp"])],
        })
        flags = LibclangCompileConfig.from_database(database, "/src/m.cpp", TOOLCHAIN).flags
        self.assertEqual([f for f in flags if f.startswith("-DF")], ["-DF(x)=2"])
        self.assertIn("-DEMPTY=", flags)
        self.assertNotIn("-DEMPTY", flags)
        self.assertIn("-DONE", flags)

    def test_recorded_standard_overrides_gnu(self):
        database = FakeDatabase({
            "/src/s.cpp": [("/build", ["clang++", "-std=gnu++14", "-std=c++20", "/src/s.cpp"])],
        })
        config = LibclangCompileConfig.from_database(database, "/src/s.cpp", TOOLCHAIN)
        self.assertEqual(std_flags(config), ["-std=c++20"])
        self.assertEqual(config.extensions, CompileFlags.NONE)

    def test_unknown_standard_is_ignored(self):
        database = FakeDatabase({"/src/c.cpp": [("/build", ["clang++", "-std=c++26", "/src/c.cpp"])]})
        config = LibclangCompileConfig.from_database(database, "/src/c.cpp", TOOLCHAIN)
        self.assertEqual(std_flags(config), ["-std=c++17"])

    def test_missing_record(self):
        with self.assertRaises(ConfigNotFound) as ctx:
            LibclangCompileConfig.from_database(FakeDatabase({}), "/src/z.cpp", TOOLCHAIN)
        self.assertEqual(ctx.exception.file_name, "/src/z.cpp")

class TestSplitOptions(unittest.TestCase):
    def test_glued_and_separate_forms(self):
        options = split_options(["-Ia", "-I", "b", "-isystem", "c", "-isystemd", "-DX=1", "-std=c++11", "main.cpp"])
        self.assertEqual(options, [("-I", "a"), ("-I", "b"), ("-isystem", "c"), ("-isystem", "d"),
                                   ("-D", "X=1"), ("-std", "c++11")])

    def test_trailing_option_without_value(self):
        self.assertEqual(split_options(["-I"]), [("-I", "")])

if __name__ == "__main__":
    unittest.main()
