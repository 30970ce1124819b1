"""Tests for the Python, Java and C# scanners."""

from pathlib import Path

import pytest

from codemap_cli.parser import (
    CSharpScanner,
    JavaScanner,
    PythonScanner,
    get_scanner,
    scan_file,
    split_top_level,
    strip_generics,
)


def _scan(source: str, path: str):
    return scan_file(path, reader=lambda _: source)


class TestHelpers:
    def test_split_top_level_respects_nesting(self):
        assert split_top_level("a, f(b, c), Map<K, V>, [1, 2]") == ["a", "f(b, c)", "Map<K, V>", "[1, 2]"]

    def test_split_top_level_arrow_default(self):
        assert split_top_level("cb = () => 1, b") == ["cb = () => 1", "b"]

    def test_strip_generics(self):
        assert strip_generics("List<String>") == "List"
        assert strip_generics(" Plain ") == "Plain"

    def test_scanner_registry(self):
        assert isinstance(get_scanner("python"), PythonScanner)
        assert isinstance(get_scanner("java"), JavaScanner)
        assert isinstance(get_scanner("csharp"), CSharpScanner)
        assert get_scanner("ruby") is None


class TestPythonScanner:
    @pytest.fixture
    def pkg(self, sample_project_path: Path) -> Path:
        return sample_project_path / "pkg"

    def test_classes_and_bases(self, pkg: Path):
        structure = scan_file(pkg / "models.py")
        assert structure.language == "python"
        assert [c.name for c in structure.classes] == ["Base", "User", "_Cache"]
        user = structure.find("User", ("class",))
        assert user.extends == "Base"
        assert user.interfaces == []
        assert user.methods == ["__init__", "domain"]

    def test_methods_belong_to_their_class(self, pkg: Path):
        structure = scan_file(pkg / "models.py")
        methods = [(m.class_name, m.name) for m in structure.functions]
        assert methods == [("Base", "describe"), ("User", "__init__"), ("User", "domain")]
        init = structure.find("__init__")
        assert init.params == ["self", "name", "email=None"]

    def test_underscore_names_are_private(self, pkg: Path):
        structure = scan_file(pkg / "models.py")
        assert structure.find("Base").is_exported
        assert structure.find("User").is_exported
        assert not structure.find("_Cache").is_exported
        assert [entry.name for entry in structure.public_api] == ["Base", "User"]

    def test_imports(self, pkg: Path):
        structure = scan_file(pkg / "service.py")
        assert [(i.kind, i.source) for i in structure.imports] == [
            ("python_import", "os"),
            ("python_from", ".models"),
        ]
        from_import = structure.imports[1]
        assert from_import.names == ["Account", "Base"]
        assert from_import.original_name("Account") == "User"

    def test_nested_defs_are_skipped(self, pkg: Path):
        structure = scan_file(pkg / "service.py")
        assert [f.name for f in structure.functions] == ["create_user", "load_users"]
        assert structure.find("load_users").is_async

    def test_dunder_all_controls_exports(self):
        source = "__all__ = ['visible']\n\n\ndef visible():\n    pass\n\n\ndef hidden():\n    pass\n"
        structure = _scan(source, "mod.py")
        assert structure.find("visible").is_exported
        assert not structure.find("hidden").is_exported
        assert [e.name for e in structure.exports] == ["visible"]

    def test_multiline_from_import(self):
        source = "from pkg.util import (\n    alpha,\n    beta as b,\n)\n"
        structure = _scan(source, "mod.py")
        imp = structure.imports[0]
        assert imp.source == "pkg.util"
        assert imp.names == ["alpha", "b"]
        assert imp.aliases == {"b": "beta"}

    def test_import_alias(self):
        structure = _scan("import numpy as np, json\n", "mod.py")
        assert [(i.source, i.names) for i in structure.imports] == [("numpy", ["np"]), ("json", ["json"])]
        assert structure.imports[0].original_name("np") == "numpy"


class TestJavaScanner:
    @pytest.fixture
    def greeter(self, sample_project_path: Path):
        return scan_file(sample_project_path / "java" / "Greeter.java")

    def test_package_and_imports(self, greeter):
        assert greeter.language == "java"
        assert greeter.package == "com.example.greet"
        assert [(i.source, i.names) for i in greeter.imports] == [
            ("java.util.List", ["List"]),
            ("java.util.*", []),
        ]

    def test_class_inheritance(self, greeter):
        cls = greeter.find("Greeter", ("class",))
        assert cls.extends == "BaseGreeter"
        assert cls.interfaces == ["Comparable", "Runnable"]
        assert cls.is_exported

    def test_methods_and_constructor(self, greeter):
        cls = greeter.find("Greeter", ("class",))
        assert cls.methods == ["greet", "reset", "Greeter"]
        greet = greeter.find("greet", ("method",))
        assert greet.class_name == "Greeter"
        assert greet.return_type == "String"
        assert greet.params == ["String other"]
        assert greet.is_exported
        assert not greeter.find("reset").is_exported

    def test_package_private_interface(self, greeter):
        polite = greeter.find("Polite", ("interface",))
        assert polite.interfaces == ["Runnable"]
        assert not polite.is_exported

    def test_annotation_type_is_not_an_interface(self):
        structure = _scan("public @interface Marker {\n}\n", "Marker.java")
        assert structure.interfaces == []


class TestCSharpScanner:
    @pytest.fixture
    def repo(self, sample_project_path: Path):
        return scan_file(sample_project_path / "cs" / "Repo.cs")

    def test_namespace_and_usings(self, repo):
        assert repo.language == "csharp"
        assert repo.namespace == "Example.Data"
        assert [i.source for i in repo.imports] == ["System", "System.Collections.Generic"]
        assert repo.imports[1].aliases == {"Col": "System.Collections.Generic"}

    def test_base_list_split(self, repo):
        cls = repo.find("UserRepo", ("class",))
        assert cls.extends == "BaseRepo"
        assert cls.interfaces == ["IRepository", "IDisposable"]

    def test_methods(self, repo):
        cls = repo.find("UserRepo", ("class",))
        assert cls.methods == ["FindAsync", "Dispose", "UserRepo"]
        find = repo.find("FindAsync")
        assert find.is_async
        assert find.return_type == "Task<User>"
        assert find.params == ["int id"]

    def test_interface_bases(self, repo):
        iface = repo.find("IRepository", ("interface",))
        assert iface.interfaces == ["IDisposable"]
        assert iface.is_exported

    def test_interface_only_base_list(self):
        structure = _scan("public class Job : IRunnable, IDisposable\n{\n}\n", "Job.cs")
        job = structure.find("Job")
        assert job.extends is None
        assert job.interfaces == ["IRunnable", "IDisposable"]
