"""Tests for code graph construction."""

import pytest

from codemap_cli.config_manager import save_config
from codemap_cli.graph_builder import GraphBuilder, build_code_graph, builder_from_config
from codemap_cli.models import Edge, Graph, Node


def _edges(graph, edge_type):
    return [(e.source, e.target) for e in graph.edges_of_type(edge_type)]


class TestGraphModel:
    def test_add_node_is_idempotent(self):
        graph = Graph()
        first = Node(id="a.js", type="file", label="a.js", path="a.js")
        assert graph.add_node(first)
        assert not graph.add_node(Node(id="a.js", type="file", label="other", path="a.js"))
        assert len(graph.nodes) == 1
        assert graph.get_node("a.js") is first

    def test_edges_deduplicated_by_source_target_type(self):
        graph = Graph()
        assert graph.add_edge(Edge(source="a", target="b", type="calls", line=1))
        assert not graph.add_edge(Edge(source="a", target="b", type="calls", line=9))
        assert graph.add_edge(Edge(source="a", target="b", type="imports"))
        assert [e.id for e in graph.edges] == ["a=>b:calls", "a=>b:imports"]
        assert graph.edges[0].line == 1
        assert graph.has_edge("a", "b", "imports")


class TestRoundTrip:
    def test_two_file_scenario(self, write_files):
        paths = write_files({
            "a.js": "function foo(){ bar(); }\nconst b = require('./b');\n",
            "b.js": "function bar(){}\nmodule.exports = { bar };\n",
        })
        a, b = paths["a.js"], paths["b.js"]
        graph = build_code_graph([a, b])

        assert [n.id for n in graph.nodes] == [a, f"{a}#foo", b, f"{b}#bar"]
        assert [(e.source, e.target, e.type) for e in graph.edges] == [
            (f"{a}#foo", a, "defined_in"),
            (f"{b}#bar", b, "defined_in"),
            (a, b, "imports"),
            (f"{a}#foo", f"{b}#bar", "calls"),
        ]
        call = graph.edges_of_type("calls")[0]
        assert call.confidence == "exact"
        assert call.line == 1

    def test_builds_are_independent(self, write_files):
        paths = write_files({"a.js": "function foo() {}\n"})
        first = build_code_graph([paths["a.js"]])
        second = build_code_graph([paths["a.js"]])
        assert first is not second
        assert len(first.nodes) == len(second.nodes) == 2


class TestSampleJavaScript:
    @pytest.fixture
    def graph(self, sample_js_files):
        return build_code_graph(sample_js_files)

    def test_nodes(self, graph, sample_js_files):
        animal, dog, helpers = sample_js_files
        assert len(graph.nodes) == 13
        assert [n.id for n in graph.nodes_of_type("file")] == [animal, dog, helpers]
        assert graph.get_node(f"{animal}#Animal").methods == ["constructor", "speak"]
        speak = graph.get_node(f"{dog}#Dog.speak")
        assert speak.variant == "method"
        assert speak.class_name == "Dog"
        defaults = graph.get_node(f"{dog}#DEFAULTS")
        assert (defaults.type, defaults.value_type) == ("variable", "object")

    def test_edge_counts(self, graph):
        counts = {}
        for edge in graph.edges:
            counts[edge.type] = counts.get(edge.type, 0) + 1
        assert counts == {
            "defined_in": 10,
            "member_of": 4,
            "extends": 1,
            "imports": 2,
            "imports_symbol": 1,
            "calls": 3,
        }

    def test_imports_resolve_relative_and_index(self, graph, sample_js_files):
        animal, dog, helpers = sample_js_files
        assert _edges(graph, "imports") == [(dog, animal), (dog, helpers)]
        symbol = graph.edges_of_type("imports_symbol")[0]
        assert (symbol.source, symbol.target, symbol.import_name) == (dog, f"{animal}#Animal", "Animal")

    def test_cross_file_extends(self, graph, sample_js_files):
        animal, dog, _ = sample_js_files
        extends = graph.edges_of_type("extends")[0]
        assert (extends.source, extends.target) == (f"{dog}#Dog", f"{animal}#Animal")
        assert not extends.virtual

    def test_calls(self, graph, sample_js_files):
        animal, dog, helpers = sample_js_files
        calls = {(e.source, e.target): e.confidence for e in graph.edges_of_type("calls")}
        assert calls == {
            (f"{animal}#Animal.speak", f"{animal}#describe"): "exact",
            (f"{dog}#Dog.speak", f"{helpers}#shout"): "exact",
            (f"{dog}#Dog.speak", f"{dog}#Dog.wag"): "exact",
        }

    def test_call_arguments_recorded(self, graph, sample_js_files):
        _, dog, helpers = sample_js_files
        shout = [e for e in graph.edges_of_type("calls") if e.target == f"{helpers}#shout"][0]
        assert shout.args == ["this.name"]
        assert shout.line == 8

    def test_threaded_scan_gives_same_graph(self, graph, sample_js_files):
        threaded = GraphBuilder(workers=4).build(sample_js_files)
        assert [n.id for n in threaded.nodes] == [n.id for n in graph.nodes]
        assert [e.id for e in threaded.edges] == [e.id for e in graph.edges]


class TestOtherLanguages:
    def test_python_symbol_imports(self, sample_python_files):
        _, models, service = sample_python_files
        graph = build_code_graph(sample_python_files)
        assert _edges(graph, "imports") == [(service, models)]
        symbols = [(e.target, e.import_name) for e in graph.edges_of_type("imports_symbol")]
        assert symbols == [(f"{models}#User", "User"), (f"{models}#Base", "Base")]
        assert _edges(graph, "extends") == [(f"{models}#User", f"{models}#Base")]
        assert graph.get_node(f"{service}#create_user") is not None
        assert graph.get_node(f"{service}#parse") is None

    def test_typescript_calls_and_imports(self, sample_ts_files):
        shapes, circle = sample_ts_files
        graph = build_code_graph(sample_ts_files)
        assert _edges(graph, "imports") == [(circle, shapes)]
        assert graph.edges_of_type("imports_symbol") == []
        assert _edges(graph, "calls") == [(f"{circle}#Circle.area", f"{circle}#square")]


class TestResolution:
    def test_virtual_extends_for_unknown_superclass(self, write_files):
        paths = write_files({"w.js": "class Widget extends Base {\n}\n"})
        path = paths["w.js"]
        graph = build_code_graph([path])
        edge = graph.edges_of_type("extends")[0]
        assert edge.target == f"{path}#Base"
        assert edge.virtual
        assert graph.get_node(f"{path}#Base") is None

    def test_same_file_superclass_preferred(self, write_files):
        paths = write_files({
            "one.js": "class Base {}\n",
            "two.js": "class Base {}\nclass Child extends Base {}\n",
        })
        two = paths["two.js"]
        graph = build_code_graph([paths["one.js"], two])
        edge = graph.edges_of_type("extends")[0]
        assert (edge.source, edge.target) == (f"{two}#Child", f"{two}#Base")

    def test_superclass_declared_later_in_input(self, write_files):
        paths = write_files({
            "child.js": "class Child extends Parent {}\n",
            "parent.js": "class Parent {}\n",
        })
        graph = build_code_graph([paths["child.js"], paths["parent.js"]])
        edge = graph.edges_of_type("extends")[0]
        assert edge.target == f"{paths['parent.js']}#Parent"
        assert not edge.virtual

    def test_same_file_function_wins_over_import(self, write_files):
        paths = write_files({
            "a.js": "const b = require('./b');\nfunction helper() {}\nfunction run() { helper(); }\n",
            "b.js": "function helper() {}\nmodule.exports = { helper };\n",
        })
        a = paths["a.js"]
        graph = build_code_graph([a, paths["b.js"]])
        assert _edges(graph, "calls") == [(f"{a}#run", f"{a}#helper")]

    def test_unimported_function_is_not_a_target(self, write_files):
        paths = write_files({
            "a.js": "function run() { helper(); }\n",
            "b.js": "function helper() {}\n",
        })
        graph = build_code_graph([paths["a.js"], paths["b.js"]])
        assert graph.edges_of_type("calls") == []

    def test_recursion_keeps_self_loop(self, write_files):
        paths = write_files({"f.js": "function fact(n) {\n  return n ? n * fact(n - 1) : 1;\n}\n"})
        path = paths["f.js"]
        graph = build_code_graph([path])
        assert _edges(graph, "calls") == [(f"{path}#fact", f"{path}#fact")]

    def test_receiver_call_is_heuristic(self, write_files):
        source = "class A {\n  run() {}\n}\nclass B {\n  go(x) {\n    x.run();\n  }\n}\n"
        path = write_files({"m.js": source})["m.js"]
        graph = build_code_graph([path])
        edge = graph.edges_of_type("calls")[0]
        assert (edge.source, edge.target) == (f"{path}#B.go", f"{path}#A.run")
        assert edge.confidence == "heuristic"

    def test_heuristic_target_follows_input_order(self, write_files):
        paths = write_files({
            "first.js": "class First {\n  run() {}\n}\n",
            "second.js": "class Second {\n  run() {}\n}\n",
            "main.js": "function main(job) {\n  job.run();\n}\n",
        })
        first, second, main = paths["first.js"], paths["second.js"], paths["main.js"]
        graph = build_code_graph([main, first, second])
        assert _edges(graph, "calls") == [(f"{main}#main", f"{first}#First.run")]

    def test_aliased_import_call(self, write_files):
        paths = write_files({
            "a.js": "import { bar as b } from './b';\nfunction foo() { b(); }\n",
            "b.js": "export function bar() {}\n",
        })
        a, b = paths["a.js"], paths["b.js"]
        graph = build_code_graph([a, b])
        edge = graph.edges_of_type("calls")[0]
        assert (edge.source, edge.target, edge.confidence) == (f"{a}#foo", f"{b}#bar", "exact")

    def test_aliased_destructured_require_call(self, write_files):
        paths = write_files({
            "a.js": "const { bar: b } = require('./b');\nfunction foo() { b(); }\n",
            "b.js": "function bar() {}\nmodule.exports = { bar };\n",
        })
        a, b = paths["a.js"], paths["b.js"]
        graph = build_code_graph([a, b])
        assert _edges(graph, "calls") == [(f"{a}#foo", f"{b}#bar")]

    def test_constructor_function_superclass(self, write_files):
        path = write_files({"d.js": "function Base() {}\nclass Dog extends Base {}\n"})["d.js"]
        graph = build_code_graph([path])
        extends = graph.edges_of_type("extends")[0]
        assert (extends.source, extends.target, extends.virtual) == (f"{path}#Dog", f"{path}#Base", False)
        assert graph.get_node(f"{path}#Base").type == "function"

    @pytest.mark.parametrize("params", ["{ a, b }", "opts = {}"])
    def test_method_with_braces_in_parameters(self, write_files, params):
        source = f"class A {{\n  run({params}) {{\n    this.go();\n  }}\n  go() {{}}\n}}\n"
        path = write_files({"a.js": source})["a.js"]
        graph = build_code_graph([path])
        assert graph.get_node(f"{path}#A").methods == ["run", "go"]
        assert _edges(graph, "member_of") == [(f"{path}#A.run", f"{path}#A"), (f"{path}#A.go", f"{path}#A")]
        edge = graph.edges_of_type("calls")[0]
        assert (edge.source, edge.target, edge.confidence) == (f"{path}#A.run", f"{path}#A.go", "exact")

    def test_calls_in_comments_and_strings_are_ignored(self, write_files):
        source = "function foo() {\n  // bar()\n  log('bar() failed');\n}\nfunction bar() {}\nfunction log() {}\n"
        path = write_files({"a.js": source})["a.js"]
        graph = build_code_graph([path])
        assert _edges(graph, "calls") == [(f"{path}#foo", f"{path}#log")]

    def test_top_level_call_comes_from_file(self, write_files):
        path = write_files({"m.js": "function main() {}\nmain();\n"})["m.js"]
        graph = build_code_graph([path])
        assert _edges(graph, "calls") == [(path, f"{path}#main")]

    def test_prototype_class_graph(self, write_files):
        source = (
            "function Shape() {}\n"
            "Shape.prototype.area = function() { return 0; };\n"
            "function Square() {}\n"
            "Square.prototype = Object.create(Shape.prototype);\n"
        )
        path = write_files({"p.js": source})["p.js"]
        graph = build_code_graph([path])
        assert graph.get_node(f"{path}#Shape").type == "class"
        assert _edges(graph, "member_of") == [(f"{path}#Shape.area", f"{path}#Shape")]
        extends = graph.edges_of_type("extends")[0]
        assert (extends.source, extends.target, extends.virtual) == (f"{path}#Square", f"{path}#Shape", False)

    def test_only_structural_variables_become_nodes(self, write_files):
        source = "const cfg = { a: 1 };\nconst list = [1];\nconst n = 3;\nconst s = 'x';\n"
        path = write_files({"v.js": source})["v.js"]
        graph = build_code_graph([path])
        assert [n.label for n in graph.nodes_of_type("variable")] == ["cfg", "list"]


class TestDegradedInput:
    def test_unreadable_file_still_gets_a_node(self, write_files, temp_dir):
        paths = write_files({"a.js": "function a() {}\n", "c.js": "function c() {}\n"})
        missing = str(temp_dir / "missing.js")
        graph = build_code_graph([paths["a.js"], missing, paths["c.js"]])
        files = graph.nodes_of_type("file")
        assert [n.id for n in files] == [paths["a.js"], missing, paths["c.js"]]
        broken = graph.get_node(missing)
        assert broken.language == "unknown"
        assert broken.error

    def test_reader_is_used(self):
        sources = {"x.js": "function x() {}\n"}
        graph = GraphBuilder(reader=sources.__getitem__).build(["x.js"])
        assert graph.get_node("x.js#x") is not None

    def test_reader_failure_is_isolated(self):
        def reader(path):
            if path == "bad.js":
                raise OSError("permission denied")
            return "function ok() {}\n"

        graph = GraphBuilder(reader=reader).build(["good.js", "bad.js"])
        assert graph.get_node("bad.js").error == "permission denied"
        assert graph.get_node("good.js#ok") is not None


def test_builder_from_config_reads_settings():
    save_config("scanner", "workers", "3")
    save_config("scanner", "resolve_extensions", "ts, .js")
    builder = builder_from_config()
    assert builder.workers == 3
    assert builder.resolve_extensions == [".ts", ".js"]
