"""Tests for graph queries."""

import pytest

from codemap_cli.graph_builder import build_code_graph
from codemap_cli.models import CallRef, Edge, FileRef, Graph, Node
from codemap_cli.query import (
    find_nodes,
    get_file_dependencies,
    get_file_dependents,
    get_function_callers,
    get_function_calls,
    get_subgraph,
    summarize,
)


@pytest.fixture
def cyclic_graph() -> Graph:
    """a -> b -> c -> a, c -> d, plus a virtual edge out of a."""
    graph = Graph()
    for name in "abcd":
        graph.add_node(Node(id=name, type="function", label=name, path=f"{name}.js"))
    graph.add_edge(Edge(source="a", target="b", type="calls"))
    graph.add_edge(Edge(source="b", target="c", type="calls"))
    graph.add_edge(Edge(source="c", target="a", type="calls"))
    graph.add_edge(Edge(source="c", target="d", type="calls"))
    graph.add_edge(Edge(source="a", target="a.js#Missing", type="extends", virtual=True))
    return graph


@pytest.fixture
def sample_graph(sample_js_files) -> Graph:
    return build_code_graph(sample_js_files)


class TestSubgraph:
    def test_depth_zero_is_center_only(self, cyclic_graph):
        sub = get_subgraph(cyclic_graph, "a", 0)
        assert [n.id for n in sub.nodes] == ["a"]
        assert sub.edges == []

    def test_depth_one_is_direct_neighbours(self, cyclic_graph):
        sub = get_subgraph(cyclic_graph, "a", 1)
        assert {n.id for n in sub.nodes} == {"a", "b", "c"}
        assert {e.id for e in sub.edges} == {"a=>b:calls", "c=>a:calls", "a=>a.js#Missing:extends"}

    def test_virtual_targets_are_edges_only(self, cyclic_graph):
        sub = get_subgraph(cyclic_graph, "a", 3)
        assert sub.get_node("a.js#Missing") is None
        assert sub.has_edge("a", "a.js#Missing", "extends")

    def test_cycles_do_not_duplicate(self, cyclic_graph):
        sub = get_subgraph(cyclic_graph, "a", 10)
        ids = [n.id for n in sub.nodes]
        assert sorted(ids) == ["a", "b", "c", "d"]
        assert len(sub.edges) == len(cyclic_graph.edges)
        assert len({e.id for e in sub.edges}) == len(sub.edges)

    def test_unknown_node_gives_empty_graph(self, cyclic_graph):
        sub = get_subgraph(cyclic_graph, "nope", 2)
        assert sub.nodes == [] and sub.edges == []

    def test_self_loop(self):
        graph = Graph()
        graph.add_node(Node(id="f", type="function", label="f", path="f.js"))
        graph.add_edge(Edge(source="f", target="f", type="calls"))
        sub = get_subgraph(graph, "f", 2)
        assert [n.id for n in sub.nodes] == ["f"]
        assert len(sub.edges) == 1

    def test_sample_neighbourhood(self, sample_graph, sample_js_files):
        animal, dog, _ = sample_js_files
        sub = get_subgraph(sample_graph, f"{dog}#Dog", 1)
        assert {n.id for n in sub.nodes} == {
            f"{dog}#Dog", dog, f"{dog}#Dog.speak", f"{dog}#Dog.wag", f"{animal}#Animal",
        }


class TestCalls:
    def test_function_calls(self, sample_graph, sample_js_files):
        _, dog, helpers = sample_js_files
        refs = get_function_calls(sample_graph, f"{dog}#Dog.speak")
        assert refs == [
            CallRef(source=f"{dog}#Dog.speak", target=f"{helpers}#shout", name="shout", path=helpers, line=8),
            CallRef(source=f"{dog}#Dog.speak", target=f"{dog}#Dog.wag", name="wag", path=dog, line=9),
        ]

    def test_function_callers(self, sample_graph, sample_js_files):
        animal = sample_js_files[0]
        refs = get_function_callers(sample_graph, f"{animal}#describe")
        assert [(r.source, r.name, r.path, r.line) for r in refs] == [
            (f"{animal}#Animal.speak", "speak", animal, 10),
        ]

    def test_missing_endpoint_is_unknown(self):
        graph = Graph()
        graph.add_node(Node(id="f", type="function", label="f", path="f.js"))
        graph.add_edge(Edge(source="f", target="gone", type="calls", line=3))
        graph.add_edge(Edge(source="ghost", target="f", type="calls"))
        assert get_function_calls(graph, "f")[0].name == "Unknown"
        assert get_function_callers(graph, "f")[0].path == "Unknown"

    def test_no_calls(self, cyclic_graph):
        assert get_function_calls(cyclic_graph, "d") == []


class TestFiles:
    def test_dependencies(self, sample_graph, sample_js_files):
        animal, dog, helpers = sample_js_files
        assert get_file_dependencies(sample_graph, dog) == [
            FileRef(source=dog, target=animal, name="animal.js"),
            FileRef(source=dog, target=helpers, name="index.js"),
        ]

    def test_dependents(self, sample_graph, sample_js_files):
        animal, dog, helpers = sample_js_files
        assert get_file_dependents(sample_graph, animal) == [FileRef(source=dog, target=animal, name="dog.js")]
        assert get_file_dependents(sample_graph, dog) == []


def test_find_nodes(sample_graph, sample_js_files):
    dog = sample_js_files[1]
    assert len(find_nodes(sample_graph, "speak")) == 2
    assert find_nodes(sample_graph, "speak", "class") == []
    assert [n.id for n in find_nodes(sample_graph, "Dog", "class")] == [f"{dog}#Dog"]
    assert [n.id for n in find_nodes(sample_graph, dog)] == [dog]


def test_summarize(sample_graph):
    counts = summarize(sample_graph)
    assert counts["nodes"] == {"file": 3, "class": 2, "function": 7, "variable": 1}
    assert counts["edges"]["calls"] == 3
