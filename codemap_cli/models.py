"""Core data models produced by the scanner and consumed by both builders."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

# Definition kinds the graph builder turns into function nodes.
FUNCTION_KINDS = ("function", "arrow_function", "method")
CLASS_KINDS = ("class", "prototype_class")

COMPONENT_KINDS = (
    "functional_component",
    "class_component",
    "pure_component",
    "memo_component",
    "forwardref_component",
)


# ===================================================================
# Scanner facts
# ===================================================================

@dataclass
class Location:
    position: int
    line: int
    column: int


@dataclass
class Span:
    start: Location
    end: Location


@dataclass
class ImportFact:
    kind: str
    source: str
    names: List[str] = field(default_factory=list)
    aliases: Dict[str, str] = field(default_factory=dict)
    position: int = 0
    line: int = 1
    column: int = 1

    def original_name(self, local: str) -> str:
        return self.aliases.get(local, local)

    @property
    def symbol_names(self) -> List[str]:
        """Names that refer to one specific exported symbol of the source."""
        if self.kind not in ("named", "commonjs_destructured", "python_from"):
            return []
        return [n for n in self.names if n != "*"]


@dataclass
class ExportFact:
    kind: str
    name: str
    export_name: Optional[str] = None
    position: int = 0
    line: int = 1
    column: int = 1


@dataclass
class EnumMember:
    name: str
    value: Optional[str] = None


@dataclass
class Definition:
    kind: str
    name: str
    position: int = 0
    line: int = 1
    column: int = 1
    params: List[str] = field(default_factory=list)
    is_exported: bool = False
    is_generator: bool = False
    is_async: bool = False
    class_name: Optional[str] = None
    extends: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    methods: List[str] = field(default_factory=list)
    properties: List[str] = field(default_factory=list)
    members: List[EnumMember] = field(default_factory=list)
    is_const: bool = False
    style: Optional[str] = None
    props_type: Optional[str] = None
    return_type: Optional[str] = None
    param_types: Dict[str, str] = field(default_factory=dict)
    body: Optional[Span] = None

    @property
    def qualname(self) -> str:
        if self.kind == "method" and self.class_name:
            return f"{self.class_name}.{self.name}"
        return self.name


@dataclass
class Variable:
    name: str
    kind: str
    value: str
    value_type: str
    position: int = 0
    line: int = 1
    column: int = 1


@dataclass
class CallArgument:
    text: str
    type: str


@dataclass
class MethodCall:
    name: str
    receiver: Optional[str] = None
    args: List[CallArgument] = field(default_factory=list)
    containing_function: Optional[str] = None
    containing_class: Optional[str] = None
    position: int = 0
    line: int = 1
    column: int = 1

    @property
    def caller_qualname(self) -> Optional[str]:
        if self.containing_function is None:
            return None
        if self.containing_class:
            return f"{self.containing_class}.{self.containing_function}"
        return self.containing_function


@dataclass
class TypeReference:
    name: str
    module: Optional[str] = None
    position: int = 0
    line: int = 1
    column: int = 1


@dataclass
class ApiEntry:
    kind: str
    name: str
    class_name: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FileStructure:
    """Everything the scanner learned about one file."""

    path: str
    language: str
    imports: List[ImportFact] = field(default_factory=list)
    exports: List[ExportFact] = field(default_factory=list)
    definitions: List[Definition] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    method_calls: List[MethodCall] = field(default_factory=list)
    type_references: List[TypeReference] = field(default_factory=list)
    public_api: List[ApiEntry] = field(default_factory=list)
    package: Optional[str] = None
    namespace: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def degraded(cls, path: str, error: str) -> "FileStructure":
        return cls(path=path, language="unknown", error=error)

    @property
    def functions(self) -> List[Definition]:
        return [d for d in self.definitions if d.kind in FUNCTION_KINDS]

    @property
    def classes(self) -> List[Definition]:
        return [d for d in self.definitions if d.kind in CLASS_KINDS]

    @property
    def interfaces(self) -> List[Definition]:
        return [d for d in self.definitions if d.kind == "interface"]

    @property
    def enums(self) -> List[Definition]:
        return [d for d in self.definitions if d.kind == "enum"]

    @property
    def components(self) -> List[Definition]:
        return [d for d in self.definitions if d.kind in COMPONENT_KINDS]

    def find(self, name: str, kinds: Optional[tuple] = None) -> Optional[Definition]:
        for definition in self.definitions:
            if definition.name == name and (kinds is None or definition.kind in kinds):
                return definition
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ===================================================================
# Code graph
# ===================================================================

@dataclass
class Node:
    id: str
    type: str
    label: str
    path: str
    line: Optional[int] = None
    language: Optional[str] = None
    params: List[str] = field(default_factory=list)
    is_generator: bool = False
    variant: Optional[str] = None
    class_name: Optional[str] = None
    extends: Optional[str] = None
    methods: List[str] = field(default_factory=list)
    properties: List[str] = field(default_factory=list)
    value_type: Optional[str] = None
    error: Optional[str] = None


def edge_id(source: str, target: str, edge_type: str) -> str:
    return f"{source}=>{target}:{edge_type}"


@dataclass
class Edge:
    source: str
    target: str
    type: str
    import_name: Optional[str] = None
    args: List[str] = field(default_factory=list)
    line: Optional[int] = None
    column: Optional[int] = None
    virtual: bool = False
    confidence: Optional[str] = None

    @property
    def id(self) -> str:
        return edge_id(self.source, self.target, self.type)


class Graph:
    """Ordered, de-duplicated node/edge collection.

    Node ids and edge ids are unique; re-inserting an existing id is a no-op
    that keeps the first inserted object.
    """

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self._nodes_by_id: Dict[str, Node] = {}
        self._edge_ids: set = set()

    def add_node(self, node: Node) -> bool:
        if node.id in self._nodes_by_id:
            return False
        self._nodes_by_id[node.id] = node
        self.nodes.append(node)
        return True

    def add_edge(self, edge: Edge) -> bool:
        key = edge.id
        if key in self._edge_ids:
            return False
        self._edge_ids.add(key)
        self.edges.append(edge)
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes_by_id.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes_by_id

    def has_edge(self, source: str, target: str, edge_type: str) -> bool:
        return edge_id(source, target, edge_type) in self._edge_ids

    def nodes_of_type(self, node_type: str) -> List[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def edges_of_type(self, edge_type: str) -> List[Edge]:
        return [e for e in self.edges if e.type == edge_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [asdict(n) for n in self.nodes],
            "edges": [{"id": e.id, **asdict(e)} for e in self.edges],
        }

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self.nodes)}, edges={len(self.edges)})"


# ===================================================================
# Code map
# ===================================================================

@dataclass
class Relationship:
    type: str
    source: str
    target: str
    items: List[str] = field(default_factory=list)
    type_name: Optional[str] = None
    source_type: Optional[str] = None
    target_type: Optional[str] = None
    ambiguous: bool = False
    alternatives: List[str] = field(default_factory=list)


@dataclass
class CodeMap:
    files: List[FileStructure] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)

    def file(self, path: str) -> Optional[FileStructure]:
        for structure in self.files:
            if structure.path == path:
                return structure
        return None

    def relationships_of_type(self, rel_type: str) -> List[Relationship]:
        return [r for r in self.relationships if r.type == rel_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "relationships": [asdict(r) for r in self.relationships],
        }


# ===================================================================
# Query results
# ===================================================================

@dataclass
class CallRef:
    source: str
    target: str
    name: str
    path: str
    line: Optional[int] = None


@dataclass
class FileRef:
    source: str
    target: str
    name: str
