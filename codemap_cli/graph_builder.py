"""Build a code graph (files, functions, classes, variables and their edges).

Construction runs in two passes over the scanned files.  Pass one creates
every node; pass two adds the relationships that need other files' nodes to
exist (imports, imported symbols and calls).  All state lives in a
:class:`_BuildContext` created per :meth:`GraphBuilder.build` call.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .config_manager import load_config
from .models import Edge, FileStructure, Graph, ImportFact, MethodCall, Node
from .parser import Reader, scan_files
from .resolver import KnownFiles, resolve_import

logger = logging.getLogger(__name__)

# Top-level variables with these value types become graph nodes.
VARIABLE_NODE_TYPES = ("object", "array", "function", "arrow_function", "class")

_VARIANTS = {"function": "function", "arrow_function": "arrow", "method": "method"}
_SELF_RECEIVERS = ("this", "self")


def symbol_id(path: str, name: str) -> str:
    return f"{path}#{name}"


@dataclass
class _BuildContext:
    graph: Graph
    structures: List[FileStructure]
    known: KnownFiles
    # file id -> [(import, resolved file id or None)]
    imports: Dict[str, List[Tuple[ImportFact, Optional[str]]]] = field(default_factory=dict)
    # file id -> resolved file ids in import order
    imported_files: Dict[str, List[str]] = field(default_factory=dict)
    # file id -> {name: node id} for non-method functions
    functions: Dict[str, Dict[str, str]] = field(default_factory=dict)
    # class label -> class node ids in insertion order
    classes_by_label: Dict[str, List[str]] = field(default_factory=dict)
    # method name -> method node ids, in class insertion order
    methods_by_name: Dict[str, List[str]] = field(default_factory=dict)
    # function label -> function node ids in insertion order
    functions_by_label: Dict[str, List[str]] = field(default_factory=dict)

    def class_node(self, path: str, name: str) -> Optional[Node]:
        node = self.graph.get_node(symbol_id(path, name))
        return node if node is not None and node.type == "class" else None


class GraphBuilder:
    """Turn an ordered list of files into a :class:`~codemap_cli.models.Graph`."""

    def __init__(
        self,
        reader: Optional[Reader] = None,
        workers: Optional[int] = None,
        resolve_extensions: Optional[Sequence[str]] = None,
        component_window: Optional[int] = None,
    ) -> None:
        self.reader = reader
        self.workers = workers if workers is not None else config.DEFAULT_WORKERS
        self.resolve_extensions = (
            list(resolve_extensions) if resolve_extensions is not None
            else list(config.DEFAULT_RESOLVE_EXTENSIONS)
        )
        self.component_window = component_window

    def build(self, files: Iterable[Any]) -> Graph:
        structures = scan_files(
            files, reader=self.reader, workers=self.workers, component_window=self.component_window,
        )
        return self.build_from_structures(structures)

    def build_from_structures(self, structures: List[FileStructure]) -> Graph:
        ctx = _BuildContext(
            graph=Graph(),
            structures=structures,
            known=KnownFiles(s.path for s in structures),
        )

        for structure in structures:
            self._add_file_nodes(ctx, structure)
        for structure in structures:
            self._add_extends_edges(ctx, structure)

        for structure in structures:
            self._add_import_edges(ctx, structure)
        for structure in structures:
            self._add_call_edges(ctx, structure)

        logger.info(
            "Built code graph from %d files: %d nodes, %d edges",
            len(structures), len(ctx.graph.nodes), len(ctx.graph.edges),
        )
        return ctx.graph

    # ------------------------------------------------------------------
    # Pass 1: nodes
    # ------------------------------------------------------------------

    def _add_file_nodes(self, ctx: _BuildContext, structure: FileStructure) -> None:
        graph = ctx.graph
        path = structure.path
        graph.add_node(Node(
            id=path,
            type="file",
            label=os.path.basename(path),
            path=path,
            language=structure.language,
            error=structure.error,
        ))

        added_classes: List[Node] = []
        for cls in structure.classes:
            node_id = symbol_id(path, cls.name)
            node = Node(
                id=node_id,
                type="class",
                label=cls.name,
                path=path,
                line=cls.line,
                extends=cls.extends,
                methods=list(cls.methods),
                properties=list(cls.properties),
            )
            if graph.add_node(node):
                ctx.classes_by_label.setdefault(cls.name, []).append(node_id)
                added_classes.append(node)
            graph.add_edge(Edge(source=node_id, target=path, type="defined_in"))

        file_functions = ctx.functions.setdefault(path, {})
        for fn in structure.functions:
            node_id = symbol_id(path, fn.qualname)
            graph.add_node(Node(
                id=node_id,
                type="function",
                label=fn.name,
                path=path,
                line=fn.line,
                params=list(fn.params),
                is_generator=fn.is_generator,
                variant=_VARIANTS[fn.kind],
                class_name=fn.class_name,
            ))
            graph.add_edge(Edge(source=node_id, target=path, type="defined_in"))
            if fn.kind == "method" and fn.class_name:
                owner = ctx.class_node(path, fn.class_name)
                if owner is not None:
                    graph.add_edge(Edge(source=node_id, target=owner.id, type="member_of"))
            else:
                file_functions.setdefault(fn.name, node_id)
                if fn.kind == "function":
                    ctx.functions_by_label.setdefault(fn.name, []).append(node_id)

        for node in added_classes:
            for method in node.methods:
                method_id = symbol_id(path, f"{node.label}.{method}")
                if graph.has_node(method_id):
                    ctx.methods_by_name.setdefault(method, []).append(method_id)

        for var in structure.variables:
            if var.value_type not in VARIABLE_NODE_TYPES:
                continue
            node_id = symbol_id(path, var.name)
            graph.add_node(Node(
                id=node_id,
                type="variable",
                label=var.name,
                path=path,
                line=var.line,
                value_type=var.value_type,
            ))
            graph.add_edge(Edge(source=node_id, target=path, type="defined_in"))

    def _add_extends_edges(self, ctx: _BuildContext, structure: FileStructure) -> None:
        path = structure.path
        for cls in structure.classes:
            if not cls.extends:
                continue
            source = symbol_id(path, cls.name)
            target = self._resolve_class(ctx, path, cls.extends)
            if target is not None:
                ctx.graph.add_edge(Edge(source=source, target=target, type="extends", line=cls.line))
            else:
                logger.debug("Superclass %s of %s not found; adding virtual edge", cls.extends, source)
                ctx.graph.add_edge(Edge(
                    source=source,
                    target=symbol_id(path, cls.extends),
                    type="extends",
                    line=cls.line,
                    virtual=True,
                ))

    @staticmethod
    def _resolve_class(ctx: _BuildContext, path: str, name: str) -> Optional[str]:
        """Same-file class first, then the first class with that label.

        Constructor functions (``function Base() {}``) are tried the same way
        when no class matches.
        """
        label = name.rsplit(".", 1)[-1]
        local = ctx.class_node(path, label)
        if local is not None:
            return local.id
        candidates = ctx.classes_by_label.get(label)
        if candidates:
            return candidates[0]
        local_fn = ctx.functions.get(path, {}).get(label)
        if local_fn is not None:
            return local_fn
        candidates = ctx.functions_by_label.get(label)
        return candidates[0] if candidates else None

    # ------------------------------------------------------------------
    # Pass 2: relationships
    # ------------------------------------------------------------------

    def _add_import_edges(self, ctx: _BuildContext, structure: FileStructure) -> None:
        graph = ctx.graph
        path = structure.path
        resolved_list = ctx.imports.setdefault(path, [])
        imported = ctx.imported_files.setdefault(path, [])

        for imp in structure.imports:
            target = resolve_import(path, imp.source, ctx.known, structure.language, self.resolve_extensions)
            resolved_list.append((imp, target))
            if target is None:
                logger.debug("Unresolved import %r in %s", imp.source, path)
                continue
            graph.add_edge(Edge(source=path, target=target, type="imports", line=imp.line, column=imp.column))
            if target not in imported:
                imported.append(target)

            for local in imp.symbol_names:
                original = imp.original_name(local)
                symbol = symbol_id(target, original)
                if graph.has_node(symbol):
                    graph.add_edge(Edge(
                        source=path,
                        target=symbol,
                        type="imports_symbol",
                        import_name=original,
                        line=imp.line,
                        column=imp.column,
                    ))

    def _add_call_edges(self, ctx: _BuildContext, structure: FileStructure) -> None:
        path = structure.path
        for call in structure.method_calls:
            source = self._caller_id(ctx, path, call)
            resolved = self._resolve_call(ctx, structure, call)
            if resolved is None:
                logger.debug("Unresolved call %s() in %s:%d", call.name, path, call.line)
                continue
            target, confidence = resolved
            ctx.graph.add_edge(Edge(
                source=source,
                target=target,
                type="calls",
                args=[arg.text for arg in call.args],
                line=call.line,
                column=call.column,
                confidence=confidence,
            ))

    @staticmethod
    def _caller_id(ctx: _BuildContext, path: str, call: MethodCall) -> str:
        qualname = call.caller_qualname
        if qualname is None:
            return path
        node_id = symbol_id(path, qualname)
        return node_id if ctx.graph.has_node(node_id) else path

    def _resolve_call(
        self, ctx: _BuildContext, structure: FileStructure, call: MethodCall,
    ) -> Optional[Tuple[str, str]]:
        """Return ``(target id, confidence)`` for a call site, or ``None``."""
        path = structure.path
        name = call.name

        if call.receiver:
            if call.receiver in _SELF_RECEIVERS and call.containing_class:
                owner = ctx.class_node(path, call.containing_class)
                if owner is not None and name in owner.methods:
                    return symbol_id(path, f"{owner.label}.{name}"), "exact"

            # Receiver type is not known: first class listing the method wins.
            candidates = ctx.methods_by_name.get(name)
            if candidates:
                return candidates[0], "heuristic"

            imported = self._imported_function(ctx, path, name)
            return (imported, "exact") if imported else None

        local = ctx.functions.get(path, {}).get(name)
        if local is not None:
            return local, "exact"
        imported = self._imported_function(ctx, path, name)
        return (imported, "exact") if imported else None

    @staticmethod
    def _imported_function(ctx: _BuildContext, path: str, name: str) -> Optional[str]:
        # A binding that names one symbol wins, under its exported name.
        for imp, target in ctx.imports.get(path, []):
            if target is None or name not in imp.symbol_names:
                continue
            node_id = ctx.functions.get(target, {}).get(imp.original_name(name))
            if node_id is not None:
                return node_id
        for target in ctx.imported_files.get(path, []):
            node_id = ctx.functions.get(target, {}).get(name)
            if node_id is not None:
                return node_id
        return None


def build_code_graph(files: Iterable[Any], **options: Any) -> Graph:
    """Build a graph for *files*; keyword options go to :class:`GraphBuilder`."""
    return GraphBuilder(**options).build(files)


def builder_from_config(reader: Optional[Reader] = None) -> GraphBuilder:
    """A builder using the ``[scanner]`` settings from the config file."""
    scanner = load_config()["scanner"]
    return GraphBuilder(
        reader=reader,
        workers=scanner["workers"],
        resolve_extensions=scanner["resolve_extensions"],
        component_window=scanner["component_window"],
    )