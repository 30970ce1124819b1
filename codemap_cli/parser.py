"""Source scanner: regex-based structural extraction per language.

Every supported language gets a :class:`LanguageScanner` that fills a
:class:`~codemap_cli.models.FileStructure` from file text.  The scanners are
deliberately shallow (no AST): they find imports, exports, declarations and
call sites with regular expressions and use the bracket matcher to delimit
bodies.  JavaScript/TypeScript lives in :mod:`codemap_cli.js_parser`; the
Python, Java and C# scanners are below.

:func:`scan_file` never raises.  A file that cannot be read or scanned comes
back as a degraded structure with ``language == "unknown"`` and ``error`` set.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import ApiEntry, Definition, ExportFact, FileStructure, ImportFact
from .positions import LineIndex, matching_close

logger = logging.getLogger(__name__)

Reader = Callable[[str], str]

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".cs": "csharp",
    ".go": "go",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".rs": "rust",
    ".c": "c",
    ".cpp": "cpp",
    ".h": "c",
    ".hpp": "cpp",
    ".dart": "dart",
}


def language_for(path: str) -> str:
    return LANGUAGE_MAP.get(os.path.splitext(path)[1].lower(), "unknown")


def read_source(path: str) -> str:
    """Default reader: strict UTF-8, so undecodable files surface as errors."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


# ===================================================================
# Shared helpers
# ===================================================================

_OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split *text* on *sep* outside any (), [], {} or <> nesting."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and depth > 0:
            # "=>" inside a default value is not a closing angle bracket
            if not (ch == ">" and current and current[-1] == "="):
                depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def split_params(text: str) -> List[str]:
    return split_top_level(" ".join(text.split()))


def strip_generics(name: str) -> str:
    idx = name.find("<")
    return (name[:idx] if idx != -1 else name).strip()


def skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


class LanguageScanner(ABC):
    """Abstract base class for per-language scanners."""

    language: str = "unknown"

    @abstractmethod
    def scan(self, text: str, structure: FileStructure) -> None:
        """Populate *structure* with the facts found in *text*."""
        ...

    @staticmethod
    def _located(index: LineIndex, offset: int) -> Dict[str, int]:
        line, column = index.locate(offset)
        return {"position": offset, "line": line, "column": column}


# ===================================================================
# Python
# ===================================================================

class PythonScanner(LanguageScanner):
    """Imports, classes (with bases) and functions/methods by indentation."""

    language = "python"

    _FROM_IMPORT = re.compile(r"^[ \t]*from[ \t]+([\w.]+)[ \t]+import[ \t]+(\([^)]*\)|[^#\n]+)", re.M)
    _IMPORT = re.compile(r"^[ \t]*import[ \t]+([^#\n]+)", re.M)
    _CLASS = re.compile(r"^([ \t]*)class[ \t]+(\w+)[ \t]*(?:\(([^)]*)\))?[ \t]*:", re.M)
    _DEF = re.compile(r"^([ \t]*)(async[ \t]+)?def[ \t]+(\w+)[ \t]*\(([^)]*)\)", re.M)
    _ALL = re.compile(r"^__all__\s*=\s*[\[(]([^\])]*)[\])]", re.M)

    def scan(self, text: str, structure: FileStructure) -> None:
        index = LineIndex(text)
        self._scan_imports(text, index, structure)

        blocks = self._blocks(text)
        for match in self._CLASS.finditer(text):
            indent, name, bases = len(match.group(1)), match.group(2), match.group(3) or ""
            parent = self._enclosing(blocks, match.start(), indent)
            if parent is not None and parent[2] == "def":
                continue
            base_names = [
                strip_generics(b) for b in split_top_level(bases)
                if "=" not in b and b.strip() not in ("object", "")
            ]
            structure.definitions.append(Definition(
                kind="class",
                name=name,
                extends=base_names[0] if base_names else None,
                interfaces=base_names[1:],
                body=index.span(match.end(), self._block_end(text, match.start(), indent)),
                **self._located(index, match.start() + indent),
            ))

        for match in self._DEF.finditer(text):
            indent = len(match.group(1))
            name = match.group(3)
            parent = self._enclosing(blocks, match.start(), indent)
            if parent is not None and parent[2] == "def":
                continue
            class_name = parent[3] if parent is not None else None
            params = split_params(match.group(4))
            definition = Definition(
                kind="method" if class_name else "function",
                name=name,
                params=params,
                is_async=bool(match.group(2)),
                class_name=class_name,
                body=index.span(match.end(), self._block_end(text, match.start(), indent)),
                **self._located(index, match.start() + indent),
            )
            structure.definitions.append(definition)
            if class_name:
                owner = structure.find(class_name, ("class",))
                if owner is not None and name not in owner.methods:
                    owner.methods.append(name)

        self._scan_exports(text, index, structure)

    def _scan_imports(self, text: str, index: LineIndex, structure: FileStructure) -> None:
        for match in self._FROM_IMPORT.finditer(text):
            names, aliases = self._import_names(match.group(2).strip("() \t"))
            structure.imports.append(ImportFact(
                kind="python_from",
                source=match.group(1),
                names=names,
                aliases=aliases,
                **self._located(index, match.start()),
            ))
        for match in self._IMPORT.finditer(text):
            for item in split_top_level(match.group(1)):
                module, _, alias = item.partition(" as ")
                module = module.strip()
                local = alias.strip() or module
                structure.imports.append(ImportFact(
                    kind="python_import",
                    source=module,
                    names=[local],
                    aliases={local: module} if alias.strip() else {},
                    **self._located(index, match.start()),
                ))
        structure.imports.sort(key=lambda imp: imp.position)

    @staticmethod
    def _import_names(text: str) -> Tuple[List[str], Dict[str, str]]:
        names: List[str] = []
        aliases: Dict[str, str] = {}
        for item in split_top_level(" ".join(text.replace("\\", " ").split())):
            original, _, alias = item.partition(" as ")
            local = alias.strip() or original.strip()
            names.append(local)
            if alias.strip():
                aliases[local] = original.strip()
        return names, aliases

    def _blocks(self, text: str) -> List[Tuple[int, int, str, str, int]]:
        """Return ``(start, end, kind, name, indent)`` for every class/def header."""
        blocks = []
        for kind, pattern, name_group in (("class", self._CLASS, 2), ("def", self._DEF, 3)):
            for match in pattern.finditer(text):
                indent = len(match.group(1))
                blocks.append((
                    match.start(),
                    self._block_end(text, match.start(), indent),
                    kind,
                    match.group(name_group),
                    indent,
                ))
        return blocks

    @staticmethod
    def _enclosing(blocks, offset: int, indent: int):
        """Innermost class/def block that strictly contains *offset*."""
        best = None
        for block in blocks:
            start, end, _kind, _name, block_indent = block
            if start < offset < end and block_indent < indent:
                if best is None or start > best[0]:
                    best = block
        return best

    @staticmethod
    def _block_end(text: str, header_start: int, indent: int) -> int:
        """Offset where the indented block opened at *header_start* ends."""
        line_end = text.find("\n", header_start)
        if line_end == -1:
            return len(text)
        pos = line_end + 1
        end = len(text)
        while pos < len(text):
            next_nl = text.find("\n", pos)
            line = text[pos: next_nl if next_nl != -1 else len(text)]
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                line_indent = len(line) - len(line.lstrip(" \t"))
                if line_indent <= indent and not stripped.startswith((")", "]", "}")):
                    end = pos
                    break
            if next_nl == -1:
                break
            pos = next_nl + 1
        return end

    def _scan_exports(self, text: str, index: LineIndex, structure: FileStructure) -> None:
        declared: Optional[List[str]] = None
        all_match = self._ALL.search(text)
        if all_match:
            declared = [n.strip().strip("'\"") for n in all_match.group(1).split(",") if n.strip()]
            for name in declared:
                structure.exports.append(ExportFact(
                    kind="named", name=name, **self._located(index, all_match.start()),
                ))

        for definition in structure.definitions:
            if definition.kind not in ("class", "function"):
                continue
            if declared is not None:
                exported = definition.name in declared
            else:
                exported = not definition.name.startswith("_")
            definition.is_exported = exported
            if exported:
                structure.public_api.append(ApiEntry(kind=definition.kind, name=definition.name))


# ===================================================================
# Java / C# (brace languages)
# ===================================================================

class _BraceLanguageScanner(LanguageScanner):
    """Shared logic for Java and C#: types delimited by braces, flat methods."""

    _CLASS: re.Pattern
    _INTERFACE: re.Pattern
    _METHOD: re.Pattern
    _NOT_METHODS = {"if", "for", "while", "switch", "catch", "return", "new", "else", "using", "lock"}

    def scan(self, text: str, structure: FileStructure) -> None:
        index = LineIndex(text)
        self._scan_header(text, index, structure)

        types: List[Tuple[int, int, Definition]] = []
        for kind, pattern in (("class", self._CLASS), ("interface", self._INTERFACE)):
            for match in pattern.finditer(text):
                if match.start() > 0 and text[match.start() - 1] == "@":
                    continue
                modifiers = match.group("mods") or ""
                definition = Definition(
                    kind=kind,
                    name=match.group("name"),
                    is_exported="public" in modifiers.split(),
                    **self._located(index, match.start("name")),
                )
                self._apply_inheritance(kind, match, definition)
                open_brace = match.end() - 1
                close = matching_close(text, open_brace)
                if close != -1:
                    definition.body = index.span(open_brace, close)
                    types.append((open_brace, close, definition))
                structure.definitions.append(definition)

        for match in self._METHOD.finditer(text):
            name = match.group("name")
            if name in self._NOT_METHODS or (match.group("rtype") or "") in self._NOT_METHODS:
                continue
            self._add_method(text, index, structure, types, match, name)

        # Constructors: "<modifier> ClassName(" inside that class's body.
        for start, end, owner in types:
            if owner.kind != "class":
                continue
            ctor = re.compile(r"(?:public|private|protected|internal)\s+(%s)\s*\(([^)]*)\)" % re.escape(owner.name))
            for match in ctor.finditer(text, start, end):
                self._add_method(text, index, structure, types, match, owner.name, params_group=2)

        for definition in structure.definitions:
            if definition.is_exported:
                structure.public_api.append(ApiEntry(
                    kind=definition.kind,
                    name=definition.name,
                    class_name=definition.class_name,
                ))

    def _add_method(self, text, index, structure, types, match, name, params_group="params") -> None:
        owner = self._innermost(types, match.start())
        modifiers = text[text.rfind("\n", 0, match.start()) + 1: match.start()] + match.group(0)
        definition = Definition(
            kind="method",
            name=name,
            params=split_params(match.group(params_group)),
            class_name=owner.name if owner else None,
            is_async="async " in modifiers,
            is_exported="public" in modifiers.split() and (owner is None or owner.is_exported),
            return_type=match.groupdict().get("rtype"),
            **self._located(index, match.start()),
        )
        body_start = self._body_start(text, match.end())
        if body_start != -1:
            close = matching_close(text, body_start)
            if close != -1:
                definition.body = index.span(body_start, close)
        structure.definitions.append(definition)
        if owner is not None and name not in owner.methods:
            owner.methods.append(name)

    @staticmethod
    def _body_start(text: str, pos: int) -> int:
        """Offset of the ``{`` opening a method body, or -1 for abstract/interface methods."""
        brace = text.find("{", pos)
        semi = text.find(";", pos)
        if brace == -1 or (semi != -1 and semi < brace):
            return -1
        between = text[pos:brace]
        if "=>" in between or "(" in between:
            return -1
        return brace

    @staticmethod
    def _innermost(types, offset: int) -> Optional[Definition]:
        best = None
        for start, end, definition in types:
            if start < offset < end and (best is None or start > best[0]):
                best = (start, end, definition)
        return best[2] if best else None

    @abstractmethod
    def _scan_header(self, text: str, index: LineIndex, structure: FileStructure) -> None:
        ...

    @abstractmethod
    def _apply_inheritance(self, kind: str, match: "re.Match[str]", definition: Definition) -> None:
        ...


_JAVA_MODS = r"(?P<mods>(?:(?:public|protected|private|abstract|final|static|sealed|non-sealed|strictfp)\s+)*)"


class JavaScanner(_BraceLanguageScanner):
    language = "java"

    _PACKAGE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.M)
    _IMPORT = re.compile(r"^\s*import\s+(static\s+)?([\w.]+(?:\.\*)?)\s*;", re.M)
    _CLASS = re.compile(
        _JAVA_MODS + r"\bclass\s+(?P<name>\w+)(?:\s*<[^{]*?>)?"
        r"(?:\s+extends\s+(?P<extends>[\w.]+)(?:\s*<[^{]*?>)?)?"
        r"(?:\s+implements\s+(?P<implements>[^{]+?))?\s*\{"
    )
    _INTERFACE = re.compile(
        _JAVA_MODS + r"\binterface\s+(?P<name>\w+)(?:\s*<[^{]*?>)?"
        r"(?:\s+extends\s+(?P<extends>[^{]+?))?\s*\{"
    )
    _METHOD = re.compile(
        r"(?:(?:public|private|protected|static|final|abstract|synchronized|native|default)\s+)+"
        r"(?:<[^>]+>\s+)?(?P<rtype>[\w.]+(?:<[^()]*?>)?(?:\[\])*)\s+(?P<name>\w+)\s*\((?P<params>[^)]*)\)"
    )

    def _scan_header(self, text: str, index: LineIndex, structure: FileStructure) -> None:
        package = self._PACKAGE.search(text)
        if package:
            structure.package = package.group(1)
        for match in self._IMPORT.finditer(text):
            path = match.group(2)
            last = path.rsplit(".", 1)[-1]
            structure.imports.append(ImportFact(
                kind="java",
                source=path,
                names=[] if last == "*" else [last],
                **self._located(index, match.start()),
            ))

    def _apply_inheritance(self, kind, match, definition) -> None:
        if kind == "class":
            if match.group("extends"):
                definition.extends = strip_generics(match.group("extends"))
            if match.group("implements"):
                definition.interfaces = [strip_generics(i) for i in split_top_level(match.group("implements"))]
        elif match.group("extends"):
            definition.interfaces = [strip_generics(i) for i in split_top_level(match.group("extends"))]


_CS_MODS = r"(?P<mods>(?:(?:public|private|protected|internal|abstract|sealed|static|partial|unsafe|new)\s+)*)"


class CSharpScanner(_BraceLanguageScanner):
    language = "csharp"

    _NAMESPACE = re.compile(r"namespace\s+([\w.]+)")
    _USING = re.compile(r"^\s*using\s+(static\s+)?(?:(\w+)\s*=\s*)?([\w.]+)\s*;", re.M)
    _CLASS = re.compile(
        _CS_MODS + r"\bclass\s+(?P<name>\w+)(?:\s*<[^{:]*?>)?"
        r"(?:\s*:\s*(?P<bases>[^{]+?))?(?:\s+where\s+[^{]+)?\s*\{"
    )
    _INTERFACE = re.compile(
        _CS_MODS + r"\binterface\s+(?P<name>\w+)(?:\s*<[^{:]*?>)?"
        r"(?:\s*:\s*(?P<bases>[^{]+?))?(?:\s+where\s+[^{]+)?\s*\{"
    )
    _METHOD = re.compile(
        r"(?:(?:public|private|protected|internal|static|virtual|override|abstract|sealed|async|extern|new)\s+)+"
        r"(?:<[^>]+>\s+)?(?P<rtype>[\w.]+(?:<[^()]*?>)?(?:\[\])*\??)\s+(?P<name>\w+)(?:<[^>(]*>)?\s*\((?P<params>[^)]*)\)"
    )
    _INTERFACE_NAME = re.compile(r"^I[A-Z]")

    def _scan_header(self, text: str, index: LineIndex, structure: FileStructure) -> None:
        namespace = self._NAMESPACE.search(text)
        if namespace:
            structure.namespace = namespace.group(1)
        for match in self._USING.finditer(text):
            alias = match.group(2)
            structure.imports.append(ImportFact(
                kind="using",
                source=match.group(3),
                names=[alias] if alias else [],
                aliases={alias: match.group(3)} if alias else {},
                **self._located(index, match.start()),
            ))

    def _apply_inheritance(self, kind, match, definition) -> None:
        bases = [strip_generics(b) for b in split_top_level(match.group("bases") or "")]
        if kind == "interface":
            definition.interfaces = bases
            return
        for base in bases:
            if self._INTERFACE_NAME.match(base.rsplit(".", 1)[-1]) or definition.extends is not None:
                definition.interfaces.append(base)
            else:
                definition.extends = base


# ===================================================================
# Dispatch
# ===================================================================

_SCANNERS: Dict[str, LanguageScanner] = {}


def get_scanner(
    language: str,
    path: str = "",
    component_window: Optional[int] = None,
) -> Optional[LanguageScanner]:
    """Return the scanner for *language*, or None when it has no scanner.

    JavaScript/TypeScript scanners are built per file because component
    detection depends on the file extension.
    """
    if language in ("javascript", "typescript"):
        from .js_parser import JavaScriptScanner
        return JavaScriptScanner(language=language, path=path, component_window=component_window)
    if not _SCANNERS:
        for scanner in (PythonScanner(), JavaScanner(), CSharpScanner()):
            _SCANNERS[scanner.language] = scanner
    return _SCANNERS.get(language)


def file_path_of(item: Any) -> str:
    """Accept ``str``, ``Path``, ``{"path": ...}`` or any object with ``.path``."""
    if isinstance(item, (str, Path)):
        return str(item)
    if isinstance(item, dict):
        return str(item["path"])
    return str(item.path)


def scan_file(
    file_path: Any,
    reader: Optional[Reader] = None,
    component_window: Optional[int] = None,
) -> FileStructure:
    """Scan one file into a :class:`FileStructure`; never raises."""
    path = file_path_of(file_path)
    try:
        text = (reader or read_source)(path)
        language = language_for(path)
        structure = FileStructure(path=path, language=language)
        scanner = get_scanner(language, path=path, component_window=component_window)
        if scanner is not None:
            scanner.scan(text, structure)
        return structure
    except Exception as exc:
        logger.warning("Failed to scan %s: %s", path, exc)
        return FileStructure.degraded(path, str(exc) or exc.__class__.__name__)


def scan_files(
    files: Iterable[Any],
    reader: Optional[Reader] = None,
    workers: int = 1,
    component_window: Optional[int] = None,
) -> List[FileStructure]:
    """Scan every file, returning one structure per input in input order.

    With ``workers > 1`` files are scanned on a thread pool; the call only
    returns once every scan has finished.
    """
    paths: Sequence[str] = [file_path_of(f) for f in files]

    def _scan(path: str) -> FileStructure:
        return scan_file(path, reader=reader, component_window=component_window)

    if workers <= 1 or len(paths) < 2:
        return [_scan(p) for p in paths]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(_scan, paths))
