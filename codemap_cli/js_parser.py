"""JavaScript / TypeScript scanner.

Extraction is regex-driven.  Bodies of functions, classes and methods are
delimited with :func:`~codemap_cli.positions.matching_close` so that call
sites can be attributed to the innermost enclosing function, and so that
class members are only looked for at class-body depth.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional, Set, Tuple

from . import config
from .models import (
    ApiEntry,
    CallArgument,
    Definition,
    EnumMember,
    ExportFact,
    FileStructure,
    ImportFact,
    MethodCall,
    TypeReference,
    Variable,
)
from .parser import LanguageScanner, split_params, split_top_level, strip_generics, skip_ws
from .positions import LineIndex, in_ranges, literal_ranges, matching_close, skip_string

logger = logging.getLogger(__name__)

# Names that look like calls but are statements or declarations.
CALL_KEYWORDS = {
    "if", "for", "while", "switch", "catch", "function", "return", "typeof",
    "with", "super", "import", "delete", "void", "await", "yield", "else", "do",
}

PRIMITIVE_TYPES = {
    "string", "number", "boolean", "any", "void", "null", "undefined",
    "never", "unknown", "object", "symbol", "bigint", "Function",
    "Object", "Array", "Map", "Set", "Promise", "Date", "RegExp",
    "Error", "String", "Number", "Boolean",
}

_ID = r"[A-Za-z_$][\w$]*"

_ES_IMPORT = re.compile(
    r"\bimport\s+(?:type\s+)?(?:(?P<clause>[\w$*{}\s,]+?)\s+from\s+)?['\"](?P<source>[^'\"]+)['\"]"
)
_REQUIRE_BINDING = re.compile(
    r"\b(?:const|let|var)\s+(?:\{(?P<destructured>[^}]*)\}|(?P<name>" + _ID + r"))\s*=\s*"
    r"require\(\s*['\"](?P<source>[^'\"]+)['\"]\s*\)"
)
_REQUIRE = re.compile(r"(?<![\w$.])require\(\s*['\"](?P<source>[^'\"]+)['\"]\s*\)")

_FUNCTION = re.compile(
    r"(?P<export>\bexport\s+(?:default\s+)?)?(?P<async>\basync\s+)?\bfunction\s*(?P<star>\*?)\s*"
    r"(?P<name>" + _ID + r")\s*(?:<[^>(]*>)?\s*\("
)
_FUNCTION_EXPR = re.compile(
    r"(?P<export>\bexport\s+)?\b(?:const|let|var)\s+(?P<name>" + _ID + r")\s*=\s*"
    r"(?P<async>async\s+)?function\s*(?P<star>\*?)\s*(?:" + _ID + r")?\s*\("
)
_ARROW = re.compile(
    r"(?P<export>\bexport\s+)?\b(?:const|let|var)\s+(?P<name>" + _ID + r")\s*(?::\s*[^=;]+?)?=\s*"
    r"(?P<async>async\s+)?(?:(?:<[^>]*>\s*)?\((?P<params>[^)]*)\)(?:\s*:\s*[^=;]+?)?|(?P<single>" + _ID + r"))\s*=>"
)
_CLASS = re.compile(
    r"(?P<export>\bexport\s+(?:default\s+)?)?(?:abstract\s+)?\bclass\s+(?P<name>" + _ID + r")(?:\s*<[^{]*?>)?"
    r"(?:\s+extends\s+(?P<extends>[\w$.]+)(?:\s*<[^{]*?>)?(?:\([^)]*\))?)?"
    r"(?:\s+implements\s+(?P<implements>[^{]+?))?\s*\{"
)
_METHOD = re.compile(
    r"(?P<mods>(?:(?:public|private|protected|static|async|readonly|abstract|override|get|set)\s+)*)"
    r"(?P<star>\*\s*)?(?P<name>#?" + _ID + r")\s*(?:<[^>(]*>)?\s*\((?P<params>(?:[^()]|\([^()]*\))*)\)\s*(?::\s*[^{;]+?)?\s*\{$"
)
_PROPERTY = re.compile(
    r"(?:^|;)[ \t]*(?P<mods>(?:(?:public|private|protected|static|readonly|declare|override)\s+)*)"
    r"(?P<name>#?" + _ID + r")\s*[?!]?\s*(?::\s*[^=;{}()]+?)?\s*(?P<assign>=(?![=>])|;)",
    re.M,
)
_ARROW_VALUE = re.compile(r"\s*(?P<async>async\s+)?(?:\((?P<params>[^)]*)\)|(?P<single>" + _ID + r"))\s*(?::[^=]+?)?=>\s*")
_INTERFACE = re.compile(
    r"(?P<export>\bexport\s+)?(?:declare\s+)?\binterface\s+(?P<name>" + _ID + r")(?:\s*<[^{]*?>)?"
    r"(?:\s+extends\s+(?P<extends>[^{]+?))?\s*\{"
)
_ENUM = re.compile(
    r"(?P<export>\bexport\s+)?(?:declare\s+)?(?P<const>const\s+)?\benum\s+(?P<name>" + _ID + r")\s*\{"
)
_TYPE_ALIAS = re.compile(r"(?P<export>\bexport\s+)?\btype\s+(?P<name>" + _ID + r")(?:\s*<[^=]*?>)?\s*=\s*")
_PROTO_METHOD = re.compile(
    r"(?P<cls>" + _ID + r")\.prototype\.(?P<name>" + _ID + r")\s*=\s*(?:async\s+)?function\s*\*?\s*(?:"
    + _ID + r")?\s*\((?P<params>[^)]*)\)"
)
_PROTO_INHERIT = re.compile(
    r"(?P<cls>" + _ID + r")\.prototype\s*=\s*(?:new\s+|Object\.create\s*\(\s*)(?P<parent>" + _ID + r")"
)
_OBJECT_METHOD = re.compile(r"(?<![\w$.])(?P<name>" + _ID + r")\s*:\s*(?:async\s+)?function\s*\*?\s*\((?P<params>[^)]*)\)")
_JSDOC = re.compile(
    r"/\*\*(?P<doc>[\s\S]*?)\*/\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?"
    r"(?:function\s*\*?\s*(?P<fn>" + _ID + r")|(?:const|let|var)\s+(?P<var>" + _ID + r"))"
)
_JSDOC_RETURNS = re.compile(r"@returns?\s+\{([^}]+)\}", re.I)
_JSDOC_PARAM = re.compile(r"@param\s+\{([^}]+)\}\s+\[?([\w$.]+)")

_REACT_IMPORT = re.compile(
    r"import\s+(?:\*\s+as\s+)?React\b|from\s+['\"]react['\"]|require\(\s*['\"]react['\"]\s*\)"
)
_JSX_TAG = re.compile(r"<[A-Z][\w.]*[\s/>]|(?:return|=>)\s*\(?\s*<[a-z][\w-]*[\s/>]")
_WRAPPED_COMPONENT = re.compile(
    r"(?P<export>\bexport\s+)?\b(?:const|let|var)\s+(?P<name>" + _ID + r")\s*(?::\s*[^=;]+?)?=\s*"
    r"(?:React\.)?(?P<wrapper>memo|forwardRef)\s*(?:<[^>]*>)?\("
)
_CLASS_COMPONENT_BASES = {
    "Component": "class_component",
    "React.Component": "class_component",
    "PureComponent": "pure_component",
    "React.PureComponent": "pure_component",
}
_HOOK = re.compile(
    r"(?P<export>\bexport\s+)?(?:\bfunction\s*|\b(?:const|let|var)\s+)(?P<name>use[A-Z][\w$]*)\s*(?:\(|=|<|:)"
)

_NAMED_EXPORT = re.compile(
    r"\bexport\s+(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:const|let|var|function\s*\*?|class|interface|enum|type)\s+(?P<name>" + _ID + r")"
)
_DEFAULT_EXPORT = re.compile(
    r"\bexport\s+default\s+(?:async\s+)?(?:(?:function\s*\*?|class)\s*)?(?P<name>" + _ID + r")?"
)
_EXPORT_LIST = re.compile(r"\bexport\s+(?:type\s+)?\{(?P<names>[^}]*)\}(?:\s*from\s*['\"](?P<source>[^'\"]+)['\"])?")
_EXPORT_STAR = re.compile(r"\bexport\s*\*\s*(?:as\s+(?P<alias>" + _ID + r")\s*)?from\s*['\"](?P<source>[^'\"]+)['\"]")
_MODULE_EXPORTS = re.compile(r"\bmodule\.exports\s*=\s*")
_EXPORTS_PROPERTY = re.compile(r"(?<![\w$])(?:module\.)?exports\.(?P<key>" + _ID + r")\s*=(?!=)\s*(?P<value>" + _ID + r")?")

_VARIABLE = re.compile(r"\b(?P<kind>const|let|var)\s+(?P<name>" + _ID + r")\s*(?::\s*[^=;]+?)?=(?![=>])\s*")
_CALL = re.compile(
    r"(?<![\w$])(?:(?P<receiver>" + _ID + r")\s*\??\.\s*)?(?P<name>" + _ID + r")\s*(?:<[^<>()]*>)?\s*\("
)
_TYPE_REF_PATTERNS = [
    re.compile(r":\s*(" + _ID + r"(?:\.[A-Z][\w$]*)?(?:<[^>]+>)?)"),
    re.compile(r"<(" + _ID + r"(?:\.[A-Z][\w$]*)?(?:<[^>]+>)?)>"),
    re.compile(r"\bextends\s+(" + _ID + r"(?:\.[A-Z][\w$]*)?(?:<[^>]+>)?)"),
    re.compile(r"\bimplements\s+(" + _ID + r"(?:\.[A-Z][\w$]*)?(?:<[^>]+>)?)"),
    re.compile(r"\bas\s+(" + _ID + r"(?:\.[A-Z][\w$]*)?(?:<[^>]+>)?)"),
    re.compile(r"\binstanceof\s+(" + _ID + r"(?:\.[A-Z][\w$]*)?)"),
]
_CAPITALISED = re.compile(r"\b[A-Z][\w$]*(?:\.[A-Z][\w$]*)?")


def is_primitive_or_builtin(type_name: str) -> bool:
    return strip_generics(type_name) in PRIMITIVE_TYPES


def classify_value(value: str) -> str:
    """Rough type of a variable initialiser."""
    value = value.strip()
    if value.startswith("{") and value.endswith("}"):
        return "object"
    if value.startswith("[") and value.endswith("]"):
        return "array"
    if re.match(r"(?:async\s+)?function\b", value):
        return "function"
    if value.startswith("class") and re.match(r"class\b", value):
        return "class"
    if value[:1] in ("'", '"', "`"):
        return "string"
    if "=>" in value:
        return "arrow_function"
    if value.startswith("new "):
        return "instance"
    if value in ("true", "false"):
        return "boolean"
    if value in ("null", "undefined"):
        return value
    if _is_number(value):
        return "number"
    return "unknown"


def classify_argument(arg: str) -> str:
    if arg == "":
        return "empty"
    if arg[:1] in ("'", '"', "`"):
        return "string"
    if _is_number(arg):
        return "number"
    if arg in ("true", "false"):
        return "boolean"
    if arg in ("null", "undefined"):
        return arg
    if arg.startswith("{") and arg.endswith("}"):
        return "object"
    if arg.startswith("[") and arg.endswith("]"):
        return "array"
    if "=>" in arg:
        return "arrow_function"
    if arg.startswith("function"):
        return "function"
    return "identifier"


def _is_number(text: str) -> bool:
    try:
        float(text.replace("_", ""))
        return True
    except ValueError:
        return re.fullmatch(r"0[xXbBoO][0-9a-fA-F_]+n?|\d[\d_]*n", text) is not None


def expression_end(text: str, pos: int) -> int:
    """End offset of the expression starting at *pos* (exclusive).

    Stops at ``;``, ``,`` or a newline at bracket depth zero, or at a closing
    bracket that belongs to the surrounding context.
    """
    i = pos
    length = len(text)
    while i < length:
        ch = text[i]
        if ch in "([{":
            close = matching_close(text, i)
            if close == -1:
                return length
            i = close + 1
            continue
        if ch in ("'", '"', "`"):
            i = skip_string(text, i)
            continue
        if ch in ";,\n)]}":
            return i
        i += 1
    return length


def _code_runs(text: str) -> List[Tuple[int, int]]:
    """Stretches of *text* outside string literals and comments."""
    runs: List[Tuple[int, int]] = []
    pos = 0
    for start, end in literal_ranges(text):
        if start > pos:
            runs.append((pos, start))
        pos = end
    if pos < len(text):
        runs.append((pos, len(text)))
    return runs


class JavaScriptScanner(LanguageScanner):
    """Scanner for ``.js``, ``.jsx``, ``.ts`` and ``.tsx`` files."""

    def __init__(
        self,
        language: str = "javascript",
        path: str = "",
        component_window: Optional[int] = None,
    ) -> None:
        self.language = language
        self.path = path
        self.component_window = component_window or config.DEFAULT_COMPONENT_WINDOW

    def scan(self, text: str, structure: FileStructure) -> None:
        scan = _FileScan(text, structure, self)
        scan.run()


class _FileScan:
    """State for scanning one file; discarded afterwards."""

    def __init__(self, text: str, structure: FileStructure, scanner: JavaScriptScanner) -> None:
        self.text = text
        self.structure = structure
        self.scanner = scanner
        self.index = LineIndex(text)
        # (body_start, body_end, definition) for call attribution
        self.bodies: List[Tuple[int, int, Definition]] = []
        # (start, end) of declaration headers; calls found there are declarations
        self.headers: List[Tuple[int, int]] = []
        # (start, end) of class bodies
        self.class_bodies: List[Tuple[int, int]] = []

    def loc(self, offset: int) -> Dict[str, int]:
        line, column = self.index.locate(offset)
        return {"position": offset, "line": line, "column": column}

    def run(self) -> None:
        self.extract_imports()
        self.extract_functions()
        self.extract_classes()
        self.extract_prototypes()
        self.extract_object_methods()
        self.extract_interfaces()
        self.extract_enums()
        self.extract_jsdoc()
        self.extract_exports()
        self.extract_type_aliases()
        self.extract_components()
        self.extract_hooks()
        self.mark_exported()
        self.extract_variables()
        self.extract_calls()
        self.extract_type_references()
        self.extract_public_api()

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def extract_imports(self) -> None:
        text = self.text
        imports = self.structure.imports
        covered: List[Tuple[int, int]] = []

        for match in _ES_IMPORT.finditer(text):
            source = match.group("source")
            clause = (match.group("clause") or "").strip()
            loc = self.loc(match.start())
            if not clause:
                imports.append(ImportFact(kind="side_effect", source=source, **loc))
                continue

            named = re.search(r"\{([^}]*)\}", clause)
            rest = re.sub(r"\{[^}]*\}", "", clause)
            for part in split_top_level(rest):
                ns = re.match(r"\*\s*as\s+(" + _ID + r")", part)
                if ns:
                    imports.append(ImportFact(kind="namespace", source=source, names=[ns.group(1)], **loc))
                elif re.fullmatch(_ID, part):
                    imports.append(ImportFact(kind="default", source=source, names=[part], **loc))
            if named:
                names, aliases = self._binding_list(named.group(1), " as ")
                imports.append(ImportFact(kind="named", source=source, names=names, aliases=aliases, **loc))

        for match in _REQUIRE_BINDING.finditer(text):
            covered.append((match.start(), match.end()))
            loc = self.loc(match.start())
            source = match.group("source")
            if match.group("destructured") is not None:
                names, aliases = self._binding_list(match.group("destructured"), ":")
                imports.append(ImportFact(
                    kind="commonjs_destructured", source=source, names=names, aliases=aliases, **loc,
                ))
            else:
                imports.append(ImportFact(kind="commonjs", source=source, names=[match.group("name")], **loc))

        for match in _REQUIRE.finditer(text):
            if any(start <= match.start() < end for start, end in covered):
                continue
            imports.append(ImportFact(kind="side_effect", source=match.group("source"), **self.loc(match.start())))

        imports.sort(key=lambda imp: imp.position)

    @staticmethod
    def _binding_list(text: str, alias_sep: str) -> Tuple[List[str], Dict[str, str]]:
        """Parse ``a, b as c`` (ES) or ``a, b: c`` (destructuring) into locals + aliases."""
        names: List[str] = []
        aliases: Dict[str, str] = {}
        for item in split_top_level(" ".join(text.split())):
            item = re.sub(r"^type\s+", "", item)
            item = item.split("=", 1)[0].strip()
            if item.startswith("..."):
                continue
            original, sep, local = item.partition(alias_sep)
            original, local = original.strip(), local.strip()
            if sep and local:
                names.append(local)
                aliases[local] = original
            elif original:
                names.append(original)
        return names, aliases

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def extract_functions(self) -> None:
        text = self.text
        for match in _FUNCTION.finditer(text):
            if self._preceded_by_assignment(match.start()):
                # "const x = function name()" is a function expression, named x
                continue
            self._function_match(match)

        for match in _FUNCTION_EXPR.finditer(text):
            self._function_match(match)

        for match in _ARROW.finditer(text):
            if match.group("single") is not None:
                params = [match.group("single")]
            else:
                params = split_params(match.group("params") or "")
            definition = Definition(
                kind="arrow_function",
                name=match.group("name"),
                params=params,
                is_exported=bool(match.group("export")),
                is_async=bool(match.group("async")),
                **self.loc(match.start()),
            )
            self.structure.definitions.append(definition)
            body_start = skip_ws(text, match.end())
            self.headers.append((match.start(), body_start))
            if body_start < len(text) and text[body_start] == "{":
                body_end = matching_close(text, body_start)
                if body_end == -1:
                    continue
            else:
                body_end = expression_end(text, body_start)
            definition.body = self.index.span(body_start, body_end)
            self.bodies.append((body_start, body_end, definition))

    def _function_match(self, match: "re.Match[str]") -> None:
        # The pattern stops at "("; defaults may hold calls, so match the parens.
        open_paren = match.end() - 1
        close_paren = matching_close(self.text, open_paren)
        if close_paren == -1:
            logger.debug("Unbalanced parameters for %s in %s", match.group("name"), self.structure.path)
            return
        definition = Definition(
            kind="function",
            name=match.group("name"),
            params=split_params(self.text[open_paren + 1:close_paren]),
            is_exported=bool(match.group("export")),
            is_generator=match.group("star") == "*",
            is_async=bool(match.group("async")),
            **self.loc(match.start()),
        )
        self._add_function(definition, match.start(), self._body_open(close_paren + 1))

    def _add_function(self, definition: Definition, start: int, body_open: int) -> None:
        self.structure.definitions.append(definition)
        self.headers.append((start, body_open if body_open != -1 else start + 1))
        if body_open == -1:
            return
        body_end = matching_close(self.text, body_open)
        if body_end == -1:
            logger.debug("Unbalanced body for %s in %s", definition.name, self.structure.path)
            return
        definition.body = self.index.span(body_open, body_end)
        self.bodies.append((body_open, body_end, definition))

    def _body_open(self, pos: int) -> int:
        """Offset of the ``{`` opening a body after a signature, or -1 (overloads, declarations)."""
        text = self.text
        brace = text.find("{", pos)
        if brace == -1:
            return -1
        between = text[pos:brace]
        if ";" in between or "=>" in between or "\n\n" in between:
            return -1
        # A return type annotation may sit between ")" and "{".
        if between.strip() and not between.strip().startswith(":"):
            return -1
        return brace

    def _preceded_by_assignment(self, offset: int) -> bool:
        before = self.text[max(0, offset - 3):offset].rstrip()
        return before.endswith("=")

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def extract_classes(self) -> None:
        text = self.text
        for match in _CLASS.finditer(text):
            name = match.group("name")
            definition = Definition(
                kind="class",
                name=name,
                extends=match.group("extends"),
                interfaces=[strip_generics(i) for i in split_top_level(match.group("implements") or "")],
                is_exported=bool(match.group("export")),
                **self.loc(match.start()),
            )
            self.structure.definitions.append(definition)
            body_open = match.end() - 1
            self.headers.append((match.start(), body_open))
            body_close = matching_close(text, body_open)
            if body_close == -1:
                logger.debug("Unbalanced class body for %s in %s", name, self.structure.path)
                continue
            definition.body = self.index.span(body_open, body_close)
            self.class_bodies.append((body_open, body_close))
            self._extract_members(definition, body_open + 1, body_close)

    def _extract_members(self, owner: Definition, start: int, end: int) -> None:
        """Find methods and properties at class-body depth only."""
        text = self.text
        for seg_start, seg_end in self._top_level_segments(start, end):
            segment = text[seg_start:seg_end]
            header_limit = len(segment)
            method = None
            if segment.endswith("{"):
                # The last statement of the segment opens a nested block.
                method = _METHOD.search(segment, self._statement_start(segment))
                if method and method.group("name") not in CALL_KEYWORDS:
                    self._add_method(owner, method, seg_start, seg_end - 1)
                    header_limit = method.start()
                else:
                    method = None

            for prop in _PROPERTY.finditer(segment, 0, header_limit):
                name = prop.group("name")
                if name in CALL_KEYWORDS or name in ("constructor",):
                    continue
                value_start = seg_start + prop.end()
                arrow = _ARROW_VALUE.match(text, value_start) if prop.group("assign") == "=" else None
                if arrow is not None and arrow.end() <= end:
                    self._add_arrow_method(owner, prop, arrow, seg_start)
                elif name not in owner.properties:
                    owner.properties.append(name)

    def _add_method(self, owner: Definition, match: "re.Match[str]", seg_start: int, body_open: int) -> None:
        mods = match.group("mods").split()
        name = match.group("name")
        definition = Definition(
            kind="method",
            name=name,
            params=split_params(match.group("params")),
            class_name=owner.name,
            is_async="async" in mods,
            is_generator=bool(match.group("star")),
            is_exported=not ({"private", "protected"} & set(mods)) and not name.startswith("#"),
            **self.loc(seg_start + match.start("name")),
        )
        self.structure.definitions.append(definition)
        self.headers.append((seg_start + match.start(), body_open))
        if name not in owner.methods:
            owner.methods.append(name)
        body_close = matching_close(self.text, body_open)
        if body_close != -1:
            definition.body = self.index.span(body_open, body_close)
            self.bodies.append((body_open, body_close, definition))

    def _add_arrow_method(self, owner, prop, arrow, seg_start: int) -> None:
        text = self.text
        name = prop.group("name")
        params = [arrow.group("single")] if arrow.group("single") else split_params(arrow.group("params") or "")
        definition = Definition(
            kind="method",
            name=name,
            params=params,
            class_name=owner.name,
            is_async=bool(arrow.group("async")),
            is_exported="private" not in prop.group("mods") and not name.startswith("#"),
            **self.loc(seg_start + prop.start("name")),
        )
        self.structure.definitions.append(definition)
        body_start = arrow.end()
        self.headers.append((seg_start + prop.start("name"), body_start))
        if name not in owner.methods:
            owner.methods.append(name)
        if body_start < len(text) and text[body_start] == "{":
            body_end = matching_close(text, body_start)
        else:
            body_end = expression_end(text, body_start)
        if body_end != -1:
            definition.body = self.index.span(body_start, body_end)
            self.bodies.append((body_start, body_end, definition))

    def _top_level_segments(self, start: int, end: int) -> List[Tuple[int, int]]:
        """Split ``text[start:end]`` into the stretches outside nested ``{}`` blocks.

        Each segment that is followed by a nested block ends with its ``{``.
        Braces inside parentheses (destructured or defaulted parameters) are
        skipped without splitting.
        """
        text = self.text
        segments: List[Tuple[int, int]] = []
        seg_start = start
        parens = 0
        i = start
        while i < end:
            ch = text[i]
            if ch in ("'", '"', "`"):
                i = skip_string(text, i)
                continue
            if ch == "/" and i + 1 < end and text[i + 1] in "/*":
                if text[i + 1] == "/":
                    newline = text.find("\n", i)
                    i = end if newline == -1 else newline + 1
                else:
                    close = text.find("*/", i + 2)
                    i = end if close == -1 else close + 2
                continue
            if ch == "(":
                parens += 1
            elif ch == ")":
                parens = max(0, parens - 1)
            elif ch == "{":
                if not parens:
                    segments.append((seg_start, i + 1))
                close = matching_close(text, i)
                if close == -1 or close >= end:
                    return segments
                i = close + 1
                if not parens:
                    seg_start = i
                continue
            i += 1
        if seg_start < end:
            segments.append((seg_start, end))
        return segments

    @staticmethod
    def _statement_start(segment: str) -> int:
        """Offset just past the last ``;`` or ``}`` of *segment* outside parentheses."""
        last = 0
        parens = 0
        for start, end in _code_runs(segment):
            for i in range(start, end):
                ch = segment[i]
                if ch == "(":
                    parens += 1
                elif ch == ")":
                    parens = max(0, parens - 1)
                elif ch in ";}" and not parens:
                    last = i + 1
        return last

    # ------------------------------------------------------------------
    # Prototypes and object methods
    # ------------------------------------------------------------------

    def extract_prototypes(self) -> None:
        text = self.text
        proto: Dict[str, Definition] = {}

        def _proto_class(name: str, offset: int) -> Definition:
            if name not in proto:
                proto[name] = Definition(kind="prototype_class", name=name, **self.loc(offset))
            return proto[name]

        for match in _PROTO_METHOD.finditer(text):
            owner = _proto_class(match.group("cls"), match.start())
            name = match.group("name")
            if name not in owner.methods:
                owner.methods.append(name)
            method = Definition(
                kind="method",
                name=name,
                params=split_params(match.group("params")),
                class_name=owner.name,
                is_exported=True,
                **self.loc(match.start()),
            )
            self._add_function(method, match.start(), self._body_open(match.end()))

        for match in _PROTO_INHERIT.finditer(text):
            _proto_class(match.group("cls"), match.start()).extends = match.group("parent")

        self.structure.definitions.extend(proto.values())

    def extract_object_methods(self) -> None:
        for match in _OBJECT_METHOD.finditer(self.text):
            if match.group("name") in CALL_KEYWORDS:
                continue
            definition = Definition(
                kind="object_method",
                name=match.group("name"),
                params=split_params(match.group("params")),
                **self.loc(match.start()),
            )
            self.structure.definitions.append(definition)

    # ------------------------------------------------------------------
    # Interfaces, enums, type aliases
    # ------------------------------------------------------------------

    def extract_interfaces(self) -> None:
        for match in _INTERFACE.finditer(self.text):
            extends = [strip_generics(i) for i in split_top_level(match.group("extends") or "")]
            definition = Definition(
                kind="interface",
                name=match.group("name"),
                interfaces=extends,
                is_exported=bool(match.group("export")),
                **self.loc(match.start()),
            )
            self.structure.definitions.append(definition)
            body_open = match.end() - 1
            body_close = matching_close(self.text, body_open)
            if body_close != -1:
                definition.body = self.index.span(body_open, body_close)
                # Member signatures like "area(): number;" are not calls.
                self.headers.append((match.start(), body_close))

    def extract_enums(self) -> None:
        text = self.text
        for match in _ENUM.finditer(text):
            body_open = match.end() - 1
            body_close = matching_close(text, body_open)
            if body_close == -1:
                continue
            members = []
            for item in split_top_level(text[body_open + 1: body_close]):
                name, _, value = item.partition("=")
                name = name.strip().strip("'\"")
                if re.fullmatch(r"[\w$]+", name):
                    members.append(EnumMember(name=name, value=value.strip() or None))
            self.structure.definitions.append(Definition(
                kind="enum",
                name=match.group("name"),
                members=members,
                is_const=bool(match.group("const")),
                is_exported=bool(match.group("export")),
                body=self.index.span(body_open, body_close),
                **self.loc(match.start()),
            ))

    def extract_type_aliases(self) -> None:
        text = self.text
        for match in _TYPE_ALIAS.finditer(text):
            if not match.group("export"):
                continue
            start = match.end()
            if text[start:start + 1] == "{":
                close = matching_close(text, start)
                end = len(text) if close == -1 else close + 1
            else:
                end = self._statement_end(start)
            self.structure.public_api.append(ApiEntry(
                kind="type_alias",
                name=match.group("name"),
                detail={"value": " ".join(text[start:end].split())},
            ))

    def _statement_end(self, pos: int) -> int:
        """End of a type expression: ``;`` or a newline at bracket depth zero."""
        text = self.text
        i = pos
        while i < len(text):
            ch = text[i]
            if ch in "([{<":
                close = matching_close(text, i) if ch != "<" else text.find(">", i)
                if close == -1:
                    return len(text)
                i = close + 1
                continue
            if ch in ";\n":
                # A union continued on the next line keeps going.
                if ch == "\n" and text[i:].lstrip().startswith(("|", "&")):
                    i += 1
                    continue
                return i
            i += 1
        return len(text)

    # ------------------------------------------------------------------
    # JSDoc
    # ------------------------------------------------------------------

    def extract_jsdoc(self) -> None:
        for match in _JSDOC.finditer(self.text):
            name = match.group("fn") or match.group("var")
            target = self.structure.find(name, ("function", "arrow_function"))
            if target is None:
                continue
            doc = match.group("doc")
            returns = _JSDOC_RETURNS.search(doc)
            if returns:
                target.return_type = returns.group(1).strip()
            for param in _JSDOC_PARAM.finditer(doc):
                target.param_types[param.group(2)] = param.group(1).strip()

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def extract_exports(self) -> None:
        text = self.text
        exports = self.structure.exports
        for match in _NAMED_EXPORT.finditer(text):
            exports.append(ExportFact(kind="named", name=match.group("name"), **self.loc(match.start())))

        for match in _DEFAULT_EXPORT.finditer(text):
            exports.append(ExportFact(
                kind="default", name=match.group("name") or "anonymous", **self.loc(match.start()),
            ))

        for match in _EXPORT_LIST.finditer(text):
            loc = self.loc(match.start())
            names, aliases = self._binding_list(match.group("names"), " as ")
            for local in names:
                original = aliases.get(local, local)
                exports.append(ExportFact(
                    kind="named",
                    name=original,
                    export_name=local if local != original else None,
                    **loc,
                ))
            if match.group("source"):
                # Re-exports are dependencies too.
                self.structure.imports.append(ImportFact(
                    kind="named",
                    source=match.group("source"),
                    names=[aliases.get(n, n) for n in names],
                    **loc,
                ))

        for match in _EXPORT_STAR.finditer(text):
            loc = self.loc(match.start())
            alias = match.group("alias")
            exports.append(ExportFact(kind="named", name=alias or "*", **loc))
            self.structure.imports.append(ImportFact(
                kind="namespace", source=match.group("source"), names=[alias or "*"], **loc,
            ))

        for match in _MODULE_EXPORTS.finditer(text):
            value_start = match.end()
            loc = self.loc(match.start())
            if text[value_start:value_start + 1] == "{":
                close = matching_close(text, value_start)
                if close == -1:
                    continue
                for key, value in self._object_entries(text[value_start + 1: close]):
                    exports.append(ExportFact(
                        kind="commonjs",
                        name=value,
                        export_name=key if key != value else None,
                        **loc,
                    ))
                continue
            single = re.match(r"(?:(?:async\s+)?function\s*\*?\s*|class\s+)?(" + _ID + r")", text[value_start:])
            if single and single.group(1) not in ("require", "function", "class"):
                exports.append(ExportFact(kind="commonjs", name=single.group(1), **loc))

        for match in _EXPORTS_PROPERTY.finditer(text):
            key = match.group("key")
            exports.append(ExportFact(
                kind="commonjs_property",
                name=match.group("value") or key,
                export_name=key,
                **self.loc(match.start()),
            ))

        exports.sort(key=lambda e: e.position)
        self.structure.imports.sort(key=lambda imp: imp.position)

    @staticmethod
    def _object_entries(body: str) -> List[Tuple[str, str]]:
        """``(key, value-name)`` pairs of an object literal's top-level entries."""
        entries: List[Tuple[str, str]] = []
        for item in split_top_level(body):
            if item.startswith("..."):
                continue
            shorthand_method = re.match(r"(?:async\s+)?\*?\s*(" + _ID + r")\s*\(", item)
            if shorthand_method:
                entries.append((shorthand_method.group(1), shorthand_method.group(1)))
                continue
            key, sep, value = item.partition(":")
            key = key.strip().strip("'\"")
            value = value.strip()
            if not sep:
                entries.append((key, key))
            elif re.fullmatch(_ID, value):
                entries.append((key, value))
            else:
                entries.append((key, key))
        return entries

    def exported_names(self) -> Set[str]:
        names: Set[str] = set()
        for export in self.structure.exports:
            names.add(export.name)
            if export.export_name:
                names.add(export.export_name)
        return names

    # ------------------------------------------------------------------
    # Components and hooks
    # ------------------------------------------------------------------

    def extract_components(self) -> None:
        text = self.text
        ext = os.path.splitext(self.scanner.path)[1].lower()
        if ext not in (".jsx", ".tsx") and not _REACT_IMPORT.search(text):
            return

        window = self.scanner.component_window
        components: List[Definition] = []
        seen: Set[str] = set()

        for definition in list(self.structure.definitions):
            if definition.kind not in ("function", "arrow_function") or not definition.name[:1].isupper():
                continue
            if len(definition.params) > 1:
                continue
            chunk = text[definition.position: definition.position + window]
            if _JSX_TAG.search(chunk):
                components.append(Definition(
                    kind="functional_component",
                    name=definition.name,
                    style="arrow" if definition.kind == "arrow_function" else "function",
                    is_exported=definition.is_exported,
                    params=list(definition.params),
                    position=definition.position,
                    line=definition.line,
                    column=definition.column,
                ))
                seen.add(definition.name)

        for definition in list(self.structure.definitions):
            kind = _CLASS_COMPONENT_BASES.get(definition.extends or "") if definition.kind == "class" else None
            if kind and definition.name not in seen:
                components.append(Definition(
                    kind=kind,
                    name=definition.name,
                    is_exported=definition.is_exported,
                    position=definition.position,
                    line=definition.line,
                    column=definition.column,
                ))
                seen.add(definition.name)

        for match in _WRAPPED_COMPONENT.finditer(text):
            name = match.group("name")
            if name in seen:
                continue
            components.append(Definition(
                kind="memo_component" if match.group("wrapper") == "memo" else "forwardref_component",
                name=name,
                is_exported=bool(match.group("export")),
                **self.loc(match.start()),
            ))
            seen.add(name)

        for component in components:
            props = re.search(
                r"\b(?:interface|type)\s+(%s(?:Props|Properties))\b" % re.escape(component.name), text,
            )
            if props:
                component.props_type = props.group(1)
            self.structure.definitions.append(component)

    def extract_hooks(self) -> None:
        seen: Set[str] = set()
        for match in _HOOK.finditer(self.text):
            name = match.group("name")
            if name in seen:
                continue
            seen.add(name)
            self.structure.definitions.append(Definition(
                kind="hook",
                name=name,
                is_exported=bool(match.group("export")),
                **self.loc(match.start()),
            ))

    def mark_exported(self) -> None:
        names = self.exported_names()
        for definition in self.structure.definitions:
            if definition.kind in ("method", "object_method"):
                continue
            if definition.name in names:
                definition.is_exported = True

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def extract_variables(self) -> None:
        text = self.text
        nested = [(s, e) for s, e, _ in self.bodies] + self.class_bodies
        for match in _VARIABLE.finditer(text):
            if any(s < match.start() < e for s, e in nested):
                continue
            value_start = match.end()
            if text[value_start:value_start + 1] in ("{", "["):
                close = matching_close(text, value_start)
                value_end = len(text) if close == -1 else close + 1
            else:
                value_end = expression_end(text, value_start)
                # Arrow and function values carry their body along.
                head = text[value_start:value_end]
                if "=>" in head or re.match(r"(?:async\s+)?function\b|class\b", head):
                    brace = text.find("{", value_start)
                    if brace != -1 and brace <= value_end + 1:
                        close = matching_close(text, brace)
                        value_end = value_end if close == -1 else close + 1
            value = text[value_start:value_end].strip()
            self.structure.variables.append(Variable(
                name=match.group("name"),
                kind=match.group("kind"),
                value=value,
                value_type=classify_value(value),
                **self.loc(match.start()),
            ))

    # ------------------------------------------------------------------
    # Call sites
    # ------------------------------------------------------------------

    def extract_calls(self) -> None:
        text = self.text
        literals = literal_ranges(text)
        for match in _CALL.finditer(text):
            name = match.group("name")
            receiver = match.group("receiver")
            start = match.start()
            if name in CALL_KEYWORDS or receiver in ("function",):
                continue
            if in_ranges(literals, start):
                continue
            if re.search(r"\bfunction\s*\*?\s*$", text[max(0, start - 12):start]):
                continue
            if any(h_start <= start < h_end for h_start, h_end in self.headers):
                continue
            open_paren = match.end() - 1
            close_paren = matching_close(text, open_paren)
            if close_paren == -1:
                continue
            after = skip_ws(text, close_paren + 1)
            if text[after:after + 1] == "{":
                # "name(...) {" is a declaration, not a call
                continue
            args_text = text[open_paren + 1: close_paren]
            args = [CallArgument(text=a, type=classify_argument(a)) for a in split_top_level(" ".join(args_text.split()))]
            owner = self._innermost_body(start)
            self.structure.method_calls.append(MethodCall(
                name=name,
                receiver=receiver,
                args=args,
                containing_function=owner.name if owner else None,
                containing_class=owner.class_name if owner else None,
                **self.loc(start),
            ))

    def _innermost_body(self, offset: int) -> Optional[Definition]:
        best: Optional[Tuple[int, int, Definition]] = None
        for start, end, definition in self.bodies:
            if start <= offset < end and (best is None or start > best[0]):
                best = (start, end, definition)
        return best[2] if best else None

    # ------------------------------------------------------------------
    # Type references
    # ------------------------------------------------------------------

    def extract_type_references(self) -> None:
        seen: Dict[str, TypeReference] = {}
        for pattern in _TYPE_REF_PATTERNS:
            for match in pattern.finditer(self.text):
                raw = match.group(1).strip()
                names = [strip_generics(raw)]
                generic = raw.find("<")
                if generic != -1:
                    names.extend(_CAPITALISED.findall(raw[generic:]))
                for name in names:
                    if not name or not name[0].isupper() or is_primitive_or_builtin(name):
                        continue
                    offset = match.start(1)
                    existing = seen.get(name)
                    if existing is None or offset < existing.position:
                        seen[name] = TypeReference(
                            name=name,
                            module=name.split(".", 1)[0] if "." in name else None,
                            **self.loc(offset),
                        )
        self.structure.type_references.extend(sorted(seen.values(), key=lambda ref: ref.position))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract_public_api(self) -> None:
        api = self.structure.public_api
        type_aliases = [entry for entry in api if entry.kind == "type_alias"]
        api.clear()

        for definition in self.structure.definitions:
            if not definition.is_exported:
                continue
            if definition.kind in ("function", "arrow_function"):
                api.append(ApiEntry(kind="function", name=definition.name))
            elif definition.kind == "class":
                api.append(ApiEntry(kind="class", name=definition.name))
                self._class_members_api(definition)
            elif definition.kind == "interface":
                api.append(ApiEntry(kind="interface", name=definition.name,
                                    detail={"extends": list(definition.interfaces)}))
            elif definition.kind == "enum":
                api.append(ApiEntry(kind="enum", name=definition.name,
                                    detail={"members": [m.name for m in definition.members]}))
            elif definition.kind == "hook":
                api.append(ApiEntry(kind="hook", name=definition.name))
            elif definition.kind in ("functional_component", "class_component", "pure_component",
                                     "memo_component", "forwardref_component"):
                api.append(ApiEntry(kind="component", name=definition.name,
                                    detail={"component_type": definition.kind}))

        api.extend(type_aliases)
        for export in self.structure.exports:
            if export.name == "anonymous":
                continue
            detail: Dict[str, object] = {}
            if export.kind == "default":
                detail["is_default"] = True
            if export.export_name:
                detail["export_name"] = export.export_name
            api.append(ApiEntry(kind="export", name=export.name, detail=detail))

    def _class_members_api(self, owner: Definition) -> None:
        text = self.text
        api = self.structure.public_api
        if owner.body is not None:
            body = text[owner.body.start.position: owner.body.end.position]
            for match in re.finditer(r"\bpublic\s+(?:readonly\s+)?(" + _ID + r")\s*[?!]?\s*(?::\s*([^;=]+))?(?:=[^;]+)?;", body):
                api.append(ApiEntry(
                    kind="property",
                    name=match.group(1),
                    class_name=owner.name,
                    detail={"data_type": match.group(2).strip() if match.group(2) else None},
                ))
        for definition in self.structure.definitions:
            if definition.kind == "method" and definition.class_name == owner.name and definition.is_exported:
                api.append(ApiEntry(
                    kind="method",
                    name=definition.name,
                    class_name=owner.name,
                    detail={"params": list(definition.params)},
                ))
