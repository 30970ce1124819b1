"""Import resolution: map an import specifier to one of the files being built.

No package-manager or ``sys.path`` resolution is attempted. Relative
JavaScript specifiers are tried against the configured extensions, relative
Python imports against the importing file's package, and everything else is
matched by basename.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional, Sequence

from . import config

logger = logging.getLogger(__name__)

_JS_LANGUAGES = ("javascript", "typescript")
_DOTTED_LANGUAGES = ("python", "java", "csharp")


def normalize(path: str) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(path)))


def file_stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


class KnownFiles:
    """Lookup tables over the file ids of one build, in input order."""

    def __init__(self, paths: Iterable[str]) -> None:
        self.paths: List[str] = []
        self._by_path: Dict[str, str] = {}
        self._by_stem: Dict[str, List[str]] = {}
        for path in paths:
            key = normalize(path)
            if key in self._by_path:
                continue
            self.paths.append(path)
            self._by_path[key] = path
            self._by_stem.setdefault(file_stem(path), []).append(path)

    def lookup(self, path: str) -> Optional[str]:
        return self._by_path.get(normalize(path))

    def by_stem(self, stem: str) -> List[str]:
        return list(self._by_stem.get(stem, []))

    def __contains__(self, path: str) -> bool:
        return self.lookup(path) is not None

    def __len__(self) -> int:
        return len(self.paths)


def js_candidates(base: str, extensions: Sequence[str]) -> List[str]:
    """Candidate paths for a relative JS specifier joined onto its directory."""
    candidates = [base]
    candidates.extend(base + ext for ext in extensions)
    candidates.extend(os.path.join(base, "index" + ext) for ext in extensions)
    return candidates


def python_relative_candidates(source_path: str, specifier: str) -> List[str]:
    """Candidates for ``from .x import y`` style specifiers."""
    dots = len(specifier) - len(specifier.lstrip("."))
    package_dir = os.path.dirname(source_path)
    for _ in range(dots - 1):
        package_dir = os.path.dirname(package_dir)
    module = specifier[dots:]
    if not module:
        return [os.path.join(package_dir, "__init__.py")]
    base = os.path.join(package_dir, *module.split("."))
    return [base + ".py", os.path.join(base, "__init__.py")]


def last_segment(specifier: str, language: str) -> str:
    segment = specifier.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    if language in _DOTTED_LANGUAGES:
        segment = segment.rstrip(".*").rsplit(".", 1)[-1]
    return segment


def resolve_import(
    source_path: str,
    specifier: str,
    known_files: KnownFiles,
    language: str,
    extensions: Optional[Sequence[str]] = None,
) -> Optional[str]:
    """Return the id of the known file *specifier* refers to, or ``None``.

    Args:
        source_path: Path of the importing file.
        specifier: Module specifier as written in the import.
        known_files: Files of the current build.
        language: Language of the importing file.
        extensions: Extension order for relative JS specifiers.
    """
    if not specifier:
        return None

    if language in _JS_LANGUAGES and specifier.startswith(("./", "../")):
        exts = list(extensions) if extensions is not None else list(config.DEFAULT_RESOLVE_EXTENSIONS)
        base = os.path.join(os.path.dirname(source_path), specifier)
        return _first_existing(js_candidates(base, exts), known_files, specifier)

    if language == "python" and specifier.startswith("."):
        return _first_existing(python_relative_candidates(source_path, specifier), known_files, specifier)

    stem = last_segment(specifier, language)
    if not stem:
        return None
    matches = known_files.by_stem(stem)
    if not matches:
        return None
    if len(matches) > 1:
        logger.debug("Import %r from %s matches %d files; using %s", specifier, source_path, len(matches), matches[0])
    return matches[0]


def _first_existing(candidates: Sequence[str], known_files: KnownFiles, specifier: str) -> Optional[str]:
    for candidate in candidates:
        known = known_files.lookup(candidate)
        if known is not None:
            return known
        if os.path.isfile(candidate):
            # Exists on disk but is not part of this build.
            logger.debug("Import %r resolved to %s outside the file list", specifier, candidate)
            return None
    return None
