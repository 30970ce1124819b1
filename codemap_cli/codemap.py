"""Build a code map: per-file structures plus cross-file relationships."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from . import config
from .models import CodeMap, FileStructure, Relationship
from .parser import Reader, scan_files

logger = logging.getLogger(__name__)


def exported_types(structure: FileStructure) -> Set[str]:
    """Names of the types a file makes available to other files."""
    types = structure.classes + structure.interfaces + structure.enums
    names = {d.name for d in types if d.is_exported}
    names.update(entry.name for entry in structure.public_api if entry.kind == "type_alias")
    return names


class CodeMapBuilder:
    """Scan files and relate them through imports, type references and inheritance.

    When several other files export the same type name, the first one in
    input order is the target and the relationship is flagged ``ambiguous``
    with the remaining candidates in ``alternatives``.
    """

    def __init__(
        self,
        reader: Optional[Reader] = None,
        workers: Optional[int] = None,
        component_window: Optional[int] = None,
    ) -> None:
        self.reader = reader
        self.workers = workers if workers is not None else config.DEFAULT_WORKERS
        self.component_window = component_window

    def build(self, files: Iterable[Any]) -> CodeMap:
        structures = scan_files(
            files, reader=self.reader, workers=self.workers, component_window=self.component_window,
        )
        return self.build_from_structures(structures)

    def build_from_structures(self, structures: List[FileStructure]) -> CodeMap:
        code_map = CodeMap(files=list(structures))
        types_by_file: Dict[str, Set[str]] = {}
        for structure in structures:
            types_by_file.setdefault(structure.path, set()).update(exported_types(structure))

        for structure in structures:
            self._import_relationships(code_map, structure)
            self._type_relationships(code_map, structure, types_by_file)
        for structure in structures:
            self._inheritance_relationships(code_map, structure, types_by_file)

        logger.info(
            "Built code map from %d files: %d relationships",
            len(code_map.files), len(code_map.relationships),
        )
        return code_map

    @staticmethod
    def _import_relationships(code_map: CodeMap, structure: FileStructure) -> None:
        for imp in structure.imports:
            code_map.relationships.append(Relationship(
                type="imports",
                source=structure.path,
                target=imp.source,
                items=list(imp.names),
            ))

    def _type_relationships(
        self, code_map: CodeMap, structure: FileStructure, types_by_file: Dict[str, Set[str]],
    ) -> None:
        for ref in structure.type_references:
            owners = self._owners(structure.path, ref.name, types_by_file)
            if not owners:
                continue
            code_map.relationships.append(Relationship(
                type="references_type",
                source=structure.path,
                target=owners[0],
                type_name=ref.name,
                ambiguous=len(owners) > 1,
                alternatives=owners[1:],
            ))

    def _inheritance_relationships(
        self, code_map: CodeMap, structure: FileStructure, types_by_file: Dict[str, Set[str]],
    ) -> None:
        for definition in structure.definitions:
            if definition.kind == "class" and definition.extends:
                self._relate(code_map, structure, types_by_file, "inherits_from",
                             definition.name, definition.extends)
            elif definition.kind == "interface":
                for parent in definition.interfaces:
                    self._relate(code_map, structure, types_by_file, "extends_interface",
                                 definition.name, parent)

    def _relate(self, code_map, structure, types_by_file, rel_type: str, source_type: str, target_type: str) -> None:
        owners = self._owners(structure.path, target_type, types_by_file)
        if not owners:
            logger.debug("No exporting file for %s (%s in %s)", target_type, source_type, structure.path)
            return
        code_map.relationships.append(Relationship(
            type=rel_type,
            source=structure.path,
            target=owners[0],
            source_type=source_type,
            target_type=target_type,
            ambiguous=len(owners) > 1,
            alternatives=owners[1:],
        ))

    @staticmethod
    def _owners(path: str, type_name: str, types_by_file: Dict[str, Set[str]]) -> List[str]:
        """Other files exporting *type_name*, in input order."""
        return [other for other, names in types_by_file.items() if other != path and type_name in names]


def build_code_map(files: Iterable[Any], **options: Any) -> CodeMap:
    """Build a code map for *files*; keyword options go to :class:`CodeMapBuilder`."""
    return CodeMapBuilder(**options).build(files)
