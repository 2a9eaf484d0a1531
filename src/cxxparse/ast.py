#!/usr/bin/env python3

import hashlib
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple

from cxxparse.preprocessor import Include

class CppEntity:
    """Node of the AST of a parsed file

    `kind` is the libclang cursor kind name (`CLASS_DECL`, `CXX_METHOD`, ...).
    Every entity knows its parent, the file root has none.
    """

    def __init__(self, name: str, kind: str, location: Tuple[str, int, int, int, int],
                 parent: Optional['CppEntity'] = None, usr: str = "",
                 type_info: Optional[str] = None, comment: str = ""):
        self.name = name
        self.kind = kind
        self.file, self.line, self.column, self.end_line, self.end_column = location
        self.parent = parent
        self.children: List[CppEntity] = []
        self.usr = usr
        self.type_info = type_info
        self.comment = comment
        self.is_definition = False
        self.uuid = self._generate_uuid()

    @property
    def id(self) -> str:
        """Identifier used by the entity index, the USR when libclang provides one"""
        return self.usr or self.uuid

    def add_child(self, child: 'CppEntity'):
        child.parent = self
        self.children.append(child)

    def walk(self) -> Iterator['CppEntity']:
        """This entity and all its descendants, pre-order"""
        yield self
        for child in self.children:
            yield from child.walk()

    def _generate_uuid(self) -> str:
        """Generate a UUID by hashing the entity's content"""
        content = (
            f"{self.name}:{self.kind}:{self.file}:{self.line}:{self.column}:{self.end_line}:{self.end_column}"
        )
        if self.parent is not None:
            content += f":{self.parent.uuid}"
        return hashlib.sha256(content.encode('utf-8')).hexdigest()

    def signature(self) -> Tuple:
        """Content of the entity without identity, for comparing parses"""
        return (self.kind, self.name, self.usr, self.line, self.column, self.end_line, self.end_column)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uuid': self.uuid,
            'usr': self.usr,
            'name': self.name,
            'kind': self.kind,
            'parent_uuid': self.parent.uuid if self.parent else None,
            'location': {
                'file': self.file,
                'line': self.line,
                'column': self.column,
                'end_line': self.end_line,
                'end_column': self.end_column
            },
            'type_info': self.type_info,
            'comment': self.comment,
            'is_definition': self.is_definition,
            'children': [child.to_dict() for child in self.children],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind} {self.name!r} at {self.file}:{self.line})"

class CppFile(CppEntity):
    """Root of the AST of one parsed file

    `had_errors` is set when the front-end reported errors that were not
    fatal. `full_include_paths` is False when the file went through the
    fast preprocessor: `includes` then only carry the names as written.
    """

    def __init__(self, path: str):
        super().__init__(path, "TRANSLATION_UNIT", (path, 1, 1, 1, 1))
        self.had_errors = False
        self.includes: List[Include] = []
        self.full_include_paths = True

    def entities(self) -> Iterator[CppEntity]:
        """Every entity of the file in source order, the root excluded"""
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['had_errors'] = self.had_errors
        result['full_include_paths'] = self.full_include_paths
        result['includes'] = [include._asdict() for include in self.includes]
        return result

class EntityIndex:
    """Registry of parsed entities, shared between parses for cross-file lookups

    Registration is guarded by a lock so several parsers may feed the
    same index from different threads. A definition registered under an id
    replaces an earlier declaration with the same id, not the other way
    round.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entities: Dict[str, CppEntity] = {}
        self._files: Dict[str, CppFile] = {}

    def register_file(self, file: CppFile):
        with self._lock:
            self._files[file.name] = file

    def register_entity(self, entity: CppEntity):
        with self._lock:
            existing = self._entities.get(entity.id)
            if existing is None or entity.is_definition or not existing.is_definition:
                self._entities[entity.id] = entity

    def lookup(self, entity_id: str) -> Optional[CppEntity]:
        with self._lock:
            return self._entities.get(entity_id)

    def lookup_file(self, path: str) -> Optional[CppFile]:
        with self._lock:
            return self._files.get(path)

    def files(self) -> List[CppFile]:
        with self._lock:
            return list(self._files.values())

    def __contains__(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._entities

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)
