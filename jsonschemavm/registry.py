"""Indexed store of compiled schema nodes.

Nodes are appended by the parser and addressed by index. Each node is also
registered under its canonical URI (``base#pointer``); a node whose pointer is
empty is the root of the document identified by its base URI. Registering a
URI a second time overlays the earlier registration.

A registry is sealed once after all documents are parsed. Sealing checks that
every ``$ref`` target is registered; only sealed registries are validated
against.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from jsonschemavm.errors import ConflictingSchemaError, SchemaError, UndefinedURIError
from jsonschemavm.jsonvalue import json_equal
from jsonschemavm.pointer import JsonPointerException, make_uri, split_pointer_uri, split_uri
from jsonschemavm.schema import Schema

logger = logging.getLogger(__name__)


class Registry:
    """
    Append-only collection of schema nodes keyed by index and URI.

    Attributes:
        schemas: Compiled nodes in insertion order
        uris: Canonical URI of each node, by index
        roots: Root node index of each compiled document, in compile order
        sealed: Whether :meth:`seal` has completed
    """

    def __init__(self) -> None:
        self.schemas: List[Schema] = []
        self.uris: List[str] = []
        self.roots: List[int] = []
        self.sealed = False
        self._index: Dict[str, int] = {}
        self._documents: Dict[str, int] = {}
        self._sources: Dict[str, Any] = {}

    def __len__(self) -> int:
        return len(self.schemas)

    def insert(self, uri: str, schema: Schema) -> int:
        """Appends a node under its canonical URI and returns its index."""
        if self.sealed:
            raise SchemaError("Cannot insert into a sealed registry", location=uri)
        index = len(self.schemas)
        self.schemas.append(schema)
        self.uris.append(uri)
        self._register(uri, index)
        return index

    def alias(self, uri: str, index: int) -> None:
        """Registers an additional URI for an existing node."""
        self._register(uri, index)

    def _register(self, uri: str, index: int) -> None:
        if uri in self._index:
            logger.debug("Overlaying schema registered at %s", uri)
        self._index[uri] = index
        base_uri, fragment = split_uri(uri)
        if not fragment:
            self._documents[base_uri] = index

    def claim(self, schema_id: str, document: Any) -> None:
        """Records the content declared under ``$id``.

        Raises:
            ConflictingSchemaError: If the id was claimed with different content
        """
        previous = self._sources.get(schema_id)
        if previous is not None and not json_equal(previous, document):
            raise ConflictingSchemaError(
                "$id is already defined with different content", '$id', schema_id)
        self._sources[schema_id] = document

    def get(self, index: int) -> Schema:
        return self.schemas[index]

    def resolve(self, base_uri: str) -> Optional[int]:
        """Returns the root index of the document with the given base URI."""
        return self._documents.get(base_uri)

    def lookup(self, uri: str) -> Optional[int]:
        """Returns the index of the schema registered at ``uri``, if any.

        The fragment is read as a JSON Pointer; percent-encoding and
        pointer escaping are normalized before lookup.
        """
        try:
            base_uri, tokens = split_pointer_uri(uri)
        except JsonPointerException:
            return None
        return self._index.get(make_uri(base_uri, tokens))

    def location(self, index: int) -> Tuple[str, List[str]]:
        """Returns the base URI and pointer tokens of a node's canonical URI."""
        return split_pointer_uri(self.uris[index])

    def seal(self) -> None:
        """Checks every ``$ref`` target and makes the registry read-only.

        Nodes are visited in insertion order. A missing document is reported
        by its base URI; a missing location inside a known document by the
        full target URI. Each missing URI is reported once.

        Raises:
            UndefinedURIError: If any reference target is not registered
        """
        missing: List[str] = []
        seen = set()
        for schema in self.schemas:
            ref = schema.ref
            if ref is None:
                continue
            if ref.base_uri not in self._documents:
                target = ref.base_uri
            elif ref.uri not in self._index:
                target = ref.uri
            else:
                continue
            if target not in seen:
                seen.add(target)
                missing.append(target)

        if missing:
            logger.debug("Sealing failed, %d undefined URIs", len(missing))
            raise UndefinedURIError(missing)
        self.sealed = True
        logger.debug("Sealed registry with %d schemas in %d documents", len(self.schemas), len(self._documents))
