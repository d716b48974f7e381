"""Compiles decoded JSON Schema documents into registry nodes.

The parser walks a document depth-first. It tracks the current base URI,
which changes wherever a schema object declares ``$id``, and the JSON Pointer
tokens leading from the current resource root to the object being parsed.
Every schema object becomes a :class:`Schema` inserted into the registry
after all of its sub-schemas, so insertion order is a post-order of the
document tree.

Parsing is strict: the first malformed keyword aborts the compile with a
:class:`SchemaError` naming the keyword and its location.
"""

# pylint: disable=too-many-branches, too-many-statements

import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from jsonschemavm.errors import (InvalidArrayValueError, InvalidBoolValueError,
                                 InvalidNaturalValueError, InvalidNumberValueError,
                                 InvalidPointerError, InvalidRegexpValueError,
                                 InvalidStringValueError, InvalidTypeValueError,
                                 InvalidURIError, SchemaError, SchemaNotObjectError)
from jsonschemavm.jsonvalue import JSON_TYPES, is_integral, is_number
from jsonschemavm.pointer import (JsonPointerException, make_uri, parse_fragment,
                                  resolve_uri, split_uri)
from jsonschemavm.registry import Registry
from jsonschemavm.schema import Schema, SchemaRef

logger = logging.getLogger(__name__)


class SchemaParser:
    """
    Recursive-descent compiler for one schema document.

    Attributes:
        registry: The registry receiving the compiled nodes
        base_uri: Base URI of the resource currently being parsed
        tokens: Pointer tokens from the resource root to the current object
    """

    def __init__(self, registry: Registry, base_uri: str = '') -> None:
        self.registry = registry
        self.base_uri = base_uri
        self.tokens: List[str] = []
        # resources enclosing a nested $id, with the tokens from their own root
        self._enclosing: List[Tuple[str, List[str]]] = []

    def push(self, *tokens: str) -> None:
        self.tokens.extend(tokens)
        for _, outer_tokens in self._enclosing:
            outer_tokens.extend(tokens)

    def pop(self, count: int = 1) -> None:
        del self.tokens[len(self.tokens) - count:]
        for _, outer_tokens in self._enclosing:
            del outer_tokens[len(outer_tokens) - count:]

    @property
    def uri(self) -> str:
        """Canonical URI of the object currently being parsed."""
        return make_uri(self.base_uri, self.tokens)

    def parse(self, value: Any) -> int:
        """Compiles a schema value and returns its registry index.

        Args:
            value: A decoded schema object or boolean

        Returns:
            The index of the compiled node

        Raises:
            SchemaError: If any keyword is malformed
        """
        if isinstance(value, bool):
            return self._insert(Schema(trivial=value))
        if not isinstance(value, dict):
            raise SchemaNotObjectError(
                f"Schema must be an object or a boolean, got {type(value).__name__}", location=self.uri)
        if '$id' in value:
            return self._parse_resource(value)
        return self._parse_object(value)

    def _parse_resource(self, value: Dict[str, Any]) -> int:
        """Parses an object declaring ``$id`` as the root of a new resource.

        A resource nested inside another document stays addressable through
        the enclosing document's pointers, down to its deepest node.
        """
        schema_id = self._parse_id(value['$id'])
        self.registry.claim(schema_id, value)

        outer = (self.base_uri, self.tokens)
        nested = bool(self.tokens)
        if nested:
            self._enclosing.append(outer)
        self.base_uri, self.tokens = schema_id, []
        index = self._parse_object(value, schema_id)
        self.base_uri, self.tokens = outer
        if nested:
            self._enclosing.pop()
        return index

    def _parse_object(self, value: Dict[str, Any], schema_id: Optional[str] = None) -> int:
        schema = Schema(id=schema_id)

        if '$ref' in value:
            schema.ref = self._parse_ref(value['$ref'])

        if 'type' in value:
            schema.type = self._parse_type(value['type'])

        if 'enum' in value:
            enum = value['enum']
            if not isinstance(enum, list) or not enum:
                raise InvalidArrayValueError("enum must be a non-empty array", 'enum', self.uri)
            schema.enum = list(enum)

        if 'const' in value:
            schema.has_const = True
            schema.const = value['const']

        # numbers
        if 'minimum' in value:
            schema.minimum = self._number(value['minimum'], 'minimum')
        if 'maximum' in value:
            schema.maximum = self._number(value['maximum'], 'maximum')
        if 'exclusiveMinimum' in value:
            schema.exclusive_minimum = self._number(value['exclusiveMinimum'], 'exclusiveMinimum')
        if 'exclusiveMaximum' in value:
            schema.exclusive_maximum = self._number(value['exclusiveMaximum'], 'exclusiveMaximum')
        if 'multipleOf' in value:
            multiple_of = self._number(value['multipleOf'], 'multipleOf')
            if multiple_of <= 0:
                raise InvalidNumberValueError("multipleOf must be greater than 0", 'multipleOf', self.uri)
            schema.multiple_of = multiple_of

        # strings
        if 'minLength' in value:
            schema.min_length = self._natural(value['minLength'], 'minLength')
        if 'maxLength' in value:
            schema.max_length = self._natural(value['maxLength'], 'maxLength')
        if 'pattern' in value:
            schema.pattern = self._regexp(value['pattern'], 'pattern')

        # arrays
        if 'items' in value:
            items = value['items']
            if isinstance(items, list):
                schema.items_list = [self._subschema(item, 'items', str(i)) for i, item in enumerate(items)]
            else:
                schema.items = self._subschema(items, 'items')
        if 'additionalItems' in value:
            schema.additional_items = self._subschema(value['additionalItems'], 'additionalItems')
        if 'minItems' in value:
            schema.min_items = self._natural(value['minItems'], 'minItems')
        if 'maxItems' in value:
            schema.max_items = self._natural(value['maxItems'], 'maxItems')
        if 'uniqueItems' in value:
            unique_items = value['uniqueItems']
            if not isinstance(unique_items, bool):
                raise InvalidBoolValueError("uniqueItems must be a boolean", 'uniqueItems', self.uri)
            schema.unique_items = unique_items
        if 'contains' in value:
            schema.contains = self._subschema(value['contains'], 'contains')

        # objects
        if 'properties' in value:
            schema.properties = self._subschema_map(value['properties'], 'properties')
        if 'patternProperties' in value:
            pattern_properties = self._object(value['patternProperties'], 'patternProperties')
            for pattern, subschema in pattern_properties.items():
                regexp = self._regexp(pattern, 'patternProperties')
                schema.pattern_properties[pattern] = (
                    regexp, self._subschema(subschema, 'patternProperties', pattern))
        if 'additionalProperties' in value:
            schema.additional_properties = self._subschema(value['additionalProperties'], 'additionalProperties')
        if 'required' in value:
            schema.required = self._string_list(value['required'], 'required')
        if 'minProperties' in value:
            schema.min_properties = self._natural(value['minProperties'], 'minProperties')
        if 'maxProperties' in value:
            schema.max_properties = self._natural(value['maxProperties'], 'maxProperties')
        if 'dependencies' in value:
            dependencies = self._object(value['dependencies'], 'dependencies')
            for key, dependency in dependencies.items():
                if isinstance(dependency, list):
                    schema.dependencies[key] = self._string_list(dependency, 'dependencies')
                else:
                    schema.dependencies[key] = self._subschema(dependency, 'dependencies', key)
        if 'propertyNames' in value:
            schema.property_names = self._subschema(value['propertyNames'], 'propertyNames')

        # composition
        if 'allOf' in value:
            schema.all_of = self._subschema_list(value['allOf'], 'allOf')
        if 'anyOf' in value:
            schema.any_of = self._subschema_list(value['anyOf'], 'anyOf')
        if 'oneOf' in value:
            schema.one_of = self._subschema_list(value['oneOf'], 'oneOf')
        if 'not' in value:
            schema.not_ = self._subschema(value['not'], 'not')

        if 'definitions' in value:
            schema.definitions = self._subschema_map(value['definitions'], 'definitions')

        return self._insert(schema)

    def _insert(self, schema: Schema) -> int:
        """Inserts a node under its canonical URI and aliases it in every enclosing resource."""
        index = self.registry.insert(self.uri, schema)
        for base_uri, tokens in self._enclosing:
            self.registry.alias(make_uri(base_uri, tokens), index)
        return index

    def _parse_id(self, raw: Any) -> str:
        if not isinstance(raw, str):
            raise InvalidStringValueError("$id must be a string", '$id', self.uri)
        try:
            resolved = resolve_uri(self.base_uri, raw)
        except ValueError as e:
            raise InvalidURIError(f"$id is not a valid URI: {e}", '$id', self.uri) from e
        schema_id, fragment = split_uri(resolved)
        if fragment:
            raise InvalidURIError("$id must not carry a fragment", '$id', self.uri)
        return schema_id

    def _parse_ref(self, raw: Any) -> SchemaRef:
        if not isinstance(raw, str):
            raise InvalidStringValueError("$ref must be a string", '$ref', self.uri)
        try:
            target = resolve_uri(self.base_uri, raw)
        except ValueError as e:
            raise InvalidURIError(f"$ref is not a valid URI: {e}", '$ref', self.uri) from e
        base_uri, fragment = split_uri(target)
        try:
            pointer = parse_fragment(fragment)
        except JsonPointerException as e:
            raise InvalidPointerError(
                f"$ref fragment is not a valid JSON Pointer: {fragment!r}", '$ref', self.uri) from e
        return SchemaRef(uri=make_uri(base_uri, pointer.parts), base_uri=base_uri, pointer=pointer)

    def _parse_type(self, raw: Any) -> frozenset:
        if isinstance(raw, str):
            names = [raw]
        elif isinstance(raw, list) and raw:
            names = raw
        else:
            raise InvalidTypeValueError("type must be a type name or a non-empty array of type names",
                                        'type', self.uri)
        for name in names:
            if not isinstance(name, str) or name not in JSON_TYPES:
                raise InvalidTypeValueError(f"Unknown type: {name!r}", 'type', self.uri)
        return frozenset(names)

    def _number(self, raw: Any, keyword: str) -> float:
        if not is_number(raw) or (isinstance(raw, float) and not math.isfinite(raw)):
            raise InvalidNumberValueError(f"{keyword} must be a finite number", keyword, self.uri)
        return raw

    def _natural(self, raw: Any, keyword: str) -> int:
        if not is_integral(raw) or raw < 0:
            raise InvalidNaturalValueError(f"{keyword} must be a non-negative integer", keyword, self.uri)
        return int(raw)

    def _regexp(self, raw: Any, keyword: str) -> re.Pattern:
        if not isinstance(raw, str):
            raise InvalidRegexpValueError(f"{keyword} must be a string", keyword, self.uri)
        try:
            return re.compile(raw)
        except re.error as e:
            raise InvalidRegexpValueError(
                f"{keyword} is not a valid regular expression: {raw!r} ({e})", keyword, self.uri) from e

    def _object(self, raw: Any, keyword: str) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise SchemaNotObjectError(f"{keyword} must be an object", keyword, self.uri)
        return raw

    def _string_list(self, raw: Any, keyword: str) -> List[str]:
        if not isinstance(raw, list):
            raise InvalidArrayValueError(f"{keyword} must be an array", keyword, self.uri)
        names: List[str] = []
        for name in raw:
            if not isinstance(name, str):
                raise InvalidStringValueError(f"{keyword} must only contain strings", keyword, self.uri)
            if name not in names:
                names.append(name)
        return names

    def _subschema(self, raw: Any, keyword: str, *tokens: str) -> int:
        """Parses a nested schema found under ``keyword`` and the given tokens."""
        if not isinstance(raw, (dict, bool)):
            raise SchemaNotObjectError(
                f"{keyword} must hold a schema object or boolean, got {type(raw).__name__}", keyword, self.uri)
        self.push(keyword, *tokens)
        index = self.parse(raw)
        self.pop(1 + len(tokens))
        return index

    def _subschema_list(self, raw: Any, keyword: str) -> List[int]:
        if not isinstance(raw, list) or not raw:
            raise InvalidArrayValueError(f"{keyword} must be a non-empty array of schemas", keyword, self.uri)
        return [self._subschema(item, keyword, str(i)) for i, item in enumerate(raw)]

    def _subschema_map(self, raw: Any, keyword: str) -> Dict[str, int]:
        return {name: self._subschema(subschema, keyword, name)
                for name, subschema in self._object(raw, keyword).items()}


def parse_schema(registry: Registry, document: Any, base_uri: str = '') -> int:
    """Compiles one schema document into the registry.

    Args:
        registry: The registry receiving the compiled nodes
        document: The decoded schema document
        base_uri: Base URI for documents that do not declare ``$id``

    Returns:
        The registry index of the document's root node

    Raises:
        SchemaError: If a keyword is malformed or the document is nested too deeply
    """
    first = len(registry)
    parser = SchemaParser(registry, base_uri)
    try:
        index = parser.parse(document)
    except RecursionError as e:
        raise SchemaError("Schema is nested too deeply", location=make_uri(parser.base_uri, [])) from e
    logger.debug("Compiled %s into %d schema nodes", registry.uris[index], len(registry) - first)
    return index
