"""Executes compiled schemas against JSON instances.

The VM walks an instance and the schema graph together by plain recursion.
Alongside the call stack it keeps two path stacks used to address reported
errors:

- the instance stack holds tokens into the instance being validated
- the schema stack holds one frame per schema entered through ``$ref``; each
  frame carries the base URI of the referenced document and the tokens from
  that document's root to the keyword being checked

Keyword tokens are pushed before a check and popped on every exit path. A
failing check records a copy of both stacks.
"""

# pylint: disable=too-many-branches

import math
from contextlib import contextmanager
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, Iterator, List, Optional, Sequence

from jsonpointer import JsonPointer

from jsonschemavm.errors import NoSuchSchemaError, StackOverflowError
from jsonschemavm.jsonvalue import (JSON_ARRAY, JSON_INTEGER, JSON_NUMBER, JSON_OBJECT,
                                    JSON_STRING, is_integral, json_equal, json_type_of)
from jsonschemavm.pointer import to_pointer
from jsonschemavm.registry import Registry
from jsonschemavm.schema import Schema, SchemaRef

DEFAULT_MAX_STACK_DEPTH = 64

# tolerance for multipleOf on floats
DEFAULT_EPSILON = 1e-3


@dataclass(frozen=True)
class ValidationError:
    """One violation found in an instance."""
    instance_path: JsonPointer
    schema_path: JsonPointer
    schema_uri: str


@dataclass
class ValidationConfig:
    """
    Limits and tolerances for one validation run.

    Attributes:
        max_errors: Stop recording errors after this many; None records all
        max_stack_depth: Maximum number of nested ``$ref`` jumps; the schema
            validation starts from does not count
        epsilon: Tolerance of the ``multipleOf`` check
    """
    max_errors: Optional[int] = None
    max_stack_depth: int = DEFAULT_MAX_STACK_DEPTH
    epsilon: float = DEFAULT_EPSILON

    def __post_init__(self) -> None:
        if self.max_errors is not None and self.max_errors < 1:
            raise ValueError("max_errors must be at least 1")
        if self.max_stack_depth < 1:
            raise ValueError("max_stack_depth must be at least 1")
        if not 0 <= self.epsilon < 0.5:
            raise ValueError("epsilon must be in [0, 0.5)")


@dataclass
class _SchemaFrame:
    uri: str
    tokens: List[str]


class _ErrorSink:
    """Collects errors up to a cap while counting every violation."""

    def __init__(self, max_errors: Optional[int]) -> None:
        self.errors: List[ValidationError] = []
        self.count = 0
        self.max_errors = max_errors

    @property
    def full(self) -> bool:
        return self.max_errors is not None and len(self.errors) >= self.max_errors

    def merge(self, other: '_ErrorSink') -> None:
        self.count += other.count
        if self.max_errors is None:
            self.errors.extend(other.errors)
        else:
            self.errors.extend(other.errors[:max(0, self.max_errors - len(self.errors))])


class ValidationVM:
    """
    Validation state for a single run against a sealed registry.

    A VM is cheap; build one per validation. The registry is only read.
    """

    def __init__(self, registry: Registry, config: Optional[ValidationConfig] = None) -> None:
        self.registry = registry
        self.config = config or ValidationConfig()
        self._instance: List[str] = []
        self._schemas: List[_SchemaFrame] = []
        self._sinks: List[_ErrorSink] = []

    def execute(self, base_uri: str, tokens: Sequence[str], index: int, instance: Any) -> List[ValidationError]:
        """Validates an instance against the schema at ``index``.

        Args:
            base_uri: Base URI of the document the schema is addressed in
            tokens: Pointer tokens addressing the schema within that document
            index: Registry index of the schema
            instance: The decoded JSON value to validate

        Returns:
            The recorded violations, at most ``max_errors`` of them

        Raises:
            StackOverflowError: If ``$ref`` recursion exceeds ``max_stack_depth``
        """
        self._instance = []
        self._schemas = [_SchemaFrame(base_uri, list(tokens))]
        self._sinks = [_ErrorSink(self.config.max_errors)]
        try:
            self._exec(index, instance)
        except RecursionError as e:
            raise StackOverflowError(len(self._schemas) - 1) from e
        return self._sinks[0].errors

    @contextmanager
    def _schema_token(self, *tokens: str) -> Iterator[None]:
        frame_tokens = self._schemas[-1].tokens
        frame_tokens.extend(tokens)
        try:
            yield
        finally:
            del frame_tokens[len(frame_tokens) - len(tokens):]

    @contextmanager
    def _instance_token(self, token: str) -> Iterator[None]:
        self._instance.append(token)
        try:
            yield
        finally:
            self._instance.pop()

    def _report(self) -> None:
        sink = self._sinks[-1]
        sink.count += 1
        if sink.full:
            return
        frame = self._schemas[-1]
        sink.errors.append(ValidationError(
            instance_path=to_pointer(self._instance),
            schema_path=to_pointer(frame.tokens),
            schema_uri=frame.uri,
        ))

    def _fail(self, *tokens: str) -> None:
        with self._schema_token(*tokens):
            self._report()

    def _isolated(self, index: int, instance: Any) -> _ErrorSink:
        """Runs a schema into a fresh sink so the caller decides what to keep."""
        sink = _ErrorSink(self.config.max_errors)
        self._sinks.append(sink)
        try:
            self._exec(index, instance)
        finally:
            self._sinks.pop()
        return sink

    def _exec(self, index: int, instance: Any) -> None:
        schema = self.registry.get(index)

        if schema.trivial is not None:
            if not schema.trivial:
                self._report()
            return

        if schema.ref is not None:
            self._exec_ref(schema.ref, instance)
            return

        json_type = json_type_of(instance)
        if schema.type is not None and not self._type_matches(schema, json_type, instance):
            self._fail('type')
        if schema.enum is not None and not any(json_equal(instance, value) for value in schema.enum):
            self._fail('enum')
        if schema.has_const and not json_equal(instance, schema.const):
            self._fail('const')

        if json_type == JSON_NUMBER:
            self._exec_number(schema, instance)
        elif json_type == JSON_STRING:
            self._exec_string(schema, instance)
        elif json_type == JSON_ARRAY:
            self._exec_array(schema, instance)
        elif json_type == JSON_OBJECT:
            self._exec_object(schema, instance)

        self._exec_composition(schema, instance)

    def _exec_ref(self, ref: SchemaRef, instance: Any) -> None:
        index = self.registry.lookup(ref.uri)
        if index is None:
            raise NoSuchSchemaError(ref.uri)
        depth = len(self._schemas)
        if depth > self.config.max_stack_depth:
            raise StackOverflowError(depth)
        self._schemas.append(_SchemaFrame(ref.base_uri, list(ref.pointer.parts)))
        try:
            self._exec(index, instance)
        finally:
            self._schemas.pop()

    @staticmethod
    def _type_matches(schema: Schema, json_type: str, instance: Any) -> bool:
        if schema.has_type(json_type):
            return True
        return json_type == JSON_NUMBER and schema.has_type(JSON_INTEGER) and is_integral(instance)

    def _exec_number(self, schema: Schema, value: Any) -> None:
        if schema.minimum is not None and value < schema.minimum:
            self._fail('minimum')
        if schema.maximum is not None and value > schema.maximum:
            self._fail('maximum')
        if schema.exclusive_minimum is not None and value <= schema.exclusive_minimum:
            self._fail('exclusiveMinimum')
        if schema.exclusive_maximum is not None and value >= schema.exclusive_maximum:
            self._fail('exclusiveMaximum')
        if schema.multiple_of is not None and not self._is_multiple(value, schema.multiple_of):
            self._fail('multipleOf')

    def _is_multiple(self, value: Any, divisor: Any) -> bool:
        """Checks ``multipleOf`` within the configured tolerance."""
        if isinstance(value, float) and not math.isfinite(value):
            return False
        if isinstance(value, float) and isinstance(divisor, float):
            mod = math.fmod(abs(value), divisor) / divisor
        else:
            # ints may lie outside the float range
            mod = float(Fraction(abs(value)) % Fraction(divisor) / Fraction(divisor))
        epsilon = self.config.epsilon
        return not epsilon < mod < 1 - epsilon

    def _exec_string(self, schema: Schema, value: str) -> None:
        # len() counts code points, not UTF-8 bytes
        if schema.min_length is not None and len(value) < schema.min_length:
            self._fail('minLength')
        if schema.max_length is not None and len(value) > schema.max_length:
            self._fail('maxLength')
        if schema.pattern is not None and schema.pattern.search(value) is None:
            self._fail('pattern')

    def _exec_array(self, schema: Schema, value: List[Any]) -> None:
        if schema.items is not None:
            with self._schema_token('items'):
                for i, item in enumerate(value):
                    with self._instance_token(str(i)):
                        self._exec(schema.items, item)
        elif schema.items_list is not None:
            for i, (subschema, item) in enumerate(zip(schema.items_list, value)):
                with self._schema_token('items', str(i)), self._instance_token(str(i)):
                    self._exec(subschema, item)
            if schema.additional_items is not None and len(value) > len(schema.items_list):
                with self._schema_token('additionalItems'):
                    for i in range(len(schema.items_list), len(value)):
                        with self._instance_token(str(i)):
                            self._exec(schema.additional_items, value[i])

        if schema.min_items is not None and len(value) < schema.min_items:
            self._fail('minItems')
        if schema.max_items is not None and len(value) > schema.max_items:
            self._fail('maxItems')
        if schema.unique_items and not self._all_unique(value):
            self._fail('uniqueItems')

        if schema.contains is not None:
            with self._schema_token('contains'):
                matched = False
                for i, item in enumerate(value):
                    with self._instance_token(str(i)):
                        if self._isolated(schema.contains, item).count == 0:
                            matched = True
                            break
                if not matched:
                    self._report()

    @staticmethod
    def _all_unique(value: List[Any]) -> bool:
        for i, left in enumerate(value):
            for right in value[i + 1:]:
                if json_equal(left, right):
                    return False
        return True

    def _exec_object(self, schema: Schema, value: Dict[str, Any]) -> None:
        for name, subschema in schema.properties.items():
            if name in value:
                with self._schema_token('properties', name), self._instance_token(name):
                    self._exec(subschema, value[name])

        for pattern, (regexp, subschema) in schema.pattern_properties.items():
            for key, item in value.items():
                if regexp.search(key) is not None:
                    with self._schema_token('patternProperties', pattern), self._instance_token(key):
                        self._exec(subschema, item)

        if schema.additional_properties is not None:
            with self._schema_token('additionalProperties'):
                for key, item in value.items():
                    if key in schema.properties:
                        continue
                    if any(regexp.search(key) is not None for regexp, _ in schema.pattern_properties.values()):
                        continue
                    with self._instance_token(key):
                        self._exec(schema.additional_properties, item)

        for i, name in enumerate(schema.required):
            if name not in value:
                self._fail('required', str(i))

        if schema.min_properties is not None and len(value) < schema.min_properties:
            self._fail('minProperties')
        if schema.max_properties is not None and len(value) > schema.max_properties:
            self._fail('maxProperties')

        for key, dependency in schema.dependencies.items():
            if key not in value:
                continue
            if isinstance(dependency, list):
                for i, co_key in enumerate(dependency):
                    if co_key not in value:
                        self._fail('dependencies', key, str(i))
            else:
                with self._schema_token('dependencies', key):
                    self._exec(dependency, value)

        if schema.property_names is not None:
            with self._schema_token('propertyNames'):
                for key in value:
                    with self._instance_token(key):
                        self._exec(schema.property_names, key)

    def _exec_composition(self, schema: Schema, instance: Any) -> None:
        for i, subschema in enumerate(schema.all_of):
            with self._schema_token('allOf', str(i)):
                self._exec(subschema, instance)

        if schema.any_of:
            failures: List[_ErrorSink] = []
            for i, subschema in enumerate(schema.any_of):
                with self._schema_token('anyOf', str(i)):
                    sink = self._isolated(subschema, instance)
                if sink.count == 0:
                    break
                failures.append(sink)
            else:
                # no member matched; report why each one failed
                for sink in failures:
                    self._sinks[-1].merge(sink)

        if schema.one_of:
            matches = 0
            for i, subschema in enumerate(schema.one_of):
                with self._schema_token('oneOf', str(i)):
                    if self._isolated(subschema, instance).count == 0:
                        matches += 1
            if matches != 1:
                self._fail('oneOf')

        if schema.not_ is not None:
            with self._schema_token('not'):
                sink = self._isolated(schema.not_, instance)
            if sink.count == 0:
                self._fail('not')
