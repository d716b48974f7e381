"""Compiles schema documents and validates JSON instances against them.

This module is the public entry point of the package:

- :func:`compile_schemas` parses a set of documents into a sealed registry
- :func:`validate` checks an instance against the first compiled document
- :func:`validate_uri` checks an instance against any registered schema
- :func:`validate_file` and :func:`validate_json_instances` validate
  instances stored in JSON or JSONL files
"""

import json
import logging
from typing import Any, Iterable, List, Optional, Tuple

from jsonschemavm.errors import JsonSchemaVMError, NoSuchSchemaError, SchemaError
from jsonschemavm.jsonvalue import JSON_ARRAY
from jsonschemavm.parser import parse_schema
from jsonschemavm.pointer import JsonPointerException, split_pointer_uri
from jsonschemavm.registry import Registry
from jsonschemavm.vm import ValidationConfig, ValidationError, ValidationVM

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of validating a JSON instance against a schema."""

    def __init__(self, errors: Optional[List[ValidationError]] = None, source: Optional[str] = None):
        self.errors = errors or []
        self.source = source

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def __str__(self) -> str:
        if self.is_valid:
            return "✓ Valid" + (f": {self.source}" if self.source else "")
        prefix = f"{self.source}: " if self.source else ""
        return f"✗ Invalid: {prefix}" + "; ".join(format_error(error) for error in self.errors)

    def __repr__(self) -> str:
        return f"ValidationResult(is_valid={self.is_valid}, errors={self.errors})"


def format_error(error: ValidationError) -> str:
    """Renders an error as ``#instance-pointer -> schema-uri#schema-pointer``."""
    return f"#{error.instance_path.path} -> {error.schema_uri}#{error.schema_path.path}"


def compile_schemas(documents: Iterable[Any]) -> Registry:
    """Compiles schema documents into a sealed registry.

    Documents without ``$id`` are parsed with an empty base URI. Compilation
    is atomic: on any error no registry is returned.

    Args:
        documents: Decoded schema documents, the first being the root

    Returns:
        The sealed registry

    Raises:
        SchemaError: If a document holds a malformed keyword
        UndefinedURIError: If a ``$ref`` target is not defined by any document
    """
    registry = Registry()
    for document in documents:
        if not (isinstance(document, dict) and '$id' in document) and registry.resolve('') is not None:
            logger.warning("Anonymous schema document overlays an earlier anonymous document")
        registry.roots.append(parse_schema(registry, document))
    if not registry.roots:
        raise SchemaError("No schema documents given")
    registry.seal()
    return registry


def validate(registry: Registry, instance: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
    """Validates an instance against the first document of a registry.

    Raises:
        StackOverflowError: If ``$ref`` recursion exceeds the configured depth
    """
    if not registry.roots:
        raise NoSuchSchemaError('#')
    index = registry.roots[0]
    base_uri, tokens = registry.location(index)
    return _execute(registry, base_uri, tokens, index, instance, config)


def validate_uri(registry: Registry, uri: str, instance: Any,
                 config: Optional[ValidationConfig] = None) -> ValidationResult:
    """Validates an instance against the schema registered at ``uri``.

    Args:
        registry: A sealed registry
        uri: Absolute URI of a document, optionally with a JSON Pointer fragment
        instance: The decoded JSON value to validate
        config: Validation limits, defaults apply when omitted

    Raises:
        NoSuchSchemaError: If no schema is registered at ``uri``
        StackOverflowError: If ``$ref`` recursion exceeds the configured depth
    """
    try:
        base_uri, tokens = split_pointer_uri(uri)
    except JsonPointerException as e:
        raise NoSuchSchemaError(uri) from e
    if registry.resolve(base_uri) is None:
        raise NoSuchSchemaError(uri)
    index = registry.lookup(uri)
    if index is None:
        raise NoSuchSchemaError(uri)
    return _execute(registry, base_uri, tokens, index, instance, config)


def _execute(registry: Registry, base_uri: str, tokens: List[str], index: int, instance: Any,
             config: Optional[ValidationConfig]) -> ValidationResult:
    if not registry.sealed:
        raise SchemaError("Registry has not been sealed")
    errors = ValidationVM(registry, config).execute(base_uri, tokens, index, instance)
    return ValidationResult(errors=errors)


def load_schema_files(schema_files: List[str]) -> Registry:
    """Reads schema documents from JSON files and compiles them.

    Args:
        schema_files: Paths of the schema files, the first being the root

    Returns:
        The sealed registry
    """
    documents = []
    for schema_file in schema_files:
        with open(schema_file, 'r', encoding='utf-8') as f:
            documents.append(json.load(f))
    return compile_schemas(documents)


def validate_file(
    instance_file: str,
    registry: Registry,
    uri: Optional[str] = None,
    config: Optional[ValidationConfig] = None
) -> List[ValidationResult]:
    """Validates JSON instance file(s) against a compiled schema.

    A top-level array holds one instance per element only when the target
    schema declares a ``type`` that excludes ``array``; otherwise the whole
    array is the instance.

    Args:
        instance_file: Path to JSON file (single document, array, or JSONL)
        registry: A sealed registry
        uri: Schema to validate against; the root document if omitted
        config: Validation limits

    Returns:
        List of ValidationResult for each instance in the file
    """
    if uri is None:
        target = registry.get(registry.roots[0])
    else:
        index = registry.lookup(uri)
        if index is None:
            raise NoSuchSchemaError(uri)
        target = registry.get(index)

    with open(instance_file, 'r', encoding='utf-8') as f:
        content = f.read().strip()

    instances = []
    instance_paths = []

    try:
        data = json.loads(content)
        if isinstance(data, list) and target.type is not None and not target.has_type(JSON_ARRAY):
            # a schema whose type rules out arrays validates each element
            instances = data
            instance_paths = [f"{instance_file}[{i}]" for i in range(len(data))]
        else:
            instances = [data]
            instance_paths = [instance_file]
    except json.JSONDecodeError:
        for i, line in enumerate(content.split('\n')):
            line = line.strip()
            if not line:
                continue
            try:
                instances.append(json.loads(line))
                instance_paths.append(f"{instance_file}:{i+1}")
            except json.JSONDecodeError as e:
                logger.warning("Skipping %s:%d, not valid JSON: %s", instance_file, i + 1, e)

    results = []
    for instance, path in zip(instances, instance_paths):
        if uri is None:
            result = validate(registry, instance, config)
        else:
            result = validate_uri(registry, uri, instance, config)
        result.source = path
        results.append(result)

    return results


def validate_json_instances(
    input_files: List[str],
    registry: Registry,
    uri: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
    verbose: bool = False
) -> Tuple[int, int]:
    """Validates multiple JSON instance files against a compiled schema.

    Args:
        input_files: List of JSON file paths to validate
        registry: A sealed registry
        uri: Schema to validate against; the root document if omitted
        config: Validation limits
        verbose: Whether to print one line per instance and per violation

    Returns:
        Tuple of (valid_count, invalid_count)
    """
    valid_count = 0
    invalid_count = 0

    for input_file in input_files:
        for result in validate_file(input_file, registry, uri, config):
            if result.is_valid:
                valid_count += 1
                if verbose:
                    print(f"✓ Valid: {result.source}")
            else:
                invalid_count += 1
                if verbose:
                    print(f"✗ Invalid: {result.source}")
                    for error in result.errors:
                        print(f"  {format_error(error)}")

    return valid_count, invalid_count


__all__ = [
    'JsonSchemaVMError',
    'ValidationConfig',
    'ValidationError',
    'ValidationResult',
    'compile_schemas',
    'format_error',
    'load_schema_files',
    'validate',
    'validate_file',
    'validate_json_instances',
    'validate_uri',
]
