"""Exceptions raised while compiling schemas and running validations.

Violations found in an instance are not exceptions; they are returned as
:class:`jsonschemavm.vm.ValidationError` entries.
"""

from typing import List, Optional


class JsonSchemaVMError(Exception):
    """Base class for all errors raised by jsonschemavm."""


class SchemaError(JsonSchemaVMError):
    """
    Exception raised when a schema document cannot be compiled.

    Attributes:
        message: Human-readable error description
        keyword: The offending schema keyword, if any
        location: URI of the schema object that holds the keyword
    """

    def __init__(self, message: str, keyword: Optional[str] = None,
                 location: Optional[str] = None) -> None:
        self.message = message
        self.keyword = keyword
        self.location = location
        details = []
        if keyword:
            details.append(f"keyword: {keyword}")
        if location is not None:
            details.append(f"at: {location}")
        full_message = message
        if details:
            full_message = f"{message} ({', '.join(details)})"
        super().__init__(full_message)


class InvalidTypeValueError(SchemaError):
    """The value of ``type`` is not a type name or list of type names."""


class SchemaNotObjectError(SchemaError):
    """A schema-valued keyword holds something other than an object or boolean."""


class InvalidArrayValueError(SchemaError):
    """An array-valued keyword holds a non-array or an empty array."""


class InvalidNumberValueError(SchemaError):
    """A numeric keyword holds a non-number or an out-of-range number."""


class InvalidNaturalValueError(SchemaError):
    """A length or count keyword holds something other than a non-negative integer."""


class InvalidRegexpValueError(SchemaError):
    """A pattern is not a string or does not compile."""


class InvalidBoolValueError(SchemaError):
    """A boolean keyword holds a non-boolean."""


class InvalidStringValueError(SchemaError):
    """A string-valued keyword or array element holds a non-string."""


class InvalidURIError(SchemaError):
    """``$id`` or ``$ref`` is not a usable URI reference."""


class InvalidPointerError(SchemaError):
    """The fragment of a ``$ref`` is not a JSON Pointer."""


class ConflictingSchemaError(SchemaError):
    """Two documents declare the same ``$id`` with different content."""


class UndefinedURIError(JsonSchemaVMError):
    """
    Exception raised when sealing finds ``$ref`` targets that no schema defines.

    Attributes:
        uris: The missing URIs, once each, in the order they were first referenced
    """

    def __init__(self, uris: List[str]) -> None:
        self.uris = uris
        super().__init__(f"Undefined schema URIs: {', '.join(repr(uri) for uri in uris)}")


class NoSuchSchemaError(JsonSchemaVMError):
    """Raised when a validation targets a URI that is not registered."""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(f"No schema with URI: {uri!r}")


class StackOverflowError(JsonSchemaVMError):
    """Raised when ``$ref`` recursion exceeds the configured depth."""

    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(f"Schema stack overflow at depth {depth}")


class InvalidInstanceError(JsonSchemaVMError, TypeError):
    """Raised when an instance holds a value that is not decoded JSON."""
