"""JSON Pointer and URI helpers.

Pointers are ``jsonpointer.JsonPointer`` values; URIs are plain strings split
into a base (no fragment) and a fragment holding a pointer.
"""

from typing import List, Sequence, Tuple
from urllib.parse import unquote, urldefrag, urljoin, urlparse

from jsonpointer import JsonPointer, JsonPointerException


def parse_fragment(fragment: str) -> JsonPointer:
    """Parses a URI fragment into a JSON Pointer.

    Raises:
        JsonPointerException: If the fragment is not a JSON Pointer
    """
    return JsonPointer(unquote(fragment))


def to_pointer(tokens: Sequence[str]) -> JsonPointer:
    """Builds a pointer from unescaped tokens."""
    return JsonPointer.from_parts(list(tokens))


def make_uri(base_uri: str, tokens: Sequence[str]) -> str:
    """Composes the canonical ``base#pointer`` form used as a registry key."""
    return f"{base_uri}#{to_pointer(tokens).path}"


def split_uri(uri: str) -> Tuple[str, str]:
    """Splits a URI into its base and (possibly empty) fragment."""
    base, fragment = urldefrag(uri)
    return base, fragment


def split_pointer_uri(uri: str) -> Tuple[str, List[str]]:
    """Splits a URI into its base and the tokens of its fragment pointer.

    Raises:
        JsonPointerException: If the fragment is not a JSON Pointer
    """
    base, fragment = split_uri(uri)
    return base, parse_fragment(fragment).parts


def resolve_uri(base_uri: str, reference: str) -> str:
    """Resolves a URI reference against a base URI (RFC 3986).

    ``urljoin`` ignores bases whose scheme it does not know (``urn:``,
    ``tag:``), so same-document references are joined by hand.

    Raises:
        ValueError: If either URI cannot be parsed
    """
    parsed = urlparse(reference)
    if parsed.scheme:
        return reference
    if reference.startswith('#') or reference == '':
        return split_uri(base_uri)[0] + reference
    return urljoin(base_uri, reference)


__all__ = [
    'JsonPointer',
    'JsonPointerException',
    'make_uri',
    'parse_fragment',
    'resolve_uri',
    'split_pointer_uri',
    'split_uri',
    'to_pointer',
]
