"""Compiled schema nodes.

Sub-schemas are referenced by their index in the owning
:class:`jsonschemavm.registry.Registry`, never embedded, so that schema graphs
may be cyclic.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from jsonpointer import JsonPointer


@dataclass(frozen=True)
class SchemaRef:
    """A deferred ``$ref`` target."""
    uri: str  # canonical base#pointer form, used for registry lookups
    base_uri: str
    pointer: JsonPointer


@dataclass
class Schema:
    """One compiled JSON Schema object or boolean schema."""
    id: Optional[str] = None
    trivial: Optional[bool] = None
    ref: Optional[SchemaRef] = None
    type: Optional[FrozenSet[str]] = None

    # numbers
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    multiple_of: Optional[float] = None

    # strings
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[re.Pattern] = None

    # arrays
    items: Optional[int] = None
    items_list: Optional[List[int]] = None
    additional_items: Optional[int] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False
    contains: Optional[int] = None

    # objects
    properties: Dict[str, int] = field(default_factory=dict)
    pattern_properties: Dict[str, Tuple[re.Pattern, int]] = field(default_factory=dict)
    additional_properties: Optional[int] = None
    required: List[str] = field(default_factory=list)
    min_properties: Optional[int] = None
    max_properties: Optional[int] = None
    dependencies: Dict[str, Union[List[str], int]] = field(default_factory=dict)
    property_names: Optional[int] = None

    # any type
    enum: Optional[List[Any]] = None
    has_const: bool = False
    const: Any = None
    all_of: List[int] = field(default_factory=list)
    any_of: List[int] = field(default_factory=list)
    one_of: List[int] = field(default_factory=list)
    not_: Optional[int] = None

    definitions: Dict[str, int] = field(default_factory=dict)

    def has_type(self, json_type: str) -> bool:
        """Whether ``type`` lists the given tag. An absent ``type`` lists none."""
        return self.type is not None and json_type in self.type

    @property
    def is_tuple(self) -> bool:
        """Whether ``items`` was given as a list of positional schemas."""
        return self.items_list is not None
