"""Reference-or-value nodes.

Every place of a document that may hold either ``{"$ref": "..."}`` or an inline
definition is a Ref. The subclasses only bind the value class and the name of
the components collection the value belongs to.
"""

from typing import Any, Dict, List, Optional, Type

from oaschema.errors import UnmarshalError


class Ref:
    """A pointer to another location, or an inline value.

    Attributes:
        ref: The pointer string, None for inline values
        value: The target once resolved, or the inline value
        ref_path: Location of the resolved target (``location#fragment``)
    """

    value_cls: Type = None
    component: str = ''

    def __init__(self, ref: Optional[str] = None, value: Any = None):
        self.ref = ref or None
        self.value = value
        self.ref_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'Ref':
        if isinstance(data, dict) and '$ref' in data:
            ref = data['$ref']
            if not isinstance(ref, str):
                raise UnmarshalError(f'{cls.__name__}: $ref must be a string, got {ref!r}')
            return cls(ref=ref)
        return cls(value=cls.value_cls.from_dict(data))

    def to_dict(self) -> Any:
        """Serializes the node. A pointer wins over its resolved value."""
        if self.ref:
            return {'$ref': self.ref}
        if self.value is None:
            return None
        return self.value.to_dict()

    def is_external(self) -> bool:
        """True when the pointer names another document."""
        return bool(self.ref) and not self.ref.startswith('#')

    @property
    def resolved(self) -> bool:
        return self.value is not None

    def __repr__(self):
        if self.ref:
            return f'{type(self).__name__}(ref={self.ref!r})'
        return f'{type(self).__name__}(value={self.value!r})'


def refs_from_dict(ref_cls: Type[Ref], data: Any, key: str) -> Dict[str, Ref]:
    if not isinstance(data, dict):
        raise UnmarshalError(f'{key}: expected an object, got {type(data).__name__}')
    return {str(k): ref_cls.from_dict(v) for k, v in data.items()}


def refs_from_list(ref_cls: Type[Ref], data: Any, key: str) -> List[Ref]:
    if not isinstance(data, list):
        raise UnmarshalError(f'{key}: expected an array, got {type(data).__name__}')
    return [ref_cls.from_dict(v) for v in data]
