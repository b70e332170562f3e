"""Declarative containers for the document sections.

A Model subclass lists its JSON keys as Field declarations; decoding,
encoding, pointer drilling and reference enumeration are derived from that
list. ``x-`` keys are kept in ``extensions``.
"""

from typing import Any, Dict, List, Optional

from oaschema.errors import UnmarshalError
from oaschema.refs import Ref, refs_from_dict, refs_from_list

PLAIN = 'plain'
MODEL = 'model'
MODEL_MAP = 'model_map'
MODEL_LIST = 'model_list'
REF = 'ref'
REF_MAP = 'ref_map'
REF_LIST = 'ref_list'

_registry: Dict[str, type] = {}


def _snake(key: str) -> str:
    out = []
    for ch in key.lstrip('$'):
        if ch.isupper():
            out.append('_')
            out.append(ch.lower())
        else:
            out.append(ch)
    name = ''.join(out)
    return name + '_' if name in ('in', 'not') else name


class Field:
    """One JSON key of a Model.

    ``cls`` may be given as a class name to break import cycles; it is looked
    up among the registered Model and Ref subclasses on first use.
    """

    def __init__(self, key: str, kind: str = PLAIN, cls: Any = None, attr: Optional[str] = None):
        self.key = key
        self.kind = kind
        self._cls = cls
        self.attr = attr or _snake(key)

    @property
    def cls(self):
        if isinstance(self._cls, str):
            self._cls = _registry[self._cls]
        return self._cls

    def empty(self):
        if self.kind in (MODEL_MAP, REF_MAP):
            return {}
        if self.kind in (MODEL_LIST, REF_LIST):
            return []
        return None

    def decode(self, data: Any) -> Any:
        kind = self.kind
        if kind == PLAIN:
            return data
        if kind == MODEL:
            return self.cls.from_dict(data)
        if kind == REF:
            return self.cls.from_dict(data)
        if kind == REF_MAP:
            return refs_from_dict(self.cls, data, self.key)
        if kind == REF_LIST:
            return refs_from_list(self.cls, data, self.key)
        if kind == MODEL_MAP:
            if not isinstance(data, dict):
                raise UnmarshalError(f'{self.key}: expected an object, got {type(data).__name__}')
            return {str(k): self.cls.from_dict(v) for k, v in data.items()}
        if not isinstance(data, list):
            raise UnmarshalError(f'{self.key}: expected an array, got {type(data).__name__}')
        return [self.cls.from_dict(v) for v in data]

    def encode(self, value: Any) -> Any:
        kind = self.kind
        if kind == PLAIN:
            return value
        if kind in (MODEL, REF):
            return value.to_dict()
        if kind in (MODEL_MAP, REF_MAP):
            return {k: v.to_dict() for k, v in value.items()}
        return [v.to_dict() for v in value]

    def is_empty(self, value: Any) -> bool:
        if value is None:
            return True
        if self.kind in (MODEL_MAP, REF_MAP, MODEL_LIST, REF_LIST):
            return not value
        return False

    def refs(self, value: Any) -> List[Ref]:
        """Returns the references directly or transitively held inline by value."""
        if value is None:
            return []
        kind = self.kind
        if kind == REF:
            return [value]
        if kind == REF_MAP:
            return list(value.values())
        if kind == REF_LIST:
            return list(value)
        if kind == MODEL:
            return value.iter_refs()
        if kind == MODEL_MAP:
            return [r for v in list(value.values()) for r in v.iter_refs()]
        if kind == MODEL_LIST:
            return [r for v in list(value) for r in v.iter_refs()]
        return []


class Model:
    """Base class of the document containers."""

    fields: List[Field] = []

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _registry[cls.__name__] = cls

    def __init__(self, **kwargs):
        for f in self.fields:
            setattr(self, f.attr, kwargs.pop(f.attr, f.empty()))
        self.extensions: Dict[str, Any] = kwargs.pop('extensions', None) or {}
        if kwargs:
            raise TypeError(f'{type(self).__name__}: unexpected arguments {sorted(kwargs)}')

    @classmethod
    def from_dict(cls, data: Any):
        if not isinstance(data, dict):
            raise UnmarshalError(f'{cls.__name__}: expected an object, got {type(data).__name__}')
        obj = cls()
        for f in cls.fields:
            if f.key in data:
                try:
                    setattr(obj, f.attr, f.decode(data[f.key]))
                except UnmarshalError as e:
                    raise UnmarshalError(f'{cls.__name__}.{f.key}: {e}') from e
        obj.extensions = {k: v for k, v in data.items() if isinstance(k, str) and k.startswith('x-')}
        return obj

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in self.fields:
            value = getattr(self, f.attr)
            if not f.is_empty(value):
                out[f.key] = f.encode(value)
        out.update(self.extensions)
        return out

    def iter_refs(self) -> List[Ref]:
        """Lists the Ref nodes reachable without crossing another Ref."""
        refs = []
        for f in self.fields:
            refs.extend(f.refs(getattr(self, f.attr)))
        return refs

    def child(self, key: str) -> Any:
        """Returns the attribute addressed by a JSON pointer segment."""
        for f in self.fields:
            if f.key == key:
                return getattr(self, f.attr)
        if key in self.extensions:
            return self.extensions[key]
        raise KeyError(key)

    def __repr__(self):
        return f'{type(self).__name__}({self.to_dict()!r})'


class ModelMap(dict):
    """A JSON object whose non-extension keys all hold the same kind of item."""

    item_kind = MODEL
    item_cls: Any = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _registry[cls.__name__] = cls

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.extensions: Dict[str, Any] = {}

    @classmethod
    def _item_cls(cls):
        if isinstance(cls.item_cls, str):
            cls.item_cls = _registry[cls.item_cls]
        return cls.item_cls

    @classmethod
    def from_dict(cls, data: Any):
        if not isinstance(data, dict):
            raise UnmarshalError(f'{cls.__name__}: expected an object, got {type(data).__name__}')
        item_cls = cls._item_cls()
        obj = cls()
        for k, v in data.items():
            k = str(k)
            if k.startswith('x-'):
                obj.extensions[k] = v
            else:
                obj[k] = item_cls.from_dict(v)
        return obj

    def to_dict(self) -> Dict[str, Any]:
        out = {k: v.to_dict() for k, v in self.items()}
        out.update(self.extensions)
        return out

    def iter_refs(self) -> List[Ref]:
        if self.item_kind == REF:
            return list(self.values())
        return [r for v in list(self.values()) for r in v.iter_refs()]

    def child(self, key: str) -> Any:
        if key in self:
            return self[key]
        if key in self.extensions:
            return self.extensions[key]
        raise KeyError(key)


class ExternalDocs(Model):
    fields = [
        Field('description'),
        Field('url'),
    ]
