"""Schema nodes.

A Schema is one JSON-Schema-like vertex of a document. Both OpenAPI 3.0
(``nullable``, boolean ``exclusiveMinimum``) and OpenAPI 3.1 (type lists,
numeric ``exclusiveMinimum``) input is decoded into the same attributes and
written back in the form it was read.
"""

# pylint: disable=too-many-instance-attributes, too-many-public-methods, too-many-branches, too-many-statements

import copy
import re
import threading
from typing import Any, Dict, Iterable, List, Optional, Pattern, Union

from oaschema.common import is_number
from oaschema.errors import DocumentValidationError, MultiError, SchemaError, UnmarshalError, found_unresolved_ref
from oaschema.formats import SCHEMA_STRING_FORMATS
from oaschema.model import ExternalDocs, Field, Model
from oaschema.refs import Ref

TYPE_NULL = 'null'
TYPE_BOOLEAN = 'boolean'
TYPE_INTEGER = 'integer'
TYPE_NUMBER = 'number'
TYPE_STRING = 'string'
TYPE_ARRAY = 'array'
TYPE_OBJECT = 'object'

ALL_TYPES = (TYPE_NULL, TYPE_BOOLEAN, TYPE_INTEGER, TYPE_NUMBER, TYPE_STRING, TYPE_ARRAY, TYPE_OBJECT)

# Serialization forms of a type set
STYLE_SINGLE = 'single'
STYLE_LIST = 'list'
STYLE_NULLABLE = 'nullable'

# Serialization forms of an exclusive bound
BOUND_BOOLEAN = 'boolean'
BOUND_NUMERIC = 'numeric'

FORMATS_BY_TYPE = {
    TYPE_NUMBER: ('float', 'double'),
    TYPE_INTEGER: ('int32', 'int64'),
    TYPE_STRING: ('byte', 'binary', 'date', 'date-time', 'password'),
}

_pattern_cache: Dict[str, Pattern] = {}
_pattern_cache_lock = threading.Lock()


def compile_pattern(pattern: str) -> Pattern:
    """Compiles a pattern through the process wide cache.

    Raises:
        re.error: If the pattern is not a valid regular expression.
    """
    with _pattern_cache_lock:
        compiled = _pattern_cache.get(pattern)
    if compiled is not None:
        return compiled
    compiled = re.compile(pattern)
    with _pattern_cache_lock:
        _pattern_cache[pattern] = compiled
    return compiled


class Types:
    """The set of primitive type names a schema permits.

    ``null`` membership replaces the OpenAPI 3.0 ``nullable`` flag. The style
    only decides how the set is written back.
    """

    def __init__(self, names: Iterable[str] = (), style: str = STYLE_SINGLE):
        self._names: List[str] = []
        for name in names:
            self.add(name)
        self.style = style

    def add(self, name: str) -> None:
        if name not in self._names:
            self._names.append(name)

    def discard(self, name: str) -> None:
        if name in self._names:
            self._names.remove(name)

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def non_null(self) -> List[str]:
        return [n for n in self._names if n != TYPE_NULL]

    def includes(self, name: str) -> bool:
        return name in self._names

    def is_single(self, name: str) -> bool:
        return self.non_null() == [name]

    def restricts(self) -> bool:
        """False when any kind of value is permitted.

        A set holding only ``null`` that came from a bare ``nullable: true``
        does not restrict the kind of non-null values.
        """
        if self.non_null():
            return True
        return bool(self._names) and self.style != STYLE_NULLABLE

    def permits(self, name: str) -> bool:
        if not self.restricts() or name in self._names:
            return True
        return name == TYPE_INTEGER and TYPE_NUMBER in self._names

    def copy(self) -> 'Types':
        return Types(self._names, self.style)

    def encode(self, out: Dict[str, Any]) -> None:
        if not self._names:
            return
        non_null = self.non_null()
        if self.style == STYLE_LIST:
            out['type'] = list(self._names)
        elif self.style == STYLE_NULLABLE:
            if len(non_null) == 1:
                out['type'] = non_null[0]
            elif non_null:
                out['type'] = non_null
            if TYPE_NULL in self._names:
                out['nullable'] = True
        elif len(self._names) == 1:
            out['type'] = self._names[0]
        else:
            out['type'] = list(self._names)

    @classmethod
    def decode(cls, data: Dict[str, Any]) -> 'Types':
        raw = data.get('type')
        if isinstance(raw, list):
            if not all(isinstance(t, str) for t in raw):
                raise UnmarshalError(f'type must hold strings, got {raw!r}')
            types = cls(raw, STYLE_LIST)
        elif isinstance(raw, str):
            types = cls([raw], STYLE_SINGLE)
        elif raw is None:
            types = cls()
        else:
            raise UnmarshalError(f'type must be a string or an array, got {raw!r}')
        nullable = data.get('nullable')
        if nullable is not None and not isinstance(nullable, bool):
            raise UnmarshalError(f'nullable must be a boolean, got {nullable!r}')
        if nullable:
            types.add(TYPE_NULL)
            if types.style != STYLE_LIST:
                types.style = STYLE_NULLABLE
        return types

    def __contains__(self, name) -> bool:
        return name in self._names

    def __iter__(self):
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __bool__(self) -> bool:
        return bool(self._names)

    def __eq__(self, other) -> bool:
        if isinstance(other, Types):
            return set(self._names) == set(other._names)
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return f'Types({self._names!r})'


def _as_types(value: Any) -> Types:
    if value is None:
        return Types()
    if isinstance(value, Types):
        return value
    if isinstance(value, str):
        return Types([value])
    return Types(value, STYLE_LIST)


class AdditionalProperties:
    """Three-state additionalProperties: absent, a boolean, or a schema."""

    def __init__(self, has: Optional[bool] = None, schema: Optional['SchemaRef'] = None):
        self.has = has
        self.schema = schema

    @classmethod
    def from_dict(cls, data: Any) -> 'AdditionalProperties':
        if data is None:
            return cls()
        if isinstance(data, bool):
            return cls(has=data)
        if isinstance(data, dict):
            return cls(schema=SchemaRef.from_dict(data))
        raise UnmarshalError(f'additionalProperties must be a boolean or an object, got {data!r}')

    def is_set(self) -> bool:
        return self.has is not None or self.schema is not None

    def forbids(self) -> bool:
        return self.schema is None and self.has is False

    def copy(self) -> 'AdditionalProperties':
        return AdditionalProperties(self.has, self.schema)

    def __repr__(self):
        return f'AdditionalProperties(has={self.has!r}, schema={self.schema!r})'


class Discriminator(Model):
    """Selects a oneOf branch from the value of one property."""

    fields = [
        Field('propertyName'),
        Field('mapping'),
    ]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.mapping is None:
            self.mapping = {}


# (JSON key, attribute, default) of the keywords holding plain JSON
_PLAIN_KEYWORDS = (
    ('format', 'format', None),
    ('enum', 'enum', None),
    ('const', 'const', None),
    ('default', 'default', None),
    ('example', 'example', None),
    ('examples', 'examples', None),
    ('deprecated', 'deprecated', False),
    ('readOnly', 'read_only', False),
    ('writeOnly', 'write_only', False),
    ('allowEmptyValue', 'allow_empty_value', False),
    ('xml', 'xml', None),
)

_NUMBER_KEYWORDS = (
    ('multipleOf', 'multiple_of', None),
)

_COUNT_KEYWORDS = (
    ('minLength', 'min_length', 0),
    ('maxLength', 'max_length', None),
    ('minItems', 'min_items', 0),
    ('maxItems', 'max_items', None),
    ('minContains', 'min_contains', None),
    ('maxContains', 'max_contains', None),
    ('minProperties', 'min_props', 0),
    ('maxProperties', 'max_props', None),
)

_MODELLED_KEYS = {
    'title', 'description', 'type', 'nullable', 'minimum', 'maximum', 'exclusiveMinimum',
    'exclusiveMaximum', 'pattern', 'uniqueItems', 'items', 'prefixItems', 'contains', 'required',
    'properties', 'additionalProperties', 'propertyNames', 'not', 'oneOf', 'anyOf', 'allOf',
    'discriminator', 'externalDocs', '$defs',
} | {k for k, _, _ in _PLAIN_KEYWORDS + _NUMBER_KEYWORDS + _COUNT_KEYWORDS}

_CHILD_ATTRS = {
    'properties': 'properties',
    'items': 'items',
    'not': 'not_',
    'oneOf': 'one_of',
    'anyOf': 'any_of',
    'allOf': 'all_of',
    'prefixItems': 'prefix_items',
    'contains': 'contains',
    'propertyNames': 'property_names',
    'discriminator': 'discriminator',
    'externalDocs': 'external_docs',
    '$defs': 'defs',
    'required': 'required',
    'title': 'title',
    'description': 'description',
}

_KEYWORD_ATTRS = {key: attr for key, attr, _ in _PLAIN_KEYWORDS + _NUMBER_KEYWORDS + _COUNT_KEYWORDS}
_KEYWORD_ATTRS.update({'minimum': 'min', 'maximum': 'max', 'pattern': 'pattern'})


class Schema:
    """One schema vertex.

    Child schemas are held by SchemaRef nodes so that resolved targets can be
    shared between several parents.
    """

    def __init__(self, **kwargs):
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self._type = Types()
        self.min: Optional[float] = None
        self.max: Optional[float] = None
        self.exclusive_min = False
        self.exclusive_max = False
        self._min_style = BOUND_BOOLEAN
        self._max_style = BOUND_BOOLEAN
        self.multiple_of: Optional[float] = None
        self.min_length = 0
        self.max_length: Optional[int] = None
        self._pattern: Optional[str] = None
        self._compiled_pattern: Optional[Pattern] = None
        self.format: Optional[str] = None
        self.min_items = 0
        self.max_items: Optional[int] = None
        self.unique_items = False
        self.items: Optional[SchemaRef] = None
        self.prefix_items: List[SchemaRef] = []
        self.contains: Optional[SchemaRef] = None
        self.min_contains: Optional[int] = None
        self.max_contains: Optional[int] = None
        self.min_props = 0
        self.max_props: Optional[int] = None
        self.required: List[str] = []
        self.properties: Dict[str, SchemaRef] = {}
        self.additional_properties = AdditionalProperties()
        self.property_names: Optional[SchemaRef] = None
        self.not_: Optional[SchemaRef] = None
        self.one_of: List[SchemaRef] = []
        self.any_of: List[SchemaRef] = []
        self.all_of: List[SchemaRef] = []
        self.discriminator: Optional[Discriminator] = None
        self.enum: Optional[List[Any]] = None
        self.const: Any = None
        self.default: Any = None
        self.example: Any = None
        self.examples: Optional[List[Any]] = None
        self.deprecated = False
        self.read_only = False
        self.write_only = False
        self.allow_empty_value = False
        self.external_docs: Optional[ExternalDocs] = None
        self.xml: Optional[Dict[str, Any]] = None
        self.defs: Dict[str, SchemaRef] = {}
        self.extensions: Dict[str, Any] = {}
        self.extra: Dict[str, Any] = {}
        self._boolean: Optional[bool] = None
        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise TypeError(f'Schema: unexpected argument {key!r}')
            setattr(self, key, value)

    @property
    def type(self) -> Types:
        return self._type

    @type.setter
    def type(self, value):
        self._type = _as_types(value)

    @property
    def nullable(self) -> bool:
        return TYPE_NULL in self._type

    @nullable.setter
    def nullable(self, value: bool):
        if value:
            self._type.add(TYPE_NULL)
            if self._type.style != STYLE_LIST:
                self._type.style = STYLE_NULLABLE
        else:
            self._type.discard(TYPE_NULL)

    @property
    def pattern(self) -> Optional[str]:
        return self._pattern

    @pattern.setter
    def pattern(self, value: Optional[str]):
        self._pattern = value or None
        self._compiled_pattern = None

    def compiled_pattern(self) -> Optional[Pattern]:
        """Returns the compiled ``pattern``, compiling it on first use."""
        if self._pattern is None:
            return None
        compiled = self._compiled_pattern
        if compiled is None:
            compiled = self._compiled_pattern = compile_pattern(self._pattern)
        return compiled

    def is_empty(self) -> bool:
        """True when the schema accepts every value."""
        if self._type.restricts():
            return False
        if self.enum is not None or self.const is not None:
            return False
        if self.not_ or self.one_of or self.any_of or self.all_of:
            return False
        if self.min is not None or self.max is not None or self.multiple_of is not None:
            return False
        if self.min_length or self.max_length is not None or self._pattern or self.format:
            return False
        if self.min_items or self.max_items is not None or self.unique_items:
            return False
        if self.items or self.prefix_items or self.contains:
            return False
        if self.min_props or self.max_props is not None or self.required or self.properties:
            return False
        if self.additional_properties.is_set() and self.additional_properties.has is not True:
            return False
        if self.property_names or self.discriminator:
            return False
        return True

    def iter_refs(self) -> List['SchemaRef']:
        refs = []
        if self.items is not None:
            refs.append(self.items)
        if self.not_ is not None:
            refs.append(self.not_)
        refs.extend(self.one_of)
        refs.extend(self.any_of)
        refs.extend(self.all_of)
        refs.extend(list(self.properties.values()))
        if self.additional_properties.schema is not None:
            refs.append(self.additional_properties.schema)
        refs.extend(self.prefix_items)
        if self.contains is not None:
            refs.append(self.contains)
        if self.property_names is not None:
            refs.append(self.property_names)
        refs.extend(list(self.defs.values()))
        return refs

    def child(self, key: str) -> Any:
        """Returns the attribute addressed by a JSON pointer segment."""
        if key == 'additionalProperties':
            value = self.additional_properties.schema
        elif key in _CHILD_ATTRS:
            value = getattr(self, _CHILD_ATTRS[key])
        elif key in _KEYWORD_ATTRS:
            value = getattr(self, _KEYWORD_ATTRS[key])
        elif key in self.extensions:
            value = self.extensions[key]
        else:
            value = self.extra.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def copy(self) -> 'Schema':
        """Shallow copy; containers are copied, child nodes are shared."""
        other = copy.copy(self)
        other._type = self._type.copy()
        other.prefix_items = list(self.prefix_items)
        other.required = list(self.required)
        other.properties = dict(self.properties)
        other.additional_properties = self.additional_properties.copy()
        other.one_of = list(self.one_of)
        other.any_of = list(self.any_of)
        other.all_of = list(self.all_of)
        other.defs = dict(self.defs)
        other.extensions = dict(self.extensions)
        other.extra = dict(self.extra)
        return other

    # Decoding

    @classmethod
    def from_dict(cls, data: Any) -> 'Schema':
        if isinstance(data, bool):
            return cls.from_bool(data)
        if not isinstance(data, dict):
            raise UnmarshalError(f'Schema: expected an object, got {type(data).__name__}')
        schema = cls()
        schema._type = Types.decode(data)
        schema.title = _expect_str(data, 'title')
        schema.description = _expect_str(data, 'description')
        for key, attr, _ in _PLAIN_KEYWORDS:
            if key in data:
                setattr(schema, attr, data[key])
        if schema.enum is not None and not isinstance(schema.enum, list):
            raise UnmarshalError(f'enum must be an array, got {schema.enum!r}')
        for key, attr, _ in _NUMBER_KEYWORDS:
            if key in data:
                setattr(schema, attr, _expect_number(data, key))
        for key, attr, _ in _COUNT_KEYWORDS:
            if key in data:
                setattr(schema, attr, _expect_count(data, key))
        schema.min, schema.exclusive_min, schema._min_style = _decode_bound(data, 'minimum', 'exclusiveMinimum', max)
        schema.max, schema.exclusive_max, schema._max_style = _decode_bound(data, 'maximum', 'exclusiveMaximum', min)
        schema.pattern = _expect_str(data, 'pattern')
        schema.unique_items = bool(data.get('uniqueItems', False))
        if 'items' in data:
            schema.items = SchemaRef.from_dict(data['items'])
        if 'prefixItems' in data:
            schema.prefix_items = _schema_refs(data, 'prefixItems')
        if 'contains' in data:
            schema.contains = SchemaRef.from_dict(data['contains'])
        if 'required' in data:
            required = data['required']
            if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
                raise UnmarshalError(f'required must be an array of strings, got {required!r}')
            schema.required = list(required)
        if 'properties' in data:
            props = data['properties']
            if not isinstance(props, dict):
                raise UnmarshalError(f'properties must be an object, got {props!r}')
            schema.properties = {str(k): SchemaRef.from_dict(v) for k, v in props.items()}
        schema.additional_properties = AdditionalProperties.from_dict(data.get('additionalProperties'))
        if 'propertyNames' in data:
            schema.property_names = SchemaRef.from_dict(data['propertyNames'])
        if 'not' in data:
            schema.not_ = SchemaRef.from_dict(data['not'])
        schema.one_of = _schema_refs(data, 'oneOf')
        schema.any_of = _schema_refs(data, 'anyOf')
        schema.all_of = _schema_refs(data, 'allOf')
        if 'discriminator' in data:
            schema.discriminator = Discriminator.from_dict(data['discriminator'])
        if 'externalDocs' in data:
            schema.external_docs = ExternalDocs.from_dict(data['externalDocs'])
        if '$defs' in data:
            defs = data['$defs']
            if not isinstance(defs, dict):
                raise UnmarshalError(f'$defs must be an object, got {defs!r}')
            schema.defs = {str(k): SchemaRef.from_dict(v) for k, v in defs.items()}
        for key, value in data.items():
            if key in _MODELLED_KEYS:
                continue
            if key.startswith('x-'):
                schema.extensions[key] = value
            else:
                schema.extra[key] = value
        return schema

    @classmethod
    def from_bool(cls, value: bool) -> 'Schema':
        """Decodes the JSON Schema ``true`` and ``false`` schemas."""
        schema = cls()
        if not value:
            schema.not_ = SchemaRef(value=cls())
        schema._boolean = value
        return schema

    # Encoding

    def to_dict(self) -> Union[Dict[str, Any], bool]:
        return _encode(self, set())

    # Builder methods

    def with_nullable(self) -> 'Schema':
        self.nullable = True
        return self

    def with_min(self, value: float) -> 'Schema':
        self.min = value
        return self

    def with_max(self, value: float) -> 'Schema':
        self.max = value
        return self

    def with_exclusive_min(self, value: bool = True) -> 'Schema':
        self.exclusive_min = value
        return self

    def with_exclusive_max(self, value: bool = True) -> 'Schema':
        self.exclusive_max = value
        return self

    def with_enum(self, *values) -> 'Schema':
        self.enum = list(values)
        return self

    def with_default(self, value: Any) -> 'Schema':
        self.default = value
        return self

    def with_format(self, value: str) -> 'Schema':
        self.format = value
        return self

    def with_length(self, n: int) -> 'Schema':
        self.min_length = n
        self.max_length = n
        return self

    def with_min_length(self, n: int) -> 'Schema':
        self.min_length = n
        return self

    def with_max_length(self, n: int) -> 'Schema':
        self.max_length = n
        return self

    def with_length_decoded_base64(self, n: int) -> 'Schema':
        """Sets the length of a base64 string that decodes into n bytes."""
        return self.with_length(_base64_length(n))

    def with_min_length_decoded_base64(self, n: int) -> 'Schema':
        return self.with_min_length(_base64_length(n))

    def with_max_length_decoded_base64(self, n: int) -> 'Schema':
        return self.with_max_length(_base64_length(n))

    def with_pattern(self, pattern: str) -> 'Schema':
        self.pattern = pattern
        return self

    def with_items(self, schema: 'Schema') -> 'Schema':
        self.items = SchemaRef(value=schema)
        return self

    def with_min_items(self, n: int) -> 'Schema':
        self.min_items = n
        return self

    def with_max_items(self, n: int) -> 'Schema':
        self.max_items = n
        return self

    def with_unique_items(self, unique: bool = True) -> 'Schema':
        self.unique_items = unique
        return self

    def with_property(self, name: str, schema: 'Schema') -> 'Schema':
        self.properties[name] = SchemaRef(value=schema)
        return self

    def with_properties(self, properties: Dict[str, 'Schema']) -> 'Schema':
        for name, schema in properties.items():
            self.with_property(name, schema)
        return self

    def with_required(self, required: List[str]) -> 'Schema':
        self.required = list(required)
        return self

    def with_min_properties(self, n: int) -> 'Schema':
        self.min_props = n
        return self

    def with_max_properties(self, n: int) -> 'Schema':
        self.max_props = n
        return self

    def with_any_additional_properties(self) -> 'Schema':
        self.additional_properties = AdditionalProperties(has=True)
        return self

    def with_additional_properties(self, value: Union['Schema', bool, None]) -> 'Schema':
        """Sets additionalProperties to a schema or a boolean; None clears it."""
        if value is None:
            self.additional_properties = AdditionalProperties()
        elif isinstance(value, bool):
            self.additional_properties = AdditionalProperties(has=value)
        else:
            self.additional_properties = AdditionalProperties(schema=SchemaRef(value=value))
        return self

    def with_discriminator(self, property_name: str, mapping: Optional[Dict[str, str]] = None) -> 'Schema':
        self.discriminator = Discriminator(property_name=property_name, mapping=dict(mapping or {}))
        return self

    # Validation

    def visit_json(self, value: Any, *options) -> None:
        """Validates a JSON value against this schema.

        Raises:
            SchemaError: On the first failure.
            MultiError: In multi-error mode, with every failure.
        """
        from oaschema.settings import new_schema_validation_settings
        from oaschema.validator import visit_json
        visit_json(self, value, new_schema_validation_settings(*options))

    def is_matching(self, value: Any) -> bool:
        from oaschema.settings import fail_fast
        try:
            self.visit_json(value, fail_fast())
        except (SchemaError, MultiError):
            return False
        return True

    def validate(self, options=None, minor_version: int = 0) -> None:
        """Checks that the schema itself is well formed.

        Raises:
            DocumentValidationError: On the first malformed schema found.
            RefError: On an unresolved reference.
        """
        from oaschema.settings import ValidationOptions
        _validate_schema(self, options or ValidationOptions(), minor_version, set())

    def __repr__(self):
        try:
            return f'Schema({self.to_dict()!r})'
        except ValueError:
            return f'Schema(<cyclic {id(self):#x}>)'


class SchemaRef(Ref):
    """Reference to a Schema, or an inline Schema."""

    value_cls = Schema
    component = 'schemas'

    @classmethod
    def from_dict(cls, data: Any) -> 'SchemaRef':
        if isinstance(data, bool):
            return cls(value=Schema.from_bool(data))
        return super().from_dict(data)

    def to_dict(self) -> Any:
        if self.ref:
            return {'$ref': self.ref}
        if self.value is None:
            return None
        return _encode(self.value, set())


def _base64_length(n: int) -> int:
    return 4 * ((n + 2) // 3)


def _expect_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise UnmarshalError(f'{key} must be a string, got {value!r}')
    return value


def _expect_number(data: Dict[str, Any], key: str):
    value = data.get(key)
    if value is not None and not is_number(value):
        raise UnmarshalError(f'{key} must be a number, got {value!r}')
    return value


def _expect_count(data: Dict[str, Any], key: str):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise UnmarshalError(f'{key} must be a non-negative integer, got {value!r}')
    return value


def _decode_bound(data: Dict[str, Any], key: str, exclusive_key: str, tighter):
    bound = _expect_number(data, key)
    exclusive = data.get(exclusive_key)
    if exclusive is None:
        return bound, False, BOUND_BOOLEAN
    if isinstance(exclusive, bool):
        return bound, exclusive, BOUND_BOOLEAN
    if not is_number(exclusive):
        raise UnmarshalError(f'{exclusive_key} must be a boolean or a number, got {exclusive!r}')
    if bound is not None and tighter(bound, exclusive) == bound and bound != exclusive:
        return bound, False, BOUND_NUMERIC
    return exclusive, True, BOUND_NUMERIC


def _schema_refs(data: Dict[str, Any], key: str) -> List[SchemaRef]:
    if key not in data:
        return []
    value = data[key]
    if not isinstance(value, list):
        raise UnmarshalError(f'{key} must be an array, got {value!r}')
    return [SchemaRef.from_dict(v) for v in value]


def _encode_ref(ref: SchemaRef, stack: set) -> Any:
    if ref.ref:
        return {'$ref': ref.ref}
    if ref.value is None:
        return None
    return _encode(ref.value, stack)


def _encode_bound(out, key, exclusive_key, bound, exclusive, style):
    if bound is None:
        if exclusive:
            out[exclusive_key] = True
        return
    if exclusive and style == BOUND_NUMERIC:
        out[exclusive_key] = bound
        return
    out[key] = bound
    if exclusive:
        out[exclusive_key] = True


def _encode(schema: Schema, stack: set) -> Union[Dict[str, Any], bool]:
    if schema._boolean is not None:
        return schema._boolean
    if id(schema) in stack:
        raise ValueError('cannot encode a schema that contains itself inline')
    stack.add(id(schema))
    try:
        out: Dict[str, Any] = {}
        if schema.title:
            out['title'] = schema.title
        if schema.description:
            out['description'] = schema.description
        schema.type.encode(out)
        for key, attr, default in _PLAIN_KEYWORDS:
            value = getattr(schema, attr)
            if value is not None and value != default:
                out[key] = value
        if schema.external_docs is not None:
            out['externalDocs'] = schema.external_docs.to_dict()
        for key, refs in (('oneOf', schema.one_of), ('anyOf', schema.any_of), ('allOf', schema.all_of)):
            if refs:
                out[key] = [_encode_ref(r, stack) for r in refs]
        if schema.not_ is not None:
            out['not'] = _encode_ref(schema.not_, stack)
        if schema.discriminator is not None:
            out['discriminator'] = schema.discriminator.to_dict()
        _encode_bound(out, 'minimum', 'exclusiveMinimum', schema.min, schema.exclusive_min, schema._min_style)
        _encode_bound(out, 'maximum', 'exclusiveMaximum', schema.max, schema.exclusive_max, schema._max_style)
        for key, attr, default in _NUMBER_KEYWORDS + _COUNT_KEYWORDS:
            value = getattr(schema, attr)
            if value is not None and value != default:
                out[key] = value
        if schema.pattern:
            out['pattern'] = schema.pattern
        if schema.unique_items:
            out['uniqueItems'] = True
        if schema.prefix_items:
            out['prefixItems'] = [_encode_ref(r, stack) for r in schema.prefix_items]
        if schema.items is not None:
            out['items'] = _encode_ref(schema.items, stack)
        if schema.contains is not None:
            out['contains'] = _encode_ref(schema.contains, stack)
        if schema.required:
            out['required'] = list(schema.required)
        if schema.properties:
            out['properties'] = {k: _encode_ref(v, stack) for k, v in schema.properties.items()}
        ap = schema.additional_properties
        if ap.schema is not None:
            out['additionalProperties'] = _encode_ref(ap.schema, stack)
        elif ap.has is not None:
            out['additionalProperties'] = ap.has
        if schema.property_names is not None:
            out['propertyNames'] = _encode_ref(schema.property_names, stack)
        if schema.defs:
            out['$defs'] = {k: _encode_ref(v, stack) for k, v in schema.defs.items()}
        out.update(schema.extra)
        out.update(schema.extensions)
        return out
    finally:
        stack.discard(id(schema))


def _validate_schema(schema: Schema, options, minor_version: int, visited: set) -> None:
    if id(schema) in visited:
        return
    visited.add(id(schema))

    for name in schema.type:
        if name not in ALL_TYPES:
            raise DocumentValidationError(f'unsupported \'type\' value {name!r}')
    if schema.format and options.schema_format_validation_enabled:
        registry = options.formats or SCHEMA_STRING_FORMATS
        for name in schema.type.non_null():
            known = FORMATS_BY_TYPE.get(name)
            if known is None:
                continue
            if schema.format in known:
                continue
            if name == TYPE_STRING and schema.format in registry:
                continue
            raise DocumentValidationError(f'unsupported \'format\' value {schema.format!r}')
    if schema.type.is_single(TYPE_ARRAY) and minor_version == 0 and schema.items is None:
        raise DocumentValidationError('when schema type is \'array\', schema \'items\' must be non-null')
    if schema.read_only and schema.write_only:
        raise DocumentValidationError('a property MUST NOT be marked as both readOnly and writeOnly being true')
    if schema.pattern and not options.schema_pattern_validation_disabled:
        try:
            schema.compiled_pattern()
        except re.error as e:
            raise DocumentValidationError(f'cannot compile pattern {schema.pattern!r}: {e}') from e
    if schema.multiple_of is not None and schema.multiple_of <= 0:
        raise DocumentValidationError(f'multipleOf must be greater than zero, got {schema.multiple_of!r}')
    if schema.discriminator is not None and not schema.discriminator.property_name:
        raise DocumentValidationError('discriminator must have a non-empty propertyName')

    for ref in schema.iter_refs():
        if ref.value is None:
            raise found_unresolved_ref(ref.ref)
        _validate_schema(ref.value, options, minor_version, visited)

    if not options.examples_validation_disabled:
        _validate_sample(schema, options, minor_version, 'default', schema.default)
        _validate_sample(schema, options, minor_version, 'example', schema.example)
        for sample in schema.examples or []:
            _validate_sample(schema, options, minor_version, 'examples', sample)


def _validate_sample(schema: Schema, options, minor_version: int, what: str, value: Any) -> None:
    if value is None:
        return
    from oaschema.settings import (disable_error_details, disable_pattern_validation,
                                   with_formats, with_openapi_minor_version)
    opts = [disable_error_details(), with_openapi_minor_version(minor_version)]
    if options.schema_pattern_validation_disabled:
        opts.append(disable_pattern_validation())
    if options.formats is not None:
        opts.append(with_formats(options.formats))
    try:
        schema.visit_json(value, *opts)
    except (SchemaError, MultiError) as e:
        raise DocumentValidationError(f'invalid {what}: {e}') from e


# Builders

def new_schema() -> Schema:
    return Schema()


def new_bool_schema() -> Schema:
    return Schema(type=TYPE_BOOLEAN)


def new_float64_schema() -> Schema:
    return Schema(type=TYPE_NUMBER)


def new_integer_schema() -> Schema:
    return Schema(type=TYPE_INTEGER)


def new_int32_schema() -> Schema:
    return Schema(type=TYPE_INTEGER, format='int32')


def new_int64_schema() -> Schema:
    return Schema(type=TYPE_INTEGER, format='int64')


def new_string_schema() -> Schema:
    return Schema(type=TYPE_STRING)


def new_date_time_schema() -> Schema:
    return Schema(type=TYPE_STRING, format='date-time')


def new_uuid_schema() -> Schema:
    return Schema(type=TYPE_STRING, format='uuid')


def new_bytes_schema() -> Schema:
    return Schema(type=TYPE_STRING, format='byte')


def new_array_schema(items: Optional[Schema] = None) -> Schema:
    schema = Schema(type=TYPE_ARRAY)
    if items is not None:
        schema.with_items(items)
    return schema


def new_object_schema() -> Schema:
    return Schema(type=TYPE_OBJECT)


def new_one_of_schema(*schemas: Schema) -> Schema:
    return Schema(one_of=[SchemaRef(value=s) for s in schemas])


def new_any_of_schema(*schemas: Schema) -> Schema:
    return Schema(any_of=[SchemaRef(value=s) for s in schemas])


def new_all_of_schema(*schemas: Schema) -> Schema:
    return Schema(all_of=[SchemaRef(value=s) for s in schemas])
