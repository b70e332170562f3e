"""Flattening of allOf compositions.

merge() rewrites a schema so that no allOf remains, combining the keywords of
the branches one by one. The result accepts the same values in the common
cases; it is a best-effort transformation, not an equivalence proof.
"""

# pylint: disable=too-many-branches, too-many-locals

import itertools
import math
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from oaschema.common import json_equal
from oaschema.errors import MergeError
from oaschema.schema import STYLE_LIST, STYLE_SINGLE, AdditionalProperties, Schema, SchemaRef, Types


def merge(schema: Schema) -> Schema:
    """Returns schema with every reachable allOf flattened.

    A schema with no allOf anywhere in its graph is returned as is.

    Raises:
        MergeError: If branches hold incompatible constraints.
    """
    if not _has_all_of(schema):
        return schema
    return _Merger().merge_schema(schema)


def _has_all_of(root: Schema) -> bool:
    seen = set()
    stack = [root]
    while stack:
        schema = stack.pop()
        if id(schema) in seen:
            continue
        seen.add(id(schema))
        if schema.all_of:
            return True
        stack.extend(ref.value for ref in schema.iter_refs() if ref.value is not None)
    return False


class _Merger:
    def __init__(self):
        self.in_progress: set = set()
        self.done: Dict[int, Schema] = {}

    def merge_schema(self, schema: Schema) -> Schema:
        if id(schema) in self.done:
            return self.done[id(schema)]
        if id(schema) in self.in_progress:
            return schema
        self.in_progress.add(id(schema))
        try:
            result = schema.copy()
            self._merge_children(result)
            if result.all_of:
                branches = [self.merge_schema(_value(ref)) for ref in result.all_of]
                result.all_of = []
                result = merge_schemas([result] + branches)
        finally:
            self.in_progress.discard(id(schema))
        self.done[id(schema)] = result
        return result

    def _merge_ref(self, ref: Optional[SchemaRef]) -> Optional[SchemaRef]:
        if ref is None or ref.value is None:
            return ref
        merged = self.merge_schema(ref.value)
        if merged is ref.value:
            return ref
        return SchemaRef(value=merged)

    def _merge_children(self, schema: Schema) -> None:
        schema.items = self._merge_ref(schema.items)
        schema.not_ = self._merge_ref(schema.not_)
        schema.contains = self._merge_ref(schema.contains)
        schema.property_names = self._merge_ref(schema.property_names)
        schema.one_of = [self._merge_ref(r) for r in schema.one_of]
        schema.any_of = [self._merge_ref(r) for r in schema.any_of]
        schema.prefix_items = [self._merge_ref(r) for r in schema.prefix_items]
        schema.properties = {k: self._merge_ref(r) for k, r in schema.properties.items()}
        if schema.additional_properties.schema is not None:
            schema.additional_properties = AdditionalProperties(
                schema=self._merge_ref(schema.additional_properties.schema))


def _value(ref: SchemaRef) -> Schema:
    if ref.value is None:
        raise MergeError(f'found unresolved ref: {ref.ref!r}')
    return ref.value


def _first(values: List[Any]) -> Any:
    return next((v for v in values if v), None)


def merge_schemas(schemas: List[Schema]) -> Schema:
    """Combines a list of allOf-free schemas into one."""
    if len(schemas) == 1:
        return schemas[0]
    result = Schema()
    result.title = _first([s.title for s in schemas])
    result.description = _first([s.description for s in schemas])
    result.type = _merge_types(schemas)
    result.format = _identical([s.format for s in schemas], 'Format')
    _merge_numeric(result, schemas)
    _merge_counts(result, schemas)
    patterns = [s.pattern for s in schemas if s.pattern]
    if len(patterns) == 1:
        result.pattern = patterns[0]
    elif patterns:
        result.pattern = ''.join(f'(?={p})' for p in patterns)
    result.enum = _merge_enum(schemas)
    const = [s.const for s in schemas if s.const is not None]
    if const:
        if any(not json_equal(c, const[0]) for c in const[1:]):
            raise MergeError('Unable to resolve Const conflict: all Const values must be identical')
        result.const = const[0]
    result.required = _union([s.required for s in schemas])
    result.unique_items = any(s.unique_items for s in schemas)
    result.read_only = any(s.read_only for s in schemas)
    result.write_only = any(s.write_only for s in schemas)
    result.deprecated = any(s.deprecated for s in schemas)
    result.allow_empty_value = any(s.allow_empty_value for s in schemas)
    result.default = next((s.default for s in schemas if s.default is not None), None)
    result.example = next((s.example for s in schemas if s.example is not None), None)
    result.discriminator = next((s.discriminator for s in schemas if s.discriminator is not None), None)
    result.external_docs = next((s.external_docs for s in schemas if s.external_docs is not None), None)
    result.xml = next((s.xml for s in schemas if s.xml is not None), None)
    examples = [e for s in schemas for e in (s.examples or [])]
    result.examples = examples or None
    _merge_object(result, schemas)
    _merge_single_refs(result, schemas)
    nots = [s.not_ for s in schemas if s.not_ is not None]
    if len(nots) == 1:
        result.not_ = nots[0]
    elif nots:
        result.not_ = SchemaRef(value=Schema(any_of=nots))
    result.one_of = _product([s.one_of for s in schemas if s.one_of], 'oneOf')
    result.any_of = _product([s.any_of for s in schemas if s.any_of], 'anyOf')
    for s in schemas:
        for key, value in s.extensions.items():
            result.extensions.setdefault(key, value)
        for key, ref in s.defs.items():
            result.defs.setdefault(key, ref)
        for key, value in s.extra.items():
            result.extra.setdefault(key, value)
    return result


def _identical(values: List[Any], what: str) -> Any:
    present = [v for v in values if v]
    if any(v != present[0] for v in present[1:]):
        raise MergeError(f'Unable to resolve {what} conflict: all {what} values must be identical')
    return present[0] if present else None


def _merge_types(schemas: List[Schema]) -> Types:
    typed = [s.type for s in schemas if s.type.non_null()]
    if not typed:
        nullable_only = [s.type for s in schemas if s.type]
        return nullable_only[0].copy() if nullable_only and len(nullable_only) == len(schemas) else Types()
    first = typed[0]
    for other in typed[1:]:
        if set(other.non_null()) != set(first.non_null()):
            raise MergeError('Unable to resolve Type conflict: all Type values must be identical')
    result = Types(first.non_null(), first.style)
    if all('null' in t for t in typed):
        result.add('null')
    elif result.style != STYLE_LIST:
        result.style = STYLE_SINGLE
    return result


def _merge_numeric(result: Schema, schemas: List[Schema]) -> None:
    for s in schemas:
        if s.min is not None:
            if (result.min is None or s.min > result.min
                    or (s.min == result.min and s.exclusive_min)):
                result.min = s.min
                result.exclusive_min = s.exclusive_min
                result._min_style = s._min_style  # pylint: disable=protected-access
        if s.max is not None:
            if (result.max is None or s.max < result.max
                    or (s.max == result.max and s.exclusive_max)):
                result.max = s.max
                result.exclusive_max = s.exclusive_max
                result._max_style = s._max_style  # pylint: disable=protected-access
    multiples = [s.multiple_of for s in schemas if s.multiple_of]
    if multiples:
        result.multiple_of = lcm(multiples)


def lcm(values: List[float]):
    """Least common multiple of numbers, scaling decimals to integers first.

    The result is exact for the decimal text of each value; binary floating
    point inputs such as 0.1 are taken at their shortest representation.
    """
    decimals = [Decimal(str(v)) for v in values]
    scale = max(max(0, -d.as_tuple().exponent) for d in decimals)
    factor = 10 ** scale
    integers = [int(d * factor) for d in decimals]
    result = Decimal(math.lcm(*integers)) / factor
    if result == result.to_integral_value():
        return int(result)
    return float(result)


def _tightest(values: List[Optional[int]], pick: Callable) -> Optional[int]:
    present = [v for v in values if v is not None]
    return pick(present) if present else None


_COUNTS = (
    ('min_length', 'max_length'),
    ('min_items', 'max_items'),
    ('min_props', 'max_props'),
    ('min_contains', 'max_contains'),
)


def _merge_counts(result: Schema, schemas: List[Schema]) -> None:
    for low_attr, high_attr in _COUNTS:
        low = _tightest([getattr(s, low_attr) for s in schemas], max)
        if low is not None:
            setattr(result, low_attr, low)
        setattr(result, high_attr, _tightest([getattr(s, high_attr) for s in schemas], min))


def _merge_enum(schemas: List[Schema]) -> Optional[List[Any]]:
    enums = [s.enum for s in schemas if s.enum is not None]
    if not enums:
        return None
    result = [v for v in enums[0] if all(any(json_equal(v, o) for o in other) for other in enums[1:])]
    if not result:
        raise MergeError('Unable to resolve Enum conflict: enum values have no intersection')
    return result


def _union(lists: List[List[str]]) -> List[str]:
    result: List[str] = []
    for values in lists:
        for v in values:
            if v not in result:
                result.append(v)
    return result


def _merge_property_refs(refs: List[SchemaRef]) -> SchemaRef:
    if len(refs) == 1:
        return refs[0]
    return SchemaRef(value=merge_schemas([_value(r) for r in refs]))


def _merge_object(result: Schema, schemas: List[Schema]) -> None:
    by_name: Dict[str, List[SchemaRef]] = {}
    for s in schemas:
        for name, ref in s.properties.items():
            by_name.setdefault(name, []).append(ref)
    properties = {name: _merge_property_refs(refs) for name, refs in by_name.items()}

    closed = [s for s in schemas if s.additional_properties.forbids()]
    with_schema = [s.additional_properties.schema for s in schemas if s.additional_properties.schema is not None]
    if closed:
        # Only properties every closed branch declares may remain.
        properties = {name: ref for name, ref in properties.items()
                      if all(name in s.properties for s in closed)}
        result.additional_properties = AdditionalProperties(has=False)
    elif with_schema:
        result.additional_properties = AdditionalProperties(schema=_merge_property_refs(with_schema))
    elif any(s.additional_properties.has is True for s in schemas):
        result.additional_properties = AdditionalProperties(has=True)
    result.properties = properties


def _merge_single_refs(result: Schema, schemas: List[Schema]) -> None:
    for attr in ('items', 'contains', 'property_names'):
        refs = [getattr(s, attr) for s in schemas if getattr(s, attr) is not None]
        if refs:
            setattr(result, attr, _merge_property_refs(refs))
    longest = max((s.prefix_items for s in schemas), key=len)
    prefix = []
    for index in range(len(longest)):
        refs = [s.prefix_items[index] for s in schemas if len(s.prefix_items) > index]
        prefix.append(_merge_property_refs(refs))
    result.prefix_items = prefix


def _product(groups: List[List[SchemaRef]], what: str) -> List[SchemaRef]:
    """Cartesian product of alternative lists; impossible combinations are dropped."""
    if not groups:
        return []
    if len(groups) == 1:
        return list(groups[0])
    combined = []
    for combo in itertools.product(*groups):
        try:
            combined.append(SchemaRef(value=merge_schemas([_value(r) for r in combo])))
        except MergeError:
            continue
    if not combined:
        raise MergeError(f'Unable to resolve {what} conflict: no combination of alternatives is satisfiable')
    return combined


def merge_file(input_file_path: str, schema_name: str, output_file_path: Optional[str] = None,
               allow_external_refs: bool = False) -> None:
    """Flattens a named component schema and writes it as JSON."""
    from oaschema.loader import load_document
    from oaschema.marshal import dump_json
    document = load_document(input_file_path, allow_external_refs)
    schemas = document.components.schemas if document.components is not None else {}
    if schema_name not in schemas:
        raise KeyError(f'schema {schema_name!r} not found in {input_file_path}')
    text = dump_json(merge(schemas[schema_name].value).to_dict())
    if output_file_path:
        with open(output_file_path, 'w', encoding='utf-8') as f:
            f.write(text)
    else:
        print(text)
