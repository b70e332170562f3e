"""Validates JSON values against schema nodes.

The built-in engine walks the schema graph directly. Per call it checks, in
order: NaN/Inf input, empty schemas, set operations (enum, const, not, oneOf,
anyOf, allOf), then the constraints of the value's kind.
"""

# pylint: disable=too-many-branches, too-many-statements, too-many-locals

import copy
import json
import logging
import math
import re
from fractions import Fraction
from typing import Any, List, Optional

from oaschema.common import canonical_json, is_integral, json_equal
from oaschema.errors import (FailFastError, MultiError, OneOfConflictError, SchemaError,
                             SchemaInputInfError, SchemaInputNaNError, found_unresolved_ref,
                             mark_error_index, mark_error_key, raise_fail_fast)
from oaschema.formats import SCHEMA_STRING_FORMATS
from oaschema.schema import (TYPE_ARRAY, TYPE_BOOLEAN, TYPE_INTEGER, TYPE_NULL, TYPE_NUMBER, TYPE_OBJECT,
                             TYPE_STRING, Schema, SchemaRef)
from oaschema.settings import SchemaValidationSettings, new_schema_validation_settings

logger = logging.getLogger(__name__)

VALIDATION_ERRORS = (SchemaError, MultiError)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Formats defined by OpenAPI that carry no string check of their own
_UNCHECKED_FORMATS = ('int32', 'int64', 'float', 'double', 'password', 'binary')


def utf16_length(value: str) -> int:
    """Length in UTF-16 code units; characters outside the BMP count twice."""
    return len(value.encode('utf-16-le', 'surrogatepass')) // 2


def is_unique(items: List[Any]) -> bool:
    """Default uniqueItems check, comparing canonical JSON serializations."""
    seen = set()
    for item in items:
        key = canonical_json(item)
        if key in seen:
            return False
        seen.add(key)
    return True


def visit_json(schema: Schema, value: Any, settings: Optional[SchemaValidationSettings] = None) -> None:
    """Validates value against schema.

    Raises:
        SchemaError: On failure, or the shared ERR_SCHEMA in fail-fast mode.
        MultiError: In multi-error mode.
    """
    settings = settings or SchemaValidationSettings()
    if settings.use_json_schema_2020:
        from oaschema.jsonschema_validator import visit_json_2020
        visit_json_2020(schema, value, settings)
        return
    validator = _Validator(settings)
    validator.visit(schema, value)
    validator.finish()


def validate(schema: Schema, value: Any, *options) -> None:
    """Validates value against schema with option callables."""
    visit_json(schema, value, new_schema_validation_settings(*options))


def check_nan_inf(value: Any) -> None:
    if isinstance(value, float):
        if math.isnan(value):
            raise SchemaInputNaNError()
        if math.isinf(value):
            raise SchemaInputInfError()


def _value_of(ref: SchemaRef) -> Schema:
    if ref.value is None:
        raise found_unresolved_ref(ref.ref)
    return ref.value


def _describe(types) -> str:
    names = types.names
    if len(names) == 1:
        name = names[0]
        return f'an {name}' if name[0] in 'aeiou' else f'a {name}'
    return 'one of ' + ', '.join(names)


class _Validator:
    """One validation call. Holds the settings and the defaults bookkeeping."""

    def __init__(self, settings: SchemaValidationSettings):
        self.settings = settings
        self.formats = settings.formats or SCHEMA_STRING_FORMATS
        self.defaults_set = False

    def finish(self) -> None:
        if self.defaults_set and self.settings.defaults_set_callback is not None:
            self.settings.defaults_set_callback()

    # Error plumbing

    def _error(self, errors: MultiError, schema: Schema, value: Any, field: str, reason: str,
               origin: Optional[BaseException] = None) -> None:
        """Reports one failure: raised at once unless errors are collected."""
        if self.settings.fail_fast:
            raise_fail_fast()
        err = SchemaError(value=value, schema=schema, schema_field=field, reason=reason, origin=origin,
                          details_disabled=self.settings.error_details_disabled)
        if self.settings.multi_error:
            errors.append(err)
            return
        raise err

    def _nested(self, errors: MultiError, err: BaseException) -> None:
        if isinstance(err, FailFastError):
            raise_fail_fast()
        if self.settings.multi_error:
            errors.append(err)
            return
        raise err

    def _matches(self, schema: Schema, value: Any) -> Optional[BaseException]:
        """Returns the failure of value against schema, or None."""
        try:
            self.visit(schema, value)
        except VALIDATION_ERRORS as e:
            return e
        return None

    # Dispatch

    def visit(self, schema: Schema, value: Any) -> None:
        check_nan_inf(value)
        if schema.is_empty():
            return
        errors = MultiError()
        matched = self._visit_set_operations(errors, schema, value)
        if value is None:
            self._visit_null(errors, schema, matched)
        elif isinstance(value, bool):
            self._visit_bool(errors, schema, value)
        elif isinstance(value, (int, float)):
            self._visit_number(errors, schema, value)
        elif isinstance(value, str):
            self._visit_string(errors, schema, value)
        elif isinstance(value, (list, tuple)):
            self._visit_array(errors, schema, value)
        elif isinstance(value, dict):
            self._visit_object(errors, schema, value)
        else:
            self._error(errors, schema, value, 'type', f'unhandled value of type {type(value).__name__}')
        if errors:
            raise errors

    # Set operations

    def _visit_set_operations(self, errors: MultiError, schema: Schema, value: Any) -> bool:
        """Checks enum, const and the combinators.

        Returns:
            bool: True when value is null and a combinator or enum accepted it.
        """
        matched = False
        if schema.enum is not None:
            if any(json_equal(value, e) for e in schema.enum):
                matched = True
            else:
                self._error(errors, schema, value, 'enum',
                            f'value is not one of the allowed values {json.dumps(schema.enum, default=str)}')
        if schema.const is not None and not json_equal(value, schema.const):
            self._error(errors, schema, value, 'const',
                        f'value must be {json.dumps(schema.const, default=str)}')
        if schema.not_ is not None:
            if self._quiet_matches(_value_of(schema.not_), value):
                self._error(errors, schema, value, 'not', 'value matches the schema of "not"')
        if schema.one_of:
            matched = self._visit_one_of(errors, schema, value) or matched
        if schema.any_of:
            matched = self._visit_any_of(errors, schema, value) or matched
        if schema.all_of:
            matched = self._visit_all_of(errors, schema, value) or matched
        return matched and value is None

    def _quiet_matches(self, schema: Schema, value: Any) -> bool:
        """Fail-fast sub-validation that leaves no trace in the result."""
        quiet = _Validator(self.settings.copy(fail_fast=True, multi_error=False))
        quiet.formats = self.formats
        return quiet._matches(schema, value) is None

    def _discriminated_branch(self, errors: MultiError, schema: Schema, value: Any):
        """Picks the oneOf branch named by the discriminator.

        Returns:
            A (index, SchemaRef) list, or None when the discriminator does not apply.
        """
        discriminator = schema.discriminator
        if discriminator is None or not discriminator.property_name or not isinstance(value, dict):
            return None
        name = discriminator.property_name
        if name not in value:
            self._error(errors, schema, value, 'discriminator',
                        f'input does not contain the discriminator property {name!r}')
            return []
        discriminator_value = value[name]
        if not isinstance(discriminator_value, str):
            self._error(errors, schema, value, 'discriminator',
                        f'value of discriminator property {name!r} is not a string')
            return []
        mapped = (discriminator.mapping or {}).get(discriminator_value)
        for index, ref in enumerate(schema.one_of):
            if mapped is not None and _ref_matches_mapping(ref, mapped):
                return [(index, ref)]
        if mapped is None:
            for index, ref in enumerate(schema.one_of):
                if ref.ref and ref.ref.rsplit('/', 1)[-1] == discriminator_value:
                    return [(index, ref)]
        self._error(errors, schema, value, 'discriminator',
                    f'discriminator property {name!r} has invalid value: '
                    f'no valid discriminator value {discriminator_value!r} found in oneOf')
        return []

    def _visit_one_of(self, errors: MultiError, schema: Schema, value: Any) -> bool:
        branches = self._discriminated_branch(errors, schema, value)
        if branches is None:
            branches = list(enumerate(schema.one_of))
        elif not branches:
            return False
        causes = MultiError()
        ok: List[int] = []
        for index, ref in branches:
            err = self._matches(_value_of(ref), value)
            if err is None:
                ok.append(index)
            elif not self.settings.fail_fast:
                causes.append(err)
        if len(ok) > 1:
            self._error(errors, schema, value, 'oneOf', 'value matches more than one schema from "oneOf"',
                        origin=OneOfConflictError(ok[0], ok[1]))
            return False
        if not ok:
            self._error(errors, schema, value, 'oneOf', 'value doesn\'t match any schema from "oneOf"',
                        origin=causes)
            return False
        return True

    def _visit_any_of(self, errors: MultiError, schema: Schema, value: Any) -> bool:
        causes = MultiError()
        for ref in schema.any_of:
            err = self._matches(_value_of(ref), value)
            if err is None:
                return True
            if not self.settings.fail_fast:
                causes.append(err)
        self._error(errors, schema, value, 'anyOf', 'value doesn\'t match any schema from "anyOf"', origin=causes)
        return False

    def _visit_all_of(self, errors: MultiError, schema: Schema, value: Any) -> bool:
        causes = MultiError()
        for ref in schema.all_of:
            err = self._matches(_value_of(ref), value)
            if err is None:
                continue
            if self.settings.fail_fast:
                raise_fail_fast()
            if not self.settings.multi_error:
                self._error(errors, schema, value, 'allOf', 'value doesn\'t match all schemas from "allOf"', origin=err)
            causes.append(err)
        if causes:
            self._error(errors, schema, value, 'allOf', 'value doesn\'t match all schemas from "allOf"', origin=causes)
            return False
        return True

    # Kinds

    def _check_type(self, errors: MultiError, schema: Schema, value: Any, name: str) -> bool:
        if schema.type.permits(name):
            return True
        self._error(errors, schema, value, 'type', f'value must be {_describe(schema.type)}')
        return False

    def _visit_null(self, errors: MultiError, schema: Schema, matched: bool) -> None:
        if matched or TYPE_NULL in schema.type:
            return
        self._error(errors, schema, None, 'nullable', 'Value is not nullable')

    def _visit_bool(self, errors: MultiError, schema: Schema, value: bool) -> None:
        self._check_type(errors, schema, value, TYPE_BOOLEAN)

    def _visit_number(self, errors: MultiError, schema: Schema, value) -> None:
        integral = is_integral(value)
        types = schema.type
        if types.restricts() and TYPE_NUMBER not in types:
            if TYPE_INTEGER not in types:
                self._error(errors, schema, value, 'type', f'value must be {_describe(types)}')
                return
            if not integral:
                self._error(errors, schema, value, 'type', 'value must be an integer')
                return
        if integral and schema.format in ('int32', 'int64'):
            low, high = (INT32_MIN, INT32_MAX) if schema.format == 'int32' else (INT64_MIN, INT64_MAX)
            if not low <= value <= high:
                self._error(errors, schema, value, 'format', f'number must be an {schema.format}')

        if schema.min is not None:
            if schema.exclusive_min and not value > schema.min:
                self._error(errors, schema, value, 'exclusiveMinimum', f'number must be more than {schema.min}')
            elif not schema.exclusive_min and value < schema.min:
                self._error(errors, schema, value, 'minimum', f'number must be at least {schema.min}')
        elif schema.exclusive_min:
            logger.debug('exclusiveMinimum without minimum is ignored')
        if schema.max is not None:
            if schema.exclusive_max and not value < schema.max:
                self._error(errors, schema, value, 'exclusiveMaximum', f'number must be less than {schema.max}')
            elif not schema.exclusive_max and value > schema.max:
                self._error(errors, schema, value, 'maximum', f'number must be at most {schema.max}')

        multiple_of = schema.multiple_of
        if multiple_of:
            if isinstance(value, int) and isinstance(multiple_of, int):
                ok = value % multiple_of == 0
            elif isinstance(value, float) and isinstance(multiple_of, float):
                # Division based: approximate for floats.
                ok = float(value / multiple_of).is_integer()
            else:
                # Mixed int and float: exact, ints may exceed the float range.
                ok = (Fraction(value) / Fraction(multiple_of)).denominator == 1
            if not ok:
                self._error(errors, schema, value, 'multipleOf', f'number must be a multiple of {multiple_of}')

    def _visit_string(self, errors: MultiError, schema: Schema, value: str) -> None:
        if not self._check_type(errors, schema, value, TYPE_STRING):
            return
        if schema.min_length or schema.max_length is not None:
            length = utf16_length(value)
            if length < schema.min_length:
                self._error(errors, schema, value, 'minLength', f'minimum string length is {schema.min_length}')
            if schema.max_length is not None and length > schema.max_length:
                self._error(errors, schema, value, 'maxLength', f'maximum string length is {schema.max_length}')

        if schema.pattern and not self.settings.pattern_validation_disabled:
            try:
                compiled = schema.compiled_pattern()
            except re.error as e:
                self._error(errors, schema, value, 'pattern', f'cannot compile pattern {schema.pattern!r}: {e}')
            else:
                if not compiled.search(value):
                    self._error(errors, schema, value, 'pattern',
                                f'string doesn\'t match the regular expression "{schema.pattern}"')

        if schema.format:
            entry = self.formats.get(schema.format, self.settings.openapi_minor_version)
            if entry is None:
                if self.settings.format_validation_strict and schema.format not in _UNCHECKED_FORMATS:
                    self._error(errors, schema, value, 'format', f'unsupported format {schema.format!r}')
                return
            reason = entry.check(schema.format, value)
            if reason:
                self._error(errors, schema, value, 'format', reason)

    def _visit_array(self, errors: MultiError, schema: Schema, value: list) -> None:
        if not self._check_type(errors, schema, value, TYPE_ARRAY):
            return
        count = len(value)
        if count < schema.min_items:
            self._error(errors, schema, value, 'minItems', f'minimum number of items is {schema.min_items}')
        if schema.max_items is not None and count > schema.max_items:
            self._error(errors, schema, value, 'maxItems', f'maximum number of items is {schema.max_items}')
        if schema.unique_items:
            checker = self.settings.unique_items_checker or is_unique
            if not checker(list(value)):
                self._error(errors, schema, value, 'uniqueItems', 'duplicate items found')

        for index, ref in enumerate(schema.prefix_items[:count]):
            err = self._matches(_value_of(ref), value[index])
            if err is not None:
                self._nested(errors, mark_error_index(err, index))
        if schema.items is not None:
            items = _value_of(schema.items)
            for index in range(len(schema.prefix_items), count):
                err = self._matches(items, value[index])
                if err is not None:
                    self._nested(errors, mark_error_index(err, index))

        if schema.contains is not None:
            contains = _value_of(schema.contains)
            found = sum(1 for item in value if self._quiet_matches(contains, item))
            low = 1 if schema.min_contains is None else schema.min_contains
            if found < low:
                self._error(errors, schema, value, 'contains',
                            f'array must contain at least {low} items matching "contains"')
            if schema.max_contains is not None and found > schema.max_contains:
                self._error(errors, schema, value, 'maxContains',
                            f'array must contain at most {schema.max_contains} items matching "contains"')

    def _visit_object(self, errors: MultiError, schema: Schema, value: dict) -> None:
        if not self._check_type(errors, schema, value, TYPE_OBJECT):
            return
        settings = self.settings

        if settings.defaults_satisfy_required:
            for name, ref in schema.properties.items():
                prop = ref.value
                if name not in value and prop is not None and prop.default is not None:
                    value[name] = copy.deepcopy(prop.default)
                    self.defaults_set = True

        count = len(value)
        if count < schema.min_props:
            self._error(errors, schema, value, 'minProperties', f'there must be at least {schema.min_props} properties')
        if schema.max_props is not None and count > schema.max_props:
            self._error(errors, schema, value, 'maxProperties', f'there must be at most {schema.max_props} properties')

        if schema.property_names is not None:
            names = _value_of(schema.property_names)
            for key in sorted(value):
                err = self._matches(names, key)
                if err is not None:
                    self._nested(errors, mark_error_key(err, key))

        additional = schema.additional_properties
        for key in sorted(value):
            item = value[key]
            ref = schema.properties.get(key)
            if ref is not None:
                prop = _value_of(ref)
                if settings.as_request and prop.read_only and not settings.read_only_validation_disabled:
                    self._nested_error(errors, schema, value, key, 'readOnly', f'readOnly property {key!r} in request')
                    continue
                if settings.as_response and prop.write_only and not settings.write_only_validation_disabled:
                    self._nested_error(errors, schema, value, key, 'writeOnly', f'writeOnly property {key!r} in response')
                    continue
                err = self._matches(prop, item)
                if err is not None:
                    self._nested(errors, mark_error_key(err, key))
                continue
            if additional.schema is not None:
                err = self._matches(_value_of(additional.schema), item)
                if err is not None:
                    self._nested(errors, mark_error_key(err, key))
            elif additional.has is False:
                self._nested_error(errors, schema, value, key, 'properties', f'property {key!r} is unsupported')

        for name in schema.required:
            if name in value:
                continue
            ref = schema.properties.get(name)
            prop = ref.value if ref is not None else None
            if prop is not None:
                if settings.as_request and prop.read_only:
                    continue
                if settings.as_response and prop.write_only:
                    continue
            self._nested_error(errors, schema, value, name, 'required', f'property {name!r} is missing')

    def _nested_error(self, errors: MultiError, schema: Schema, value: Any, key: str, field: str, reason: str) -> None:
        if self.settings.fail_fast:
            raise_fail_fast()
        err = SchemaError(value=value, schema=schema, schema_field=field, reason=reason,
                          details_disabled=self.settings.error_details_disabled)
        self._nested(errors, mark_error_key(err, key))


def _ref_matches_mapping(ref: SchemaRef, mapped: str) -> bool:
    if not ref.ref:
        return False
    if ref.ref == mapped:
        return True
    if '/' not in mapped and '#' not in mapped:
        return ref.ref == f'#/components/schemas/{mapped}' or ref.ref.endswith(f'/{mapped}')
    return ref.ref.endswith(mapped.lstrip('.'))


def check_file(input_file_path: str, schema_name: str, value_file: str, engine: str = 'builtin',
               allow_external_refs: bool = False) -> None:
    """Validates the JSON or YAML value in value_file against a named component schema."""
    from oaschema.loader import load_document
    from oaschema.marshal import parse_bytes
    from oaschema.settings import multi_errors, use_json_schema_2020
    document = load_document(input_file_path, allow_external_refs)
    schemas = document.components.schemas if document.components is not None else {}
    if schema_name not in schemas:
        raise KeyError(f'schema {schema_name!r} not found in {input_file_path}')
    with open(value_file, 'rb') as f:
        value = parse_bytes(f.read())
    options = [multi_errors()]
    if engine == 'jsonschema':
        options.append(use_json_schema_2020())
    schemas[schema_name].value.visit_json(value, *options)
    print(f'{value_file}: valid against {schema_name}')
