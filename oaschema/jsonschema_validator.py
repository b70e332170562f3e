"""JSON Schema 2020-12 conformant validation.

The schema graph is translated into a plain JSON Schema document and handed to
``jsonschema.Draft202012Validator``. OpenAPI 3.0 keywords are rewritten on the
way (``nullable`` into a type list, boolean exclusive bounds into numeric
ones) and OpenAPI-only annotations are dropped. Failures are translated back
into SchemaError values carrying the path of the offending value.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema import exceptions as jsonschema_exceptions

from oaschema.errors import MultiError, SchemaError, found_unresolved_ref, raise_fail_fast
from oaschema.formats import SCHEMA_STRING_FORMATS, FormatRegistry
from oaschema.schema import Schema
from oaschema.settings import SchemaValidationSettings

logger = logging.getLogger(__name__)

# Keywords of unmodelled input that would change how references resolve
_DROPPED_EXTRA = ('$id', '$schema', '$ref', '$dynamicRef', '$dynamicAnchor', '$anchor')


def _find_recursive(root: Schema) -> set:
    """Returns the ids of schemas reached again while being visited."""
    recursive = set()
    on_path = set()
    done = set()
    stack = [(root, iter(_children(root)))]
    on_path.add(id(root))
    while stack:
        schema, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            on_path.discard(id(schema))
            done.add(id(schema))
            continue
        if id(child) in on_path:
            recursive.add(id(child))
        elif id(child) not in done:
            on_path.add(id(child))
            stack.append((child, iter(_children(child))))
    return recursive


def _children(schema: Schema) -> List[Schema]:
    return [ref.value for ref in schema.iter_refs() if ref.value is not None]


class _Translator:
    """Converts one schema graph into a JSON Schema document."""

    def __init__(self, root: Schema, settings: SchemaValidationSettings):
        self.root = root
        self.settings = settings
        self.recursive = _find_recursive(root)
        self.names: Dict[int, str] = {}
        self.defs: Dict[str, Any] = {}

    def translate(self) -> Union[Dict[str, Any], bool]:
        body = self._translate(self.root)
        if self.defs:
            if isinstance(body, bool):
                body = {} if body else {'not': {}}
            body['$defs'] = self.defs
        return body

    def _node(self, ref) -> Union[Dict[str, Any], bool]:
        schema = ref.value
        if schema is None:
            raise found_unresolved_ref(ref.ref)
        if id(schema) not in self.recursive:
            return self._translate(schema)
        if schema is self.root:
            return {'$ref': '#'}
        name = self.names.get(id(schema))
        if name is None:
            name = self.names[id(schema)] = f's{len(self.names) + 1}'
            self.defs[name] = {}
            self.defs[name] = self._translate(schema)
        return {'$ref': f'#/$defs/{name}'}

    def _translate(self, schema: Schema) -> Union[Dict[str, Any], bool]:
        if schema._boolean is not None:  # pylint: disable=protected-access
            return schema._boolean  # pylint: disable=protected-access
        out: Dict[str, Any] = {}
        if schema.title:
            out['title'] = schema.title
        if schema.description:
            out['description'] = schema.description
        if schema.type.restricts():
            names = schema.type.names
            out['type'] = names[0] if len(names) == 1 else names
        if schema.enum is not None:
            out['enum'] = list(schema.enum)
        if schema.const is not None:
            out['const'] = schema.const
        if schema.default is not None:
            out['default'] = schema.default
        if schema.examples is not None:
            out['examples'] = schema.examples
        if schema.deprecated:
            out['deprecated'] = True
        if schema.read_only:
            out['readOnly'] = True
        if schema.write_only:
            out['writeOnly'] = True

        if schema.min is not None:
            out['exclusiveMinimum' if schema.exclusive_min else 'minimum'] = schema.min
        if schema.max is not None:
            out['exclusiveMaximum' if schema.exclusive_max else 'maximum'] = schema.max
        if schema.multiple_of is not None:
            out['multipleOf'] = schema.multiple_of

        if schema.min_length:
            out['minLength'] = schema.min_length
        if schema.max_length is not None:
            out['maxLength'] = schema.max_length
        if schema.pattern and not self.settings.pattern_validation_disabled:
            out['pattern'] = schema.pattern
        if schema.format:
            out['format'] = schema.format

        if schema.min_items:
            out['minItems'] = schema.min_items
        if schema.max_items is not None:
            out['maxItems'] = schema.max_items
        if schema.unique_items:
            out['uniqueItems'] = True
        if schema.prefix_items:
            out['prefixItems'] = [self._node(r) for r in schema.prefix_items]
        if schema.items is not None:
            out['items'] = self._node(schema.items)
        if schema.contains is not None:
            out['contains'] = self._node(schema.contains)
        if schema.min_contains is not None:
            out['minContains'] = schema.min_contains
        if schema.max_contains is not None:
            out['maxContains'] = schema.max_contains

        if schema.min_props:
            out['minProperties'] = schema.min_props
        if schema.max_props is not None:
            out['maxProperties'] = schema.max_props
        if schema.required:
            out['required'] = list(schema.required)
        if schema.properties:
            out['properties'] = {k: self._node(v) for k, v in schema.properties.items()}
        additional = schema.additional_properties
        if additional.schema is not None:
            out['additionalProperties'] = self._node(additional.schema)
        elif additional.has is not None:
            out['additionalProperties'] = additional.has
        if schema.property_names is not None:
            out['propertyNames'] = self._node(schema.property_names)

        if schema.not_ is not None:
            out['not'] = self._node(schema.not_)
        for key, refs in (('oneOf', schema.one_of), ('anyOf', schema.any_of), ('allOf', schema.all_of)):
            if refs:
                out[key] = [self._node(r) for r in refs]

        for key, value in schema.extra.items():
            if key not in _DROPPED_EXTRA and not key.startswith('x-'):
                out.setdefault(key, value)
        return out


def to_json_schema(schema: Schema, settings: Optional[SchemaValidationSettings] = None) -> Union[Dict[str, Any], bool]:
    """Translates a resolved schema graph into a JSON Schema 2020-12 document."""
    return _Translator(schema, settings or SchemaValidationSettings()).translate()


def format_checker(registry: FormatRegistry, minor_version: int = 1) -> FormatChecker:
    """Builds a FormatChecker holding exactly the formats of registry."""
    checker = FormatChecker(formats=())
    for name in registry.names():
        entry = registry.get(name, minor_version)
        if entry is None:
            continue

        def check(instance, _name=name, _entry=entry):
            if not isinstance(instance, str):
                return True
            return _entry.check(_name, instance) is None

        checker.checks(name)(check)
    return checker


def translate_error(error: jsonschema_exceptions.ValidationError, details_disabled: bool = False) -> SchemaError:
    """Converts a jsonschema error, and its nested causes, into a SchemaError."""
    path = [str(p) for p in error.absolute_path]
    origin = None
    if error.context:
        origin = MultiError([translate_error(cause, details_disabled) for cause in error.context])
    err = SchemaError(value=error.instance, schema=error.schema, schema_field=str(error.validator),
                      reason=f'error at "/{"/".join(path)}": {error.message}', origin=origin,
                      details_disabled=details_disabled)
    err.reverse_path = list(reversed(path))
    return err


def visit_json_2020(schema: Schema, value: Any, settings: SchemaValidationSettings) -> None:
    """Validates value with the conformant engine.

    Falls back to the built-in engine when the translated schema is rejected
    by jsonschema.

    Raises:
        SchemaError: On failure, or the shared ERR_SCHEMA in fail-fast mode.
        MultiError: In multi-error mode.
    """
    from oaschema.validator import check_nan_inf, visit_json

    check_nan_inf(value)
    document = to_json_schema(schema, settings)
    try:
        Draft202012Validator.check_schema(document)
    except jsonschema_exceptions.SchemaError as e:
        logger.warning('cannot compile schema for JSON Schema 2020-12 validation, '
                       'falling back to the built-in validator: %s', e.message)
        visit_json(schema, value, settings.copy(use_json_schema_2020=False))
        return
    registry = settings.formats or SCHEMA_STRING_FORMATS
    validator = Draft202012Validator(document, format_checker=format_checker(registry, settings.openapi_minor_version))
    errors = list(validator.iter_errors(value))
    if not errors:
        return
    if settings.fail_fast:
        raise_fail_fast()
    if settings.multi_error:
        raise MultiError([translate_error(e, settings.error_details_disabled) for e in errors])
    # Top level error; its causes travel as the origin.
    best = max(errors, key=jsonschema_exceptions.relevance)
    raise translate_error(best, settings.error_details_disabled)
