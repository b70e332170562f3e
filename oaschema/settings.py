"""Option bags for value validation and document validation.

Options are plain callables applied once to a fresh settings object:

    settings = new_schema_validation_settings(multi_errors(), visit_as_request())

The resulting object is never mutated during a traversal.
"""

import copy
from typing import Any, Callable, List, Optional

from oaschema.formats import FormatRegistry

SchemaValidationOption = Callable[['SchemaValidationSettings'], None]
ValidationOption = Callable[['ValidationOptions'], None]


class SchemaValidationSettings:
    """Settings threaded through every call of a value validation."""

    def __init__(self):
        self.fail_fast = False
        self.multi_error = False
        self.as_request = False
        self.as_response = False
        self.format_validation_strict = False
        self.pattern_validation_disabled = False
        self.read_only_validation_disabled = False
        self.write_only_validation_disabled = False
        self.defaults_satisfy_required = False
        self.defaults_set_callback: Optional[Callable[[], None]] = None
        self.formats: Optional[FormatRegistry] = None
        self.unique_items_checker: Optional[Callable[[List[Any]], bool]] = None
        self.error_details_disabled = False
        self.use_json_schema_2020 = False
        self.openapi_minor_version = 1

    def copy(self, **changes) -> 'SchemaValidationSettings':
        """Returns a shallow copy with some attributes replaced."""
        other = copy.copy(self)
        for key, value in changes.items():
            if not hasattr(other, key):
                raise AttributeError(f'unknown validation setting {key!r}')
            setattr(other, key, value)
        return other


def new_schema_validation_settings(*options: SchemaValidationOption) -> SchemaValidationSettings:
    """Builds settings from option callables.

    Raises:
        ValueError: If request and response mode are both requested.
    """
    settings = SchemaValidationSettings()
    for option in options:
        option(settings)
    if settings.as_request and settings.as_response:
        raise ValueError('visit_as_request and visit_as_response are mutually exclusive')
    return settings


def fail_fast() -> SchemaValidationOption:
    """Stops at the first failure and raises a detail-free sentinel error."""
    def option(s):
        s.fail_fast = True
    return option


def multi_errors() -> SchemaValidationOption:
    """Collects every failure into a MultiError."""
    def option(s):
        s.multi_error = True
    return option


def visit_as_request() -> SchemaValidationOption:
    def option(s):
        s.as_request = True
    return option


def visit_as_response() -> SchemaValidationOption:
    def option(s):
        s.as_response = True
    return option


def enable_format_validation_strict() -> SchemaValidationOption:
    """Makes string formats missing from the registry a validation error."""
    def option(s):
        s.format_validation_strict = True
    return option


def disable_pattern_validation() -> SchemaValidationOption:
    def option(s):
        s.pattern_validation_disabled = True
    return option


def disable_read_only_validation() -> SchemaValidationOption:
    def option(s):
        s.read_only_validation_disabled = True
    return option


def disable_write_only_validation() -> SchemaValidationOption:
    def option(s):
        s.write_only_validation_disabled = True
    return option


def defaults_satisfy_required(callback: Optional[Callable[[], None]] = None) -> SchemaValidationOption:
    """Fills missing object properties from their ``default``.

    The callback, when given, is invoked once per validation that set at least
    one default.
    """
    def option(s):
        s.defaults_satisfy_required = True
        s.defaults_set_callback = callback
    return option


def with_formats(registry: FormatRegistry) -> SchemaValidationOption:
    def option(s):
        s.formats = registry
    return option


def with_unique_items_checker(checker: Callable[[List[Any]], bool]) -> SchemaValidationOption:
    """Replaces the default uniqueItems comparison.

    The checker receives the array and returns True when its items are unique.
    """
    def option(s):
        s.unique_items_checker = checker
    return option


def disable_error_details() -> SchemaValidationOption:
    """Keeps schema and value dumps out of error messages."""
    def option(s):
        s.error_details_disabled = True
    return option


def use_json_schema_2020() -> SchemaValidationOption:
    """Selects the JSON Schema 2020-12 conformant engine."""
    def option(s):
        s.use_json_schema_2020 = True
    return option


def with_openapi_minor_version(minor: int) -> SchemaValidationOption:
    """Selects which versioned string formats apply."""
    def option(s):
        s.openapi_minor_version = minor
    return option


class ValidationOptions:
    """Options of Document.validate."""

    def __init__(self):
        self.schema_format_validation_enabled = False
        self.schema_pattern_validation_disabled = False
        self.examples_validation_disabled = False
        self.identifier_brackets_allowed = False
        self.formats: Optional[FormatRegistry] = None


def new_validation_options(*options: ValidationOption) -> ValidationOptions:
    opts = ValidationOptions()
    for option in options:
        option(opts)
    return opts


def enable_schema_format_validation() -> ValidationOption:
    """Rejects schemas whose ``format`` is neither built in nor registered."""
    def option(o):
        o.schema_format_validation_enabled = True
    return option


def disable_schema_pattern_validation() -> ValidationOption:
    """Skips compiling ``pattern`` values while validating the document."""
    def option(o):
        o.schema_pattern_validation_disabled = True
    return option


def disable_examples_validation() -> ValidationOption:
    def option(o):
        o.examples_validation_disabled = True
    return option


def allow_identifiers_with_brackets() -> ValidationOption:
    """Accepts component keys such as ``Page[User]``."""
    def option(o):
        o.identifier_brackets_allowed = True
    return option


def with_document_formats(registry: FormatRegistry) -> ValidationOption:
    def option(o):
        o.formats = registry
    return option
