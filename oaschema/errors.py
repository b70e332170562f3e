"""Exceptions raised by oaschema.

The hierarchy mirrors the four failure families of the library:

- UnmarshalError: the input document is malformed
- RefError: a reference cannot be resolved or is not allowed
- DocumentValidationError: the document does not follow the OpenAPI structure
- SchemaError / MultiError: a JSON value does not match a schema
"""

import json
from typing import Any, Iterator, List, NoReturn, Optional


class OASchemaError(Exception):
    """Base class for every error raised by this package."""


class UnmarshalError(OASchemaError, ValueError):
    """Raised when a document cannot be decoded into the object model."""


class RefError(OASchemaError):
    """Raised when a reference cannot be resolved."""

    def __init__(self, message: str, ref: str = ''):
        self.ref = ref
        super().__init__(message)


def found_unresolved_ref(ref: str) -> RefError:
    """Error for a pointer whose value slot was never populated."""
    return RefError(f'found unresolved ref: {ref!r}', ref)


def failed_to_resolve_ref_fragment_part(ref: str, part: str) -> RefError:
    """Error for a JSON pointer segment missing from its target."""
    return RefError(f'failed to resolve {part!r} in fragment in URI: {ref!r}', ref)


class DocumentValidationError(OASchemaError, ValueError):
    """Raised when a document fails structural validation.

    The message is prefixed with the section that failed, e.g.
    ``invalid components: ...``.
    """

    def __init__(self, message: str, section: str = ''):
        self.section = section
        super().__init__(f'invalid {section}: {message}' if section else message)


class MergeError(OASchemaError, ValueError):
    """Raised when allOf branches cannot be flattened into one schema."""


class SchemaError(OASchemaError, ValueError):
    """A JSON value does not satisfy a schema.

    Attributes:
        value: The offending value
        schema: The schema node that rejected it
        schema_field: The keyword that failed (``type``, ``minLength``, ...)
        reason: Human readable explanation
        origin: Underlying error (a MultiError for combinators)
    """

    def __init__(self, value: Any = None, schema: Any = None, schema_field: str = '',
                 reason: str = '', origin: Optional[BaseException] = None,
                 details_disabled: bool = False):
        self.value = value
        self.schema = schema
        self.schema_field = schema_field
        self.reason = reason
        self.origin = origin
        self.details_disabled = details_disabled
        self.reverse_path: List[str] = []
        super().__init__(reason)

    def json_pointer(self) -> List[str]:
        """Returns the path to the offending value, outermost segment first."""
        return list(reversed(self.reverse_path))

    def __str__(self) -> str:
        parts = []
        path = self.json_pointer()
        if path:
            parts.append('Error at "/' + '/'.join(path) + '": ')
        if self.reason:
            parts.append(self.reason)
        else:
            parts.append(f'doesn\'t match schema "{self.schema_field}"')
        if self.origin is not None:
            parts.append(f': {self.origin}')
        if not self.details_disabled and self.schema is not None:
            parts.append('\nSchema:\n  ')
            parts.append(_dump(self.schema.to_dict() if hasattr(self.schema, 'to_dict') else self.schema))
            parts.append('\nValue:\n  ')
            parts.append(_dump(self.value))
        return ''.join(parts)


def _dump(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=str).replace('\n', '\n  ')


class FailFastError(SchemaError):
    """Sentinel raised in fail-fast mode where no detail is collected."""

    def __str__(self) -> str:
        return self.reason


# Shared instance: fail-fast validation never builds a new error.
ERR_SCHEMA = FailFastError(reason='input does not match the schema', details_disabled=True)


def raise_fail_fast() -> NoReturn:
    """Raises ERR_SCHEMA with its traceback and context cleared."""
    raise ERR_SCHEMA.with_traceback(None) from None


class OneOfConflictError(OASchemaError):
    """Origin of a oneOf failure where the input matched several branches."""

    def __init__(self, first: int, second: int):
        self.first = first
        self.second = second
        super().__init__(f'input matches more than one oneOf schemas (at least #{first} and #{second})')


class SchemaInputNaNError(SchemaError):
    """NaN can never be a JSON number."""

    def __init__(self):
        super().__init__(reason='floating point NaN is not allowed', details_disabled=True)


class SchemaInputInfError(SchemaError):
    """Infinity can never be a JSON number."""

    def __init__(self):
        super().__init__(reason='floating point Inf is not allowed', details_disabled=True)


class MultiError(OASchemaError, ValueError):
    """A collection of errors reported together."""

    def __init__(self, errors: Optional[List[BaseException]] = None):
        self.errors: List[BaseException] = list(errors or [])
        super().__init__(str(self))

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def append(self, err: BaseException) -> None:
        """Adds an error, flattening nested MultiErrors."""
        if isinstance(err, MultiError):
            self.errors.extend(err.errors)
        else:
            self.errors.append(err)

    def __str__(self) -> str:
        return ' | '.join(str(e) for e in self.errors)


def mark_error_key(err: BaseException, key: str) -> BaseException:
    """Prepends an object key to the path of every SchemaError in err."""
    if isinstance(err, SchemaError) and not isinstance(err, FailFastError):
        err.reverse_path.append(str(key))
    elif isinstance(err, MultiError):
        for e in err.errors:
            mark_error_key(e, key)
    return err


def mark_error_index(err: BaseException, index: int) -> BaseException:
    """Prepends an array index to the path of every SchemaError in err."""
    return mark_error_key(err, str(index))
