"""Validation of component keys."""

import re

from oaschema.errors import DocumentValidationError

IDENTIFIER_PATTERN = r'^[a-zA-Z0-9._-]+$'

# Some generators emit keys such as ``Page[User]``.
IDENTIFIER_PATTERN_WITH_BRACKETS = r'^[a-zA-Z0-9._\[\]-]+$'

_compiled = {
    IDENTIFIER_PATTERN: re.compile(IDENTIFIER_PATTERN),
    IDENTIFIER_PATTERN_WITH_BRACKETS: re.compile(IDENTIFIER_PATTERN_WITH_BRACKETS),
}


def validate_identifier(value: str, pattern: str = IDENTIFIER_PATTERN) -> None:
    """Checks that a components key matches the identifier pattern.

    Raises:
        DocumentValidationError: If the identifier is not supported.
    """
    regexp = _compiled.get(pattern)
    if regexp is None:
        regexp = _compiled[pattern] = re.compile(pattern)
    if isinstance(value, str) and regexp.fullmatch(value):
        return
    raise DocumentValidationError(
        f'identifier {value!r} is not supported by OpenAPIv3 standard (regexp: {pattern!r})')
