"""String format registry.

Formats are looked up by name while validating strings. Each entry is either a
regular expression or a callback raising on invalid input. Entries can be
restricted to documents of a minimum OpenAPI minor version (3.Y).
"""

import copy
import ipaddress
import re
from typing import Callable, Dict, List, Optional, Pattern

from oaschema.errors import SchemaError

# Optional predefined format for UUID v1-v5 as specified by RFC4122
FORMAT_OF_STRING_FOR_UUID_OF_RFC4122 = (
    r'^(?:[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}'
    r'|00000000-0000-0000-0000-000000000000)\Z'
)

# Catches only some suspiciously wrong-looking email addresses.
FORMAT_OF_STRING_FOR_EMAIL = r'^[^@]+@[^@<>",\s]+\Z'

FormatCallback = Callable[[str], None]


class VersionedFormat:
    """A single format checker, regex or callback."""

    def __init__(self, regexp: Optional[Pattern] = None, callback: Optional[FormatCallback] = None):
        self.regexp = regexp
        self.callback = callback

    def check(self, name: str, value: str) -> Optional[str]:
        """Returns the failure reason, or None when value is valid."""
        if self.regexp is not None and self.callback is None:
            if not self.regexp.search(value):
                return f'string doesn\'t match the format {name!r} (regular expression {self.regexp.pattern!r})'
            return None
        if self.callback is not None and self.regexp is None:
            try:
                self.callback(value)
            except (SchemaError, ValueError) as e:
                return getattr(e, 'reason', '') or str(e)
            return None
        return f'corrupted entry {name!r} in the format registry'


class Format:
    """All registered versions of one format name, indexed by minor version."""

    def __init__(self):
        self.versioned_formats: List[Optional[VersionedFormat]] = []

    def add(self, min_minor_version: int, vformat: VersionedFormat) -> None:
        if not self.versioned_formats:
            self.versioned_formats = [None] * (min_minor_version + 1)
            self.versioned_formats[min_minor_version] = vformat
            return
        count = len(self.versioned_formats)
        if min_minor_version >= count:
            last = self.versioned_formats[-1]
            self.versioned_formats.extend([last] * (min_minor_version + 1 - count))
            self.versioned_formats[min_minor_version] = vformat
            return
        for i in range(min_minor_version, count):
            self.versioned_formats[i] = vformat

    def get(self, minor_version: int) -> Optional[VersionedFormat]:
        if not self.versioned_formats:
            return None
        if minor_version >= len(self.versioned_formats):
            return self.versioned_formats[-1]
        return self.versioned_formats[minor_version]

    def defined_for_minor_version(self, minor_version: int) -> bool:
        return self.get(minor_version) is not None


class FormatRegistry:
    """Named string formats.

    A registry is configuration: fill it before validating and do not mutate it
    while other threads validate with it.
    """

    def __init__(self, with_defaults: bool = True):
        self.formats: Dict[str, Format] = {}
        if with_defaults:
            self._define_defaults()

    def _define_defaults(self) -> None:
        # The pattern supports base64 and base64url. Padding ('=') is supported.
        self.define_string_format('byte', r'(^\Z|^[a-zA-Z0-9+/\-_]*=*\Z)')
        self.define_string_format('date', r'^[0-9]{4}-(0[0-9]|10|11|12)-([0-2][0-9]|30|31)\Z')
        self.define_string_format(
            'date-time',
            r'^[0-9]{4}-(0[0-9]|10|11|12)-([0-2][0-9]|30|31)T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?(Z|(\+|-)[0-9]{2}:[0-9]{2})?\Z')

    def define_string_format(self, name: str, pattern: str, from_openapi_minor_version: int = 0) -> None:
        """Defines a regular expression checker for a format name.

        Raises:
            ValueError: If the pattern does not compile.
        """
        try:
            regexp = re.compile(pattern)
        except re.error as e:
            raise ValueError(f'format {name!r} has invalid pattern {pattern!r}: {e}') from e
        self._update(name, from_openapi_minor_version, VersionedFormat(regexp=regexp))

    def define_string_format_callback(self, name: str, callback: FormatCallback,
                                      from_openapi_minor_version: int = 0) -> None:
        """Defines a callback checker for a format name."""
        self._update(name, from_openapi_minor_version, VersionedFormat(callback=callback))

    def _update(self, name: str, min_minor_version: int, vformat: VersionedFormat) -> None:
        fmt = self.formats.get(name)
        if fmt is None:
            fmt = self.formats[name] = Format()
        fmt.add(min_minor_version, vformat)

    def get(self, name: str, minor_version: int = 1) -> Optional[VersionedFormat]:
        fmt = self.formats.get(name)
        return fmt.get(minor_version) if fmt is not None else None

    def __contains__(self, name: str) -> bool:
        return name in self.formats

    def names(self) -> List[str]:
        return list(self.formats)

    def save(self) -> Dict[str, Format]:
        """Returns a deep copy of the registered formats."""
        return copy.deepcopy(self.formats)

    def restore(self, saved: Dict[str, Format]) -> None:
        self.formats = copy.deepcopy(saved)

    def restore_default_string_formats(self) -> None:
        self.formats = {}
        self._define_defaults()


def validate_ipv4(value: str) -> None:
    try:
        ipaddress.IPv4Address(value)
    except ValueError as e:
        raise SchemaError(value=value, reason='Not an IPv4 address', details_disabled=True) from e


def validate_ipv6(value: str) -> None:
    try:
        ipaddress.IPv6Address(value)
    except ValueError as e:
        raise SchemaError(value=value, reason='Not an IPv6 address', details_disabled=True) from e


def define_ipv4_format(registry: Optional[FormatRegistry] = None) -> None:
    """Opts in ipv4 format validation on top of OpenAPI 3."""
    (registry or SCHEMA_STRING_FORMATS).define_string_format_callback('ipv4', validate_ipv4)


def define_ipv6_format(registry: Optional[FormatRegistry] = None) -> None:
    """Opts in ipv6 format validation on top of OpenAPI 3."""
    (registry or SCHEMA_STRING_FORMATS).define_string_format_callback('ipv6', validate_ipv6)


def define_email_format(registry: Optional[FormatRegistry] = None) -> None:
    (registry or SCHEMA_STRING_FORMATS).define_string_format('email', FORMAT_OF_STRING_FOR_EMAIL)


def define_uuid_format(registry: Optional[FormatRegistry] = None) -> None:
    (registry or SCHEMA_STRING_FORMATS).define_string_format('uuid', FORMAT_OF_STRING_FOR_UUID_OF_RFC4122)


# Registry used when validation settings do not carry their own.
SCHEMA_STRING_FORMATS = FormatRegistry()
