"""Textual encoding of documents.

JSON is tried first, YAML second, so callers never pass a format flag.
"""

import json
from typing import Any, Union

import yaml

from oaschema.errors import UnmarshalError

_TIMESTAMP_TAG = 'tag:yaml.org,2002:timestamp'


class _SafeLoader(yaml.SafeLoader):  # pylint: disable=too-many-ancestors
    """SafeLoader that keeps dates as strings and mapping keys as strings."""


_SafeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool) or key is None:
        return json.dumps(key)
    return str(key)


def _construct_mapping(loader: yaml.SafeLoader, node: yaml.MappingNode):
    loader.flatten_mapping(node)
    mapping = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        mapping[_key(key)] = loader.construct_object(value_node, deep=True)
    return mapping


_SafeLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping)


def parse_bytes(data: Union[bytes, str]) -> Any:
    """Decodes JSON or YAML text.

    Raises:
        UnmarshalError: If the data is neither valid JSON nor valid YAML.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise UnmarshalError(f'failed to unmarshal data: {e}') from e
    try:
        return json.loads(data)
    except json.JSONDecodeError as json_error:
        try:
            return yaml.load(data, Loader=_SafeLoader)  # nosec B506: safe loader subclass
        except yaml.YAMLError as yaml_error:
            raise UnmarshalError(
                f'failed to unmarshal data: json error: {json_error}, yaml error: {yaml_error}') from yaml_error


def dump_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def dump_yaml(obj: Any) -> str:
    return yaml.safe_dump(obj, sort_keys=False, allow_unicode=True)
