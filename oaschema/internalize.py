"""Rewrites references so that a document stands on its own.

Every reference that does not already point into ``#/components/`` has its
target copied into the matching components collection and is repointed there.
"""

import os
import re
from typing import Callable, Optional

from oaschema.common import split_ref, structurally_equal
from oaschema.components import Components
from oaschema.document import Document
from oaschema.errors import found_unresolved_ref
from oaschema.refs import Ref

RefNameResolver = Callable[[str], str]

_COMPONENTS_PREFIX = '#/components/'
_INVALID_NAME_CHARS = re.compile(r'[^a-zA-Z0-9._-]')


def default_ref_name_resolver(ref: str) -> str:
    """Derives a component name from a reference string.

    The last segment of the fragment is used when there is one, otherwise
    the file name without any of its extensions.

    >>> default_ref_name_resolver('common.yaml#/components/schemas/Pet')
    'Pet'
    >>> default_ref_name_resolver('models/pet.schema.json')
    'pet'
    """
    uri, fragment = split_ref(ref)
    segments = [s for s in fragment.split('/') if s]
    if segments:
        name = segments[-1].replace('~1', '/').replace('~0', '~')
    else:
        name = os.path.basename(uri.rstrip('/')).split('.')[0]
    return _INVALID_NAME_CHARS.sub('_', name) or '_'


def _needs_internalizing(ref: Optional[str]) -> bool:
    return bool(ref) and not ref.startswith(_COMPONENTS_PREFIX)


def internalize_refs(document: Document, ref_name_resolver: Optional[RefNameResolver] = None) -> Document:
    """Moves every referenced definition into the components of document.

    The document must have been resolved by a Loader first.

    Raises:
        RefError: If a reference has no resolved value.
    """
    resolver = ref_name_resolver or default_ref_name_resolver
    if document.components is None:
        document.components = Components()

    # Component entries that merely point elsewhere become the definition itself.
    for _, refs in document.components.collections():
        for ref in refs.values():
            if _needs_internalizing(ref.ref):
                if ref.value is None:
                    raise found_unresolved_ref(ref.ref)
                ref.ref = None

    seen = set()
    stack = [document]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        for ref in node.iter_refs():
            if _needs_internalizing(ref.ref):
                _internalize(document.components, ref, resolver)
            if ref.value is not None and hasattr(ref.value, 'iter_refs'):
                stack.append(ref.value)
    return document


def _internalize(components: Components, ref: Ref, resolver: RefNameResolver) -> None:
    if ref.value is None:
        raise found_unresolved_ref(ref.ref)
    collection = components.collection(ref.component)
    base = resolver(ref.ref)
    name = base
    index = 0
    while True:
        existing = collection.get(name)
        if existing is None:
            collection[name] = type(ref)(value=ref.value)
            break
        if existing.value is ref.value or structurally_equal(_as_dict(existing), ref.value.to_dict()):
            break
        index += 1
        name = f'{base}{index}'
    ref.ref = f'{_COMPONENTS_PREFIX}{ref.component}/{name.replace("~", "~0").replace("/", "~1")}'


def _as_dict(ref: Ref):
    if ref.value is not None:
        return ref.value.to_dict()
    return ref.to_dict()


def internalize_file(input_file_path: str, output_file_path: Optional[str] = None,
                     allow_external_refs: bool = True) -> None:
    """Loads a document, internalizes its references and writes it out.

    YAML is written when the output path ends in ``.yaml`` or ``.yml``,
    JSON otherwise.
    """
    from oaschema.loader import load_document
    from oaschema.marshal import dump_json, dump_yaml
    document = load_document(input_file_path, allow_external_refs)
    internalize_refs(document)
    data = document.to_dict()
    if output_file_path and output_file_path.endswith(('.yaml', '.yml')):
        text = dump_yaml(data)
    else:
        text = dump_json(data)
    if output_file_path:
        with open(output_file_path, 'w', encoding='utf-8') as f:
            f.write(text)
    else:
        print(text)
