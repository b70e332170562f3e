"""Loading documents and resolving their references.

The Loader fetches documents, decodes them into the object model and fills the
``value`` of every Ref. Internal pointers are followed through the in-memory
graph; external ones fetch the referenced document first. Resolved targets
are shared between all references to them, so the resulting graph may be
cyclic.
"""

# pylint: disable=too-many-instance-attributes

import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote, urlparse

import requests
from jsonpointer import JsonPointer, JsonPointerException, resolve_pointer

from oaschema.common import is_url, resolve_location, split_ref, structurally_equal
from oaschema.components import Components
from oaschema.document import Document, is_document
from oaschema.errors import OASchemaError, RefError, UnmarshalError, failed_to_resolve_ref_fragment_part
from oaschema.marshal import parse_bytes
from oaschema.refs import Ref

logger = logging.getLogger(__name__)

ReadFromURIFunc = Callable[['Loader', str], bytes]

DEFAULT_CIRCULAR_REFERENCE_COUNTER = 3


def read_from_uri(loader: 'Loader', location: str) -> bytes:
    """Default fetcher: http(s) through requests, everything else from disk.

    Raises:
        RefError: If the server answers with an error status.
        OSError: If the file cannot be read.
    """
    parsed = urlparse(location)
    if parsed.scheme in ('http', 'https'):
        response = requests.get(location, timeout=30)
        if response.status_code > 399:
            raise RefError(f'error loading {location!r}: request returned status code {response.status_code}', location)
        return response.content
    if parsed.scheme == 'file':
        file_path = unquote(parsed.path or parsed.netloc)
        # On Windows, a file URL starts with a '/' that is not part of the path
        if os.name == 'nt' and file_path.startswith('/'):
            file_path = file_path[1:]
    else:
        file_path = location
    with open(file_path, 'rb') as f:
        return f.read()


def read_from_uris(*readers: ReadFromURIFunc) -> ReadFromURIFunc:
    """Combines fetchers: the first one that succeeds wins."""
    def read(loader: 'Loader', location: str) -> bytes:
        errors = []
        for reader in readers:
            try:
                return reader(loader, location)
            except (OSError, OASchemaError, requests.RequestException) as e:
                errors.append(str(e))
        raise RefError(f'error loading {location!r}: {"; ".join(errors)}', location)
    return read


def uri_map_cache(reader: ReadFromURIFunc) -> ReadFromURIFunc:
    """Wraps a fetcher so each location is read at most once."""
    cache: Dict[str, bytes] = {}
    lock = threading.Lock()

    def read(loader: 'Loader', location: str) -> bytes:
        with lock:
            if location in cache:
                return cache[location]
        data = reader(loader, location)
        with lock:
            cache[location] = data
        return data
    return read


class _Source:
    """A fetched location, holding either a Document or raw decoded data."""

    def __init__(self, location: str, document: Optional[Document] = None, raw: Any = None):
        self.location = location
        self.document = document
        self.raw = raw

    def __repr__(self):
        return f'_Source({self.location!r})'


class Loader:
    """Resolves references of documents.

    Attributes:
        is_external_refs_allowed: Whether references to other documents may be followed
        read_from_uri_func: ``(loader, location) -> bytes`` used to fetch documents
        circular_reference_counter: How often the same pointer may be re-entered
            on one resolution path before descent stops
    """

    def __init__(self, is_external_refs_allowed: bool = False,
                 read_from_uri_func: Optional[ReadFromURIFunc] = None,
                 circular_reference_counter: int = DEFAULT_CIRCULAR_REFERENCE_COUNTER):
        self.is_external_refs_allowed = is_external_refs_allowed
        self.read_from_uri_func = read_from_uri_func or read_from_uri
        self.circular_reference_counter = circular_reference_counter
        self._lock = threading.Lock()
        self._sources: Dict[str, _Source] = {}
        self._raw_targets: Dict[Tuple[str, str, type], Any] = {}
        self._reset_pass(None)

    def _reset_pass(self, root: Optional[_Source]) -> None:
        self._root = root
        self._walked: set = set()
        self._done: set = set()
        self._resolving: set = set()
        self._depth: Dict[Tuple[str, str], int] = {}
        self._touched: Dict[str, _Source] = {}

    # Entry points

    def load_from_file(self, path: str) -> Document:
        location = os.path.abspath(path)
        return self.load_from_data_with_path(self._read(location), location)

    def load_from_uri(self, location: str) -> Document:
        if not is_url(location):
            return self.load_from_file(location)
        return self.load_from_data_with_path(self._read(location), location)

    def load_from_data(self, data: Union[bytes, str, Dict[str, Any]]) -> Document:
        """Loads a document that has no location of its own.

        Relative external references are resolved against the working directory.
        """
        return self.load_from_data_with_path(data, '')

    def load_from_data_with_path(self, data: Union[bytes, str, Dict[str, Any]], location: str) -> Document:
        raw = data if isinstance(data, dict) else parse_bytes(data)
        if not isinstance(raw, dict):
            raise UnmarshalError(f'document must be an object, got {type(raw).__name__}')
        document = Document.from_dict(raw)
        self.resolve_refs_in(document, location)
        return document

    def resolve_refs_in(self, document: Document, location: str = '') -> None:
        """Populates the value of every reference reachable from document.

        External documents met on the way are merged into the components of
        document.

        Raises:
            RefError: On the first reference that cannot be resolved.
        """
        root = _Source(location, document=document)
        with self._lock:
            self._sources[location] = root
        self._reset_pass(root)
        try:
            self._walk(document, root)
            self._merge_external_components()
        finally:
            self._reset_pass(None)

    # Resolution

    def _read(self, location: str) -> bytes:
        logger.debug('fetching %s', location)
        try:
            return self.read_from_uri_func(self, location)
        except RefError:
            raise
        except (OSError, requests.RequestException) as e:
            raise RefError(f'error loading {location!r}: {e}', location) from e

    def _walk(self, value: Any, source: _Source) -> None:
        if value is None or id(value) in self._walked:
            return
        self._walked.add(id(value))
        iter_refs = getattr(value, 'iter_refs', None)
        if iter_refs is None:
            return
        for ref in iter_refs():
            self._resolve_ref(ref, source)

    def _resolve_ref(self, ref: Ref, source: _Source) -> None:
        if id(ref) in self._done:
            return
        if not ref.ref:
            self._done.add(id(ref))
            self._walk(ref.value, source)
            return
        if id(ref) in self._resolving:
            raise RefError(f'circular reference chain never reaches a value: {ref.ref!r}', ref.ref)
        self._resolving.add(id(ref))
        try:
            target, target_source, path = self._locate(ref, source)
        finally:
            self._resolving.discard(id(ref))
        ref.value = target
        ref.ref_path = path
        self._done.add(id(ref))

        key = (source.location, ref.ref)
        depth = self._depth.get(key, 0)
        if depth >= self.circular_reference_counter:
            logger.debug('circular reference counter reached for %s in %s', ref.ref, source.location or '<data>')
            return
        self._depth[key] = depth + 1
        try:
            self._walk(target, target_source)
        finally:
            self._depth[key] = depth

    def _locate(self, ref: Ref, source: _Source) -> Tuple[Any, _Source, str]:
        uri, fragment = split_ref(ref.ref)
        if uri:
            if not self.is_external_refs_allowed:
                raise RefError(f'encountered disallowed external reference: {ref.ref!r}', ref.ref)
            doc_source = self._load_source(resolve_location(source.location, uri))
        else:
            doc_source = source
        if doc_source.document is not None:
            if doc_source is not self._root:
                self._touched.setdefault(doc_source.location, doc_source)
            return self._drill(ref, doc_source, fragment)
        return self._locate_raw(ref, doc_source, fragment)

    def _pointer_parts(self, ref: Ref, fragment: str) -> List[str]:
        if not fragment:
            return []
        try:
            return JsonPointer(unquote(fragment)).parts
        except JsonPointerException as e:
            raise RefError(f'invalid fragment in reference {ref.ref!r}: {e}', ref.ref) from e

    def _drill(self, ref: Ref, source: _Source, fragment: str) -> Tuple[Any, _Source, str]:
        current: Any = source.document
        current_source = source
        path = f'{source.location}#'
        for part in self._pointer_parts(ref, fragment):
            if isinstance(current, Ref):
                current, current_source, path = self._deref(current, current_source, path)
            current = _child(current, part)
            if current is None:
                raise failed_to_resolve_ref_fragment_part(ref.ref, part)
            path = f'{path}/{_escape(part)}'
        if isinstance(current, Ref):
            current, current_source, path = self._deref(current, current_source, path)
        if not isinstance(current, ref.value_cls):
            raise RefError(f'{ref.ref!r} does not point to a {ref.value_cls.__name__}', ref.ref)
        return current, current_source, path

    def _deref(self, ref: Ref, source: _Source, path: str) -> Tuple[Any, _Source, str]:
        if not ref.ref:
            return ref.value, source, path
        self._resolve_ref(ref, source)
        target_location = (ref.ref_path or '').partition('#')[0]
        with self._lock:
            target_source = self._sources.get(target_location, source)
        return ref.value, target_source, ref.ref_path or path

    def _locate_raw(self, ref: Ref, source: _Source, fragment: str) -> Tuple[Any, _Source, str]:
        value_cls = ref.value_cls
        key = (source.location, fragment, value_cls)
        path = f'{source.location}#{fragment}'
        with self._lock:
            cached = self._raw_targets.get(key)
        if cached is not None:
            logger.debug('cache hit for %s', path)
            return cached, source, path
        try:
            data = resolve_pointer(source.raw, unquote(fragment)) if fragment else source.raw
        except JsonPointerException as e:
            raise RefError(f'failed to resolve {ref.ref!r}: {e}', ref.ref) from e
        try:
            decoded = type(ref).from_dict(data)
        except UnmarshalError as e:
            raise RefError(f'failed to decode {ref.ref!r}: {e}', ref.ref) from e
        if decoded.ref:
            if key in self._resolving:
                raise RefError(f'circular reference chain never reaches a value: {ref.ref!r}', ref.ref)
            self._resolving.add(key)
            try:
                self._resolve_ref(decoded, source)
            finally:
                self._resolving.discard(key)
            target = decoded.value
            path = decoded.ref_path or path
        else:
            target = decoded.value
        with self._lock:
            target = self._raw_targets.setdefault(key, target)
        return target, source, path

    def _load_source(self, location: str) -> _Source:
        with self._lock:
            source = self._sources.get(location)
        if source is not None:
            logger.debug('cache hit for %s', location)
            return source
        data = self._read(location)
        try:
            raw = parse_bytes(data)
        except UnmarshalError as e:
            raise RefError(f'failed to parse {location!r}: {e}', location) from e
        if is_document(raw):
            try:
                source = _Source(location, document=Document.from_dict(raw))
            except UnmarshalError as e:
                raise RefError(f'failed to decode {location!r}: {e}', location) from e
        else:
            source = _Source(location, raw=raw)
        with self._lock:
            existing = self._sources.setdefault(location, source)
        if existing is not source:
            return existing
        if source.document is not None:
            self._walk(source.document, source)
        return source

    # Merging

    def _merge_external_components(self) -> None:
        root = self._root.document
        for location, source in self._touched.items():
            components = source.document.components
            if components is None:
                continue
            if root.components is None:
                root.components = Components()
            for kind, refs in components.collections():
                target = root.components.collection(kind)
                for name, ref in refs.items():
                    existing = target.get(name)
                    if existing is None:
                        target[name] = ref
                    elif not _same_component(existing, ref):
                        raise RefError(
                            f'cannot merge {kind} {name!r} from {location!r}: '
                            f'it conflicts with an existing definition', name)


def _same_component(a: Ref, b: Ref) -> bool:
    if a is b:
        return True
    if a.value is not None and a.value is b.value:
        return True
    return structurally_equal(_resolved_dict(a), _resolved_dict(b))


def _resolved_dict(ref: Ref) -> Any:
    if ref.value is not None:
        return ref.value.to_dict()
    return ref.to_dict()


def _escape(part: str) -> str:
    return part.replace('~', '~0').replace('/', '~1')


def _child(current: Any, part: str) -> Any:
    child = getattr(current, 'child', None)
    if callable(child):
        try:
            return child(part)
        except KeyError:
            return None
    if isinstance(current, dict):
        return current.get(part)
    if isinstance(current, list):
        try:
            return current[int(part)]
        except (ValueError, IndexError):
            return None
    return None


def load_document(path: str, allow_external_refs: bool = False) -> Document:
    """Loads and resolves a document from a file path or URL."""
    loader = Loader(is_external_refs_allowed=allow_external_refs)
    return loader.load_from_uri(path)


def validate_document_file(input_file_path: str, allow_external_refs: bool = False,
                           format_validation: bool = False) -> None:
    """Loads, resolves and validates a document, printing the outcome."""
    from oaschema.settings import enable_schema_format_validation
    document = load_document(input_file_path, allow_external_refs)
    options = [enable_schema_format_validation()] if format_validation else []
    document.validate(*options)
    print(f'{input_file_path}: valid')
