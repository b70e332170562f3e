"""The document root and its plain containers."""

import re
from typing import Any, Dict, List, Optional

from oaschema.components import (Callback, CallbackRef, Components, ParameterRef, RequestBodyRef,
                                 ResponseRef, _require_resolved)
from oaschema.errors import DocumentValidationError, RefError
from oaschema.model import MODEL, MODEL_LIST, MODEL_MAP, PLAIN, REF, REF_LIST, REF_MAP, ExternalDocs, Field, Model, ModelMap
from oaschema.settings import ValidationOption, new_validation_options

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

_VERSION_RE = re.compile(r'^(\d+)\.(\d+)')


class Info(Model):
    fields = [
        Field('title'),
        Field('summary'),
        Field('description'),
        Field('termsOfService'),
        Field('contact', PLAIN),
        Field('license', PLAIN),
        Field('version'),
    ]

    def validate(self) -> None:
        if not self.title:
            raise DocumentValidationError('value of title must be a non-empty string')
        if not self.version:
            raise DocumentValidationError('value of version must be a non-empty string')


class Server(Model):
    fields = [
        Field('url'),
        Field('description'),
        Field('variables', PLAIN),
    ]


class Tag(Model):
    fields = [
        Field('name'),
        Field('description'),
        Field('externalDocs', MODEL, ExternalDocs),
    ]


class Responses(ModelMap):
    """Status code (or ``default``) to response."""

    item_kind = REF
    item_cls = ResponseRef


class Operation(Model):
    fields = [
        Field('tags'),
        Field('summary'),
        Field('description'),
        Field('externalDocs', MODEL, ExternalDocs),
        Field('operationId'),
        Field('parameters', REF_LIST, ParameterRef),
        Field('requestBody', REF, RequestBodyRef),
        Field('responses', MODEL, Responses),
        Field('callbacks', REF_MAP, CallbackRef),
        Field('deprecated'),
        Field('security', PLAIN),
        Field('servers', MODEL_LIST, Server),
    ]

    def validate(self, options, minor_version: int) -> None:
        if not self.responses and minor_version == 0:
            raise DocumentValidationError('the responses object MUST contain at least one response code')
        for param in self.parameters:
            _require_resolved(param)
            param.value.validate(options, minor_version)
        if self.request_body is not None:
            _require_resolved(self.request_body)
            self.request_body.value.validate(options, minor_version)
        for code, response in (self.responses or {}).items():
            _require_resolved(response)
            try:
                response.value.validate(options, minor_version)
            except DocumentValidationError as e:
                raise DocumentValidationError(f'response {code!r}: {e}') from e


class PathItem(Model):
    fields = [
        Field('$ref', attr='ref'),
        Field('summary'),
        Field('description'),
    ] + [Field(method, MODEL, Operation) for method in HTTP_METHODS] + [
        Field('servers', MODEL_LIST, Server),
        Field('parameters', REF_LIST, ParameterRef),
    ]

    def operations(self) -> Dict[str, Operation]:
        return {m: getattr(self, m) for m in HTTP_METHODS if getattr(self, m) is not None}

    def get_operation(self, method: str) -> Optional[Operation]:
        return getattr(self, _method_attr(method))

    def set_operation(self, method: str, operation: Optional[Operation]) -> None:
        setattr(self, _method_attr(method), operation)

    def validate(self, options, minor_version: int) -> None:
        for param in self.parameters:
            _require_resolved(param)
            param.value.validate(options, minor_version)
        for method, operation in self.operations().items():
            try:
                operation.validate(options, minor_version)
            except DocumentValidationError as e:
                raise DocumentValidationError(f'operation {method.upper()}: {e}') from e


def _method_attr(method: str) -> str:
    attr = method.lower()
    if attr not in HTTP_METHODS:
        raise ValueError(f'unsupported HTTP method {method!r}')
    return attr


class Paths(ModelMap):
    """Path template to path item."""

    item_cls = PathItem

    def validate(self, options, minor_version: int) -> None:
        for path in sorted(self):
            if not path.startswith('/'):
                raise DocumentValidationError(f'path {path!r} does not start with a forward slash (/)')
            try:
                self[path].validate(options, minor_version)
            except (DocumentValidationError, RefError) as e:
                raise DocumentValidationError(f'path {path!r}: {e}') from e


class Document(Model):
    """An OpenAPI document.

    Build one with Document.from_dict, then resolve its references with a
    Loader before validating values against its schemas.
    """

    fields = [
        Field('openapi'),
        Field('info', MODEL, Info),
        Field('jsonSchemaDialect'),
        Field('servers', MODEL_LIST, Server),
        Field('paths', MODEL, Paths),
        Field('webhooks', MODEL_MAP, PathItem),
        Field('components', MODEL, Components),
        Field('security', PLAIN),
        Field('tags', MODEL_LIST, Tag),
        Field('externalDocs', MODEL, ExternalDocs),
    ]

    def minor_version(self) -> int:
        """Returns Y of an ``3.Y.Z`` version string, 0 when unknown."""
        match = _VERSION_RE.match(self.openapi or '')
        return int(match.group(2)) if match else 0

    def validate(self, *options: ValidationOption) -> None:
        """Checks the structure of the document.

        Raises:
            DocumentValidationError: Prefixed with the failing section.
        """
        opts = new_validation_options(*options)
        minor = self.minor_version()
        if not self.openapi:
            raise DocumentValidationError('value of openapi must be a non-empty string')
        if self.info is None:
            raise DocumentValidationError('must be an object', section='info')
        try:
            self.info.validate()
        except DocumentValidationError as e:
            raise DocumentValidationError(str(e), section='info') from e
        if self.components is not None:
            try:
                self.components.validate(opts, minor)
            except (DocumentValidationError, RefError) as e:
                raise DocumentValidationError(str(e), section='components') from e
        if self.paths is None:
            if minor == 0:
                raise DocumentValidationError('must be an object', section='paths')
            return
        try:
            self.paths.validate(opts, minor)
        except (DocumentValidationError, RefError) as e:
            raise DocumentValidationError(str(e), section='paths') from e

    def add_operation(self, path: str, method: str, operation: Operation) -> None:
        if self.paths is None:
            self.paths = Paths()
        item = self.paths.get(path)
        if item is None:
            item = self.paths[path] = PathItem()
        item.set_operation(method, operation)


def is_document(data: Any) -> bool:
    """True when decoded data looks like an OpenAPI document."""
    return isinstance(data, dict) and any(k in data for k in ('openapi', 'components', 'paths'))


__all__: List[str] = [
    'Callback', 'Components', 'Document', 'ExternalDocs', 'HTTP_METHODS', 'Info', 'Operation',
    'PathItem', 'Paths', 'Responses', 'Server', 'Tag', 'is_document',
]
