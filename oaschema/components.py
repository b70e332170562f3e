"""Reusable document objects and the components collection."""

from typing import Any

from oaschema.errors import DocumentValidationError, RefError, found_unresolved_ref
from oaschema.identifiers import IDENTIFIER_PATTERN, IDENTIFIER_PATTERN_WITH_BRACKETS, validate_identifier
from oaschema.model import MODEL, MODEL_MAP, PLAIN, REF, REF_MAP, Field, Model, ModelMap
from oaschema.refs import Ref
from oaschema.schema import SchemaRef

PARAMETER_LOCATIONS = ('query', 'header', 'path', 'cookie')
SECURITY_SCHEME_TYPES = ('apiKey', 'http', 'oauth2', 'openIdConnect', 'mutualTLS')


class Example(Model):
    fields = [
        Field('summary'),
        Field('description'),
        Field('value'),
        Field('externalValue'),
    ]


class ExampleRef(Ref):
    value_cls = Example
    component = 'examples'


class Encoding(Model):
    fields = [
        Field('contentType'),
        Field('headers', REF_MAP, 'HeaderRef'),
        Field('style'),
        Field('explode'),
        Field('allowReserved'),
    ]


class MediaType(Model):
    fields = [
        Field('schema', REF, SchemaRef),
        Field('example'),
        Field('examples', REF_MAP, ExampleRef),
        Field('encoding', MODEL_MAP, Encoding),
    ]

    def validate(self, options, minor_version: int) -> None:
        _validate_schema_ref(self.schema, options, minor_version)


class Header(Model):
    fields = [
        Field('description'),
        Field('required'),
        Field('deprecated'),
        Field('allowEmptyValue'),
        Field('style'),
        Field('explode'),
        Field('allowReserved'),
        Field('schema', REF, SchemaRef),
        Field('example'),
        Field('examples', REF_MAP, ExampleRef),
        Field('content', MODEL_MAP, MediaType),
    ]

    def validate(self, options, minor_version: int) -> None:
        if self.schema is not None and self.content:
            raise DocumentValidationError('header schema and content are both defined')
        _validate_schema_ref(self.schema, options, minor_version)
        for media in self.content.values():
            media.validate(options, minor_version)


class HeaderRef(Ref):
    value_cls = Header
    component = 'headers'


class Parameter(Model):
    fields = [
        Field('name'),
        Field('in'),
    ] + Header.fields

    def validate(self, options, minor_version: int) -> None:
        if not self.name:
            raise DocumentValidationError('parameter name can\'t be blank')
        if self.in_ not in PARAMETER_LOCATIONS:
            raise DocumentValidationError(f'parameter {self.name!r} can\'t have \'in\' value {self.in_!r}')
        if self.in_ == 'path' and not self.required:
            raise DocumentValidationError(f'path parameter {self.name!r} must be required')
        if self.schema is not None and self.content:
            raise DocumentValidationError(f'parameter {self.name!r} schema and content are both defined')
        if self.schema is None and not self.content:
            raise DocumentValidationError(f'parameter {self.name!r} schema is missing')
        try:
            _validate_schema_ref(self.schema, options, minor_version)
            for media in self.content.values():
                media.validate(options, minor_version)
        except DocumentValidationError as e:
            raise DocumentValidationError(f'parameter {self.name!r}: {e}') from e


class ParameterRef(Ref):
    value_cls = Parameter
    component = 'parameters'


class RequestBody(Model):
    fields = [
        Field('description'),
        Field('required'),
        Field('content', MODEL_MAP, MediaType),
    ]

    def validate(self, options, minor_version: int) -> None:
        if not self.content:
            raise DocumentValidationError('content of the request body is required')
        for media in self.content.values():
            media.validate(options, minor_version)


class RequestBodyRef(Ref):
    value_cls = RequestBody
    component = 'requestBodies'


class Link(Model):
    fields = [
        Field('operationRef'),
        Field('operationId'),
        Field('parameters'),
        Field('requestBody'),
        Field('description'),
        Field('server', MODEL, 'Server'),
    ]

    def validate(self, options, minor_version: int) -> None:
        if self.operation_id and self.operation_ref:
            raise DocumentValidationError('operationId and operationRef are mutually exclusive')


class LinkRef(Ref):
    value_cls = Link
    component = 'links'


class Response(Model):
    fields = [
        Field('description'),
        Field('headers', REF_MAP, HeaderRef),
        Field('content', MODEL_MAP, MediaType),
        Field('links', REF_MAP, LinkRef),
    ]

    def validate(self, options, minor_version: int) -> None:
        if self.description is None:
            raise DocumentValidationError('a short description of the response is required')
        for name, header in self.headers.items():
            _require_resolved(header)
            try:
                header.value.validate(options, minor_version)
            except DocumentValidationError as e:
                raise DocumentValidationError(f'header {name!r}: {e}') from e
        for media in self.content.values():
            media.validate(options, minor_version)


class ResponseRef(Ref):
    value_cls = Response
    component = 'responses'


class SecurityScheme(Model):
    fields = [
        Field('type'),
        Field('description'),
        Field('name'),
        Field('in'),
        Field('scheme'),
        Field('bearerFormat'),
        Field('flows', PLAIN),
        Field('openIdConnectUrl'),
    ]

    def validate(self, options, minor_version: int) -> None:
        if self.type not in SECURITY_SCHEME_TYPES:
            raise DocumentValidationError(f'security scheme type {self.type!r} is not supported')
        if self.type == 'apiKey' and (not self.name or self.in_ not in ('query', 'header', 'cookie')):
            raise DocumentValidationError('apiKey security scheme requires \'name\' and a valid \'in\'')
        if self.type == 'http' and not self.scheme:
            raise DocumentValidationError('http security scheme requires \'scheme\'')
        if self.type == 'oauth2' and not self.flows:
            raise DocumentValidationError('oauth2 security scheme requires \'flows\'')
        if self.type == 'openIdConnect' and not self.open_id_connect_url:
            raise DocumentValidationError('openIdConnect security scheme requires \'openIdConnectUrl\'')


class SecuritySchemeRef(Ref):
    value_cls = SecurityScheme
    component = 'securitySchemes'


class Callback(ModelMap):
    """Runtime expression to path item."""

    item_cls = 'PathItem'


class CallbackRef(Ref):
    value_cls = Callback
    component = 'callbacks'


class Components(Model):
    """Named, reusable definitions of a document."""

    fields = [
        Field('schemas', REF_MAP, SchemaRef),
        Field('parameters', REF_MAP, ParameterRef),
        Field('headers', REF_MAP, HeaderRef),
        Field('requestBodies', REF_MAP, RequestBodyRef),
        Field('responses', REF_MAP, ResponseRef),
        Field('securitySchemes', REF_MAP, SecuritySchemeRef),
        Field('examples', REF_MAP, ExampleRef),
        Field('links', REF_MAP, LinkRef),
        Field('callbacks', REF_MAP, CallbackRef),
    ]

    def collections(self):
        """Yields (JSON key, name to Ref map) for every collection."""
        for f in self.fields:
            yield f.key, getattr(self, f.attr)

    def collection(self, component: str):
        for key, refs in self.collections():
            if key == component:
                return refs
        raise KeyError(component)

    def validate(self, options, minor_version: int = 0) -> None:
        """Checks identifiers, then each definition.

        Raises:
            DocumentValidationError: On the first violation.
        """
        pattern = IDENTIFIER_PATTERN_WITH_BRACKETS if options.identifier_brackets_allowed else IDENTIFIER_PATTERN
        for kind, refs in self.collections():
            for name in sorted(refs):
                validate_identifier(name, pattern)
                ref = refs[name]
                _require_resolved(ref)
                validate = getattr(ref.value, 'validate', None)
                if validate is None:
                    continue
                try:
                    validate(options, minor_version)
                except (DocumentValidationError, RefError) as e:
                    raise DocumentValidationError(f'{_SINGULAR[kind]} {name!r}: {e}') from e


_SINGULAR = {
    'schemas': 'schema',
    'parameters': 'parameter',
    'headers': 'header',
    'requestBodies': 'request body',
    'responses': 'response',
    'securitySchemes': 'security scheme',
    'examples': 'example',
    'links': 'link',
    'callbacks': 'callback',
}


def _require_resolved(ref: Any) -> None:
    if ref is not None and ref.value is None:
        raise found_unresolved_ref(ref.ref)


def _validate_schema_ref(ref, options, minor_version: int) -> None:
    if ref is None:
        return
    _require_resolved(ref)
    ref.value.validate(options, minor_version)


# PathItem is registered by the document module.
import oaschema.document  # noqa: E402,F401  pylint: disable=wrong-import-position,cyclic-import
