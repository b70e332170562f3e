import copy
import os
import sys

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

import unittest

from oaschema.document import Document, Operation, PathItem, is_document
from oaschema.errors import DocumentValidationError, RefError
from oaschema.identifiers import IDENTIFIER_PATTERN_WITH_BRACKETS, validate_identifier
from oaschema.loader import Loader
from oaschema.schema import SchemaRef
from oaschema.settings import (allow_identifiers_with_brackets, disable_examples_validation,
                               enable_schema_format_validation)

OPENAPI_DIR = os.path.join(os.path.dirname(current_script_path), 'openapi')

BASE = {
    'openapi': '3.0.3',
    'info': {'title': 'Users', 'version': '1.0'},
    'paths': {
        '/users/{id}': {
            'parameters': [{'name': 'id', 'in': 'path', 'required': True, 'schema': {'type': 'string'}}],
            'get': {'responses': {'200': {'description': 'ok'}}},
        },
    },
    'components': {'schemas': {'User': {'type': 'object'}}},
}


def document(**changes):
    data = copy.deepcopy(BASE)
    data.update(changes)
    return Loader().load_from_data(data)


class TestDocumentValidation(unittest.TestCase):

    def test_valid_document(self):
        document().validate()

    def test_petstore(self):
        loaded = Loader(is_external_refs_allowed=True).load_from_file(os.path.join(OPENAPI_DIR, 'petstore.yaml'))
        loaded.validate()
        self.assertEqual(loaded.minor_version(), 0)

    def test_missing_openapi(self):
        doc = document()
        doc.openapi = ''
        with self.assertRaises(DocumentValidationError):
            doc.validate()

    def test_missing_title(self):
        with self.assertRaises(DocumentValidationError) as ctx:
            document(info={'version': '1'}).validate()
        self.assertTrue(str(ctx.exception).startswith('invalid info: '))

    def test_missing_paths_only_matters_before_3_1(self):
        with self.assertRaises(DocumentValidationError) as ctx:
            Loader().load_from_data({'openapi': '3.0.0', 'info': {'title': 'T', 'version': '1'}}).validate()
        self.assertEqual(str(ctx.exception), 'invalid paths: must be an object')
        Loader().load_from_data({'openapi': '3.1.0', 'info': {'title': 'T', 'version': '1'}}).validate()

    def test_path_must_start_with_slash(self):
        with self.assertRaises(DocumentValidationError) as ctx:
            document(paths={'users': {}}).validate()
        self.assertTrue(str(ctx.exception).startswith('invalid paths: '))
        self.assertIn('forward slash', str(ctx.exception))

    def test_operation_needs_responses_before_3_1(self):
        paths = {'/ping': {'get': {'responses': {}}}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(paths=paths).validate()
        self.assertIn('operation GET', str(ctx.exception))
        document(openapi='3.1.0', paths=paths).validate()

    def test_path_parameter_must_be_required(self):
        paths = {'/users/{id}': {'parameters': [{'name': 'id', 'in': 'path', 'schema': {'type': 'string'}}]}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(paths=paths).validate()
        self.assertIn("path parameter 'id' must be required", str(ctx.exception))

    def test_parameter_location(self):
        paths = {'/a': {'parameters': [{'name': 'q', 'in': 'body', 'schema': {'type': 'string'}}]}}
        with self.assertRaises(DocumentValidationError):
            document(paths=paths).validate()

    def test_parameter_schema_or_content(self):
        missing = {'/a': {'parameters': [{'name': 'q', 'in': 'query'}]}}
        with self.assertRaises(DocumentValidationError):
            document(paths=missing).validate()
        both = {'/a': {'parameters': [{'name': 'q', 'in': 'query', 'schema': {'type': 'string'},
                                       'content': {'application/json': {}}}]}}
        with self.assertRaises(DocumentValidationError):
            document(paths=both).validate()

    def test_response_description(self):
        paths = {'/a': {'get': {'responses': {'200': {}}}}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(paths=paths).validate()
        self.assertIn("response '200'", str(ctx.exception))

    def test_array_schema_needs_items_before_3_1(self):
        components = {'schemas': {'List': {'type': 'array'}}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(components=components).validate()
        self.assertTrue(str(ctx.exception).startswith('invalid components: '))
        document(openapi='3.1.0', components=components).validate()

    def test_read_only_and_write_only(self):
        components = {'schemas': {'S': {'type': 'string', 'readOnly': True, 'writeOnly': True}}}
        with self.assertRaises(DocumentValidationError):
            document(components=components).validate()

    def test_examples_are_validated(self):
        components = {'schemas': {'Age': {'type': 'integer', 'example': 'old'}}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(components=components).validate()
        self.assertIn('invalid example', str(ctx.exception))
        document(components=components).validate(disable_examples_validation())

    def test_unknown_format_is_rejected_on_request(self):
        components = {'schemas': {'S': {'type': 'string', 'format': 'not-a-format'}}}
        document(components=components).validate()
        with self.assertRaises(DocumentValidationError):
            document(components=components).validate(enable_schema_format_validation())

    def test_unresolved_ref(self):
        doc = document()
        doc.components.schemas['User'].value.properties['x'] = SchemaRef('#/nowhere')
        with self.assertRaises(DocumentValidationError):
            doc.validate()


class TestIdentifiers(unittest.TestCase):

    def test_accepted(self):
        validate_identifier('User-12_3.4')

    def test_rejected(self):
        with self.assertRaises(DocumentValidationError) as ctx:
            validate_identifier('User Admin')
        self.assertIn('is not supported by OpenAPIv3 standard', str(ctx.exception))

    def test_trailing_newline_rejected(self):
        with self.assertRaises(DocumentValidationError):
            validate_identifier('User\n')
        with self.assertRaises(DocumentValidationError):
            validate_identifier('Page[User]\n', IDENTIFIER_PATTERN_WITH_BRACKETS)

    def test_component_keys(self):
        components = {'schemas': {'User Admin': {'type': 'object'}}}
        with self.assertRaises(DocumentValidationError) as ctx:
            document(components=components).validate()
        self.assertTrue(str(ctx.exception).startswith('invalid components: '))

    def test_brackets(self):
        components = {'schemas': {'Page[User]': {'type': 'object'}}}
        with self.assertRaises(DocumentValidationError):
            document(components=components).validate()
        document(components=components).validate(allow_identifiers_with_brackets())
        validate_identifier('Page[User]', IDENTIFIER_PATTERN_WITH_BRACKETS)


class TestDocumentModel(unittest.TestCase):

    def test_minor_version(self):
        self.assertEqual(document(openapi='3.1.0').minor_version(), 1)
        self.assertEqual(document(openapi='3.0.3').minor_version(), 0)
        self.assertEqual(Document().minor_version(), 0)

    def test_add_and_get_operation(self):
        doc = Document()
        op = Operation(operation_id='listUsers')
        doc.add_operation('/users', 'GET', op)
        self.assertIs(doc.paths['/users'].get_operation('get'), op)
        self.assertIsNone(doc.paths['/users'].get_operation('post'))
        self.assertEqual(doc.to_dict(), {'paths': {'/users': {'get': {'operationId': 'listUsers'}}}})

    def test_unsupported_method(self):
        with self.assertRaises(ValueError):
            PathItem().get_operation('fetch')

    def test_extensions_are_kept(self):
        data = copy.deepcopy(BASE)
        data['x-owner'] = 'team'
        data['info']['x-logo'] = 'logo.png'
        doc = Loader().load_from_data(data)
        out = doc.to_dict()
        self.assertEqual(out['x-owner'], 'team')
        self.assertEqual(out['info']['x-logo'], 'logo.png')

    def test_round_trip(self):
        self.assertEqual(document().to_dict(), BASE)

    def test_is_document(self):
        self.assertTrue(is_document({'openapi': '3.0.0'}))
        self.assertTrue(is_document({'components': {}}))
        self.assertFalse(is_document({'type': 'string'}))
        self.assertFalse(is_document(['openapi']))

    def test_ref_to_missing_component(self):
        data = copy.deepcopy(BASE)
        data['paths']['/users/{id}']['get']['responses']['200'] = {'$ref': '#/components/responses/Missing'}
        with self.assertRaises(RefError):
            Loader().load_from_data(data)


if __name__ == '__main__':
    unittest.main()
