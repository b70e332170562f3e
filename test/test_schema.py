import os
import sys

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

import unittest

from oaschema.errors import DocumentValidationError, RefError, UnmarshalError
from oaschema.schema import (STYLE_LIST, STYLE_NULLABLE, Schema, SchemaRef, Types, new_all_of_schema,
                             new_array_schema, new_bytes_schema, new_int32_schema, new_object_schema,
                             new_one_of_schema, new_string_schema)
from oaschema.settings import new_validation_options, enable_schema_format_validation


class TestTypes(unittest.TestCase):

    def test_nullable_flag_becomes_null_member(self):
        schema = Schema.from_dict({'type': 'string', 'nullable': True})
        self.assertIn('null', schema.type)
        self.assertTrue(schema.nullable)
        self.assertEqual(schema.type.style, STYLE_NULLABLE)

    def test_type_list_and_nullable_form_are_equal(self):
        legacy = Schema.from_dict({'type': 'integer', 'nullable': True})
        modern = Schema.from_dict({'type': ['integer', 'null']})
        self.assertEqual(legacy.type, modern.type)
        self.assertEqual(modern.type.style, STYLE_LIST)

    def test_bare_nullable_does_not_restrict(self):
        schema = Schema.from_dict({'nullable': True})
        self.assertFalse(schema.type.restricts())
        self.assertTrue(schema.type.permits('object'))

    def test_number_permits_integer(self):
        types = Types(['number'])
        self.assertTrue(types.permits('integer'))
        self.assertFalse(Types(['integer']).permits('number'))

    def test_invalid_type_value(self):
        with self.assertRaises(UnmarshalError):
            Schema.from_dict({'type': 5})


class TestSchemaRoundTrip(unittest.TestCase):

    def test_legacy_form_is_written_back(self):
        data = {'type': 'string', 'nullable': True, 'maxLength': 3}
        self.assertEqual(Schema.from_dict(data).to_dict(), data)

    def test_type_list_is_written_back(self):
        data = {'type': ['string', 'null'], 'minLength': 1}
        self.assertEqual(Schema.from_dict(data).to_dict(), data)

    def test_boolean_exclusive_bound(self):
        data = {'type': 'number', 'minimum': 1, 'exclusiveMinimum': True}
        schema = Schema.from_dict(data)
        self.assertEqual(schema.min, 1)
        self.assertTrue(schema.exclusive_min)
        self.assertEqual(schema.to_dict(), data)

    def test_numeric_exclusive_bound(self):
        data = {'type': 'number', 'exclusiveMaximum': 10}
        schema = Schema.from_dict(data)
        self.assertEqual(schema.max, 10)
        self.assertTrue(schema.exclusive_max)
        self.assertEqual(schema.to_dict(), data)

    def test_unknown_keywords_and_extensions_survive(self):
        data = {'type': 'object', 'x-order': 3, 'unevaluatedProperties': False}
        schema = Schema.from_dict(data)
        self.assertEqual(schema.extensions, {'x-order': 3})
        self.assertEqual(schema.extra, {'unevaluatedProperties': False})
        self.assertEqual(schema.to_dict(), data)

    def test_refs_are_written_as_pointers(self):
        data = {'type': 'array', 'items': {'$ref': '#/components/schemas/Pet'}}
        schema = Schema.from_dict(data)
        self.assertEqual(schema.items.ref, '#/components/schemas/Pet')
        schema.items.value = new_string_schema()
        self.assertEqual(schema.to_dict(), data)

    def test_boolean_schemas(self):
        self.assertTrue(Schema.from_dict(True).is_empty())
        self.assertFalse(Schema.from_dict(False).is_empty())
        self.assertIs(Schema.from_dict(False).to_dict(), False)
        ref = SchemaRef.from_dict({'type': 'object', 'additionalProperties': False})
        self.assertTrue(ref.value.additional_properties.forbids())

    def test_non_string_ref_is_rejected(self):
        with self.assertRaises(UnmarshalError):
            SchemaRef.from_dict({'$ref': 12})

    def test_schema_containing_itself_inline(self):
        schema = new_object_schema()
        schema.properties['self'] = SchemaRef(value=schema)
        with self.assertRaises(ValueError):
            schema.to_dict()


class TestBuilders(unittest.TestCase):

    def test_chained_builders(self):
        schema = (new_object_schema()
                  .with_property('name', new_string_schema().with_min_length(1))
                  .with_property('tags', new_array_schema(new_string_schema()).with_unique_items())
                  .with_required(['name'])
                  .with_additional_properties(False))
        self.assertEqual(schema.to_dict(), {
            'type': 'object',
            'required': ['name'],
            'properties': {
                'name': {'type': 'string', 'minLength': 1},
                'tags': {'type': 'array', 'uniqueItems': True, 'items': {'type': 'string'}},
            },
            'additionalProperties': False,
        })

    def test_base64_length(self):
        schema = new_bytes_schema().with_length_decoded_base64(4)
        self.assertEqual(schema.min_length, 8)
        self.assertEqual(schema.max_length, 8)

    def test_int32(self):
        self.assertEqual(new_int32_schema().to_dict(), {'type': 'integer', 'format': 'int32'})

    def test_combinators(self):
        schema = new_one_of_schema(new_string_schema(), new_int32_schema())
        self.assertEqual(len(schema.one_of), 2)
        self.assertFalse(schema.is_empty())
        self.assertEqual(len(new_all_of_schema(new_string_schema()).all_of), 1)

    def test_pattern_change_invalidates_compiled_pattern(self):
        schema = new_string_schema().with_pattern('^a')
        self.assertTrue(schema.compiled_pattern().search('abc'))
        schema.pattern = '^b'
        self.assertTrue(schema.compiled_pattern().search('bcd'))
        self.assertFalse(schema.is_matching('abc'))


class TestSchemaValidate(unittest.TestCase):

    def test_array_without_items_in_3_0(self):
        with self.assertRaises(DocumentValidationError):
            Schema.from_dict({'type': 'array'}).validate(minor_version=0)
        Schema.from_dict({'type': 'array'}).validate(minor_version=1)

    def test_read_only_and_write_only(self):
        with self.assertRaises(DocumentValidationError):
            Schema.from_dict({'type': 'string', 'readOnly': True, 'writeOnly': True}).validate()

    def test_invalid_pattern(self):
        with self.assertRaises(DocumentValidationError):
            Schema.from_dict({'type': 'string', 'pattern': '(unclosed'}).validate()

    def test_unknown_format(self):
        schema = Schema.from_dict({'type': 'string', 'format': 'no-such-format'})
        schema.validate()
        with self.assertRaises(DocumentValidationError):
            schema.validate(new_validation_options(enable_schema_format_validation()))

    def test_default_must_match(self):
        with self.assertRaises(DocumentValidationError) as ctx:
            Schema.from_dict({'type': 'integer', 'default': 'x'}).validate()
        self.assertIn('invalid default', str(ctx.exception))

    def test_unresolved_ref(self):
        schema = Schema.from_dict({'type': 'array', 'items': {'$ref': '#/components/schemas/Missing'}})
        with self.assertRaises(RefError):
            schema.validate()


if __name__ == '__main__':
    unittest.main()
