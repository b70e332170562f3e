import json
import os
import sys

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

import unittest

from oaschema.errors import ERR_SCHEMA, FailFastError, MultiError, OneOfConflictError, SchemaError, SchemaInputNaNError
from oaschema.formats import FormatRegistry, define_ipv4_format
from oaschema.schema import (Schema, SchemaRef, new_array_schema, new_int32_schema, new_integer_schema,
                             new_object_schema, new_schema, new_string_schema)
from oaschema.settings import (defaults_satisfy_required, disable_error_details, disable_pattern_validation,
                               disable_read_only_validation, enable_format_validation_strict, fail_fast,
                               multi_errors, new_schema_validation_settings, visit_as_request,
                               visit_as_response, with_formats, with_unique_items_checker)
from oaschema.validator import utf16_length, validate


class TestNumbers(unittest.TestCase):

    def test_exclusive_minimum_boolean_form(self):
        schema = Schema.from_dict({'type': 'number', 'minimum': 1, 'exclusiveMinimum': True})
        self.assertFalse(schema.is_matching(1))
        self.assertTrue(schema.is_matching(1.0001))

    def test_exclusive_maximum_numeric_form(self):
        schema = Schema.from_dict({'type': 'number', 'exclusiveMaximum': 10})
        self.assertFalse(schema.is_matching(10))
        self.assertTrue(schema.is_matching(9.5))

    def test_inclusive_bounds(self):
        schema = Schema.from_dict({'type': 'integer', 'minimum': 1, 'maximum': 3})
        self.assertTrue(schema.is_matching(1))
        self.assertTrue(schema.is_matching(3))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json(4)
        self.assertEqual(ctx.exception.schema_field, 'maximum')

    def test_integer_rejects_fraction(self):
        schema = new_integer_schema()
        self.assertTrue(schema.is_matching(2.0))
        self.assertFalse(schema.is_matching(2.5))

    def test_number_accepts_integer(self):
        self.assertTrue(Schema.from_dict({'type': 'number'}).is_matching(3))

    def test_booleans_are_not_numbers(self):
        self.assertFalse(new_integer_schema().is_matching(True))

    def test_int32_range(self):
        schema = new_int32_schema()
        self.assertTrue(schema.is_matching(2**31 - 1))
        self.assertFalse(schema.is_matching(2**31))

    def test_multiple_of(self):
        schema = Schema.from_dict({'type': 'number', 'multipleOf': 0.5})
        self.assertTrue(schema.is_matching(2.5))
        self.assertFalse(schema.is_matching(2.25))
        self.assertFalse(Schema.from_dict({'multipleOf': 3}).is_matching(10))

    def test_multiple_of_huge_integer(self):
        schema = Schema.from_dict({'type': 'number', 'multipleOf': 0.5})
        schema.visit_json(10**400)
        with self.assertRaises(SchemaError) as ctx:
            Schema.from_dict({'type': 'number', 'multipleOf': 2.0}).visit_json(10**400 + 1)
        self.assertEqual(ctx.exception.schema_field, 'multipleOf')

    def test_nan_is_rejected(self):
        with self.assertRaises(SchemaInputNaNError):
            new_schema().visit_json(float('nan'))


class TestStrings(unittest.TestCase):

    def test_length_counts_utf16_units(self):
        self.assertEqual(utf16_length('\U0001F600'), 2)
        schema = new_string_schema().with_max_length(1)
        self.assertTrue(schema.is_matching('é'))
        self.assertFalse(schema.is_matching('\U0001F600'))

    def test_length_of_lone_surrogate(self):
        self.assertEqual(utf16_length('\ud800'), 1)
        schema = Schema.from_dict({'type': 'string', 'maxLength': 5})
        schema.visit_json(json.loads('"\\ud800"'))
        self.assertFalse(schema.is_matching('\ud800' * 6))

    def test_pattern(self):
        schema = new_string_schema().with_pattern('^[a-z]+$')
        self.assertTrue(schema.is_matching('abc'))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json('ABC')
        self.assertEqual(ctx.exception.schema_field, 'pattern')
        validate(schema, 'ABC', disable_pattern_validation())

    def test_date_format(self):
        schema = Schema.from_dict({'type': 'string', 'format': 'date'})
        self.assertTrue(schema.is_matching('2024-02-29'))
        self.assertFalse(schema.is_matching('29/02/2024'))

    def test_unknown_format_is_lenient_by_default(self):
        schema = Schema.from_dict({'type': 'string', 'format': 'hostname'})
        self.assertTrue(schema.is_matching('anything goes'))
        with self.assertRaises(SchemaError):
            validate(schema, 'anything goes', enable_format_validation_strict())

    def test_custom_registry(self):
        registry = FormatRegistry()
        define_ipv4_format(registry)
        schema = Schema.from_dict({'type': 'string', 'format': 'ipv4'})
        validate(schema, '192.168.0.1', with_formats(registry))
        with self.assertRaises(SchemaError) as ctx:
            validate(schema, '300.1.1.1', with_formats(registry))
        self.assertIn('Not an IPv4 address', str(ctx.exception))

    def test_wrong_type_message(self):
        with self.assertRaises(SchemaError) as ctx:
            new_string_schema().visit_json(5)
        self.assertEqual(ctx.exception.schema_field, 'type')
        self.assertIn('value must be a string', str(ctx.exception))


class TestNull(unittest.TestCase):

    def test_nullable(self):
        self.assertTrue(new_string_schema().with_nullable().is_matching(None))
        with self.assertRaises(SchemaError) as ctx:
            new_string_schema().visit_json(None)
        self.assertEqual(ctx.exception.schema_field, 'nullable')

    def test_empty_schema_accepts_null(self):
        self.assertTrue(new_schema().is_matching(None))

    def test_enum_with_null(self):
        schema = Schema.from_dict({'type': 'string', 'enum': ['a', None]})
        self.assertTrue(schema.is_matching(None))
        self.assertFalse(schema.is_matching('b'))


class TestArrays(unittest.TestCase):

    def test_items_and_counts(self):
        schema = new_array_schema(new_integer_schema()).with_min_items(1).with_max_items(2)
        self.assertTrue(schema.is_matching([1, 2]))
        self.assertFalse(schema.is_matching([]))
        self.assertFalse(schema.is_matching([1, 2, 3]))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json([1, 'x'])
        self.assertEqual(ctx.exception.json_pointer(), ['1'])

    def test_unique_items(self):
        schema = new_array_schema().with_unique_items()
        self.assertTrue(schema.is_matching([1, 2, {'a': 1}]))
        self.assertFalse(schema.is_matching([{'a': 1, 'b': 2}, {'b': 2, 'a': 1}]))
        self.assertFalse(schema.is_matching([1, 1.0]))

    def test_custom_unique_items_checker(self):
        schema = new_array_schema().with_unique_items()
        validate(schema, [1, 1], with_unique_items_checker(lambda items: True))

    def test_prefix_items_and_contains(self):
        schema = Schema.from_dict({
            'type': 'array',
            'prefixItems': [{'type': 'string'}],
            'items': {'type': 'integer'},
            'contains': {'type': 'integer', 'minimum': 10},
        })
        self.assertTrue(schema.is_matching(['a', 1, 10]))
        self.assertFalse(schema.is_matching([1, 10]))
        self.assertFalse(schema.is_matching(['a', 1, 2]))


class TestObjects(unittest.TestCase):

    def build(self):
        return (new_object_schema()
                .with_property('a', new_string_schema())
                .with_additional_properties(False))

    def test_additional_properties_false_names_property(self):
        with self.assertRaises(SchemaError) as ctx:
            self.build().visit_json({'a': 'x', 'b': 1})
        self.assertIn("property 'b' is unsupported", str(ctx.exception))
        self.assertEqual(ctx.exception.json_pointer(), ['b'])

    def test_additional_properties_schema(self):
        schema = new_object_schema().with_additional_properties(new_integer_schema())
        self.assertTrue(schema.is_matching({'x': 1}))
        self.assertFalse(schema.is_matching({'x': 'y'}))

    def test_required(self):
        schema = self.build().with_required(['a'])
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json({})
        self.assertIn("property 'a' is missing", str(ctx.exception))

    def test_nested_error_path(self):
        schema = new_object_schema().with_property(
            'pets', new_array_schema(new_object_schema().with_property('age', new_integer_schema())))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json({'pets': [{'age': 1}, {'age': 'old'}]})
        self.assertEqual(ctx.exception.json_pointer(), ['pets', '1', 'age'])
        self.assertTrue(str(ctx.exception).startswith('Error at "/pets/1/age": '))

    def test_read_only_in_request(self):
        schema = (new_object_schema()
                  .with_property('id', Schema(type='integer', read_only=True))
                  .with_property('name', new_string_schema())
                  .with_required(['id', 'name']))
        validate(schema, {'name': 'rex'}, visit_as_request())
        with self.assertRaises(SchemaError) as ctx:
            validate(schema, {'id': 1, 'name': 'rex'}, visit_as_request())
        self.assertIn("readOnly property 'id' in request", str(ctx.exception))
        validate(schema, {'id': 1, 'name': 'rex'}, visit_as_request(), disable_read_only_validation())
        with self.assertRaises(SchemaError):
            validate(schema, {'name': 'rex'}, visit_as_response())

    def test_write_only_in_response(self):
        schema = new_object_schema().with_property('password', Schema(type='string', write_only=True))
        validate(schema, {'password': 'x'}, visit_as_request())
        with self.assertRaises(SchemaError):
            validate(schema, {'password': 'x'}, visit_as_response())

    def test_request_and_response_are_exclusive(self):
        with self.assertRaises(ValueError):
            new_schema_validation_settings(visit_as_request(), visit_as_response())

    def test_defaults_satisfy_required(self):
        calls = []
        schema = (new_object_schema()
                  .with_property('size', new_integer_schema().with_default(10))
                  .with_required(['size']))
        value = {}
        validate(schema, value, defaults_satisfy_required(lambda: calls.append(1)))
        self.assertEqual(value, {'size': 10})
        self.assertEqual(calls, [1])

    def test_property_count(self):
        schema = new_object_schema().with_min_properties(1).with_max_properties(1)
        self.assertTrue(schema.is_matching({'a': 1}))
        self.assertFalse(schema.is_matching({}))
        self.assertFalse(schema.is_matching({'a': 1, 'b': 2}))


class TestCombinators(unittest.TestCase):

    def test_one_of_exactly_one(self):
        schema = Schema.from_dict({'oneOf': [{'type': 'integer'}, {'type': 'number', 'minimum': 5}]})
        self.assertTrue(schema.is_matching(1))
        self.assertTrue(schema.is_matching(5.5))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json(6)
        self.assertIn('value matches more than one schema from "oneOf"', str(ctx.exception))
        self.assertIsInstance(ctx.exception.origin, OneOfConflictError)
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json('x')
        self.assertIn('value doesn\'t match any schema from "oneOf"', str(ctx.exception))
        self.assertIsInstance(ctx.exception.origin, MultiError)

    def test_any_of(self):
        schema = Schema.from_dict({'anyOf': [{'type': 'string'}, {'type': 'integer'}]})
        self.assertTrue(schema.is_matching('x'))
        self.assertTrue(schema.is_matching(1))
        self.assertFalse(schema.is_matching([]))

    def test_all_of(self):
        schema = Schema.from_dict({'allOf': [{'type': 'integer'}, {'minimum': 3}]})
        self.assertTrue(schema.is_matching(4))
        self.assertFalse(schema.is_matching(2))

    def test_not(self):
        schema = Schema.from_dict({'not': {'type': 'string'}})
        self.assertTrue(schema.is_matching(1))
        self.assertFalse(schema.is_matching('x'))

    def test_false_schema(self):
        self.assertFalse(Schema.from_dict(False).is_matching(1))
        self.assertTrue(Schema.from_dict(True).is_matching(1))

    def build_pets(self, mapping=None):
        cat = Schema.from_dict({'type': 'object', 'required': ['kind', 'meow'],
                                'properties': {'kind': {'type': 'string'}, 'meow': {'type': 'boolean'}}})
        dog = Schema.from_dict({'type': 'object', 'required': ['kind', 'bark'],
                                'properties': {'kind': {'type': 'string'}, 'bark': {'type': 'boolean'}}})
        schema = Schema(one_of=[SchemaRef('#/components/schemas/Cat', cat),
                                SchemaRef('#/components/schemas/Dog', dog)])
        return schema.with_discriminator('kind', mapping)

    def test_discriminator_implicit_names(self):
        schema = self.build_pets()
        self.assertTrue(schema.is_matching({'kind': 'Cat', 'meow': True}))
        self.assertFalse(schema.is_matching({'kind': 'Cat', 'bark': True}))

    def test_discriminator_mapping(self):
        schema = self.build_pets({'dog': '#/components/schemas/Dog', 'cat': 'Cat'})
        self.assertTrue(schema.is_matching({'kind': 'dog', 'bark': True}))
        self.assertTrue(schema.is_matching({'kind': 'cat', 'meow': False}))
        with self.assertRaises(SchemaError) as ctx:
            schema.visit_json({'kind': 'cow'})
        self.assertIn("no valid discriminator value 'cow' found in oneOf", str(ctx.exception))

    def test_discriminator_property_missing(self):
        with self.assertRaises(SchemaError) as ctx:
            self.build_pets().visit_json({'meow': True})
        self.assertIn("input does not contain the discriminator property 'kind'", str(ctx.exception))


class TestErrorModes(unittest.TestCase):

    def build(self):
        return (new_object_schema()
                .with_property('a', new_string_schema())
                .with_property('b', new_integer_schema())
                .with_required(['c']))

    def test_multi_errors_collects_every_failure(self):
        with self.assertRaises(MultiError) as ctx:
            validate(self.build(), {'a': 1, 'b': 'x'}, multi_errors())
        paths = sorted(tuple(e.json_pointer()) for e in ctx.exception)
        self.assertEqual(paths, [('a',), ('b',), ('c',)])

    def test_fail_fast_raises_shared_error(self):
        with self.assertRaises(FailFastError) as ctx:
            validate(self.build(), {'a': 1}, fail_fast())
        self.assertIs(ctx.exception, ERR_SCHEMA)
        self.assertEqual(ERR_SCHEMA.reverse_path, [])

    def test_fail_fast_traceback_does_not_grow(self):
        schema = new_string_schema()
        for _ in range(500):
            self.assertFalse(schema.is_matching(1))
        depth = 0
        tb = ERR_SCHEMA.__traceback__
        while tb is not None:
            depth += 1
            tb = tb.tb_next
        self.assertLess(depth, 50)
        self.assertIsNone(ERR_SCHEMA.__cause__)

    def test_error_details(self):
        with self.assertRaises(SchemaError) as ctx:
            new_string_schema().visit_json(1)
        self.assertIn('Schema:', str(ctx.exception))
        with self.assertRaises(SchemaError) as ctx:
            validate(new_string_schema(), 1, disable_error_details())
        self.assertNotIn('Schema:', str(ctx.exception))

    def test_cyclic_schema(self):
        node = new_object_schema().with_property('value', new_integer_schema())
        node.properties['next'] = SchemaRef('#/components/schemas/Node', node)
        self.assertTrue(node.is_matching({'value': 1, 'next': {'value': 2, 'next': {'value': 3}}}))
        with self.assertRaises(SchemaError) as ctx:
            node.visit_json({'value': 1, 'next': {'value': 'x'}})
        self.assertEqual(ctx.exception.json_pointer(), ['next', 'value'])


if __name__ == '__main__':
    unittest.main()
