import os
import sys

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

import unittest

from oaschema.errors import UnmarshalError
from oaschema.marshal import dump_json, dump_yaml, parse_bytes


class TestParseBytes(unittest.TestCase):

    def test_json(self):
        self.assertEqual(parse_bytes(b'{"openapi": "3.1.0", "n": 1.5}'), {'openapi': '3.1.0', 'n': 1.5})

    def test_json_with_byte_order_mark(self):
        self.assertEqual(parse_bytes('\ufeff{"a": 1}'.encode('utf-8')), {'a': 1})

    def test_yaml(self):
        self.assertEqual(parse_bytes('openapi: 3.0.3\npaths: {}\n'), {'openapi': '3.0.3', 'paths': {}})

    def test_timestamps_stay_strings(self):
        data = parse_bytes('day: 2024-02-29\nat: 2024-02-29T10:00:00Z\n')
        self.assertEqual(data, {'day': '2024-02-29', 'at': '2024-02-29T10:00:00Z'})

    def test_keys_become_strings(self):
        data = parse_bytes('responses:\n  200: {description: ok}\n  true: yes\n  ~: nothing\n')
        self.assertEqual(sorted(data['responses']), ['200', 'null', 'true'])

    def test_merge_keys(self):
        data = parse_bytes('base: &b {type: string}\nderived:\n  <<: *b\n  maxLength: 3\n')
        self.assertEqual(data['derived'], {'type': 'string', 'maxLength': 3})

    def test_invalid(self):
        with self.assertRaises(UnmarshalError) as ctx:
            parse_bytes(b'a: [1, 2')
        self.assertIn('failed to unmarshal data', str(ctx.exception))

    def test_invalid_utf8(self):
        with self.assertRaises(UnmarshalError):
            parse_bytes(b'\xff\xfe\xfa')


class TestDump(unittest.TestCase):

    def test_json_keeps_unicode(self):
        self.assertEqual(dump_json({'title': 'café'}), '{\n  "title": "café"\n}')

    def test_yaml_keeps_key_order(self):
        self.assertEqual(dump_yaml({'openapi': '3.1.0', 'info': {'title': 'T'}}),
                         "openapi: 3.1.0\ninfo:\n  title: T\n")


if __name__ == '__main__':
    unittest.main()
