"""Tests for the public compile/validate API, file validation and the command line."""

import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from jsonschemavm import compile_schemas as lazy_compile_schemas
from jsonschemavm.errors import NoSuchSchemaError, SchemaError, StackOverflowError, UndefinedURIError
from jsonschemavm.jsonschemavm import main
from jsonschemavm.parser import parse_schema
from jsonschemavm.registry import Registry
from jsonschemavm.validate import (ValidationResult, compile_schemas, format_error, load_schema_files,
                                   validate, validate_file, validate_json_instances, validate_uri)
from jsonschemavm.vm import ValidationConfig

ROOT_SCHEMA = {
    "$id": "http://example.com/order",
    "type": "object",
    "required": ["id", "lines"],
    "properties": {
        "id": {"type": "integer"},
        "lines": {"type": "array", "items": {"$ref": "http://example.com/line"}},
    },
}

LINE_SCHEMA = {
    "$id": "http://example.com/line",
    "type": "object",
    "properties": {
        "sku": {"type": "string", "pattern": "^[A-Z]{3}-[0-9]+$"},
        "quantity": {"$ref": "#/definitions/quantity"},
    },
    "definitions": {
        "quantity": {"type": "integer", "minimum": 1},
    },
}


def write_json(directory, name, value):
    path = os.path.join(directory, name)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(value, f)
    return path


class TestCompileAndValidate(unittest.TestCase):
    """Tests for compile_schemas, validate and validate_uri."""

    def setUp(self):
        self.registry = compile_schemas([ROOT_SCHEMA, LINE_SCHEMA])

    def test_valid_instance(self):
        result = validate(self.registry, {"id": 1, "lines": [{"sku": "ABC-1", "quantity": 2}]})
        self.assertTrue(result.is_valid)
        self.assertEqual([], result.errors)

    def test_errors_across_documents(self):
        result = validate(self.registry, {"lines": [{"sku": "abc", "quantity": 0}]})
        self.assertFalse(result.is_valid)
        self.assertEqual([
            ('#/lines/0/sku', 'http://example.com/line', '/properties/sku/pattern'),
            ('#/lines/0/quantity', 'http://example.com/line', '/definitions/quantity/minimum'),
            ('#', 'http://example.com/order', '/required/0'),
        ], [('#' + e.instance_path.path, e.schema_uri, e.schema_path.path) for e in result.errors])

    def test_validate_uri(self):
        result = validate_uri(self.registry, "http://example.com/line", {"sku": 1})
        self.assertEqual(['/properties/sku/type'], [e.schema_path.path for e in result.errors])

        result = validate_uri(self.registry, "http://example.com/line#/definitions/quantity", 0)
        self.assertEqual([('', '/definitions/quantity/minimum')],
                         [(e.instance_path.path, e.schema_path.path) for e in result.errors])

    def test_validate_uri_unknown(self):
        for uri in ["http://example.com/nope", "http://example.com/line#/definitions/nope",
                    "http://example.com/line#bad"]:
            with self.subTest(uri=uri):
                with self.assertRaises(NoSuchSchemaError):
                    validate_uri(self.registry, uri, {})

    def test_idempotent(self):
        instance = {"id": "x", "lines": [{"sku": 1}, 3]}
        first = validate(self.registry, instance)
        second = validate(self.registry, instance)
        self.assertEqual(first.errors, second.errors)
        self.assertEqual(3, len(first.errors))

    def test_config_caps_errors(self):
        instance = {"id": "x", "lines": [{"sku": 1}, 3]}
        result = validate(self.registry, instance, ValidationConfig(max_errors=2))
        self.assertEqual(validate(self.registry, instance).errors[:2], result.errors)

    def test_type_scenario(self):
        registry = compile_schemas([{"type": ["null", "integer"]}])
        errors = validate(registry, "x").errors
        self.assertEqual(1, len(errors))
        self.assertEqual(['type'], errors[0].schema_path.parts)
        self.assertEqual([], errors[0].instance_path.parts)

    def test_items_scenario(self):
        registry = compile_schemas([{"items": {"type": "null"}}])
        errors = validate(registry, [None, 1]).errors
        self.assertEqual(1, len(errors))
        self.assertEqual(['items', 'type'], errors[0].schema_path.parts)
        self.assertEqual(['1'], errors[0].instance_path.parts)

    def test_missing_reference_scenario(self):
        with self.assertRaises(UndefinedURIError) as context:
            compile_schemas([{"$ref": "http://x/1"}])
        self.assertIn("http://x/1", context.exception.uris)

    def test_cycle_scenario(self):
        registry = compile_schemas([{"$ref": "#"}])
        for instance in [None, 1, "x", [1], {"a": {}}]:
            with self.subTest(instance=instance):
                with self.assertRaises(StackOverflowError):
                    validate(registry, instance)

    def test_unique_items_scenario(self):
        registry = compile_schemas([{"uniqueItems": True}])
        self.assertFalse(validate(registry, [1, 1.0]).is_valid)
        self.assertTrue(validate(registry, [1, 2]).is_valid)

    def test_validates_first_document(self):
        registry = compile_schemas([{"$id": "http://x/a", "type": "string"}, {"$id": "http://x/b", "type": "integer"}])
        self.assertTrue(validate(registry, "s").is_valid)
        self.assertFalse(validate(registry, 1).is_valid)

    def test_anonymous_documents_overlay(self):
        with self.assertLogs('jsonschemavm.validate', level='WARNING'):
            registry = compile_schemas([{"type": "string"}, {"type": "integer"}])
        self.assertTrue(validate(registry, "s").is_valid)
        self.assertTrue(validate_uri(registry, "#", 1).is_valid)

    def test_unsealed_registry_rejected(self):
        registry = Registry()
        registry.roots.append(parse_schema(registry, {"type": "null"}))
        with self.assertRaises(SchemaError):
            validate(registry, None)
        with self.assertRaises(NoSuchSchemaError):
            validate(Registry(), None)
        with self.assertRaises(SchemaError):
            compile_schemas([])

    def test_concurrent_validations_share_registry(self):
        from concurrent.futures import ThreadPoolExecutor
        instances = [{"id": i, "lines": [{"sku": "ABC-1", "quantity": i}]} for i in range(20)]
        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda instance: validate(self.registry, instance), instances))
        self.assertFalse(results[0].is_valid)
        self.assertTrue(all(result.is_valid for result in results[1:]))

    def test_lazy_package_exports(self):
        self.assertIs(compile_schemas, lazy_compile_schemas)

    def test_result_rendering(self):
        result = validate(self.registry, {"id": 1, "lines": [{"quantity": "x"}]})
        self.assertEqual("#/lines/0/quantity -> http://example.com/line#/definitions/quantity/type",
                         format_error(result.errors[0]))
        self.assertIn("✗ Invalid", str(result))
        self.assertEqual("✓ Valid", str(ValidationResult()))


class TestValidateFile(unittest.TestCase):
    """Tests for validating instances stored in files."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name
        self.root_path = write_json(self.dir, 'order.json', ROOT_SCHEMA)
        self.line_path = write_json(self.dir, 'line.json', LINE_SCHEMA)
        self.registry = load_schema_files([self.root_path, self.line_path])

    def tearDown(self):
        self.tmp.cleanup()

    def test_single_document(self):
        path = write_json(self.dir, 'one.json', {"id": 1, "lines": []})
        results = validate_file(path, self.registry)
        self.assertEqual(1, len(results))
        self.assertTrue(results[0].is_valid)
        self.assertEqual(path, results[0].source)

    def test_array_of_instances(self):
        path = write_json(self.dir, 'many.json', [{"id": 1, "lines": []}, {"id": "x", "lines": []}])
        results = validate_file(path, self.registry)
        self.assertEqual([True, False], [result.is_valid for result in results])
        self.assertEqual(f"{path}[1]", results[1].source)

    def test_array_schema_validates_whole_array(self):
        registry = compile_schemas([{"type": "array", "maxItems": 1}])
        path = write_json(self.dir, 'array.json', [1, 2])
        results = validate_file(path, registry)
        self.assertEqual(1, len(results))
        self.assertFalse(results[0].is_valid)

    def test_array_keywords_validate_whole_array(self):
        registry = compile_schemas([{"items": {"type": "null"}}])
        path = write_json(self.dir, 'nulls.json', [None, 1])
        results = validate_file(path, registry)
        self.assertEqual(1, len(results))
        self.assertFalse(results[0].is_valid)
        self.assertEqual(['1'], results[0].errors[0].instance_path.parts)
        self.assertEqual((0, 1), validate_json_instances([path], registry))

    def test_jsonl(self):
        path = os.path.join(self.dir, 'lines.jsonl')
        with open(path, 'w', encoding='utf-8') as f:
            f.write('{"sku": "ABC-1", "quantity": 1}\n{"sku": "ABC-2", "quantity": 0}\n')
        results = validate_file(path, self.registry, uri="http://example.com/line")
        self.assertEqual([True, False], [result.is_valid for result in results])
        self.assertEqual(f"{path}:2", results[1].source)

    def test_validate_json_instances_counts(self):
        good = write_json(self.dir, 'good.json', {"id": 1, "lines": []})
        bad = write_json(self.dir, 'bad.json', [{"id": 1}, {"lines": []}])
        self.assertEqual((1, 2), validate_json_instances([good, bad], self.registry))

    def test_validate_json_instances_verbose(self):
        bad = write_json(self.dir, 'bad.json', {"id": 1, "lines": [{"quantity": 0}]})
        out = io.StringIO()
        with redirect_stdout(out):
            counts = validate_json_instances([bad], self.registry, verbose=True)
        self.assertEqual((0, 1), counts)
        self.assertEqual([
            f"✗ Invalid: {bad}",
            "  #/lines/0/quantity -> http://example.com/line#/definitions/quantity/minimum",
        ], out.getvalue().splitlines())


class TestCommandLine(unittest.TestCase):
    """Tests for the jsonschemavm command."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name
        self.root_path = write_json(self.dir, 'order.json', ROOT_SCHEMA)
        self.line_path = write_json(self.dir, 'line.json', LINE_SCHEMA)

    def tearDown(self):
        self.tmp.cleanup()

    def run_main(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main(list(argv))
        return code, out.getvalue()

    def test_check(self):
        code, output = self.run_main('check', '--schema', self.root_path, '--schema', self.line_path)
        self.assertEqual(0, code)
        self.assertIn("Compiled 2 documents", output)

    def test_check_reports_undefined_uris(self):
        code, output = self.run_main('check', '--schema', self.root_path)
        self.assertEqual(1, code)
        self.assertIn("http://example.com/line", output)

    def test_validate(self):
        good = write_json(self.dir, 'good.json', {"id": 1, "lines": [{"sku": "ABC-1", "quantity": 1}]})
        bad = write_json(self.dir, 'bad.json', {"id": 1, "lines": [{"quantity": 0}]})

        code, output = self.run_main('validate', '--schema', self.root_path, '--schema', self.line_path, good)
        self.assertEqual(0, code)
        self.assertIn("1/1 instances valid", output)

        code, output = self.run_main('validate', '--schema', self.root_path, '--schema', self.line_path, good, bad)
        self.assertEqual(1, code)
        self.assertIn("#/lines/0/quantity -> http://example.com/line#/definitions/quantity/minimum", output)

    def test_validate_array_against_items_schema(self):
        schema_path = write_json(self.dir, 'nulls.schema.json', {"items": {"type": "null"}})
        data = write_json(self.dir, 'nulls.json', [None, 1])
        code, output = self.run_main('validate', '--schema', schema_path, data)
        self.assertEqual(1, code)
        self.assertIn("#/1 -> #/items/type", output)
        self.assertIn("0/1 instances valid", output)

    def test_validate_quiet_with_limits(self):
        bad = write_json(self.dir, 'bad.json', {"id": "x", "lines": [1, 2, 3]})
        code, output = self.run_main('validate', '--schema', self.root_path, '--schema', self.line_path,
                                     '--max-errors', '1', '--quiet', bad)
        self.assertEqual(1, code)
        self.assertEqual('', output)

    def test_invalid_schema_file(self):
        broken = write_json(self.dir, 'broken.json', {"type": 3})
        code, output = self.run_main('check', '--schema', broken)
        self.assertEqual(1, code)
        self.assertIn("Error:", output)

    def test_version(self):
        code, output = self.run_main('--version')
        self.assertEqual(0, code)
        self.assertTrue(output.startswith('jsonschemavm '))


if __name__ == '__main__':
    unittest.main()
