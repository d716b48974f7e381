"""

Command line utility to compile JSON Schema documents and validate JSON instances against them.

"""


import argparse
import logging
import sys
from typing import List, Optional

from jsonschemavm import _version
from jsonschemavm.errors import JsonSchemaVMError, UndefinedURIError
from jsonschemavm.validate import load_schema_files, validate_json_instances
from jsonschemavm.vm import DEFAULT_EPSILON, DEFAULT_MAX_STACK_DEPTH, ValidationConfig


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(description='Compile JSON Schema documents and validate JSON instances against them.')
    parser.add_argument('--version', action='store_true', help='Print the version of jsonschemavm.')
    parser.add_argument('--verbose', action='store_true', help='Log compilation and validation details to stderr.')

    subparsers = parser.add_subparsers(dest='command')

    check_parser = subparsers.add_parser('check', help='Compile schema documents and check their references')
    check_parser.add_argument('--schema', type=str, action='append', required=True,
                              help='Schema file; repeat for cross-referenced documents, the first is the root')

    validate_parser = subparsers.add_parser('validate', help='Validate JSON instances against a schema')
    validate_parser.add_argument('input', type=str, nargs='+', help='JSON or JSONL files holding the instances')
    validate_parser.add_argument('--schema', type=str, action='append', required=True,
                                 help='Schema file; repeat for cross-referenced documents, the first is the root')
    validate_parser.add_argument('--uri', type=str, default=None,
                                 help='URI of the schema to validate against, defaults to the root document')
    validate_parser.add_argument('--max-errors', type=int, default=None,
                                 help='Stop recording errors per instance after this many')
    validate_parser.add_argument('--max-stack-depth', type=int, default=DEFAULT_MAX_STACK_DEPTH,
                                 help='Maximum number of nested $ref jumps')
    validate_parser.add_argument('--epsilon', type=float, default=DEFAULT_EPSILON,
                                 help='Tolerance of the multipleOf check')
    validate_parser.add_argument('--quiet', action='store_true',
                                 help='Suppress output, exit with code 0 if valid, 1 if invalid')
    return parser


def check(schema: List[str]) -> int:
    """Compiles schema files and reports whether all references resolve."""
    registry = load_schema_files(schema)
    print(f"✓ Compiled {len(registry.roots)} documents into {len(registry)} schemas")
    return 0


def validate(
    input: List[str],
    schema: List[str],
    uri: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
    quiet: bool = False
) -> int:
    """Validates JSON instance files and prints one line per instance and violation.

    Returns:
        0 if every instance is valid, 1 otherwise
    """
    registry = load_schema_files(schema)
    valid_count, invalid_count = validate_json_instances(input, registry, uri, config, verbose=not quiet)

    if not quiet:
        total = valid_count + invalid_count
        print(f"\nValidation summary: {valid_count}/{total} instances valid")

    return 1 if invalid_count > 0 else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for the command line utility."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f'jsonschemavm {_version.version}')
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    try:
        if args.command == 'check':
            return check(args.schema)
        config = ValidationConfig(
            max_errors=args.max_errors,
            max_stack_depth=args.max_stack_depth,
            epsilon=args.epsilon,
        )
        return validate(args.input, args.schema, args.uri, config, args.quiet)
    except UndefinedURIError as e:
        print("Error: undefined schema URIs:")
        for uri in e.uris:
            print(f"  {uri}")
        return 1
    except (JsonSchemaVMError, OSError, ValueError) as e:
        print("Error: ", str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
