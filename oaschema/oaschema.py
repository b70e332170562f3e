"""

Command line utility to validate, internalize and flatten OpenAPI documents and their schemas.

"""


import argparse
import tempfile
import logging
import sys
import os
import json
from oaschema import _version

ARG_TYPES = {'str': str, 'int': int, 'float': float, 'bool': bool}

def load_commands():
    """Load the commands from the commands.json file."""
    commands_path = os.path.join(os.path.dirname(__file__), 'commands.json')
    with open(commands_path, 'r', encoding='utf-8') as f:
        return json.load(f)

def create_subparsers(subparsers, commands):
    """Create subparsers for the commands."""
    for command in commands:
        cmd_parser = subparsers.add_parser(command['command'], help=command['description'])
        for arg in command['args']:
            kwargs = {
                'type': ARG_TYPES[arg['type']],
                'help': arg['help'],
            }

            if 'nargs' in arg:
                kwargs['nargs'] = arg['nargs']
            if 'choices' in arg:
                kwargs['choices'] = arg['choices']
            if 'default' in arg:
                kwargs['default'] = arg['default']
            if arg['type'] == 'bool':
                kwargs['action'] = 'store_true'
                del kwargs['type']
            carg = cmd_parser.add_argument(arg['name'], **kwargs)
            if arg['name'].startswith('-'):
                carg.required = arg.get('required', True)

def dynamic_import(module, func):
    """Dynamically import a module and function."""
    mod = __import__(module, fromlist=[func])
    return getattr(mod, func)

def main():
    """Main function for the command line utility."""
    commands = load_commands()
    parser = argparse.ArgumentParser(description='Validate, internalize and flatten OpenAPI documents and their schemas.')
    parser.add_argument('--version', action='store_true', help='Print the version of oaschema.')
    parser.add_argument('--verbose', action='store_true', help='Log reference resolution details.')

    subparsers = parser.add_subparsers(dest='command')
    create_subparsers(subparsers, commands)

    args = parser.parse_args()

    if 'version' in args and args.version:
        print(f'oaschema {_version.version}')
        return

    if args.command is None:
        parser.print_help()
        return

    logging.basicConfig(level=logging.DEBUG if getattr(args, 'verbose', False) else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    temp_input = None
    try:
        command = next((cmd for cmd in commands if cmd['command'] == args.command), None)
        if not command:
            print(f"Error: Command {args.command} not found.")
            sys.exit(1)

        input_file_path = getattr(args, 'input', None)
        if input_file_path is None:
            temp_input = tempfile.NamedTemporaryFile(delete=False, mode='w', encoding='utf-8', suffix='.yaml')
            input_file_path = temp_input.name
            # read to EOF
            s = sys.stdin.read()
            while s:
                temp_input.write(s)
                s = sys.stdin.read()
            temp_input.flush()
            temp_input.close()

        output_file_path = getattr(args, 'out', None)

        module_name, func_name = command['function']['name'].rsplit('.', 1)
        func = dynamic_import(module_name, func_name)
        func_args = {}
        for arg, val in command['function']['args'].items():
            if val == 'input_file_path':
                func_args[arg] = input_file_path
            elif val == 'output_file_path':
                func_args[arg] = output_file_path
            elif val.startswith('args.'):
                if hasattr(args, val[5:]):
                    func_args[arg] = getattr(args, val[5:])
            else:
                func_args[arg] = val
        if output_file_path:
            print(f'Executing {command["description"]} with input {input_file_path} and output {output_file_path}')
        func(**func_args)

    except Exception as e:  # pylint: disable=broad-exception-caught
        print("Error: ", str(e))
        sys.exit(1)
    finally:
        if temp_input:
            try:
                os.remove(temp_input.name)
            except OSError as e:
                print(f"Error: Could not delete temporary input file {temp_input.name}. {e}")

if __name__ == "__main__":
    main()
