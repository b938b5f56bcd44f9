#!/usr/bin/env python3
"""
List Proxmox VE nodes, storages and VMs.

Usage: pveinventory [options] <command> [<args>...]
"""

import argparse
import logging
import sys

from .client import establish_session, normalize_principal
from .config import load_config
from .inventory import CATEGORY_ALIASES, LISTERS
from .policy import FatalError, fatal

logger = logging.getLogger(__name__)

PROG = 'pveinventory'

USAGE = f"""
Usage:
  {PROG} [options] <command> [<args>...]

  Commands:
	help [command]     Show help for a command
	list [object type] List objects of a given type (e.g. cluster, node, storage, vm, ...)
	login              Login to Proxmox server and display credentials (not necessary for most commands)
"""

COMMAND_HELP = {
    'list': f"""List objects of a given type (e.g. cluster, node, storage, vm, ...)
examples:
	{PROG} list cluster
	{PROG} list node
	{PROG} list storage
	{PROG} list vm
""",
    'login': f"""Login to Proxmox server and display the authenticated user and CSRF token
examples:
	{PROG} -username admin -realm pve -password secret login
""",
}

COMMAND_ALIASES = {
    'h': 'help', 'help': 'help',
    'l': 'list', 'ls': 'list', 'list': 'list',
    'login': 'login',
}


def usage(out):
    print(USAGE, file=out)


def command_help(command, out):
    text = COMMAND_HELP.get(COMMAND_ALIASES.get(command, command))
    if text is None:
        print(f"Unknown command: {command}", file=out)
    else:
        print(text, end='', file=out)


def build_parser():
    parser = argparse.ArgumentParser(prog=PROG, add_help=False, allow_abbrev=False)
    # Unset flags stay None so config file values can fill them in
    parser.add_argument('-username', '--username', help="Username (default root)")
    parser.add_argument('-password', '--password', help="Password (use -password=VALUE when it starts with -)")
    parser.add_argument('-otp', '--otp', help="OTP Code (use -otp=VALUE when it starts with -)")
    parser.add_argument('-server', '--server', help="Proxmox server URL (default https://localhost:8006/api2/json)")
    parser.add_argument('-skiptls', '--skiptls', action='store_true', help="Skip TLS verification. Avoid this whenever possible.")
    parser.add_argument('-debug', '--debug', action='store_true', help="Debug mode")
    parser.add_argument('-realm', '--realm', help="Authentication realm (default pam)")
    parser.add_argument('-config', '--config', help="YAML file with a 'proxmox' section of defaults")
    parser.add_argument('command', nargs='?', default='')
    parser.add_argument('args', nargs='*')
    return parser


def setup_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def connect(config):
    principal = normalize_principal(config.username, config.realm)
    logger.debug(f"Connecting to {config.server} with username {principal} while skipping tls? {not config.verify_ssl}")
    return fatal("Failed to login", establish_session,
                 config.server, not config.verify_ssl, principal, config.password, config.otp, config.timeout)


def show_credentials(client, out):
    print(f"Logged in as {client.principal}", file=out)
    print(f"\tCSRFPreventionToken: {client.csrf_token or ''}", file=out)


def main(argv=None, out=None):
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    command = COMMAND_ALIASES.get(args.command)
    if not args.command:
        usage(out)
        return 1
    if command == 'help':
        if args.args:
            command_help(args.args[0], out)
        else:
            usage(out)
        return 0
    if command is None:
        usage(out)
        return 0

    category = None
    if command == 'list':
        category = CATEGORY_ALIASES.get(args.args[0]) if args.args else None
        if category is None:
            command_help('list', out)
            return 0

    try:
        if category == 'cluster':
            fatal("Failed to list clusters", LISTERS['cluster'], None, out)
        try:
            config = load_config(args.config, {
                'server': args.server,
                'username': args.username,
                'realm': args.realm,
                'password': args.password,
                'otp': args.otp,
                'verify_ssl': False if args.skiptls else None,
            })
        except (OSError, ValueError) as e:
            raise FatalError(f"Failed to load configuration: {e}")
        client = connect(config)
        if command == 'login':
            show_credentials(client, out)
        else:
            LISTERS[category](client, out)
    except FatalError as e:
        logger.error(str(e))
        return e.exit_code
    return 0


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
