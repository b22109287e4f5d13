#!/usr/bin/env python3
"""
apimock Server CLI

Command-line interface for serving a mocked REST backend.

Commands:
    serve       - Start mock HTTP server for a route tree
    check       - Validate a route tree and print its root paths

Routes are given as `module:attribute`, where the attribute is a list of
routes or a zero-argument function returning one.

Examples:
    # Start mock server
    python3 apimock-server.py serve myapp.mocks:routes --port 8080

    # With YAML config and an upstream for unknown URLs
    python3 apimock-server.py serve myapp.mocks:routes --config apimock.yaml \\
        --pass-through --upstream https://api.example.com

    # Validate routes
    python3 apimock-server.py check myapp.mocks:get_routes
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from apimock.mock import ApiMockConfig, JsonFileStorage, MockServer, RouteConfigError, RouteRegistry


def load_routes(reference: str):
    """
    Import routes from a `module:attribute` reference.

    Args:
        reference: Reference like `myapp.mocks:routes`

    Returns:
        List of routes
    """
    if ':' not in reference:
        raise ValueError(f"Expected module:attribute, got '{reference}'")

    module_name, attr = reference.split(':', 1)
    sys.path.insert(0, str(Path.cwd()))
    module = importlib.import_module(module_name)
    routes = getattr(module, attr)

    return routes() if callable(routes) else routes


def cmd_serve(args):
    """
    Start mock HTTP server.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🎭 apimock Server")

    config = ApiMockConfig.from_yaml(args.config) if args.config else ApiMockConfig()

    if args.delay is not None:
        config.response_delay_ms = args.delay
    if args.pass_through:
        config.pass_through_unknown_url = True
    if args.cache_file:
        config.cache_from_external_storage = True
    if args.no_admin:
        config.admin_enabled = False
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )

    storage = JsonFileStorage(args.cache_file) if args.cache_file else None

    try:
        routes = load_routes(args.routes)
        server = MockServer(routes, config=config, storage=storage, upstream_url=args.upstream)
    except RouteConfigError as e:
        print(f"❌ Invalid routes: {e}")
        sys.exit(1)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"❌ Failed to load routes: {e}")
        sys.exit(1)

    server.start(host=args.host, port=args.port)


def cmd_check(args):
    """
    Validate routes and print root paths, longest first.

    Args:
        args: Parsed command-line arguments
    """
    try:
        registry = RouteRegistry(load_routes(args.routes))
    except RouteConfigError as e:
        print(f"❌ Invalid routes: {e}")
        sys.exit(1)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"❌ Failed to load routes: {e}")
        sys.exit(1)

    print(f"✓ {len(registry.routes)} root routes are valid")
    for entry in registry.root_index:
        print(f"   {entry.path}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='apimock - Mock REST backend server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Start mock HTTP server')
    serve_parser.add_argument('routes', help='Routes as module:attribute')
    serve_parser.add_argument('--config', help='YAML config file')
    serve_parser.add_argument('--host', default=None, help='Host to bind to (default: from config)')
    serve_parser.add_argument('--port', type=int, default=None, help='Port to bind to (default: from config)')
    serve_parser.add_argument('--delay', type=int, default=None, help='Response delay in milliseconds')
    serve_parser.add_argument('--pass-through', action='store_true',
                              help='Forward unknown URLs instead of answering 404')
    serve_parser.add_argument('--upstream', help='Base URL receiving passed-through requests')
    serve_parser.add_argument('--cache-file', help='Persist mock data to this JSON file')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level')

    # Check command
    check_parser = subparsers.add_parser('check', help='Validate routes')
    check_parser.add_argument('routes', help='Routes as module:attribute')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'check':
        cmd_check(args)


if __name__ == '__main__':
    main()
