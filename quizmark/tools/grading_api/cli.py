"""CLI for launching the grading HTTP API."""

import argparse
import logging
import sys
from pathlib import Path

from quizmark.libs.config_loader import get_config, load_all_configs
from quizmark.tools.grading import YamlStore, create_service
from .app import create_app, run_server

LOG = logging.getLogger(__name__)


def main():
    """Main CLI entry point for the grading API server."""
    parser = argparse.ArgumentParser(
        description='Serve the assignment grading API over HTTP',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the gradebook configured in grading.store_path
  quizmark-serve

  # Serve a specific gradebook on another port
  quizmark-serve --store class7.yaml --port 8000
        """
    )

    parser.add_argument(
        '--store',
        type=Path,
        default=None,
        help='Gradebook YAML file (default: grading.store_path from config)'
    )

    parser.add_argument(
        '--host',
        default=None,
        help='Host to bind to (default: server.host from config)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Port to bind to (default: server.port from config)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Run in debug mode'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args()

    try:
        configs = load_all_configs()
    except Exception as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    log_level = logging.DEBUG if args.verbose else get_config("logging.level", configs, default="INFO")
    logging.basicConfig(
        level=log_level,
        format=get_config("logging.format", configs,
                          default='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    store = YamlStore(args.store) if args.store else None
    service = create_service(configs, store=store)
    create_app(service)

    host = args.host or get_config("server.host", configs, default='127.0.0.1')
    port = args.port or get_config("server.port", configs, default=5000)

    LOG.info(f"Starting server on {host}:{port}")
    try:
        run_server(host=host, port=port, debug=args.debug)
    except KeyboardInterrupt:
        LOG.info("Server stopped")


if __name__ == '__main__':
    main()
