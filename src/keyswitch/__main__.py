# Main Entry Point - Local Backend
#
# Starts the HTTP backend the UI shell connects to. The window itself is
# provided by the shell; this process only serves the store.

import argparse
import sys
from dataclasses import replace

from . import __version__
from .config import load_config
from .core import KeyswitchError, configure_logging


def main(argv=None):
    """Parse arguments, wire up logging and the store, and serve the API."""
    parser = argparse.ArgumentParser(
        prog="keyswitch",
        description="keyswitch - encrypted API source store and active-source switcher",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Backend host (default: KEYSWITCH_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Backend port (default: KEYSWITCH_PORT or 8765)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"keyswitch v{__version__}",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config()
    except KeyswitchError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.host:
        config = replace(config, host=args.host)
    if args.port:
        config = replace(config, port=args.port)

    configure_logging(config.log_dir, config.log_level)

    # Imported late so --help and --version stay fast
    from .api import start_api_server

    try:
        start_api_server(config)
    except KeyboardInterrupt:
        print("\nShutting down backend...")
    except KeyswitchError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
