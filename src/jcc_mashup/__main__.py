"""Run the JCC studio availability proxy.

Run with: python -m src.jcc_mashup
Port:     python -m src.jcc_mashup --port 8001   (or PORT=8001)
Public:   python -m src.jcc_mashup --host 0.0.0.0

Settings come from the environment and .env (see src/jcc_mashup/config.py).
"""

import argparse

import uvicorn
from dotenv import load_dotenv

from src.jcc_mashup.api import create_app
from src.jcc_mashup.config import get_config
from src.jcc_mashup.logging import get_logger, setup_logging


def _parse_args(default_host: str, default_port: int) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Serve cached Daxko sessions and the class schedule to a browser.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--host",
        type=str,
        default=default_host,
        help=f"Bind address (default: {default_host}).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=default_port,
        help=f"Bind port (default: {default_port}).",
    )
    return parser.parse_args()


def main() -> None:
    load_dotenv()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    args = _parse_args(config.host, config.port)

    log = get_logger(__name__)
    log.info("proxy_listening", url=f"http://{args.host}:{args.port}")

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
