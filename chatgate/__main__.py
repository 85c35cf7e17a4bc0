"""chatgate entry point: start aiohttp server."""

import logging
import sys

from chatgate.config import load_config
from chatgate.server import create_app


def main() -> None:
    from aiohttp import web

    config = load_config()

    logging.basicConfig(
        level=getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    app = create_app(config)
    web.run_app(app, host=config["server"]["host"], port=config["server"]["port"])


if __name__ == "__main__":
    main()
