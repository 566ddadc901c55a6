#!/usr/bin/env python3
"""
Contest scoreboard server.
Scores answer submissions and serves the live team standings over HTTP.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from contestboard.config import ContestConfig
from contestboard.scoreboard import ContestSystem

logger = logging.getLogger("contestboard")


async def main():
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="Contest scoreboard server with JSON API and web interface",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=int(os.getenv("WEB_PORT", "8081")),
        help="Web interface port (env: WEB_PORT)"
    )
    parser.add_argument(
        "--db",
        default=os.getenv("DB_PATH", "contest.db"),
        help="SQLite database file path (env: DB_PATH)"
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "contest_config.json"),
        help="Configuration file path (env: CONFIG_PATH)"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (env: HOST)"
    )

    args = parser.parse_args()

    config_path = Path(args.config)

    if config_path.exists() and not config_path.is_file():
        logging.basicConfig(level=logging.INFO)
        logger.error("%s exists but is not a file", args.config)
        return

    config = ContestConfig(args.config)
    logging.basicConfig(
        level=config.get("logging", "level"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = ContestSystem(
        host=args.host,
        web_port=args.web_port,
        db_path=args.db,
        config=config,
    )

    await system.init_db()

    try:
        await system.run()
    except asyncio.CancelledError:
        logger.info("Server stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server interrupted")
