"""
Main ContestSystem class that orchestrates all components.
"""

import asyncio
import logging
from typing import Optional

from aiohttp import web, web_runner
import aiohttp_cors

from .aggregates import Aggregates
from .cache import AggregateCache
from .config import ContestConfig
from .database import DatabaseManager
from .scoring import ScoringEngine
from .standings import StandingsBuilder
from .submissions import SubmissionHistory, SubmissionProcessor
from .tasks import TaskViewBuilder
from .web_handlers import WebHandlers, error_middleware

logger = logging.getLogger(__name__)


class ContestSystem:
    """Async contest scoreboard with a JSON API and HTML views."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        web_port: int = 8081,
        db_path: str = "contest.db",
        config_path: str = "contest_config.json",
        config: Optional[ContestConfig] = None,
    ) -> None:
        self.host = host
        self.web_port = web_port
        self.db_path = db_path

        self.config = config if config is not None else ContestConfig(config_path)

        # Cache lives as long as the process
        self.cache = AggregateCache()
        self.db = DatabaseManager(db_path, self.config)
        self.aggregates = Aggregates(self.cache)
        self.scoring_engine = ScoringEngine(self.aggregates)

        self.processor = SubmissionProcessor(self.db, self.aggregates, self.scoring_engine)
        self.standings = StandingsBuilder(self.db, self.aggregates, self.config)
        self.task_views = TaskViewBuilder(self.db, self.aggregates)
        self.history = SubmissionHistory(self.db, self.aggregates, self.config)

        self.web_handlers = WebHandlers(
            self.config,
            self.cache,
            self.task_views,
            self.standings,
            self.processor,
            self.history,
        )

    async def init_db(self) -> None:
        """
        Initialize the database.

        Creates database tables and performs any necessary setup.
        """
        await self.db.init_db()

    def initialize(self) -> None:
        """Drop every cached aggregate, e.g. after contest data was reloaded."""
        self.cache.clear()

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with all routes and CORS applied.

        @return: Configured web application
        """
        app = web.Application(middlewares=[error_middleware])

        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )

        # Web routes
        app.router.add_get("/", self.web_handlers.web_index)
        app.router.add_get("/tasks", self.web_handlers.web_tasks)

        # API routes
        app.router.add_get("/api/tasks", self.web_handlers.web_api_tasks)
        app.router.add_get(
            "/api/tasks/{task_name}", self.web_handlers.web_api_task_detail
        )
        app.router.add_get("/api/standings", self.web_handlers.web_api_standings)
        app.router.add_post("/api/submit", self.web_handlers.web_api_submit)
        app.router.add_get("/api/submissions", self.web_handlers.web_api_submissions)
        app.router.add_post("/api/initialize", self.web_handlers.web_api_initialize)

        # Add CORS to all routes
        for route in list(app.router.routes()):
            cors.add(route)

        return app

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind the server to (default uses configured host)
        @param port: Port number to use (default uses configured web_port)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.host
        if port is None:
            port = self.web_port

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        logger.info("Web server running on http://%s:%s", host, port)
        return app_runner

    async def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Run the web server until cancelled.

        @param host: Host address (default uses configured host)
        @param port: Port number (default uses configured web_port)
        """
        app_runner = await self.start_web_server(host, port)
        logger.info("%s running, press Ctrl+C to stop", self.config.get("contest_name"))

        try:
            await asyncio.Event().wait()
        finally:
            logger.info("Shutting down web server")
            await app_runner.cleanup()
