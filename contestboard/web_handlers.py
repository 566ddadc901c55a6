"""
Web route handlers for the contest scoreboard.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from aiohttp import web
from jinja2 import Environment, FileSystemLoader

from .cache import AggregateCache
from .errors import BadRequest, ContestError, Forbidden, StoreFailure, Unauthorized
from .standings import StandingsBuilder
from .submissions import SubmissionFilter, SubmissionHistory, SubmissionProcessor
from .tasks import TaskViewBuilder

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Any,
) -> web.StreamResponse:
    """
    Turn contest errors into JSON error responses.

    Store failures are logged with their cause and answered with a generic
    message.
    """
    try:
        return await handler(request)
    except StoreFailure as e:
        logger.exception("Store failure while serving %s %s", request.method, request.path)
        return web.json_response({"error": "internal server error"}, status=e.http_status)
    except ContestError as e:
        return web.json_response({"error": e.message}, status=e.http_status)


class WebHandlers:
    """Handles web routes and responses."""

    def __init__(
        self,
        config: Any,
        cache: AggregateCache,
        task_views: TaskViewBuilder,
        standings: StandingsBuilder,
        processor: SubmissionProcessor,
        history: SubmissionHistory,
        templates_path: Path = TEMPLATES_PATH,
    ) -> None:
        self.config = config
        self.cache = cache
        self.task_views = task_views
        self.standings = standings
        self.processor = processor
        self.history = history

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(templates_path)),
            auto_reload=False,  # Disable auto-reload for performance
            cache_size=50,
            autoescape=True,
        )

    def caller_name(self, request: web.Request) -> Optional[str]:
        """
        Name of the authenticated caller, as forwarded by the auth proxy.

        @param request: HTTP request
        @return: User name, None when unauthenticated
        """
        name = request.headers.get(self.config.user_header, "").strip()
        return name or None

    def require_caller(self, request: web.Request) -> str:
        name = self.caller_name(request)
        if name is None:
            raise Unauthorized("you are not logged in")
        return name

    async def web_index(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Web interface standings page.

        @param _: Unused request parameter
        @return: HTTP response with rendered standings page
        """
        standings = await self.standings.build_standings()

        template = self.jinja_env.get_template("standings.html")
        html = template.render(
            title="Standings", standings=standings, config=self.config
        )
        return web.Response(text=html, content_type="text/html")

    async def web_tasks(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Web interface task list page.

        @param request: HTTP request, optionally carrying the caller identity
        @return: HTTP response with rendered task list
        """
        tasks = await self.task_views.list_task_views(self.caller_name(request))

        template = self.jinja_env.get_template("tasks.html")
        html = template.render(title="Tasks", tasks=tasks, config=self.config)
        return web.Response(text=html, content_type="text/html")

    async def web_api_tasks(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint for the task list.

        @param request: HTTP request, optionally carrying the caller identity
        @return: JSON list of task abstracts
        """
        tasks = await self.task_views.list_task_views(self.caller_name(request))
        return web.json_response([task.to_dict() for task in tasks])

    async def web_api_task_detail(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint for one task.

        @param request: HTTP request containing the task name
        @return: JSON task detail, 404 if the task does not exist
        """
        task_name = request.match_info["task_name"]
        detail = await self.task_views.build_task_view(
            task_name, self.caller_name(request)
        )
        return web.json_response(detail.to_dict())

    async def web_api_standings(
        self,
        _: web.Request,
    ) -> web.Response:
        standings = await self.standings.build_standings()
        return web.json_response(standings.to_dict())

    async def web_api_submit(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint for answer submission.

        @param request: HTTP request with JSON body {task_name, answer, timestamp}
        @return: JSON submit result with status 201
        """
        user_name = self.require_caller(request)
        body = await self._read_submit_body(request)

        result = await self.processor.submit(
            user_name,
            body["task_name"],
            body["answer"],
            body["timestamp"],
        )
        return web.json_response(result.to_dict(), status=201)

    async def _read_submit_body(self, request: web.Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            raise BadRequest("failed to decode the request body as json")

        if not isinstance(body, dict):
            raise BadRequest("request body must be a json object")
        for key in ("task_name", "answer"):
            value = body.get(key)
            if not isinstance(value, str):
                raise BadRequest(f"{key} must be a string")
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise BadRequest(f"{key} must be valid unicode text")
        timestamp = body.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            raise BadRequest("timestamp must be an integer")
        # SQLite INTEGER is a signed 64-bit value
        if not -(2 ** 63) <= timestamp < 2 ** 63:
            raise BadRequest("timestamp out of range")
        return body

    async def web_api_submissions(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint for the submission history.

        @param request: HTTP request with optional task_name, user_name, team_name,
            filter, subtask_name and page query parameters
        @return: JSON page of submissions with the total matching count
        """
        user_name = self.require_caller(request)
        submission_filter = SubmissionFilter.from_query(request.query)
        page = await self.history.list(user_name, submission_filter)
        return web.json_response(page.to_dict())

    async def web_api_initialize(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint that drops every cached aggregate. Admin only.

        @param request: HTTP request
        @return: JSON acknowledgement
        """
        user_name = self.require_caller(request)
        if user_name != self.config.admin_user_name:
            raise Forbidden("admin only")

        self.cache.clear()
        return web.json_response({"status": "ok"})
