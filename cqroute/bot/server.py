"""
Server - Webhook receiver that turns CQHTTP posts into routed events.
"""

import hashlib
import hmac
from typing import Dict, Any, List, Optional

from aiohttp import web

from cqroute.config.constants import SIGNATURE_HEADER
from cqroute.core.app import App
from cqroute.core.meta import Meta
from cqroute.infra.exceptions import DispatchError
from cqroute.infra.logger import get_logger, LogContext


logger = get_logger(__name__)


_server_map: Dict[int, "Server"] = {}


def create_server(app: App) -> "Server":
    """Get the server listening on the app's port, creating it if needed."""
    port = app.settings.port
    if port in _server_map:
        return _server_map[port].bind(app)
    server = _server_map[port] = Server(app)
    return server


class Server:
    """
    HTTP endpoint shared by every app configured with the same port.

    Each inbound post is routed to the app bound to its ``self_id``. A
    ``self_id`` seen for the first time is given to the first app that
    has none.
    """

    def __init__(self, app: App):
        self.port = app.settings.port
        self.secret = app.settings.secret
        self._apps: List[App] = []
        self._app_map: Dict[int, App] = {}
        self._runner: Optional[web.AppRunner] = None
        self._is_listening = False

        self.web_app = self._create_web_app()
        self.bind(app)

    def _create_web_app(self) -> web.Application:
        middlewares = []

        if self.secret:
            secret = self.secret.encode()

            @web.middleware
            async def verify_signature(request: web.Request, handler):
                signature = request.headers.get(SIGNATURE_HEADER)
                if not signature:
                    return web.Response(status=401)
                body = await request.read()
                digest = hmac.new(secret, body, hashlib.sha1).hexdigest()
                if not hmac.compare_digest(signature, f"sha1={digest}"):
                    logger.warning("Rejected webhook with bad signature")
                    return web.Response(status=403)
                return await handler(request)

            middlewares.append(verify_signature)

        web_app = web.Application(middlewares=middlewares)
        web_app.router.add_post("/{tail:.*}", self._handle)
        return web_app

    def bind(self, app: App) -> "Server":
        self._apps.append(app)
        if app.self_id:
            self._app_map[app.self_id] = app
        return self

    def _resolve_app(self, self_id: Optional[int]) -> Optional[App]:
        app = self._app_map.get(self_id)
        if app is not None:
            return app
        for candidate in self._apps:
            if not candidate.self_id:
                candidate.register_self_id(self_id)
                self._app_map[self_id] = candidate
                return candidate
        return None

    async def _handle(self, request: web.Request) -> web.Response:
        try:
            payload: Dict[str, Any] = await request.json()
        except ValueError:
            return web.Response(status=400)
        if not isinstance(payload, dict):
            return web.Response(status=400)

        app = self._resolve_app(payload.get("self_id"))
        if app is None:
            logger.warning(f"No app available for self_id {payload.get('self_id')}")
            return web.Response(status=403)

        logger.debug(f"receive {payload}")
        await self.dispatch(payload, app)
        return web.Response(status=200)

    async def dispatch(self, payload: Dict[str, Any], app: App) -> Optional[Meta]:
        """
        Route one inbound event.

        Failures are logged and swallowed so one bad event cannot affect
        the next.

        Returns:
            The routed Meta, or None when dispatching failed
        """
        meta: Optional[Meta] = None
        try:
            meta = Meta.from_payload(payload)
            await self.add_properties(meta, app)
            with LogContext(logger, "emit", route=meta.path):
                self.emit_events(meta, app)
        except Exception as e:
            error = DispatchError(
                f"Failed to dispatch event: {e!r}",
                path=meta.path if meta else None,
                cause=e
            )
            logger.error(str(error), exc_info=e)
            return None
        return meta

    def emit_events(self, meta: Meta, app: App) -> None:
        """Emit the derived event names of ``meta.path`` on every context."""
        for path, context in list(app.contexts.items()):
            types = context._get_event_types(meta.path)
            if types:
                logger.debug(f"{path} emits {', '.join(types)}")
            for event_type in types:
                context.receiver.emit(event_type, meta)

    async def add_properties(self, meta: Meta, app: App) -> None:
        """Assign ``meta.path`` and, for messages, the reply function and group record."""
        path = "/"
        if meta.post_type == "message":
            message_type = "user" if meta.message_type == "private" else meta.message_type
            path += f"{message_type}/{meta.group_id or meta.discuss_id or meta.user_id}/message"
        elif meta.post_type == "request":
            target = "user" if meta.request_type == "friend" else "group"
            path += f"{target}/{meta.group_id or meta.user_id}/request"
        elif meta.group_id:
            path += f"group/{meta.group_id}/{meta.notice_type}"
        elif meta.user_id:
            path += f"user/{meta.user_id}/{meta.notice_type}"
        else:
            path += f"meta_event/{meta.meta_event_type}"
        if meta.sub_type:
            path += "/" + meta.sub_type
        meta.path = path
        logger.debug(f"path {path}")

        if meta.post_type != "message":
            return

        sender = app.sender
        if meta.message_type == "group":
            if app.database is not None:
                meta.group = await app.database.get_group(meta.group_id)
            meta.send = lambda message: sender.send_group_msg(meta.group_id, message)
        elif meta.message_type == "discuss":
            meta.send = lambda message: sender.send_discuss_msg(meta.discuss_id, message)
        else:
            meta.send = lambda message: sender.send_private_msg(meta.user_id, message)

    async def listen(self, host: str = "0.0.0.0") -> None:
        if self._is_listening:
            return

        with LogContext(logger, "server startup", port=self.port):
            self._runner = web.AppRunner(self.web_app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, host, self.port)
            await site.start()
        self._is_listening = True

        logger.info(f"Listening on port {self.port}")
        for app in self._apps:
            app.receiver.emit("connected", app)

    async def stop(self) -> None:
        if not self._runner:
            return
        await self._runner.cleanup()
        self._runner = None
        self._is_listening = False
        _server_map.pop(self.port, None)
        logger.info("Server closed")
