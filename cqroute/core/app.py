"""
App - the root context that owns the routing indices.
"""

import asyncio
import inspect
from typing import Dict, List, Tuple, Optional, Any

from cqroute.config.settings import Settings
from cqroute.core.command import Command, Invocation
from cqroute.core.context import Context, Middleware, NextFunction
from cqroute.core.meta import Meta
from cqroute.core.paths import is_ancestor
from cqroute.infra.logger import get_logger


logger = get_logger(__name__)


class App(Context):
    """
    Root context at ``/``.

    Holds the context map (path -> Context), the command map
    (lower-cased name -> Command) and the ordered middleware list. Every
    context and command reachable from this app is registered in exactly
    one of the two maps.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sender: Optional[Any] = None,
        database: Optional[Any] = None
    ):
        super().__init__("/")
        self.app = self
        self.settings = settings or Settings()
        self.contexts: Dict[str, Context] = {"/": self}
        self.commands: Dict[str, Command] = {}
        self.middlewares: List[Tuple[str, Middleware]] = []
        self._sender = sender
        self._database = database

        self.middleware(self._parse_command)
        self.receiver.on("message", self._apply_middlewares)

    @property
    def self_id(self) -> Optional[int]:
        return self.settings.self_id

    def register_self_id(self, self_id: int) -> None:
        """Bind this app to the account ``self_id`` reported by the server."""
        self.settings.self_id = self_id
        logger.info(f"App bound to self_id {self_id}")

    def create_context(self, path: str, id: Optional[int] = None) -> Context:
        """
        Get the context registered at ``path``, creating it on first use.

        An existing context keeps its identity; an ``id`` is only filled in
        when the context had none.
        """
        context = self.contexts.get(path)
        if context is None:
            context = Context(path, self, id)
            self.contexts[path] = context
            logger.debug(f"Created context {path}")
        elif id is not None and context.id is None:
            context.id = id
        return context

    def user(self, id: int) -> Context:
        return self.create_context(f"/user/{id}/", id)

    def group(self, id: int) -> Context:
        return self.create_context(f"/group/{id}/", id)

    def discuss(self, id: int) -> Context:
        return self.create_context(f"/discuss/{id}/", id)

    @property
    def users(self) -> Context:
        return self.create_context("/user/*/")

    @property
    def groups(self) -> Context:
        return self.create_context("/group/*/")

    @property
    def discusses(self) -> Context:
        return self.create_context("/discuss/*/")

    async def _apply_middlewares(self, meta: Meta) -> None:
        """
        Run every middleware whose scope covers ``meta.path``, in list order.

        Each middleware receives ``(meta, next)``; calling ``next()`` runs the
        rest of the chain. ``next(fallback)`` runs ``fallback`` once the chain
        is exhausted.
        """
        chain = [m for path, m in self.middlewares if is_ancestor(path, meta.path)]
        index = 0

        async def next_(fallback: Optional[NextFunction] = None) -> Any:
            nonlocal index
            if index < len(chain):
                middleware = chain[index]
                index += 1
                result = middleware(meta, next_)
            elif fallback is not None:
                result = fallback()
            else:
                return None
            if inspect.isawaitable(result):
                result = await result
            return result

        await next_()

    def strip_prefix(self, meta: Meta) -> Optional[str]:
        """
        Return the message text after the command prefix.

        None when a prefix is configured and a group or discuss message
        does not start with it. Private messages may omit the prefix.
        """
        text = (meta.message or "").strip()
        prefix = self.settings.command_prefix
        if prefix:
            if text.startswith(prefix):
                return text[len(prefix):]
            if meta.message_type != "private":
                return None
        return text

    async def _parse_command(self, meta: Meta, next_: NextFunction) -> Any:
        """Built-in middleware: run the command named at the start of a message."""
        text = self.strip_prefix(meta)
        if text is None:
            return await next_()

        name, _, source = text.partition(" ")
        command = self.get_command(name, meta) if name else None
        if command is None:
            return await next_()

        parsed = command.parse(source)
        result = command.execute(Invocation(meta=meta, command=command, **parsed))
        if inspect.isawaitable(result):
            result = await result
        return result

    async def drain(self) -> None:
        """Wait for every listener task scheduled by any context of this app."""
        await asyncio.gather(*(ctx.receiver.drain() for ctx in list(self.contexts.values())))
