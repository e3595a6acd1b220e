"""
Event receiver - the listener surface owned by every context.
"""

import asyncio
from typing import Dict, List, Callable, Any, Optional, Set

from cqroute.infra.logger import get_logger


logger = get_logger(__name__)


EventHandler = Callable[..., Any]


class EventEmitter:
    """
    String-keyed event emitter.

    Listeners run synchronously in registration order. A listener that
    returns a coroutine has it scheduled on the running loop; the emitter
    does not wait for it.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def on(self, event: str, handler: Optional[EventHandler] = None):
        """
        Subscribe to an event. Usable as a decorator when ``handler`` is omitted.

        Usage:
            @ctx.receiver.on("message")
            async def handle(meta):
                ...
        """
        if handler is None:
            def decorator(func: EventHandler) -> EventHandler:
                self.on(event, func)
                return func
            return decorator

        self._handlers.setdefault(event, []).append(handler)
        logger.debug(f"Subscribed handler to {event}")
        return self

    def once(self, event: str, handler: EventHandler) -> "EventEmitter":
        """Subscribe to the next emission of an event only."""
        def wrapper(*args):
            self.off(event, wrapper)
            return handler(*args)

        wrapper.listener = handler
        return self.on(event, wrapper)

    def off(self, event: str, handler: EventHandler) -> bool:
        """
        Unsubscribe the first matching handler.

        Handlers registered through ``once`` can be removed by passing the
        original callable.
        """
        handlers = self._handlers.get(event, [])
        for index, registered in enumerate(handlers):
            if registered is handler or getattr(registered, "listener", None) is handler:
                del handlers[index]
                return True
        return False

    def listeners(self, event: str) -> List[EventHandler]:
        """Return a snapshot of the handlers for an event."""
        return list(self._handlers.get(event, []))

    def emit(self, event: str, *args) -> bool:
        """
        Emit an event to all subscribers.

        Exceptions raised by synchronous handlers propagate to the caller.

        Returns:
            Whether any handler was subscribed
        """
        handlers = self.listeners(event)
        for handler in handlers:
            result = handler(*args)
            if asyncio.iscoroutine(result):
                self._schedule(event, result)
        return bool(handlers)

    def _schedule(self, event: str, coro) -> None:
        """Run a coroutine listener in the background."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping async handler for {event}")
            coro.close()
            return

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_task_done(event, t))

    def _on_task_done(self, event: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in async handler for {event}: {error!r}")

    async def drain(self) -> None:
        """Wait until every scheduled handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
