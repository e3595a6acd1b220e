"""
Context - a routing node bound to a path.

Each context owns a receiver for its event names, registers middleware
into the app-wide chain, and declares commands valid under its path.
"""

import inspect
import re
from typing import Optional, Any, Callable, List, Dict, TYPE_CHECKING

from cqroute.config.constants import COMMAND_NOT_FOUND
from cqroute.core.command import Command, Invocation, parse_arguments
from cqroute.core.events import EventEmitter
from cqroute.core.meta import Meta
from cqroute.core.paths import is_ancestor, derive_event_types, wildcard_path
from cqroute.infra.exceptions import StructuralConflictError, ContextViolationError
from cqroute.infra.logger import get_logger

if TYPE_CHECKING:
    from cqroute.core.app import App


logger = get_logger(__name__)


NextFunction = Callable[..., Any]
Middleware = Callable[[Meta, NextFunction], Any]

_SEGMENT_SPLIT = re.compile(r"(?=[./])")


class Context:
    """
    A node in the routing tree.

    Contexts are created through ``App.create_context`` or ``Context.scope``
    and live for the lifetime of the app. ``derive`` produces a view that
    shares this context's path and app but keeps its own attribute layer;
    plugins are installed against such views.
    """

    def __init__(self, path: str, app: Optional["App"] = None, id: Optional[int] = None):
        self.path = path
        self.app = app
        self.id = id
        self.receiver = EventEmitter()

    def __getattr__(self, name: str) -> Any:
        # only reached for attributes missing from this instance
        base = self.__dict__.get("_base")
        if base is None:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")
        return getattr(base, name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"

    @property
    def sender(self):
        return self.app._sender

    @property
    def database(self):
        return self.app._database

    def derive(self) -> "Context":
        """
        Create a view of this context with its own override layer.

        Attributes assigned on the view stay on the view; everything else
        falls through to this context.
        """
        view = object.__new__(type(self))
        view.__dict__["_base"] = self
        return view

    def scope(self, path: str, id: Optional[int] = None) -> "Context":
        """
        Get or create the context at ``path``.

        Relative paths are resolved under this context's path. Absolute
        paths must lie under it.
        """
        if not path.startswith("/"):
            path = self.path.rstrip("/") + "/" + path
        if not path.endswith("/"):
            path += "/"
        if not is_ancestor(self.path, path):
            raise ContextViolationError(path=path, context_path=self.path)
        return self.app.create_context(path, id)

    def plugin(self, plugin: Any, options: Any = None) -> "Context":
        """
        Install a plugin function, or an object exposing ``apply``.

        Passing ``options=False`` skips the installation.

        Args:
            plugin: ``plugin(ctx, options)`` or an object with ``apply(ctx, options)``
            options: Passed through to the plugin

        Returns:
            This context
        """
        if options is False:
            return self

        ctx = self.derive()
        apply = getattr(plugin, "apply", None)
        if callable(apply):
            apply(ctx, options)
            if hasattr(plugin, "name"):
                logger.info(f"Installed plugin {plugin.name} at {self.path}")
                self.app.receiver.emit("plugin", plugin.name)
        elif callable(plugin):
            plugin(ctx, options)
        else:
            raise TypeError(f"plugin must be callable or expose apply(): {plugin!r}")
        return self

    def middleware(self, middleware: Middleware) -> "Context":
        self.app.middlewares.append((self.path, middleware))
        return self

    def premiddleware(self, middleware: Middleware) -> "Context":
        self.app.middlewares.insert(0, (self.path, middleware))
        return self

    def remove_middleware(self, middleware: Middleware) -> bool:
        """Remove the first registration of ``middleware`` made at this path."""
        middlewares = self.app.middlewares
        for index, (path, registered) in enumerate(middlewares):
            if path == self.path and registered == middleware:
                del middlewares[index]
                return True
        return False

    def _get_command_by_parent(
        self,
        name: str,
        parent: Optional[Command] = None
    ) -> Command:
        parts = name.split(None, 1)
        if not parts:
            raise ValueError(f"empty command segment in {name!r}")
        key = parts[0].lower()
        command = self.app.commands.get(key)
        if command:
            if parent and command.parent is not parent:
                raise StructuralConflictError(
                    command=key,
                    expected_parent=parent.name,
                    actual_parent=command.parent.name if command.parent else None
                )
            if not is_ancestor(command.context.path, self.path):
                raise ContextViolationError(
                    path=self.path,
                    context_path=command.context.path,
                    command=key
                )
            declaration = parts[1].strip() if len(parts) > 1 else ""
            if declaration and not command.declaration:
                command.declaration = declaration
                command.arguments = parse_arguments(declaration)
            return command

        if parent and not is_ancestor(parent.context.path, self.path):
            raise ContextViolationError(
                path=self.path,
                context_path=parent.context.path,
                command=parent.name
            )

        command = Command(name, self)
        if parent:
            command.parent = parent
            parent.children.append(command)
        logger.debug(f"Declared command {command.name} at {self.path}")
        return command

    def command(
        self,
        raw_name: str,
        description: Optional[str] = None,
        **config
    ) -> Command:
        """
        Declare (or extend) a command.

        ``a.b`` declares ``a.b`` as a child of ``a``; ``a/b`` declares ``b``
        as a child of ``a``. Text after the first whitespace is the argument
        declaration of the last segment.

        Raises:
            StructuralConflictError: A segment already exists under another parent
            ContextViolationError: A segment is scoped to an unrelated path
        """
        if description is not None:
            config = {"description": description, **config}

        parts = raw_name.split(None, 1)
        if not parts or parts[0][0] in "./":
            raise ValueError(f"invalid command name: {raw_name!r}")
        declaration = " " + parts[1] if len(parts) > 1 else ""

        segments = _SEGMENT_SPLIT.split(parts[0])
        command: Optional[Command] = None
        for index, segment in enumerate(segments):
            if index == len(segments) - 1:
                segment += declaration
            if index == 0:
                command = self._get_command_by_parent(segment)
            elif segment.startswith("."):
                command = self._get_command_by_parent(command.name + segment, command)
            else:
                command = self._get_command_by_parent(segment[1:], command)

        command.config.update(config)
        return command

    def _get_command_by_raw_name(self, name: str) -> Optional[Command]:
        name = name.split(" ", 1)[0]
        return self.app.commands.get(name[name.rfind("/") + 1:].lower())

    def get_command(self, name: str, meta: Optional[Meta] = None) -> Optional[Command]:
        """
        Look up a command usable from ``meta.path``, or from this context's path.
        """
        path = meta.path if meta else self.path
        command = self._get_command_by_raw_name(name)
        if command and is_ancestor(command.context.path, path):
            return command
        return None

    async def run_command(
        self,
        name: str,
        meta: Meta,
        args: Optional[List[str]] = None,
        options: Optional[Dict[str, Any]] = None,
        rest: str = ""
    ) -> Any:
        """
        Execute a command on behalf of an inbound event.

        An unknown command, or one not valid under ``meta.path``, is answered
        through ``meta.send`` instead of raising. Events without a reply
        function (notices, requests) get no answer.

        Returns:
            The awaited result of the reply or of the command action
        """
        command = self._get_command_by_raw_name(name)
        if not command or not is_ancestor(command.context.path, meta.path):
            logger.debug(f"Command not found: {name} at {meta.path}")
            if meta.send is None:
                return None
            result = meta.send(COMMAND_NOT_FOUND)
        else:
            result = command.execute(Invocation(
                meta=meta,
                command=command,
                args=list(args or []),
                options=dict(options or {}),
                rest=rest,
                unknown=[]
            ))
        if inspect.isawaitable(result):
            result = await result
        return result

    def end(self) -> "App":
        return self.app

    def _get_event_types(self, path: str) -> List[str]:
        events = derive_event_types(self.path, path)
        if not events and "*" in self.path:
            events = derive_event_types(self.path, wildcard_path(path))
        return events
