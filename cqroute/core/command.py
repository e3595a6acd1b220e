"""
Commands - declaration, argument parsing and execution.
"""

import re
import shlex
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Callable, TYPE_CHECKING

from cqroute.config.constants import INSUFFICIENT_ARGUMENTS
from cqroute.core.meta import Meta
from cqroute.infra.logger import get_logger

if TYPE_CHECKING:
    from cqroute.core.context import Context


logger = get_logger(__name__)


_ARGUMENT = re.compile(r"<([^>]+)>|\[([^\]]+)\]")
_FLAG_SPLIT = re.compile(r"[,\s]+")
_NUMBER = re.compile(r"-?\d+(\.\d+)?")


@dataclass
class Argument:
    """A positional argument parsed from a command declaration."""

    name: str
    required: bool = False
    variadic: bool = False


@dataclass
class Option:
    """A declared ``-s, --long <value>`` option."""

    key: str
    names: List[str]
    description: str = ""
    takes_value: bool = False
    negated: bool = False
    default: Any = None


@dataclass
class Invocation:
    """Everything a command action receives about one call."""

    meta: Meta
    command: "Command"
    args: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    rest: str = ""
    unknown: List[str] = field(default_factory=list)


def parse_arguments(declaration: str) -> List[Argument]:
    """Parse ``<required> [optional] [rest...]`` into Argument records."""
    arguments = []
    for match in _ARGUMENT.finditer(declaration):
        required = match.group(1) is not None
        name = (match.group(1) or match.group(2)).strip()
        variadic = name.startswith("...") or name.endswith("...")
        arguments.append(Argument(name.strip("."), required, variadic))
    return arguments


def _option_key(name: str) -> str:
    return name.replace("-", "_")


def _coerce(value: str) -> Any:
    if _NUMBER.fullmatch(value):
        return float(value) if "." in value else int(value)
    return value


class Command:
    """
    A named command scoped to the path of the context that declared it.

    Commands register themselves in the app's command map on creation;
    ``Context.command`` is the supported way to create them.
    """

    def __init__(self, raw_name: str, context: "Context"):
        parts = raw_name.split(None, 1)
        self.name = parts[0].lower()
        self.declaration = parts[1].strip() if len(parts) > 1 else ""
        self.arguments = parse_arguments(self.declaration)
        self.context = context
        self.parent: Optional["Command"] = None
        self.children: List["Command"] = []
        self.config: Dict[str, Any] = {}
        self.options: Dict[str, Option] = {}
        self._option_map: Dict[str, Option] = {}
        self._action: Optional[Callable[..., Any]] = None

        context.app.commands[self.name] = self

    def __repr__(self) -> str:
        return f"Command({self.name!r}, path={self.context.path!r})"

    @property
    def description(self) -> Optional[str]:
        return self.config.get("description")

    def option(self, raw: str, description: str = "", **config) -> "Command":
        """
        Declare an option.

        Args:
            raw: Flag declaration such as ``-f, --force`` or ``-n, --name <value>``
            description: Help text
            config: ``default`` and any extra option settings
        """
        names = []
        takes_value = False
        for token in _FLAG_SPLIT.split(raw.strip()):
            if token.startswith(("<", "[")):
                takes_value = True
            elif token.startswith("-"):
                names.append(token.lstrip("-"))

        if not names:
            raise ValueError(f"option declaration without a flag: {raw!r}")

        long_names = [n for n in names if len(n) > 1]
        primary = long_names[0] if long_names else names[0]
        negated = primary.startswith("no-")
        if negated:
            primary = primary[3:]

        default = config.get("default", True if negated else None)
        option = Option(
            key=_option_key(primary),
            names=names,
            description=description,
            takes_value=takes_value,
            negated=negated,
            default=default
        )
        self.options[option.key] = option
        for name in names:
            self._option_map[name] = option
        return self

    def action(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        """Set the callback run on execution. Returns the callback for decorator use."""
        self._action = callback
        return callback

    def subcommand(self, raw: str, description: Optional[str] = None, **config) -> "Command":
        """Declare a child command under this one."""
        return self.context.command(f"{self.name}/{raw}", description, **config)

    def end(self) -> "Context":
        return self.context

    def parse(self, source: str) -> Dict[str, Any]:
        """
        Split an argument string into args, options, rest and unknown flags.

        A standalone ``--`` ends option parsing; everything after it is
        returned verbatim as ``rest``.
        """
        rest = ""
        marker = re.search(r"(?:^|\s)--(?:\s|$)", source)
        if marker:
            rest = source[marker.end():].strip()
            source = source[:marker.start()]

        try:
            tokens = shlex.split(source)
        except ValueError:
            tokens = source.split()

        args: List[str] = []
        options: Dict[str, Any] = {}
        unknown: List[str] = []

        index = 0
        while index < len(tokens):
            token = tokens[index]
            index += 1

            if token.startswith("--") and len(token) > 2:
                name, sep, value = token[2:].partition("=")
                names = [(name, value if sep else None)]
            elif token.startswith("-") and len(token) > 1 and not _NUMBER.fullmatch(token):
                flags = token[1:]
                names = [(flag, None) for flag in flags]
            else:
                args.append(token)
                continue

            for position, (name, value) in enumerate(names):
                option = self._option_map.get(name)
                if option is None and name.startswith("no-"):
                    negated = self._option_map.get(name[3:])
                    if negated is not None:
                        options[negated.key] = False
                        continue
                if option is None:
                    unknown.append(name)
                    options[_option_key(name)] = _coerce(value) if value is not None else True
                    continue
                if option.negated:
                    options[option.key] = False
                    continue
                is_last = position == len(names) - 1
                if (
                    value is None
                    and option.takes_value
                    and is_last
                    and index < len(tokens)
                    and not tokens[index].startswith("-")
                ):
                    value = tokens[index]
                    index += 1
                options[option.key] = _coerce(value) if value is not None else True

        for option in self.options.values():
            if option.key not in options and option.default is not None:
                options[option.key] = option.default

        return {"args": args, "options": options, "rest": rest, "unknown": unknown}

    def execute(self, invocation: Invocation) -> Any:
        """
        Run the action with ``(invocation, *args)``.

        Extra positional arguments are only passed on when the declaration
        ends with a variadic argument. The action's return value (possibly
        an awaitable) is handed back unawaited.
        """
        args = invocation.args
        missing = [
            arg.name for index, arg in enumerate(self.arguments)
            if arg.required and index >= len(args)
        ]
        if missing:
            logger.debug(f"Command {self.name} missing arguments: {missing}")
            if invocation.meta.send is not None:
                return invocation.meta.send(INSUFFICIENT_ARGUMENTS)
            return None

        if self._action is None:
            logger.warning(f"Command {self.name} has no action")
            return None

        if self.arguments and not self.arguments[-1].variadic:
            args = args[:len(self.arguments)]
        elif not self.arguments:
            args = []

        logger.debug(f"Executing command {self.name} with args={args}")
        return self._action(invocation, *args)
