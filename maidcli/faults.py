"""
Maid faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues.
  Codes are grouped by domain to keep copy consistent and make logs/searches predictable.
- CommandException: base type that carries message + options and knows how to render
  itself in a friendly, lowercased, and actionable way.
- CommandExit: exception group bundling every fault found by one dispatch.
- trigger(): central entry point to surface any fault (raise, or print in shell mode).
- getdoc(): optional description lookup for a code from the host application.

Phases
- build time (InvalidDescriptorError, DuplicateCommandError, ConflictingFlagOptionError):
  always raised; a broken registry must never be returned.
- tokenize time (MalformedTokenError): raised by tokenize(), captured by dispatch().
- dispatch time (CommandNotFoundError, UnknownArgumentError, MissingRequiredOptionError):
  collected and returned inside the dispatch result; the host decides what to do.
- handler faults are not part of this module: whatever a handler raises propagates as-is.

Exit codes
- every exception type carries an `exitcode` (64 for usage errors, 65 for malformed
  input, 2 for a missing command) so hosts can map faults without a lookup table.
"""
import copy
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - descriptors and registry (10xxx)
      • INVALID_DESCRIPTOR, DUPLICATE_COMMAND, CONFLICTING_FLAG_OPTION
    - routing (1110x)
      • COMMAND_NOT_FOUND
    - switches (options/flags) (1111x)
      • MALFORMED_TOKEN, UNKNOWN_ARGUMENT, MISSING_REQUIRED_OPTION

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- build-time errors (10xxx) ---
    INVALID_DESCRIPTOR          = 10101
    DUPLICATE_COMMAND           = 10201
    CONFLICTING_FLAG_OPTION     = 10202

    # --- routing errors (11xxx) ---
    COMMAND_NOT_FOUND           = 11101

    # --- switch/flag/option errors (11xxx) ---
    MALFORMED_TOKEN             = 11111
    UNKNOWN_ARGUMENT            = 11112
    MISSING_REQUIRED_OPTION     = 11117

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _prog(options):
    main = __import__("__main__")
    return getattr(main, "__prog__", options.get("prog", "maid"))


class CommandException(Exception):
    """
    base fault: a message plus an immutable bag of options.

    well-known options
    - title, code, hint, docs: rendering metadata.
    - input, index, command, argument, suggestions, ...: structured detail so the host
      can build its own precise message.
    - shell, fancy, colorful: runtime flags merged in by trigger(...).
    """
    exitcode = 64

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(__import__("__main__"), "__styles__", {}))

        colorful = self.options.get("colorful", True)
        fancy = self.options.get("fancy", False)

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        code = self.code.normalize() if isinstance(self.code, FaultCode) else "?"

        header = Text.assemble(
            "[ ",
            text(_prog(self.options), styler("prog-name")),
            " — ",
            text(code, styler("code")),
            " | ",
            text(str(self.options.get("title", type(self).__name__)).title(), styler("error-title")),
            " ]"
        )
        message = text(self.message or "", styler("error-message"))
        renders = [message]
        if self.hint:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.hint, styler("hint"))))

        if fancy:
            try:
                width = int((console.width - 4) * self.options["ratio"])
            except KeyError:
                width = None
            return Panel(Group(*renders), title=header, title_align="left", width=width)

        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from None
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class InvalidDescriptorError(CommandException): ...
class DuplicateCommandError(CommandException): ...
class ConflictingFlagOptionError(CommandException): ...
class UnknownArgumentError(CommandException): ...
class MissingRequiredOptionError(CommandException): ...


class MalformedTokenError(CommandException):
    exitcode = 65


class CommandNotFoundError(CommandException):
    exitcode = 2


class CommandExit(ExceptionGroup[CommandException]):
    """
    every fault collected by one dispatch, bundled so none of them is lost.

    the exit code is the most specific one among the members: malformed input (65)
    outranks usage errors (64), which outrank a missing command (2).
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    @property
    def exitcode(self):
        return max(exception.exitcode for exception in self.exceptions)

    def __rich__(self):
        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "title": "bold #FF4DA6",  # friendly pinky group title (Bad Exit)
        } | getattr(__import__("__main__"), "__styles__", {}))

        colorful = self.options.get("colorful", True)

        def text(fragment, style=""):
            return Text(str(fragment), style if colorful else "")

        header = Text.assemble(
            "[ ",
            text(_prog(self.options), styles["prog-name"]),
            " — ",
            text(self.message.title(), styles["title"]),
            " ]"
        )

        renders = []
        for exception in self.exceptions:
            renders.append(copy.replace(exception, ratio=2/3, colorful=colorful, fancy=self.options.get("fancy", False)))

        if self.options.get("fancy"):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from None
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - outside shell mode the fault is raised; in shell mode it is printed to stderr
      through rich and control returns to the caller.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    when not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "InvalidDescriptorError",
    "DuplicateCommandError",
    "ConflictingFlagOptionError",
    "MalformedTokenError",
    "UnknownArgumentError",
    "MissingRequiredOptionError",
    "CommandNotFoundError",
    "CommandExit",
    "FaultCode",
    "trigger",
    "getdoc",
)
