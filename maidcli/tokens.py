"""
Maid tokenizer: raw argument vector → Invocation.

Grammar (one element of argv per token, program name already stripped)
- first element not starting with '-'   → command token, consumed whole
- --name=value / -n=value              → option (split on the first '=')
- --name / -n                          → flag
- anything else                        → positional

Rules
- the short ('-') versus long ('--') form is kept on every Switch: short names and
  full names are different fields of a schema and are never merged here.
- one switch per token: '-fh' is the short name 'fh', not '-f -h'.
- a value wrapped in matching quotes is unquoted ('-o="text.html"' → 'text.html');
  '--name=' yields the empty string, never an omission.
- a dash-prefixed token without a name ('-', '--', '--=x', '---x')
  raises MalformedTokenError carrying the token and its 1-based position.

Nothing here knows about registered commands; that is the registry's job.
"""
import logging
import re
import shlex
import sys
from collections import namedtuple
from types import MappingProxyType

from .faults import FaultCode, MalformedTokenError, getdoc, trigger
from .utils import *

logger = logging.getLogger(__name__)

_SWITCH = re.compile(r"(?P<prefix>--?)(?P<name>[^=-][^=]*)(=(?P<value>.*))?", re.DOTALL)
_QUOTED = re.compile(r"(?P<quote>['\"])(?P<value>.*)(?P=quote)", re.DOTALL)


class Switch(namedtuple("Switch", ("name", "value", "short", "index"))):
    """
    One flag or option token.

    - name: the switch name as written, without dashes.
    - value: None for a flag, the (unquoted) string for an option.
    - short: True for the single-dash form.
    - index: 1-based position in the argument vector.
    """
    __slots__ = ()

    @property
    def flag(self):
        return self.value is None

    @property
    def token(self):
        """
        The switch spelled back as it was typed (value excluded).
        """
        return ("-" if self.short else "--") + self.name


class Invocation(namedtuple("Invocation", ("command", "switches", "positionals"))):
    """
    Transient result of tokenize(): command token, switches and positionals.

    Immutable and hashable, compared by value, so the same invocation can be
    dispatched any number of times.
    """
    __slots__ = ()

    def __new__(cls, command="", switches=(), positionals=()):
        if not isinstance(command, str):
            raise TypeError("invocation 'command' must be a string")
        return super().__new__(cls, command, tuple(switches), tuple(positionals))

    @property
    def flags(self):
        """
        Names of every flag token, as written.
        """
        return frozenset(switch.name for switch in self.switches if switch.flag)

    @property
    def options(self):
        """
        Option values keyed by name as written; the last occurrence wins.
        """
        return MappingProxyType({switch.name: switch.value for switch in self.switches if not switch.flag})

    def __repr__(self):
        return "Invocation(command=%r, flags=%r, options=%r, positionals=%r)" % (
            self.command, sorted(self.flags), dict(self.options), self.positionals
        )


def _unquote(value):
    if match := _QUOTED.fullmatch(value):
        return match["value"]
    return value


def tokenize(arguments, /):
    """
    Split an argument vector into an Invocation.

    raises
    - TypeError when arguments is not an iterable of strings (a bare string included).
    - MalformedTokenError on a dash-prefixed token with no name.

    examples
        >>> tokenize(["deploy", "--env=prod", "-f", "extra"]).options["env"]
        'prod'
        >>> tokenize(["--name="]).options["name"]
        ''
    """
    if isinstance(arguments, str):
        raise TypeError("tokenize() argument must be an iterable of strings, not a string")
    arguments = tuple(arguments)
    if not all(isinstance(argument, str) for argument in arguments):
        raise TypeError("tokenize() argument must be an iterable of strings")

    # a leading switch means there is no command token at all
    consumed = bool(arguments) and not arguments[0].startswith("-")
    command = arguments[0] if consumed else ""

    switches = []
    positionals = []
    for index, token in enumerate(arguments[consumed:], 1 + consumed):
        if not token.startswith("-"):
            positionals.append(token)
            continue

        if not (match := _SWITCH.fullmatch(token)):
            trigger(MalformedTokenError(
                "bad form of option or flag %r at %s position" % (token, ordinal(index)),
                title="malformed option or flag",
                code=FaultCode.MALFORMED_TOKEN,
                hint="a switch needs a name after its dashes (for example: --name=value or -n)",
                token=token,
                index=index,
                docs=getdoc(FaultCode.MALFORMED_TOKEN),
            ))

        value = match["value"]
        switches.append(Switch(
            match["name"],
            _unquote(value) if value is not None else None,
            match["prefix"] == "-",
            index,
        ))

    invocation = Invocation(command, switches, positionals)
    logger.debug("tokenized %d arguments into %r", len(arguments), invocation)
    return invocation


def parse(prompt=Unset, /):
    """
    Normalize any accepted prompt into an Invocation.

    - Unset: sys.argv[1:].
    - str: split like a POSIX shell (shlex), then tokenized.
    - Invocation: returned as-is.
    - any other iterable of strings: tokenized.
    """
    if isinstance(prompt, Invocation):
        return prompt
    if prompt is Unset:
        prompt = sys.argv[1:]
    elif isinstance(prompt, str):
        prompt = shlex.split(prompt)
    return tokenize(prompt)


__all__ = (
    "Switch",
    "Invocation",
    "tokenize",
    "parse",
)
