"""
Maid registry: the frozen command table and the dispatcher built on it.

Lifecycle
- Registry(commands) validates every global invariant once and either returns a frozen
  table or raises; there is no mutation API afterwards, so concurrent dispatches need
  no locking.
- dispatch() walks Idle → Tokenized → Resolved → Validated → Executed and returns a
  Dispatch value. It never prints and never exits.

Terminal states
- Executed: the handler ran; outcome is SUCCESS or FAILURE.
- rejected at tokenization: faults = (MalformedTokenError,).
- rejected at resolution: outcome is NOT_FOUND, faults = (CommandNotFoundError,).
- rejected at validation: every UnknownArgumentError and MissingRequiredOptionError
  found in one pass; the handler is never invoked.

Handler exceptions are not caught: they reach the caller as they were raised.
"""
import difflib
import logging
from collections import namedtuple
from collections.abc import Iterable, Mapping
from enum import IntEnum
from types import MappingProxyType

from .descriptors import Command
from .faults import (
    FaultCode,
    CommandExit,
    CommandNotFoundError,
    ConflictingFlagOptionError,
    DuplicateCommandError,
    MalformedTokenError,
    MissingRequiredOptionError,
    UnknownArgumentError,
    getdoc,
    trigger,
)
from .tokens import Invocation, parse
from .utils import *

logger = logging.getLogger(__name__)


class Outcome(IntEnum):
    """
    result of one executed (or unresolved) command; values are the exit codes.
    """
    SUCCESS = 0
    FAILURE = 1
    NOT_FOUND = 2


class Arguments(tuple):
    """
    The positional arguments handed to a handler, plus the switches behind them.

    - it is a plain tuple of positionals, so handlers may ignore everything else.
    - flags: frozenset of full names of the flags given (short spellings resolved).
    - options: read-only mapping of full name → value (last occurrence wins).
    - invocation: the raw Invocation, for handlers that care about spellings.

    Every field is read-only, like the tuple itself.
    """

    def __new__(cls, positionals=(), /, invocation=Unset, flags=frozenset(), options=Unset):
        self = super().__new__(cls, positionals)
        object.__setattr__(self, "-invocation", coalesce(invocation, Invocation(positionals=positionals)))
        object.__setattr__(self, "-flags", frozenset(flags))
        object.__setattr__(self, "-options", dict(coalesce(options, {})))
        return self

    @property
    def invocation(self):
        return object.__getattribute__(self, "-invocation")

    flags = view("flags")
    options = view("options")

    def __setattr__(self, name, value, /):
        raise AttributeError("arguments are read-only")

    def __delattr__(self, name, /):
        raise AttributeError("arguments are read-only")


class Dispatch(namedtuple("Dispatch", ("outcome", "command", "invocation", "arguments", "faults"))):
    """
    Immutable result of one dispatch call.

    - outcome: an Outcome, or None when rejected before execution (other than not-found).
    - command: the resolved Command, or None.
    - invocation: the tokenized input, or None when tokenization failed.
    - arguments: the Arguments given to the handler, or None when it never ran.
    - faults: tuple of CommandException, empty on execution.
    """
    __slots__ = ()

    @property
    def rejected(self):
        return bool(self.faults)

    @property
    def exitcode(self):
        """
        Host exit code: the highest fault exit code, else the outcome value.
        """
        if self.faults:
            return max(fault.exitcode for fault in self.faults)
        return int(self.outcome)

    def unwrap(self, **options):
        """
        Return the outcome, or raise every fault at once as a CommandExit group.
        """
        if self.faults:
            trigger(CommandExit(self.faults), **options)
        return self.outcome


def _matches(switch, descriptor):
    return (descriptor.short_name if switch.short else descriptor.name) == switch.name


class Registry(Mapping):
    """
    Frozen mapping from command identifier (full or short name) to Command.

    invariants (checked on construction)
    - no two commands share an identifier: full names, short names, and a short name
      equal to another command's full name all count (DuplicateCommandError).
    - within one command, no two switches share a full name or a short name, whether
      flag or option (ConflictingFlagOptionError).
    """
    __slots__ = ("_commands", "_names", "_shorts", "_index")

    def __init__(self, commands=(), /):
        if isinstance(commands, str) or not isinstance(commands, Iterable):
            raise TypeError("registry() argument must be an iterable of commands")

        names = {}
        shorts = {}
        claimed = {}
        resolved = []
        for command in commands:
            if not callable(getattr(command, "__command__", None)):
                raise TypeError("registry() items must be command-resoluble")
            if not isinstance(command := command.__command__(), Command):
                raise TypeError("__command__() non-command returned")

            for identifier in dict.fromkeys(command.names):
                if (other := claimed.get(identifier)) is not None:
                    trigger(DuplicateCommandError(
                        "command identifier %r is used by both %r and %r" % (identifier, other.name, command.name),
                        title="duplicate command",
                        code=FaultCode.DUPLICATE_COMMAND,
                        input=identifier,
                        command=command,
                        conflict=other,
                        hint="give every command its own name and short name",
                        docs=getdoc(FaultCode.DUPLICATE_COMMAND),
                    ))
                claimed[identifier] = command

            _check_switches(command)
            names[command.name] = command
            if command.short_name:
                shorts[command.short_name] = command
            resolved.append(command)

        object.__setattr__(self, "_commands", tuple(resolved))
        object.__setattr__(self, "_names", MappingProxyType(names))
        object.__setattr__(self, "_shorts", MappingProxyType(shorts))
        object.__setattr__(self, "_index", MappingProxyType(claimed))
        logger.debug("registry frozen with %d commands: %s", len(resolved), ", ".join(names) or "-")

    def __setattr__(self, name, value, /):
        raise AttributeError("registry is read-only")

    def __delattr__(self, name, /):
        raise AttributeError("registry is read-only")

    @property
    def commands(self):
        """
        Every registered command, in declaration order.
        """
        return self._commands

    def __getitem__(self, identifier, /):
        if (command := self.resolve(identifier)) is None:
            raise KeyError(identifier)
        return command

    def __iter__(self):
        return iter(self._index)

    def __len__(self):
        return len(self._index)

    def __repr__(self):
        return "Registry(%s)" % ", ".join(repr(command.name) for command in self._commands)

    def resolve(self, token, /):
        """
        Look a command token up by full name first, then by short name.

        Matching is exact and case-sensitive; None when nothing matches.
        """
        if not isinstance(token, str):
            raise TypeError("resolve() argument must be a string")
        if (command := self._names.get(token)) is None:
            command = self._shorts.get(token)
        logger.debug("resolved %r to %r", token, command.name if command else None)
        return command

    def validate(self, command, invocation, /):
        """
        Check an invocation against a command's schema and return every violation.

        - each undeclared switch yields one UnknownArgumentError (long spellings match
          full names, short spellings match short names; flags only match flags and
          options only match options).
        - each required option given under neither of its names yields one
          MissingRequiredOptionError.
        """
        faults = []
        for switch in invocation.switches:
            pool, other = (command.flags, command.options) if switch.flag else (command.options, command.flags)
            if any(_matches(switch, descriptor) for descriptor in pool):
                continue

            if any(_matches(switch, descriptor) for descriptor in other):
                if switch.flag:
                    hint = "option %r takes a value (for example: %s=<value>)" % (switch.token, switch.token)
                else:
                    hint = "flag %r takes no value; remove everything from '='" % switch.token
                suggestions = []
            else:
                spellings = [name for descriptor in command.switches for name in descriptor.names]
                suggestions = difflib.get_close_matches(switch.token, spellings, 5)
                try:
                    hint = "did you mean %r? you can also run '%s --help' to see all options" % (suggestions[0], command.name)
                except IndexError:
                    hint = "try '%s --help' to see all available options" % command.name

            faults.append(UnknownArgumentError(
                "unknown option or flag %r at %s position" % (switch.token, ordinal(switch.index)),
                title="unknown option or flag",
                code=FaultCode.UNKNOWN_ARGUMENT,
                input=switch.token,
                index=switch.index,
                command=command,
                suggestions=suggestions,
                hint=hint,
                docs=getdoc(FaultCode.UNKNOWN_ARGUMENT),
            ))

        for option in command.options:
            if not option.required:
                continue
            if any(not switch.flag and _matches(switch, option) for switch in invocation.switches):
                continue
            faults.append(MissingRequiredOptionError(
                "missing required option %r" % option.names[0],
                title="missing required option",
                code=FaultCode.MISSING_REQUIRED_OPTION,
                input=option.names[0],
                command=command,
                argument=option,
                hint="add it as %s=<value>" % " or ".join(option.names),
                docs=getdoc(FaultCode.MISSING_REQUIRED_OPTION),
            ))

        return faults

    def dispatch(self, prompt=Unset, /):
        """
        Tokenize, resolve, validate and execute one invocation.

        prompt
        - Unset: sys.argv[1:].
        - str: split like a POSIX shell (shlex).
        - Invocation: used as-is (already tokenized).
        - any other iterable of strings: tokenized.

        returns a Dispatch; see the module docstring for the terminal states.
        """
        try:
            invocation = parse(prompt)
        except MalformedTokenError as fault:
            logger.debug("rejected at tokenization: %s", fault.message)
            return Dispatch(None, None, None, None, (fault,))

        if (command := self.resolve(invocation.command)) is None:
            fault = self._not_found(invocation.command)
            logger.debug("rejected at resolution: %s", fault.message)
            return Dispatch(Outcome.NOT_FOUND, None, invocation, None, (fault,))

        if faults := self.validate(command, invocation):
            logger.debug("rejected at validation: %d faults for %r", len(faults), command.name)
            return Dispatch(None, command, invocation, None, tuple(faults))

        arguments = Arguments(
            invocation.positionals,
            invocation=invocation,
            flags=(
                descriptor.name
                for switch in invocation.switches if switch.flag
                for descriptor in command.flags if _matches(switch, descriptor)
            ),
            options={
                descriptor.name: switch.value
                for switch in invocation.switches if not switch.flag
                for descriptor in command.options if _matches(switch, descriptor)
            },
        )
        outcome = Outcome.SUCCESS if command.execute(arguments) else Outcome.FAILURE
        logger.debug("executed %r: %s", command.name, outcome.name)
        return Dispatch(outcome, command, invocation, arguments, ())

    def _not_found(self, token):
        if not token:
            return CommandNotFoundError(
                "no command given",
                title="command not found",
                code=FaultCode.COMMAND_NOT_FOUND,
                input=token,
                suggestions=[],
                hint="try '--help' to see all available commands",
                docs=getdoc(FaultCode.COMMAND_NOT_FOUND),
            )

        suggestions = difflib.get_close_matches(token, list(self), 5)
        try:
            hint = "did you mean %r? you can also run '--help' to see all commands" % suggestions[0]
        except IndexError:
            hint = "try '--help' to see all available commands"
        return CommandNotFoundError(
            "unknown command %r" % token,
            title="command not found",
            code=FaultCode.COMMAND_NOT_FOUND,
            input=token,
            suggestions=suggestions,
            hint=hint,
            docs=getdoc(FaultCode.COMMAND_NOT_FOUND),
        )


def _check_switches(command):
    """
    Internal: refuse two switches of one command sharing a name.

    Full names and short names of flags and options form one namespace, so a flag
    "f" collides with an option whose short name is "f".
    """
    seen = {}
    for descriptor in command.switches:
        for name in dict.fromkeys(filter(None, (descriptor.name, descriptor.short_name))):
            if (other := seen.get(name)) is not None:
                trigger(ConflictingFlagOptionError(
                    "%s %r and %s %r of command %r both use the name %r" % (
                        other.__typename__, other.name, descriptor.__typename__, descriptor.name, command.name, name
                    ),
                    title="conflicting flag or option",
                    code=FaultCode.CONFLICTING_FLAG_OPTION,
                    input=name,
                    command=command,
                    argument=descriptor,
                    conflict=other,
                    hint="rename one of them so every full and short name is unique within the command",
                    docs=getdoc(FaultCode.CONFLICTING_FLAG_OPTION),
                ))
            seen[name] = descriptor


__all__ = (
    "Outcome",
    "Arguments",
    "Dispatch",
    "Registry",
)
