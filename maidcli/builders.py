"""
Maid builders: fluent, declarative construction of descriptors and registries.

What this module provides
- FlagBuilder / OptionBuilder / CommandBuilder: persistent builders. Every with_* call
  returns a new builder with one field changed; the receiver is never modified, so a
  half-configured builder can be shared and branched safely.
- CLIBuilder: the mutable, construction-time accumulator that collects commands and
  freezes them into a Registry with build().

Quick start
    from maidcli import CLIBuilder

    def deploy(args):
        print("deploying", *args, "to", args.options["env"])
        return True

    registry = (
        CLIBuilder.create()
        .map_command(lambda command: (
            command
            .with_name("deploy")
            .with_short_name("d")
            .with_description("ship the current build")
            .with_usage("deploy --env=<name> [--force] [TARGET ...]")
            .with_option("env", "e", required=True)
            .with_flag("force", "f")
            .execute_with(deploy)
        ))
        .map_command("ping", "p", lambda args: True)
        .build()
    )

Validation timeline
- with_*: wrong Python types raise TypeError immediately; values are otherwise accepted.
- build() on a descriptor builder: empty/ill-formed names or a missing handler raise
  InvalidDescriptorError.
- CLIBuilder.build(): registry-wide conflicts raise DuplicateCommandError or
  ConflictingFlagOptionError (checked once, never deferred to dispatch time).
"""
import copy
import logging
from types import MappingProxyType

from .descriptors import Flag, Option, Command
from .registry import Registry
from .utils import *

logger = logging.getLogger(__name__)


class Builder:
    """
    Base of the persistent builders: an immutable draft plus copy-on-write updates.

    Subclasses declare
    - __fields__: mapping of field name -> empty value of the draft.
    - __product__: the descriptor type materialized by build().
    """
    __slots__ = ("_draft",)
    __fields__ = {}
    __product__ = None

    def __init__(self, **draft):
        unknown = draft.keys() - self.__fields__.keys()
        assert not unknown, "unknown builder fields: %s" % ", ".join(sorted(unknown))
        object.__setattr__(self, "_draft", MappingProxyType(dict(self.__fields__) | draft))

    @classmethod
    def create(cls):
        """
        Return a builder over an empty draft.
        """
        return cls()

    @property
    def draft(self):
        """
        Read-only view of the fields set so far.
        """
        return self._draft

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__name__} is immutable; use the with_* methods")

    def __replace__(self, /, **changes):
        return type(self)(**(dict(self._draft) | changes))

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._draft == other._draft

    def __hash__(self):
        return hash((type(self), tuple(self._draft.items())))

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, ", ".join("%s=%r" % item for item in self._draft.items()))

    def build(self):
        """
        Materialize the immutable descriptor; see the descriptor for validation rules.
        """
        return self.__product__(**self._draft)


def _require_string(builder, method, value):
    if not isinstance(value, str):
        raise TypeError(f"{type(builder).__name__}.{method}() argument must be a string")
    return value


class FlagBuilder(Builder):
    """
    Persistent builder of Flag descriptors.

        FlagBuilder.create().with_name("force").with_short_name("f").build()
    """
    __slots__ = ()
    __fields__ = {"name": Unset, "short_name": Unset, "description": Unset}

    @staticmethod
    def __product__(name, short_name, description):
        return Flag(name, short_name, description)

    def with_name(self, name, /):
        return copy.replace(self, name=_require_string(self, "with_name", name))

    def with_short_name(self, short_name, /):
        return copy.replace(self, short_name=_require_string(self, "with_short_name", short_name))

    def with_description(self, description, /):
        return copy.replace(self, description=_require_string(self, "with_description", description))

    def __flag__(self):
        """
        Introspection hook: build on demand wherever a Flag is expected.
        """
        return self.build()


class OptionBuilder(Builder):
    """
    Persistent builder of Option descriptors.

        OptionBuilder.create().with_name("env").with_short_name("e").with_required().build()
    """
    __slots__ = ()
    __fields__ = {"name": Unset, "short_name": Unset, "description": Unset, "required": False}

    @staticmethod
    def __product__(name, short_name, description, required):
        return Option(name, short_name, description, required=required)

    def with_name(self, name, /):
        return copy.replace(self, name=_require_string(self, "with_name", name))

    def with_short_name(self, short_name, /):
        return copy.replace(self, short_name=_require_string(self, "with_short_name", short_name))

    def with_description(self, description, /):
        return copy.replace(self, description=_require_string(self, "with_description", description))

    def with_required(self, required=True, /):
        if not isinstance(required, bool):
            raise TypeError(f"{type(self).__name__}.with_required() argument must be a boolean")
        return copy.replace(self, required=required)

    def __option__(self):
        """
        Introspection hook: build on demand wherever an Option is expected.
        """
        return self.build()


class CommandBuilder(Builder):
    """
    Persistent builder of Command descriptors.

    Collections append
    - with_usage(*lines), with_flag(...), with_option(...) add to what is already there;
      every other with_* replaces its field.

    Switch shorthands
    - with_flag("force", "f", description=...) builds the Flag in place.
    - with_option("env", "e", required=True) builds the Option in place.
    - both also take a descriptor, a builder, or anything exposing __flag__()/__option__().
    """
    __slots__ = ()
    __fields__ = {
        "name": Unset,
        "short_name": Unset,
        "description": Unset,
        "usage": (),
        "flags": (),
        "options": (),
        "handler": Unset,
    }

    @staticmethod
    def __product__(name, short_name, description, usage, flags, options, handler):
        return Command(name, short_name, description, usage, flags, options, handler)

    def with_name(self, name, /):
        return copy.replace(self, name=_require_string(self, "with_name", name))

    def with_short_name(self, short_name, /):
        return copy.replace(self, short_name=_require_string(self, "with_short_name", short_name))

    def with_description(self, description, /):
        return copy.replace(self, description=_require_string(self, "with_description", description))

    def with_usage(self, *lines):
        for line in lines:
            _require_string(self, "with_usage", line)
        return copy.replace(self, usage=self._draft["usage"] + lines)

    def with_flag(self, source, /, short_name=Unset, description=Unset):
        if isinstance(source, str):
            source = Flag(source, short_name, description)
        elif short_name is not Unset or description is not Unset:
            raise TypeError(f"{type(self).__name__}.with_flag() takes extra arguments only with a name")
        elif not callable(getattr(source, "__flag__", None)):
            raise TypeError(f"{type(self).__name__}.with_flag() argument must be a name or flag-resoluble")
        return copy.replace(self, flags=self._draft["flags"] + (source.__flag__(),))

    def with_option(self, source, /, short_name=Unset, description=Unset, *, required=Unset):
        if isinstance(source, str):
            source = Option(source, short_name, description, required=coalesce(required, False))
        elif short_name is not Unset or description is not Unset or required is not Unset:
            raise TypeError(f"{type(self).__name__}.with_option() takes extra arguments only with a name")
        elif not callable(getattr(source, "__option__", None)):
            raise TypeError(f"{type(self).__name__}.with_option() argument must be a name or option-resoluble")
        return copy.replace(self, options=self._draft["options"] + (source.__option__(),))

    def execute_with(self, handler, /):
        """
        Bind the handler: callable(args) -> bool | None.

        The handler is stored as-is; nothing is instantiated on its behalf.
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__name__}.execute_with() argument must be callable")
        return copy.replace(self, handler=handler)

    def __command__(self):
        """
        Introspection hook: build on demand wherever a Command is expected.
        """
        return self.build()


class CLIBuilder:
    """
    Construction-time accumulator of commands.

    Lifecycle
    - create() → any number of map_command(...) → build() → frozen Registry.
    - build() validates the whole set once and never returns a partial registry; the
      builder itself stays usable (a later build() yields an independent registry).
    """

    def __init__(self):
        self._commands = []

    @classmethod
    def create(cls):
        return cls()

    @property
    def commands(self):
        """
        The commands recorded so far, in registration order.
        """
        return tuple(self._commands)

    def map_command(self, source, /, short_name=Unset, handler=Unset):
        """
        Record one command and return the builder (chainable).

        Forms
        - map_command(configure): configure(CommandBuilder.create()) must return the
          configured builder (or a built Command).
        - map_command(name, short_name, handler): minimal command wrapping a bare
          callable; a None result from the handler counts as failure.
        - map_command(source): any object exposing __command__() (a CommandBuilder, a
          Command, or a host class implementing the command contract).

        Errors
        - TypeError on a source of the wrong shape.
        - InvalidDescriptorError when the resulting command is incomplete.
        """
        if isinstance(source, str):
            if handler is Unset:
                raise TypeError(f"{type(self).__name__}.map_command() with a name requires a handler")
            builder = CommandBuilder.create().with_name(source).execute_with(handler)
            if short_name is not Unset:
                builder = builder.with_short_name(short_name)
            command = builder.build()
        elif short_name is not Unset or handler is not Unset:
            raise TypeError(f"{type(self).__name__}.map_command() takes extra arguments only with a name")
        elif callable(getattr(source, "__command__", None)):
            command = source.__command__()
        elif callable(source):
            result = source(CommandBuilder.create())
            if not callable(getattr(result, "__command__", None)):
                raise TypeError(f"{type(self).__name__}.map_command() configuration must return a command builder")
            command = result.__command__()
        else:
            raise TypeError(f"{type(self).__name__}.map_command() argument must be a name, a callable or command-resoluble")

        if not isinstance(command, Command):
            raise TypeError("__command__() non-command returned")

        self._commands.append(command)
        logger.debug("mapped command %r", command.name)
        return self

    def build(self):
        """
        Validate every recorded command together and freeze them into a Registry.
        """
        return Registry(self._commands)


__all__ = (
    "FlagBuilder",
    "OptionBuilder",
    "CommandBuilder",
    "CLIBuilder",
)
