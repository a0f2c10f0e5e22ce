r"""
Maid descriptors: immutable shapes of flags, options and commands.

Overview
- Flag: named, presence-only switch (e.g., --force / -f).
- Option: named, value-bearing switch (e.g., --env=prod / -e="prod"), optionally required.
- Command: the Command Contract every registered command satisfies
  (name, short_name, description, usage, execute).

Naming
- names are written without dashes: Flag("force", "f") answers to --force and -f.
- names must match r"[^\W\d_](-?[^\W_]+)*": a letter first, single inner hyphens,
  unicode letters allowed, no underscores (so a name can always be typed as-is).

Immutability
- every descriptor keeps its fields in guarded storage (StorageGuard) that is locked
  as soon as construction returns; public fields are read-only properties and
  collections come back as tuples.
- flags, options and commands compare and hash by value, so they can live in sets.

Hooks
- any object exposing __flag__(), __option__() or __command__() can stand in for the
  matching descriptor wherever one is accepted (the builders use this).

Validation
- wrong Python types raise TypeError right away.
- empty or ill-formed names and a missing handler raise InvalidDescriptorError.
"""
import functools
import logging
import operator
import re
from collections.abc import Iterable

from .faults import FaultCode, InvalidDescriptorError, getdoc, trigger
from .utils import *

logger = logging.getLogger(__name__)

_NAME = re.compile(r"[^\W\d_](-?[^\W_]+)*")


class DescriptorType(type):
    """
    Metaclass that turns descriptor classes into read-only, introspectable value types.

    Responsibilities
    - Expose every name listed in __introspectable__ as a read-only property over the
      '-' prefixed backing field (see view()).
    - Provide stable, readable __repr__/__rich_repr__ for diagnostics and rich UI.
    - Provide value equality and hashing over the introspectable fields.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      for consistent, human-friendly labels in messages.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: view(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - flag(name='force', short_name='f', description=None)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        @rename("__eq__")
        def __eq__(self, other):
            if type(other) is not type(self):
                return NotImplemented
            return all(getattr(self, name) == getattr(other, name) for name in type(self).__introspectable__)
        self.__eq__ = __eq__

        @rename("__hash__")
        def __hash__(self):
            return hash((type(self).__typename__, *(getattr(self, name) for name in type(self).__introspectable__)))
        self.__hash__ = __hash__

        return self


def _sanitize_name(cls, metadata, key, /, *, required=True):
    """
    Internal: validate a name-like field ('name' or 'short_name') in place.

    - Unset is accepted only when the field is optional (resolves to None).
    - Strings are trimmed; empty and ill-formed names raise InvalidDescriptorError.
    - Leading dashes are refused with a hint, since the prefix belongs to the token.
    """
    label = key.replace("_", " ")
    if not isinstance(name := metadata[key], str | Unset):
        raise TypeError(f"{cls.__typename__} '{key}' must be a string")

    if isinstance(name, str):
        name = name.strip()

    if not name:
        if not required:
            metadata[key] = None
            return
        trigger(InvalidDescriptorError(
            "%s %s cannot be empty" % (cls.__typename__, label),
            title="invalid descriptor",
            code=FaultCode.INVALID_DESCRIPTOR,
            field=key,
            hint="give the %s a %s (for example: with_%s(...))" % (cls.__typename__, label, key),
            docs=getdoc(FaultCode.INVALID_DESCRIPTOR),
        ))

    if not _NAME.fullmatch(name):
        trigger(InvalidDescriptorError(
            "%s %s %r is not a valid name" % (cls.__typename__, label, name),
            title="invalid descriptor",
            code=FaultCode.INVALID_DESCRIPTOR,
            field=key,
            input=name,
            hint=(
                "drop the leading dashes; they are added on the command line"
                if name.startswith("-") else
                "use letters and digits separated by single hyphens (for example: dry-run)"
            ),
            docs=getdoc(FaultCode.INVALID_DESCRIPTOR),
        ))

    metadata[key] = name


def _sanitize_description(cls, metadata, /):
    """
    Internal: normalize the optional 'description' field.

    - Unset and blank strings resolve to None (a command without description simply
      has no help text; that is not an error).
    """
    if not isinstance(description := metadata["description"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'description' must be a string")
    metadata["description"] = (description.strip() or None) if description else None


class Flag(StorageGuard, metaclass=DescriptorType):
    """
    Named, presence-only switch.

    A Flag carries no payload; its presence on the command line is the signal.
    Flag("force", "f") matches --force (full name) and -f (short name).
    """

    __introspectable__ = (
        "name",
        "short_name",
        "description",
    )

    def __new__(cls, name=Unset, /, short_name=Unset, description=Unset):
        metadata = {
            "name": name,
            "short_name": short_name,
            "description": description,
        }
        _sanitize_name(cls, metadata, "name")
        _sanitize_name(cls, metadata, "short_name", required=False)
        _sanitize_description(cls, metadata)

        with super().__new__(cls) as self:
            for key, object in metadata.items():
                setattr(self, "-" + key, object)
        return self

    @property
    def names(self):
        """
        Every spelling this switch answers to, as command-line tokens.
        """
        return ("--" + self.name,) + (("-" + self.short_name,) if self.short_name else ())

    def __flag__(self):
        """
        Introspection hook: identify this descriptor as a Flag.
        """
        return self


class Option(StorageGuard, metaclass=DescriptorType):
    """
    Named, value-bearing switch.

    Option("env", "e", required=True) matches --env=<value> and -e=<value>.
    Values are kept as strings; no type coercion happens at this layer.
    """

    __introspectable__ = (
        "name",
        "short_name",
        "description",
        "required",
    )

    def __new__(cls, name=Unset, /, short_name=Unset, description=Unset, *, required=False):
        if not isinstance(required, bool):
            raise TypeError(f"{cls.__typename__} 'required' must be a boolean")
        metadata = {
            "name": name,
            "short_name": short_name,
            "description": description,
            "required": required,
        }
        _sanitize_name(cls, metadata, "name")
        _sanitize_name(cls, metadata, "short_name", required=False)
        _sanitize_description(cls, metadata)

        with super().__new__(cls) as self:
            for key, object in metadata.items():
                setattr(self, "-" + key, object)
        return self

    @property
    def names(self):
        """
        Every spelling this switch answers to, as command-line tokens.
        """
        return ("--" + self.name,) + (("-" + self.short_name,) if self.short_name else ())

    def __option__(self):
        """
        Introspection hook: identify this descriptor as an Option.
        """
        return self


def _resolve_switches(cls, switches, hook, kind, /):
    """
    Internal: materialize flags or options from descriptors or hook-bearing objects.
    """
    if isinstance(switches, str) or not isinstance(switches, Iterable):
        raise TypeError(f"{cls.__typename__} '{kind.__typename__}s' must be an iterable")

    resolved = []
    for switch in switches:
        if not callable(getattr(switch, hook, None)):
            raise TypeError(f"{cls.__typename__} '{kind.__typename__}s' items must be {kind.__typename__}-resoluble")
        if not isinstance(switch := getattr(switch, hook)(), kind):
            raise TypeError(f"{hook}() non-{kind.__typename__} returned")
        resolved.append(switch)
    return tuple(resolved)


class Command(StorageGuard, metaclass=DescriptorType):
    """
    Command Contract: the immutable descriptor of one registered command.

    Fields
    - name: full name (identity within a registry).
    - short_name: optional alias, e.g. "d" for "deploy".
    - description: optional one-line help; a command "has help" when it is non-empty.
    - usage: ordered usage lines, rendered verbatim by help renderers.
    - flags / options: the switches this command accepts.
    - handler: callable(args) -> bool | None, where args is the positional sequence.

    Behavior
    - execute(args) runs the handler; a None result counts as failure.
    - exceptions raised by the handler propagate untouched.
    """

    __introspectable__ = (
        "name",
        "short_name",
        "description",
        "usage",
        "flags",
        "options",
        "handler",
    )

    __displayable__ = (
        "name",
        "short_name",
        "description",
        "usage",
        "flags",
        "options",
    )

    def __new__(
            cls,
            name=Unset,
            /,
            short_name=Unset,
            description=Unset,
            usage=(),
            flags=(),
            options=(),
            handler=Unset
    ):
        metadata = {
            "name": name,
            "short_name": short_name,
            "description": description,
            "usage": usage,
            "flags": _resolve_switches(cls, flags, "__flag__", Flag),
            "options": _resolve_switches(cls, options, "__option__", Option),
            "handler": handler,
        }
        _sanitize_name(cls, metadata, "name")
        _sanitize_name(cls, metadata, "short_name", required=False)
        _sanitize_description(cls, metadata)

        if isinstance(usage, str) or not isinstance(usage, Iterable):
            raise TypeError(f"{cls.__typename__} 'usage' must be an iterable of strings")
        usage = tuple(usage)
        if not all(isinstance(line, str) for line in usage):
            raise TypeError(f"{cls.__typename__} 'usage' must be an iterable of strings")
        # Blank lines carry no usage; keep the order of the rest.
        metadata["usage"] = tuple(line.strip() for line in usage if line.strip())

        if handler is Unset:
            trigger(InvalidDescriptorError(
                "%s %r has no handler" % (cls.__typename__, metadata["name"]),
                title="invalid descriptor",
                code=FaultCode.INVALID_DESCRIPTOR,
                field="handler",
                input=metadata["name"],
                hint="bind a callable with execute_with(...)",
                docs=getdoc(FaultCode.INVALID_DESCRIPTOR),
            ))
        if not callable(handler):
            raise TypeError(f"{cls.__typename__} 'handler' must be callable")

        with super().__new__(cls) as self:
            for key, object in metadata.items():
                setattr(self, "-" + key, object)

        logger.debug("described %s %r (%d flags, %d options)", cls.__typename__, self.name, len(self.flags), len(self.options))
        return self

    @property
    def names(self):
        """
        The identifiers this command resolves from: full name, then short name.
        """
        return (self.name,) + ((self.short_name,) if self.short_name else ())

    @property
    def helpful(self):
        """
        True when the command exposes a description (the "has help" capability).
        """
        return bool(self.description)

    @property
    def switches(self):
        """
        Every declared flag and option, in declaration order (flags first).
        """
        return self.flags + self.options

    def execute(self, args, /):
        """
        Run the handler with the positional arguments and fold its result into a bool.

        - a truthy result is success, a falsy result is a handled failure.
        - None (the handler returned nothing) is a handled failure, not "unset".
        """
        return bool(self.handler(args))

    def __command__(self):
        """
        Introspection hook: identify this descriptor as a Command.
        """
        return self


__all__ = (
    "Flag",
    "Option",
    "Command",
)

del DescriptorType
