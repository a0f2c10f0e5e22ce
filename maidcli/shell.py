"""
Maid shell: the reference host around a Registry.

run() dispatches one prompt and turns the result into an exit code, printing what a
user at a terminal expects to see:
- faults are rendered to stderr through their rich renderers (one fault alone, several
  as a "bad exit" group), framed in a panel when fancy=True;
- an empty command renders the overview help (exit 0 with --help/-h, else 2);
- --help/-h on a command that does not declare such a switch renders that command's help;
- handler exceptions are not caught.

helper() renders help on its own, for hosts with their own entry point.

Customization
- __prog__ in __main__ names the program in headers and usage lines.
- __styles__ in __main__ overrides any palette entry (see helper()).
"""
import logging
from collections import defaultdict

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .descriptors import Command, Option
from .faults import CommandExit, MalformedTokenError, trigger
from .tokens import parse
from .utils import *

logger = logging.getLogger(__name__)

_HELP = frozenset({"--help", "-h"})


def _prog():
    return getattr(__import__("__main__"), "__prog__", "maid")


def helper(registry, command=Unset, /, *, fancy=False, colorful=True, console=Unset):
    """
    Render the registry overview, or the help of one command.

    command may be a Command or any identifier the registry resolves (KeyError otherwise).

    Palette keys
    - usage-label, program-name, usage-section, description-section
    - group-label, option-name, flag-name, required, argument-description
    - commands-title, commands-table, command-name, command-alias, command-description
    - panel-title
    """
    console = Console() if console is Unset else console
    if isinstance(command, str):
        command = registry[command]
    elif command is not Unset and not isinstance(command, Command):
        raise TypeError("helper() command must be a command or an identifier")

    styles = defaultdict(str, {
        # === Head sections ===
        "usage-label": "bold #00E6FF",  # cyan signature label
        "program-name": "bold #FF4D94",  # magenta-pink brand pop
        "usage-section": "bold #36C5F0",  # sky-blue usage lines
        "description-section": "italic #A3A3A3",  # neutral gray

        # === Switches ===
        "group-label": "bold #FFFFFF",
        "option-name": "bold #00E6FF",  # cyan for options
        "flag-name": "bold #22C55E",  # green for flags
        "required": "bold #FFD600",  # amber marker
        "argument-description": "#9CA3AF",

        # === Commands table ===
        "commands-title": "bold #FFFFFF",
        "commands-table": "#4B5563",  # slate border
        "command-name": "bold #36C5F0",
        "command-alias": "#36C5F0 dim",
        "command-description": "#9CA3AF",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        return Text(str(fragment), styler(style))

    prog = _prog()
    renders = []

    if command is Unset:
        usage = Text.assemble(
            text("usage", "usage-label"), ": ",
            text(prog, "program-name"), " ",
            text("<command> [options] [arguments ...]", "usage-section"),
            "\n",
        )
        renders.append(usage)

        table = Table(
            "name", "alias", "help",
            title=text("commands", "commands-title"),
            box=ROUNDED,
            style=styler("commands-table"),
            header_style=styler("commands-title"),
        )
        for each in registry.commands:
            if each.helpful:
                help = text(each.description, "command-description")
            else:
                help = Text.assemble(
                    text("no description", "command-description"),
                    ", ",
                    text(f"run '{prog} {each.name} --help' for details", "usage-label"),
                )
            table.add_row(text(each.name, "command-name"), text(each.short_name or "", "command-alias"), help)

        if registry.commands:
            renders.append(table)
        else:
            renders.append(text("no commands registered", "description-section"))
        title = f"{prog} help"

    else:
        lines = command.usage or (_synthesize(command),)
        usage = Text.assemble(text("usage", "usage-label"), ":")
        for line in lines:
            usage.append("\n  ").append(text(f"{prog} {line}", "usage-section"))
        renders.append(usage.append("\n"))

        if command.helpful:
            renders.append(text(command.description, "description-section").append("\n"))

        if command.short_name:
            renders.append(Text.assemble(
                text("alias", "group-label"), ": ", text(command.short_name, "command-alias"), "\n"
            ))

        for label, switches in (("flags", command.flags), ("options", command.options)):
            if not switches:
                continue
            table = Table.grid(padding=(0, 2))
            table.add_column(no_wrap=True)
            table.add_column()
            for switch in switches:
                style = "option-name" if isinstance(switch, Option) else "flag-name"
                names = Text(", ").join(
                    text(name + ("=<%s>" % switch.name if isinstance(switch, Option) else ""), style)
                    for name in switch.names
                )
                descr = text(switch.description or "", "argument-description")
                if isinstance(switch, Option) and switch.required:
                    descr = Text.assemble(text("(required) ", "required"), descr)
                table.add_row(Text("  ") + names, descr)
            renders.append(Group(Text.assemble(text(label, "group-label"), ":"), table, Text("")))
        title = f"{prog} {command.name} help"

    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[ ", title.upper(), " ]", style=styler("panel-title")),
            title_align="left",
        )
    console.print(renderable)


def _synthesize(command):
    """
    Internal: one usage line from a command's schema, when it declares none.
    """
    parts = [command.name]
    parts.extend("[%s]" % flag.names[0] for flag in command.flags)
    for option in command.options:
        spelled = "%s=<%s>" % (option.names[0], option.name)
        parts.append(spelled if option.required else "[%s]" % spelled)
    parts.append("[arguments ...]")
    return " ".join(parts)


def _report(faults, *, fancy, colorful):
    if len(faults) == 1:
        trigger(faults[0], shell=True, fancy=fancy, colorful=colorful)
    else:
        trigger(CommandExit(faults), shell=True, fancy=fancy, colorful=colorful)


def run(registry, prompt=Unset, /, *, fancy=False, colorful=True, console=Unset):
    """
    Dispatch one prompt, print faults or help, and return the process exit code.

        raise SystemExit(run(registry))
    """
    try:
        invocation = parse(prompt)
    except MalformedTokenError as fault:
        _report((fault,), fancy=fancy, colorful=colorful)
        return fault.exitcode

    wants = {switch.token for switch in invocation.switches if switch.flag} & _HELP

    if not invocation.command:
        logger.debug("no command given; rendering overview help")
        helper(registry, fancy=fancy, colorful=colorful, console=Console(stderr=not wants) if console is Unset else console)
        return 0 if wants else 2

    command = registry.resolve(invocation.command)
    if command is not None and wants - {name for switch in command.switches for name in switch.names}:
        logger.debug("rendering help of %r", command.name)
        helper(registry, command, fancy=fancy, colorful=colorful, console=console)
        return 0

    dispatch = registry.dispatch(invocation)
    if dispatch.rejected:
        _report(dispatch.faults, fancy=fancy, colorful=colorful)
    return dispatch.exitcode


__all__ = (
    "helper",
    "run",
)
