"""
Helmsman command layer: register, resolve and describe shell commands.

What this module provides
- Command: a named, multi-word command with a placeholder signature, switches,
  aliases and an action.
  • Fluent builders: alias(), option(), action(), describe(), hide(), remove().
  • Hierarchies are implicit: a command's parent is the longest registered
    command whose words are a proper prefix of its own.
- Mode: a command that, once entered, receives every raw line until `exit`.
- Registry: name and alias tables, longest-prefix resolution and help rendering.
- Resolution: outcome of resolving one raw line (command, arguments or fault).

Core ideas
- Names are normalized (whitespace-collapsed) and unique; re-registering a name
  resets the same Command in place, keeping its position and aliases.
- Aliases are unique across the alias space and never shadow a name.
- Resolution never raises for user mistakes: routing faults travel on the
  Resolution and are turned into help text by the shell.

Quick start
    from helmsman.commands import Registry

    registry = Registry()
    registry.register("order pizza <size> [toppings...]", "Orders a pizza.") \\
        .option("-x, --extra-cheese") \\
        .action(lambda args: f"{args.size} with {", ".join(args.toppings)}")

    resolution = registry.resolve("order pizza large ham olives -x")
    resolution.command.name        # "order pizza"
    resolution.arguments.toppings  # ("ham", "olives")
"""
import copy
import functools
import itertools
import operator
import re
from collections import defaultdict

from rich.containers import Lines
from rich.text import Text

from .arguments import Placeholder, Switch, parse_signature, tokenize, bind
from .faults import *
from .utils import *


class CommandType(type):
    """
    Metaclass providing readable representations and read-only mirrors for commands.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      for consistent, human-friendly labels in messages.
    - Every name listed in __introspectable__ becomes a read-only property
      mirroring the private backing field.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__.
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
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _normalize(name, /):
    """
    Collapse whitespace of a command name or alias; reject empty ones.
    """
    if not isinstance(name, str):
        raise TypeError("command names must be strings")
    elif not (name := " ".join(name.split())):
        raise ValueError("command names cannot be empty")
    return name


def _split(source, /):
    """
    Split "name words <arg> [opt]" into the literal name and its signature.
    """
    source = _normalize(source)
    match = re.search(r"[<\[]", source)
    if match is None:
        return source, None
    name, signature = source[:match.start()].strip(), source[match.start():]
    if not name:
        raise ValueError(f"command {source!r} must start with a literal word")
    return name, signature


def _stylers(colorful, /):
    """
    Build the (styler, text) helper pair used by every help renderer.

    Palette keys
    - help-header, command-name, placeholder, switch-name, description, alias,
      partial-marker, section-label

    Customization
    - Define a mapping named __styles__ in __main__ to override any palette entry.
    - When colorful is False, styling is suppressed.
    """
    styles = defaultdict(str, {
        "help-header": "bold #FF4D94",  # MAGENTA-PINK → the headline pops
        "section-label": "bold #FFFFFF",  # pure white headers
        "command-name": "bold #36C5F0",  # SKY-BLUE commands
        "placeholder": "bold #FFD600",  # AMBER for placeholders
        "switch-name": "bold #00E6FF",  # CYAN for switches
        "description": "#9CA3AF",  # muted gray
        "alias": "italic #A3A3A3",  # neutral gray
        "partial-marker": "bold #22C55E",  # GREEN wildcard
    } | getattr(__import__("__main__"), "__styles__", {}))

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

    return styler, text


class Command(metaclass=CommandType):
    """
    A registered shell command.

    Lifecycle
    - Created by Registry.register(); re-registration calls _reset() on the same
      object so the registry position and the aliases survive.
    - The action is attached with action(fn) (also usable as a decorator) and is
      called with the bound Arguments, plus a sink when it accepts two parameters.

    Properties
    - name, descr, placeholders, switches, aliases, hidden: read-only mirrors.
    - words: the literal words of the name.
    - parent: the closest registered command whose name prefixes this one, or None.
    - callback: the attached action, or None.
    """

    __introspectable__ = (
        "name",
        "descr",
        "placeholders",
        "switches",
        "aliases",
        "hidden",
    )

    __displayable__ = (
        "name",
        "placeholders",
        "aliases",
    )

    def __init__(self, name, /, descr=None, placeholders=(), switches=(), *, registry=None):
        self._name = _normalize(name)
        self._registry = registry
        self._aliases = []
        self._reset(descr, placeholders, switches)

    def _reset(self, descr, placeholders, switches):
        if not isinstance(descr, str | Text | None):
            raise TypeError(f"{type(self).__typename__} 'descr' must be a string")
        elif isinstance(descr, str) and not (descr := descr.strip()):
            raise ValueError(f"{type(self).__typename__} 'descr' cannot be empty")

        placeholders = tuple(placeholders)
        if not all(isinstance(placeholder, Placeholder) for placeholder in placeholders):
            raise TypeError(f"{type(self).__typename__} placeholders must be Placeholder instances")

        self._descr = descr
        self._placeholders = placeholders
        self._switches = []
        self._hidden = False
        self._callback = Unset

        for switch in switches:
            self._add_switch(switch if isinstance(switch, Switch) else Switch.parse(switch))

    def _add_switch(self, switch):
        for other in self._switches:
            if switch.short and switch.short == other.short or switch.long and switch.long == other.long:
                raise ValueError(f"{type(self).__typename__} {self._name!r} already declares {other.flags!r}")
            if switch.key == other.key:
                raise ValueError(f"{type(self).__typename__} {self._name!r} already stores a switch under {other.key!r}")
        self._switches.append(switch)

    @property
    def words(self):
        return tuple(self._name.split())

    @property
    def parent(self):
        if self._registry is None:
            return None
        return self._registry.parent(self)

    @property
    def callback(self):
        return coalesce(self._callback)

    @property
    def signature(self):
        return " ".join(map(str, self._placeholders))

    def alias(self, *names):
        """
        Register one or more alternate invocation strings for this command.
        """
        if self._registry is None:
            raise RuntimeError(f"{type(self).__typename__} {self._name!r} is not registered")
        for name in names:
            self._registry.alias(self, name)
        return self

    def option(self, flags, descr=None, default=Unset):
        """
        Declare a switch from a flags string (see Switch.parse).
        """
        self._add_switch(Switch.parse(flags, descr=descr, default=default))
        return self

    def action(self, callback, /):
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} action must be callable")
        self._callback = callback
        return self

    def describe(self, descr, /):
        if not isinstance(descr, str | Text):
            raise TypeError(f"{type(self).__typename__} 'descr' must be a string")
        self._descr = descr.strip() if isinstance(descr, str) else descr
        return self

    def hide(self):
        self._hidden = True
        return self

    def remove(self):
        """
        Unregister this command and drop its aliases.
        """
        if self._registry is not None:
            self._registry.unregister(self)
        return self

    def usage(self, *, colorful=False):
        """
        Render the usage block of this command as rich Text.

        Sections
        - "Usage: <name> <signature> [options]"
        - description (when present)
        - aliases (when present)
        - switches table (when present)
        """
        styler, text = _stylers(colorful)
        lines = Lines()

        head = Text.assemble(
            "  ",
            text("Usage:", styler("section-label")),
            " ",
            text(self._name, styler("command-name")),
        )
        if self._placeholders:
            head.append_text(Text.assemble(" ", text(self.signature, styler("placeholder"))))
        if self._switches:
            head.append_text(Text.assemble(" ", text("[options]", styler("placeholder"))))

        lines.append(Text(""))
        lines.append(head)

        if self._descr:
            lines.append(Text(""))
            lines.append(Text.assemble("  ", text(self._descr, styler("description"))))

        if self._aliases:
            lines.append(Text(""))
            lines.append(Text.assemble("  ", text("Alias: " + " | ".join(self._aliases), styler("alias"))))

        if self._switches:
            lines.append(Text(""))
            lines.append(Text.assemble("  ", text("Options:", styler("section-label"))))
            lines.append(Text(""))
            width = max(len(switch.flags) for switch in self._switches)
            for switch in self._switches:
                row = Text.assemble("    ", text(switch.flags.ljust(width), styler("switch-name")))
                if switch.descr:
                    row.append_text(Text.assemble("    ", text(switch.descr, styler("description"))))
                lines.append(row)

        lines.append(Text(""))
        return Text("\n").join(lines)


class Mode(Command):
    """
    A command that switches the shell into a persistent mode.

    - init(fn): called with the bound Arguments when the mode is entered.
    - action(fn): called with each raw line typed while the mode is active.
    - prompt(text): delimiter shown while the mode is active.
    """

    __introspectable__ = (
        "delimiter",
    )

    def _reset(self, descr, placeholders, switches):
        super()._reset(descr, placeholders, switches)
        self._init = Unset
        self._delimiter = None

    @property
    def initializer(self):
        return coalesce(self._init)

    def init(self, callback, /):
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} init must be callable")
        self._init = callback
        return self

    def prompt(self, delimiter, /):
        self._delimiter = str(delimiter).strip()
        return self


class Resolution(tuple):
    """
    Outcome of resolving one raw line: (command, arguments, fault).

    Exactly one of `arguments` or `fault` is set; `command` is set whenever a
    name or alias matched, even when binding failed.
    """

    def __new__(cls, command=None, arguments=None, fault=None):
        return super().__new__(cls, (command, arguments, fault))

    command = property(operator.itemgetter(0))
    arguments = property(operator.itemgetter(1))
    fault = property(operator.itemgetter(2))

    @property
    def ok(self):
        return self.fault is None

    def __repr__(self):
        return f"resolution(command={self.command!r}, arguments={self.arguments!r}, fault={self.fault!r})"


class Registry:
    """
    Name and alias tables of one shell.

    - register(name, descr, signature, switches, kind): create or reset a command.
    - alias(command, name): bind an alternate invocation string to a command.
    - resolve(line): longest literal-word prefix match, then argument binding.
    - listing()/partial()/explain(): help text as rich Text.
    """

    def __init__(self):
        self._commands = {}
        self._aliases = {}
        self._last = None

    @property
    def commands(self):
        return tuple(self._commands.values())

    @property
    def last(self):
        return self._last

    def register(self, source, /, descr=None, signature=None, switches=(), *, kind=Command):
        name, embedded = _split(source)
        if signature is not None and embedded is not None:
            raise TypeError(f"command {name!r} declares its signature twice")
        placeholders = parse_signature(coalesce(signature, embedded))

        command = self._commands.get(name)
        if command is not None and type(command) is kind:
            command._reset(descr, placeholders, switches)
        else:
            previous = command
            command = kind(name, descr, placeholders, switches, registry=self)
            if previous is not None:
                # kind changed: the new object takes over position and aliases
                command._aliases = previous._aliases
                previous._aliases = []
                previous._registry = None
                for alias in command._aliases:
                    self._aliases[alias] = command
            # a name always wins over a former alias
            if (owner := self._aliases.pop(name, None)) is not None:
                owner._aliases.remove(name)
            self._commands[name] = command

        self._last = command
        return command

    def unregister(self, command, /):
        if self._commands.get(command.name) is not command:
            return
        del self._commands[command.name]
        for alias in command._aliases:
            self._aliases.pop(alias, None)
        command._aliases = []
        command._registry = None
        if self._last is command:
            self._last = None

    def alias(self, command, name, /):
        name = _normalize(name)
        if name in self._commands:
            raise ValueError(f"alias {name!r} is already the name of a command")
        if (owner := self._aliases.get(name)) is command:
            return command
        if owner is not None:
            owner._aliases.remove(name)
        self._aliases[name] = command
        command._aliases.append(name)
        return command

    def find(self, name, /):
        """
        Return the command registered under a name or alias, or None.
        """
        name = " ".join(str(name).split())
        return self._commands.get(name) or self._aliases.get(name)

    def parent(self, command, /):
        words = command.words
        for length in range(len(words) - 1, 0, -1):
            if (parent := self._commands.get(" ".join(words[:length]))) is not None:
                return parent
        return None

    def resolve(self, line, /):
        """
        Match a raw line against the registered names and aliases, then bind.

        Returns
        - Resolution(command, arguments) on success.
        - Resolution(None, None, UnknownCommandError) when nothing matches.
        - Resolution(command, None, MissingArgumentError) when binding fails.
        """
        tokens = tokenize(line)
        best, length = None, 0

        # names are scanned first so that, on equal length, a name wins
        for key, command in itertools.chain(self._commands.items(), self._aliases.items()):
            words = key.split()
            if len(words) > length and tokens[:len(words)] == words:
                best, length = command, len(words)

        if best is None:
            partial = tuple(
                command for command in self._commands.values()
                if not command.hidden and tokens and len(command.words) > len(tokens)
                and list(command.words[:len(tokens)]) == tokens
            )
            return Resolution(fault=UnknownCommandError(
                f"{" ".join(tokens)!r} is not a known command",
                line=line,
                partial=partial,
            ))

        try:
            arguments = bind(best.placeholders, best.switches, tokens[length:])
        except MissingArgumentError as fault:
            return Resolution(best, fault=copy.replace(fault, command=best.name, line=line))

        return Resolution(best, arguments)

    def listing(self, *, colorful=False):
        """
        Render every visible command with its signature and description.
        """
        return self._table([command for command in self._commands.values() if not command.hidden], colorful=colorful)

    def partial(self, words, /, *, colorful=False):
        """
        Render the commands that extend `words`.

        Commands exactly one word deeper are listed in full; deeper ones are
        grouped under "<words> <next> *".
        """
        words = list(words)
        rows = []
        groups = set()
        for command in self._commands.values():
            if command.hidden or list(command.words[:len(words)]) != words or len(command.words) <= len(words):
                continue
            if len(command.words) == len(words) + 1:
                rows.append(command)
            elif (group := " ".join(command.words[:len(words) + 1])) not in groups:
                groups.add(group)
                rows.append(group)
        return self._table(rows, colorful=colorful)

    def _table(self, rows, /, *, colorful=False):
        styler, text = _stylers(colorful)

        entries = []
        for row in rows:
            if isinstance(row, Command):
                label = Text.assemble(text(row.name, styler("command-name")))
                if row.placeholders:
                    label.append_text(Text.assemble(" ", text(row.signature, styler("placeholder"))))
                entries.append((label, text(row.descr, styler("description"))))
            else:
                label = Text.assemble(text(row, styler("command-name")), " ", text("*", styler("partial-marker")))
                entries.append((label, Text("")))

        lines = Lines()
        lines.append(Text(""))
        lines.append(Text.assemble("  ", text("Commands:", styler("section-label"))))
        lines.append(Text(""))

        width = max((len(label) for label, _ in entries), default=0)
        for label, descr in entries:
            row = Text.assemble("    ", label)
            if descr:
                row.append(" " * (width - len(label) + 4))
                row.append_text(descr)
            lines.append(row)

        lines.append(Text(""))
        return Text("\n").join(lines)

    def explain(self, fault, /, *, colorful=False):
        """
        Turn a routing fault into the help block shown to the user.
        """
        styler, text = _stylers(colorful)

        if isinstance(fault, MissingArgumentError):
            command = self._commands.get(fault.command)
            header = text("Missing required argument. Showing Help:", styler("help-header"))
            body = command.usage(colorful=colorful) if command is not None else Text("")
            return Text.assemble(header, body)

        if isinstance(fault, UnknownCommandError) and fault.partial:
            return self.partial(tokenize(fault.line), colorful=colorful)

        header = text("Invalid Command. Showing Help:", styler("help-header"))
        return Text.assemble(header, self.listing(colorful=colorful))


__all__ = (
    "CommandType",
    "Command",
    "Mode",
    "Resolution",
    "Registry",
)
