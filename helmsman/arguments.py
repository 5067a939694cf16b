r"""
Helmsman argument grammar: placeholders, switches, tokenizing and binding.

Overview
- Specs
  • Placeholder: positional slot declared in a command signature
    (`<name>` required, `[name]` optional, `<name...>`/`[name...]` variadic).
  • Switch: named flag or option declared from a flags string
    (`"-c, --cheese"`, `"-s, --size <size>"`, `"--level [n]"`, `"--no-color"`).

- Functions
  • parse_signature(text): turn `"<a> [b] [c...]"` into a tuple of Placeholders.
  • tokenize(text): POSIX shell-style splitting that never fails.
  • bind(placeholders, switches, tokens): produce an Arguments mapping.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes selected
    fields via read-only properties declared in __introspectable__/__displayable__.

Binding rules
- Switch tokens are pulled out of the positional stream first; `--` ends switch
  processing and tokens that look like negative numbers stay positional.
- `--flag` → True, `--flag=value` → "value", `--no-flag` → False (declared or not),
  `-abc` sets a, b and c; a short switch taking a value eats the rest of the
  cluster or the next token.
- Undeclared switches are kept in `options` under their normalized key.
- Positionals bind left to right; a trailing variadic collects the rest, otherwise
  the excess is dropped.
- A required placeholder without a token raises MissingArgumentError.

Quick example:
    >>> from helmsman.arguments import parse_signature, Switch, tokenize, bind
    >>> arguments = bind(parse_signature("<pizza> [ingredients...]"),
    ...                  [Switch.parse("-e, --extra")],
    ...                  tokenize("pepperoni cheese olives -e"))
    >>> arguments.pizza, arguments.ingredients, arguments.options["extra"]
    ('pepperoni', ('cheese', 'olives'), True)
"""
import functools
import operator
import re
import shlex
from collections.abc import Mapping

from rich.text import Text

from .faults import MissingArgumentError
from .utils import *


class ArgumentType(type):
    """
    Metaclass that turns grammar specs into introspectable, immutable records.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics and help output.
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
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
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - placeholder(name='arg', required=True, variadic=False)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield a sequence of (name, object) pairs for pretty printers.
            """
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


_PLACEHOLDER = re.compile(r"(?:<(?P<required>[^<>\[\]\s]+?)(?P<rvariadic>\.\.\.)?>|\[(?P<optional>[^<>\[\]\s]+?)(?P<ovariadic>\.\.\.)?\])")
_NAME = re.compile(r"[^\W\d](?:[\w-]*\w)?")
_SWITCH = re.compile(r"--?[^\W\d_](-?[^\W_]+)*")
_NUMBER = re.compile(r"-\d+(\.\d+)?|-\.\d+")


def _keyof(name, /):
    """
    Normalize a long switch name (without dashes) into an options key.
    """
    return name.replace("-", "_")


class Placeholder(metaclass=ArgumentType):
    """
    Positional slot of a command signature.

    Properties
    - name: identifier the bound value is exposed under (mapping key and attribute).
    - required: a token must be supplied for it.
    - variadic: collects every remaining positional token into a tuple.
    """

    __introspectable__ = (
        "name",
        "required",
        "variadic",
    )

    def __init__(self, name, /, required=True, variadic=False):
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{type(self).__typename__} 'name' cannot be empty")
        elif not _NAME.fullmatch(name):
            raise ValueError(f"{type(self).__typename__} 'name' must be a valid identifier (hyphens are allowed)")
        self._name = name
        self._required = bool(required)
        self._variadic = bool(variadic)

    def __str__(self):
        inner = self._name + ("..." if self._variadic else "")
        return f"<{inner}>" if self._required else f"[{inner}]"

    def __eq__(self, other):
        if not isinstance(other, Placeholder):
            return NotImplemented
        return (self._name, self._required, self._variadic) == (other._name, other._required, other._variadic)

    def __hash__(self):
        return hash((self._name, self._required, self._variadic))


class Switch(metaclass=ArgumentType):
    """
    Named flag or option of a command.

    A switch has a short form (`-c`), a long form (`--cheese`) or both. When a
    metavar is declared it takes a value: `<value>` makes the value required,
    `[value]` optional. A long form written `--no-<name>` declares a negated
    switch whose key is `<name>` and whose default is True.

    Properties
    - short: single letter without dash, or None.
    - long: long name without dashes, or None.
    - metavar: value label shown in help, or None.
    - takes: None, "required" or "optional".
    - negated: declared through `--no-<name>`.
    - key: the options key values are stored under.
    - descr: short description for help, or None.
    - default: value used when the switch is absent.
    """

    __introspectable__ = (
        "short",
        "long",
        "metavar",
        "takes",
        "negated",
        "key",
        "descr",
        "default",
    )

    __displayable__ = (
        "short",
        "long",
        "takes",
        "key",
        "default",
    )

    def __init__(self, short=None, long=None, /, metavar=None, takes=None, descr=None, default=Unset):
        if short is None and long is None:
            raise TypeError(f"{type(self).__typename__} must specify at least one name")
        if short is not None and (not isinstance(short, str) or len(short) != 1 or not short.isalnum()):
            raise ValueError(f"{type(self).__typename__} 'short' must be a single letter or digit")
        if long is not None and (not isinstance(long, str) or not _SWITCH.fullmatch("--" + long)):
            raise ValueError(f"{type(self).__typename__} 'long' must be a valid shell-style option name (unicodes are allowed)")
        if takes not in (None, "required", "optional"):
            raise ValueError(f"{type(self).__typename__} 'takes' must be None, 'required' or 'optional'")
        if (takes is None) != (metavar is None):
            raise TypeError(f"{type(self).__typename__} 'metavar' and 'takes' must be given together")
        if not isinstance(descr, str | Text | None):
            raise TypeError(f"{type(self).__typename__} 'descr' must be a string")
        elif isinstance(descr, str) and not (descr := descr.strip()):
            raise ValueError(f"{type(self).__typename__} 'descr' cannot be empty")

        negated = long is not None and long.startswith("no-") and takes is None

        self._short = short
        self._long = long
        self._metavar = metavar
        self._takes = takes
        self._negated = negated
        self._descr = descr

        if long is not None:
            self._key = _keyof(long[3:] if negated else long)
        else:
            self._key = short

        # negated switches default to True; anything else to None
        self._default = coalesce(default, True if negated else None)

    @classmethod
    def parse(cls, flags, /, descr=None, default=Unset):
        """
        Build a Switch from a flags string.

        Accepted forms
        - "-c", "--cheese", "-c, --cheese", "-c --cheese", "-c | --cheese"
          (single-dash names must be one letter)
        - "-s, --size <size>"  (value required)
        - "--level [n]"        (value optional)
        - "--no-color"         (negated, defaults to True)

        Raises
        - TypeError: when flags is not a string.
        - ValueError: on unknown fragments, duplicated forms or invalid names.
        """
        if not isinstance(flags, str):
            raise TypeError("switch flags must be a string")

        short = long = metavar = takes = None

        for fragment in filter(None, re.split(r"[\s,|]+", flags.strip())):
            if metavar is not None:
                raise ValueError(f"switch flags {flags!r} must end with its value placeholder")
            if match := re.fullmatch(r"<([^<>]+)>|\[([^\[\]]+)\]", fragment):
                metavar = fragment
                takes = "required" if match.group(1) else "optional"
            elif not _SWITCH.fullmatch(fragment):
                raise ValueError(f"switch flags {flags!r} contain an invalid name {fragment!r}")
            elif fragment.startswith("--"):
                if long is not None:
                    raise ValueError(f"switch flags {flags!r} declare more than one long name")
                long = fragment[2:]
            elif len(fragment) == 2:
                if short is not None:
                    raise ValueError(f"switch flags {flags!r} declare more than one short name")
                short = fragment[1:]
            else:
                # "-abc" on the command line is a cluster of short switches
                raise ValueError(f"switch flags {flags!r} use a single dash for the long name {fragment!r}")

        if short is None and long is None:
            raise ValueError(f"switch flags {flags!r} declare no name")

        return cls(short, long, metavar=metavar, takes=takes, descr=descr, default=default)

    @property
    def flags(self):
        """
        The switch rendered back as a flags string (e.g. "-s, --size <size>").
        """
        names = [f"-{self._short}"] if self._short else []
        names += [f"--{self._long}"] if self._long else []
        return ", ".join(names) + (f" {self._metavar}" if self._metavar else "")


def parse_signature(text, /):
    """
    Parse a placeholder signature such as "<arg> [opt] [rest...]".

    Raises
    - TypeError: when text is not a string, when a second variadic is declared,
      or when any placeholder follows a variadic one.
    - ValueError: when a fragment is not a placeholder.
    """
    if text is None:
        return ()
    if not isinstance(text, str):
        raise TypeError("signature must be a string")

    placeholders = []
    position = 0
    text = text.strip()

    for match in _PLACEHOLDER.finditer(text):
        if text[position:match.start()].strip():
            raise ValueError(f"signature {text!r} has a malformed fragment {text[position:match.start()].strip()!r}")
        position = match.end()

        if placeholders and placeholders[-1].variadic:
            raise TypeError(f"signature {text!r} declares a placeholder after the variadic one")

        if match.group("required"):
            placeholder = Placeholder(match.group("required"), required=True, variadic=bool(match.group("rvariadic")))
        else:
            placeholder = Placeholder(match.group("optional"), required=False, variadic=bool(match.group("ovariadic")))

        if any(placeholder.name == other.name for other in placeholders):
            raise ValueError(f"signature {text!r} declares {placeholder.name!r} twice")

        placeholders.append(placeholder)

    if text[position:].strip():
        raise ValueError(f"signature {text!r} has a malformed fragment {text[position:].strip()!r}")

    return tuple(placeholders)


def tokenize(text, /):
    """
    Split a raw line the way a POSIX shell would (quotes are honoured).

    Unbalanced quotes never fail: the line is split on whitespace instead.
    """
    if not isinstance(text, str):
        raise TypeError("tokenize() argument must be a string")
    try:
        return shlex.split(text)
    except ValueError:
        return text.split()


class Arguments(Mapping):
    """
    Read-only mapping of placeholder name → bound value.

    Values are also reachable as attributes (`args.pizza`), with hyphens mapped
    to underscores. Names that clash with Python keywords (`in`, `with`) are
    reachable through getattr() or subscription.

    Attributes
    - options: read-only mapping of switch key → value.
    - variadic: tuple bound to the variadic placeholder (empty when there is none).
    """

    def __init__(self, values=(), /, options=(), variadic=()):
        self._values = dict(values)
        self._options = dict(options)
        self._variadic = tuple(variadic)

    options = property(lambda self: dict(self._options))
    variadic = property(lambda self: self._variadic)

    def __getitem__(self, name):
        return self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        values = self.__dict__.get("_values", {})
        for key in (name, name.replace("_", "-")):
            if key in values:
                return values[key]
        raise AttributeError(f"{type(self).__name__!r} object has no argument {name!r}")

    def __repr__(self):
        return f"arguments({", ".join(f"{key}={value!r}" for key, value in self._values.items())}, options={self._options!r})"


def bind(placeholders, switches, tokens, /):
    """
    Bind tokens against a signature and a set of switches.

    Parameters
    - placeholders: Iterable[Placeholder], in declaration order.
    - switches: Iterable[Switch].
    - tokens: Iterable[str], already tokenized.

    Returns
    - Arguments

    Raises
    - MissingArgumentError: a required placeholder has no token, or a switch
      requiring a value is the last token.
    """
    placeholders = tuple(placeholders)
    switches = tuple(switches)
    tokens = list(tokens)

    if not all(isinstance(placeholder, Placeholder) for placeholder in placeholders):
        raise TypeError("bind() placeholders must be Placeholder instances")
    if not all(isinstance(switch, Switch) for switch in switches):
        raise TypeError("bind() switches must be Switch instances")

    shorts = {switch.short: switch for switch in switches if switch.short}
    longs = {switch.long: switch for switch in switches if switch.long}
    negations = {switch.key: switch for switch in switches if switch.negated}

    options = {switch.key: switch.default for switch in switches}
    positionals = []
    index = 0
    terminated = False

    def value(switch, label):
        # consume the next token as the switch value
        nonlocal index
        nexts = tokens[index] if index < len(tokens) else None
        if switch.takes == "required":
            if nexts is None:
                raise MissingArgumentError(
                    f"switch {label!r} requires a value {switch.metavar}",
                    argument=switch.key,
                )
            index += 1
            return nexts
        if nexts is None or (nexts.startswith("-") and not _NUMBER.fullmatch(nexts)):
            return True
        index += 1
        return nexts

    while index < len(tokens):
        token = tokens[index]
        index += 1

        if terminated or token == "-" or not token.startswith("-") or _NUMBER.fullmatch(token):
            positionals.append(token)
            continue

        if token == "--":
            terminated = True
            continue

        if token.startswith("--"):
            name, separator, inline = token[2:].partition("=")
            if (switch := longs.get(name)) is not None:
                if switch.negated:
                    options[switch.key] = False
                elif separator:
                    options[switch.key] = inline
                elif switch.takes:
                    options[switch.key] = value(switch, token)
                else:
                    options[switch.key] = True
            elif (switch := negations.get(_keyof(name))) is not None:
                options[switch.key] = inline if separator else True
            elif name.startswith("no-") and not separator:
                switch = longs.get(name[3:])
                options[switch.key if switch else _keyof(name[3:])] = False
            else:
                options[_keyof(name)] = inline if separator else True
            continue

        cluster = token[1:]
        for position, letter in enumerate(cluster):
            switch = shorts.get(letter)
            if switch is None:
                options[letter] = True
                continue
            if switch.takes:
                if rest := cluster[position + 1:].removeprefix("="):
                    options[switch.key] = rest
                else:
                    options[switch.key] = value(switch, f"-{letter}")
                break
            options[switch.key] = False if switch.negated else True

    values = {}
    variadic = ()
    cursor = 0

    for position, placeholder in enumerate(placeholders, 1):
        if placeholder.variadic:
            variadic = tuple(positionals[cursor:])
            cursor = len(positionals)
            if placeholder.required and not variadic:
                raise MissingArgumentError(
                    f"the {ordinal(position)} argument {placeholder} needs at least one value",
                    argument=placeholder.name,
                )
            values[placeholder.name] = variadic
        elif cursor < len(positionals):
            values[placeholder.name] = positionals[cursor]
            cursor += 1
        elif placeholder.required:
            raise MissingArgumentError(
                f"the {ordinal(position)} argument {placeholder} was not given",
                argument=placeholder.name,
            )
        else:
            values[placeholder.name] = None

    # excess positionals without a variadic are dropped
    return Arguments(values, options=options, variadic=variadic)


__all__ = (
    "ArgumentType",
    "Placeholder",
    "Switch",
    "Arguments",
    "parse_signature",
    "tokenize",
    "bind",
)
