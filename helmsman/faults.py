"""
Helmsman faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (routing, execution, session) so logs and
  searches stay predictable.
- ShellException / ShellWarning: base types that carry message + options and
  know how to render themselves with rich in a short, actionable way.
- trigger(): central entry point to surface any fault (respecting shell/echo/fancy/colorful).

UX goals
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Integration
- The registry attaches routing faults to resolutions instead of raising them.
- The queue wraps action failures in ActionError.
- The shell surfaces faults through trigger(); in shell mode they are echoed
  through the session log, otherwise exceptions are raised and warnings warned.
"""
import copy
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the shell (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_COMMAND, MISSING_ARGUMENT
    - execution (1113x)
      • ACTION_FAILURE
    - session (1120x / 1220x)
      • PROMPT_REENTRANCY, SESSION_OWNERSHIP, PROMPT_FAILURE

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_COMMAND   = 11101
    MISSING_ARGUMENT  = 11102

    # --- execution errors (11xxx) ---
    ACTION_FAILURE    = 11131

    # --- session errors (11xxx) ---
    PROMPT_REENTRANCY = 11201
    SESSION_OWNERSHIP = 11202

    # --- warnings (12xxx) ---
    PROMPT_FAILURE    = 12201

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, /):
    main = __import__("__main__")
    options = fault.options

    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if options["colorful"] else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not options["colorful"]:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    prog = text(getattr(main, "__prog__", options["prog"]), styler("prog-name"))
    kind = "error" if isinstance(fault, BaseException) and not isinstance(fault, Warning) else "warning"

    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(options["code"].normalize(), styler("code")),
        " | ",
        text(options["title"].title(), styler(f"{kind}-title")),
        " ]"
    )
    message = text(fault.message, styler(f"{kind}-message"))
    hint = Text.assemble(text(" → ", styler("hint-arrow")), text(options["hint"], styler("hint")))

    if options["fancy"]:
        width = console.width - 4
        try:
            width = int(width * options["ratio"])
        except KeyError:
            width = None
        return Panel(Group(message, hint), title=header, title_align="left", width=width)

    return Group(header, message, hint)


class _Fault:
    """
    shared construction for exceptions and warnings.

    subclasses declare `code`, `title` and `hint`; any of them, and the runtime
    flags (shell, colorful, fancy, echo, prog), can be overridden per instance
    through keyword options.
    """
    code: FaultCode
    title = "fault"
    hint = ""

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType({
            "code": type(self).code,
            "title": type(self).title,
            "hint": type(self).hint,
            "prog": "helmsman",
            "shell": False,
            "colorful": False,
            "fancy": False,
            "echo": None,
        } | options)

    def __str__(self):
        return self.message

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})

    def __echo__(self):
        echo = self.options["echo"]
        if callable(echo):
            echo(self)
        else:
            console.print(self)


class ShellException(_Fault, Exception):
    """
    base type of every helmsman error.

    in shell mode the error is echoed (session log or stderr console) and
    swallowed; otherwise it is raised.
    """
    code = FaultCode.ACTION_FAILURE
    title = "shell error"

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

    def __trigger__(self) -> None:
        if not self.options["shell"]:
            raise self
        self.__echo__()


class UnknownCommandError(ShellException):
    """
    the input matched no registered command or alias.

    `partial` holds the commands the input is a proper prefix of, if any.
    """
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"
    hint = "type 'help' to list the available commands"

    @property
    def partial(self):
        return tuple(self.options.get("partial", ()))

    @property
    def line(self):
        return self.options.get("line", "")


class MissingArgumentError(ShellException):
    """
    a required placeholder (or a switch requiring a value) got no token.
    """
    code = FaultCode.MISSING_ARGUMENT
    title = "missing argument"
    hint = "type 'help <command>' to see its usage"

    @property
    def argument(self):
        return self.options.get("argument")

    @property
    def command(self):
        return self.options.get("command")


class ActionError(ShellException):
    """
    an action raised, or reported an error through its sink.

    the original error is chained as __cause__ and kept on `error`.
    """
    code = FaultCode.ACTION_FAILURE
    title = "action failed"
    hint = "the command reported an error"

    def __init__(self, message=Unset, /, **options):
        super().__init__(message, **options)
        if isinstance(self.error, BaseException):
            self.__cause__ = self.error

    @property
    def error(self):
        return self.options.get("error")


class PromptReentrancyError(ShellException):
    code = FaultCode.PROMPT_REENTRANCY
    title = "prompt reentrancy"
    hint = "wait for the active prompt to be answered"


class SessionOwnershipError(ShellException):
    code = FaultCode.SESSION_OWNERSHIP
    title = "session ownership"
    hint = "hide the attached shell first"


class ShellWarning(_Fault, ABC, Warning):
    """
    base type of every helmsman warning.

    in shell mode the warning is echoed; otherwise it goes through warnings.warn.
    """
    code = FaultCode.PROMPT_FAILURE
    title = "shell warning"

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "warning-title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "warning-message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        })

    def __trigger__(self) -> None:
        if not self.options["shell"]:
            return warnings.warn(self, stacklevel=3)
        self.__echo__()


class PromptFailureWarning(ShellWarning):
    code = FaultCode.PROMPT_FAILURE
    title = "prompt failure"
    hint = "the line editor failed; the prompt was abandoned"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - in shell mode, the fault is echoed (through `echo` when given, else the
      stderr console); otherwise exceptions are raised and warnings warned.

    typical options
    - shell, fancy, colorful, echo, prog, title, hint, and any other context
      the reporter may want to carry (e.g. line, argument, error).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "FaultCode",
    "ShellException",
    "UnknownCommandError",
    "MissingArgumentError",
    "ActionError",
    "PromptReentrancyError",
    "SessionOwnershipError",
    "ShellWarning",
    "PromptFailureWarning",
    "trigger",
)
