"""
Helmsman shell: the owning object tying registry, queue, session and pipeline together.

What this module provides
- Shell: register commands and modes, execute lines (awaitable or callback
  style), pipe and log output, and run the interactive prompt loop.
- invoke(shell, line): run one line on a fresh event loop and return its result.

Built-in commands
- help [command...]: the full listing, or the usage of one command.
- exit: leave the active mode; otherwise hide the shell.
- repl: mode evaluating Python expressions and statements in a per-shell namespace.

Runtime flags
- strict: routing faults (unknown command, missing argument) reject the
  execution instead of printing help and completing with None.
- colorful / fancy: styling of help text and rendered faults.

Quick start
    import asyncio
    from helmsman import Shell

    shell = Shell(delimiter="pizza$")

    @shell.command("order <size> [toppings...]", "Orders a pizza.").action
    def order(args):
        shell.log(f"one {args.size} pizza with {", ".join(args.toppings) or "nothing"}")

    asyncio.run(shell.show())
"""
import asyncio
import contextvars

from .arguments import tokenize
from .commands import Mode, Registry
from .faults import ShellException, trigger
from .queue import ExecutionQueue, call
from .session import Session
from .utils import *


class Shell(Emitter):
    """
    An interactive command shell.

    Parameters
    - name: program name shown in rendered faults (defaults to "helmsman").
    - delimiter: prompt text (normalized to end with a single space).
    - session: Session to share with other shells; a terminal-backed one is
      created when omitted.
    - strict, colorful, fancy: see module docstring.

    Events
    - "keypress": {"key", "value"} forwarded by the session while attached.
    """

    def __init__(self, name=Unset, /, *, delimiter="helmsman$", session=Unset, strict=False, colorful=False, fancy=False):
        super().__init__()
        if not isinstance(name, str | Unset):
            raise TypeError("Shell() name must be a string")
        if session is not Unset and not isinstance(session, Session):
            raise TypeError("Shell() session must be a Session")

        self._name = coalesce(name, "helmsman")
        self._delimiter = str(delimiter).strip()
        self._session = session
        self._strict = bool(strict)
        self._colorful = bool(colorful)
        self._fancy = bool(fancy)
        self._registry = Registry()
        self._queue = ExecutionQueue(self._dispatch)
        self._mode = None
        self._closed = None
        self._namespace = {"__name__": "__repl__"}

        self._install()

    def _install(self):
        self.command("help [command...]", "Provides help for a given command.").action(self._help)
        self.command("exit", "Exits the active mode, or the shell.").action(self._exit)
        self.mode("repl", "Enters a Python REPL mode.") \
            .prompt("repl:") \
            .init(self._enter_repl) \
            .action(self._evaluate)

    @property
    def name(self):
        return self._name

    @property
    def session(self):
        if self._session is Unset:
            self._session = Session()
        return self._session

    @property
    def registry(self):
        return self._registry

    @property
    def commands(self):
        return self._registry.commands

    @property
    def active_mode(self):
        return self._mode

    @property
    def namespace(self):
        return self._namespace

    # --- registration ---

    def command(self, name, descr=None, /, *switches):
        """
        Register (or reset) a command; `name` may embed its signature.

        Returns the Command, whose fluent builders (alias, option, action,
        describe, hide) return it again.
        """
        return self._registry.register(name, descr, switches=switches)

    def mode(self, name, descr=None, /):
        return self._registry.register(name, descr, kind=Mode)

    def alias(self, name, /):
        """
        Alias the most recently registered command.
        """
        if (command := self._registry.last) is None:
            raise RuntimeError("alias() requires a registered command")
        return command.alias(name)

    def find(self, name, /):
        return self._registry.find(name)

    def use(self, extension, /, **options):
        """
        Apply an extension: a callable receiving the shell (and the options).
        """
        if not callable(extension):
            raise TypeError("use() argument must be callable")
        extension(self, **options)
        return self

    # --- output ---

    def pipe(self, transform, /):
        self.session.pipeline.pipe(transform)
        return self

    def log(self, *args):
        self.session.log(*args)
        return self

    def delimiter(self, delimiter, /):
        self._delimiter = str(delimiter).strip()
        if self.session.owner is self:
            self.session.set_delimiter(self._prompt_text())
            self.session.refresh()
        return self

    def _prompt_text(self):
        if self._mode is not None and self._mode.delimiter:
            return f"{self._delimiter} {self._mode.delimiter}"
        return self._delimiter

    # --- execution ---

    def exec(self, line, callback=None, /):
        """
        Queue a raw line for execution.

        Returns an Execution that can be awaited; `callback(error, result)` is
        called once it settles. Must be called with a running event loop.
        """
        if not isinstance(line, str):
            raise TypeError("exec() line must be a string")
        return self._queue.submit(line, callback)

    async def _dispatch(self, request):
        line = request.line.strip()
        if not line:
            return None

        if self._mode is not None and tokenize(line)[:1] != ["exit"]:
            return await call(self._mode.callback, line)

        resolution = self._registry.resolve(line)
        if not resolution.ok:
            if self._strict:
                raise resolution.fault
            self.log(self._registry.explain(resolution.fault, colorful=self._colorful))
            return None

        command = resolution.command
        if isinstance(command, Mode):
            result = await call(command.initializer, resolution.arguments)
            self._mode = command
            return result

        return await call(command.callback, resolution.arguments)

    # --- built-ins ---

    def _help(self, args):
        words = list(args.command)
        if not words:
            self.log(self._registry.listing(colorful=self._colorful))
        elif (command := self._registry.find(" ".join(words))) is not None:
            self.log(command.usage(colorful=self._colorful))
        else:
            self.log(self._registry.partial(words, colorful=self._colorful))

    def _exit(self, args):
        if self._mode is not None:
            self._mode = None
        else:
            self.hide()

    def _enter_repl(self, args):
        self.log("Entering REPL Mode. To exit, type 'exit'.")

    def _evaluate(self, line):
        try:
            code = compile(line, "<repl>", "eval")
        except SyntaxError:
            code = compile(line, "<repl>", "exec")
        try:
            result = eval(code, self._namespace)
        except SystemExit:
            # exit() and quit() leave the mode, never the process
            self._mode = None
            return None
        if result is not None:
            self.log(repr(result))
        return result

    # --- interactive loop ---

    async def prompt(self, message, /):
        """
        Ask the user one question through the session; returns the answer.
        """
        return await self.session.prompt(message)

    async def show(self):
        """
        Attach to the session and run the prompt loop until hide() (or exit).
        """
        loop = asyncio.get_running_loop()
        if self._closed is None or self._closed.done():
            self._closed = loop.create_future()
        self.session.set_delimiter(self._prompt_text())
        self.session.attach(self)
        await self._closed

    def hide(self):
        self.session.detach(self)
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)
        return self

    def _prompt(self):
        session = self.session
        if session.owner is not self or session.midprompt:
            return
        session.set_delimiter(self._prompt_text())
        future = session.prompt()
        # answers must not be mistaken for lines submitted by a running action
        future.add_done_callback(self._answered, context=contextvars.Context())

    def _answered(self, future):
        if future.cancelled():
            return
        if (error := future.exception()) is not None:
            self.session.detach(self)
            if self._closed is not None and not self._closed.done():
                if isinstance(error, (EOFError, KeyboardInterrupt)):
                    self._closed.set_result(None)
                else:
                    self._closed.set_exception(error)
            return
        if (line := future.result()) is None:
            return
        self.exec(line, self._executed)

    def _executed(self, error, result):
        if isinstance(error, ShellException):
            trigger(
                error,
                shell=True,
                echo=self.log,
                prog=self._name,
                colorful=self._colorful,
                fancy=self._fancy,
            )
        elif error is not None:
            self.log(f"{type(error).__name__}: {error}")
        self._prompt()

    def __repr__(self):
        return f"shell(name={self._name!r}, delimiter={self._delimiter!r})"


def invoke(shell, line, /):
    """
    Run one line on a fresh event loop and return its result.

    Raises
    - TypeError: when shell is not a Shell or line is not a string.
    - ShellException: when the execution failed.
    """
    if not isinstance(shell, Shell):
        raise TypeError("invoke() first argument must be a Shell")
    if not isinstance(line, str):
        raise TypeError("invoke() second argument must be a string")

    async def main():
        return await shell.exec(line)

    return asyncio.run(main())


__all__ = (
    "Shell",
    "invoke",
)
