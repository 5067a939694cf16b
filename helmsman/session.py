"""
Helmsman session: the prompt coordinator shared by every shell of one terminal.

Scope
- LineEditor: protocol of the injected line editor (helmsman.terminal.Terminal
  is the default implementation on top of prompt_toolkit).
- KeyEvent: one raw keypress reported by the editor.
- Session: state machine around the editor that owns the live input line and
  lets asynchronous log output interleave with it.

States
- idle: no line requested.
- prompting (midprompt): one read is outstanding.
- paused: the live line is hidden so output can be written above it.

Invariants
- At most one read is outstanding; a second prompt() raises PromptReentrancyError.
- pause() followed by resume() restores the typed text with the cursor at its end.
- At most one owner is attached; attach() by another owner raises SessionOwnershipError.

Logging
- log(*args) goes through the session Pipeline; when a line is active the line
  is paused, the output written, and the line resumed.
"""
import asyncio
from collections import namedtuple
from typing import Protocol, runtime_checkable

from .faults import PromptReentrancyError, SessionOwnershipError, PromptFailureWarning, trigger
from .pipeline import Pipeline
from .utils import Emitter


@runtime_checkable
class LineEditor(Protocol):
    """
    What a session needs from a line editor.

    - read(message): coroutine answering with the submitted line, or None when
      the read was abandoned through done(). EOFError/KeyboardInterrupt
      propagate. `line` is cleared once a read completes.
    - done(): abandon the outstanding read.
    - line: the current input buffer (settable; set before read() it becomes
      the default text of the next read).
    - get_cursor_position()/set_cursor_position(pos)
    - render(): redraw the prompt and the line.
    - clean(): erase the prompt and the line from the screen.
    - write(text): print text above the prompt.
    - on_keypress(handler): register handler(KeyEvent).
    """

    line: str

    async def read(self, message): ...

    def done(self): ...

    def get_cursor_position(self): ...

    def set_cursor_position(self, position): ...

    def render(self): ...

    def clean(self): ...

    def write(self, text): ...

    def on_keypress(self, handler): ...


KeyEvent = namedtuple("KeyEvent", ("name", "data"))
KeyEvent.__doc__ = "A keypress reported by a line editor: key name and inserted data."


class Session(Emitter):
    """
    Prompt coordinator.

    Construct one per terminal and pass it to every shell that should share
    it. When no editor is given the prompt_toolkit Terminal is created.

    Events
    - "client_keypress": every raw KeyEvent.
    - "keypress": {"key": name, "value": stripped line}, only while attached;
      also forwarded to the owner's emit().
    """

    def __init__(self, editor=None, pipeline=None, /):
        super().__init__()
        if editor is None:
            from .terminal import Terminal
            editor = Terminal()
        if not isinstance(editor, LineEditor):
            raise TypeError("Session() editor must implement the LineEditor protocol")
        self._editor = editor
        self._pipeline = pipeline if pipeline is not None else Pipeline()
        self._owner = None
        self._midprompt = False
        self._paused = False
        self._cancelled = False
        self._delimiter = ""
        self._generation = 0
        self._editor.on_keypress(self._keypress)

    @property
    def editor(self):
        return self._editor

    @property
    def pipeline(self):
        return self._pipeline

    @property
    def owner(self):
        return self._owner

    @property
    def midprompt(self):
        return self._midprompt

    @property
    def paused(self):
        return self._paused

    @property
    def cancelled(self):
        return self._cancelled

    @property
    def delimiter(self):
        return self._delimiter

    def set_delimiter(self, delimiter, /):
        self._delimiter = str(delimiter).strip() + " "
        return self

    def attach(self, owner, /):
        """
        Make `owner` the shell driving the prompt, then ask it for a line.
        """
        if self._owner is not None and self._owner is not owner:
            raise SessionOwnershipError(f"the session is already attached to {self._owner!r}")
        self._owner = owner
        self.refresh()
        owner._prompt()
        return self

    def detach(self, owner, /):
        """
        Release the session when `owner` holds it; its active line is abandoned.
        """
        if self._owner is not owner:
            return self
        if self._midprompt:
            self._abandon()
        self._owner = None
        return self

    def prompt(self, message=None, /):
        """
        Start a read and return a future of the answer (None when abandoned).

        `message` replaces the delimiter for this read only.
        """
        if self._midprompt:
            raise PromptReentrancyError("a prompt was requested while another one is active")
        self._midprompt = True
        self._cancelled = False
        self._generation += 1
        message = self._delimiter if message is None else str(message).strip() + " "
        return asyncio.ensure_future(self._read(self._generation, message))

    async def _read(self, generation, message):
        if generation != self._generation:
            return None
        try:
            answer = await self._editor.read(message)
        except (EOFError, KeyboardInterrupt):
            self._settle(generation)
            raise
        except Exception as error:
            self._settle(generation)
            trigger(
                PromptFailureWarning(f"the line editor failed: {error}"),
                shell=True,
                echo=self.log,
            )
            return None
        if not self._settle(generation) or self._cancelled:
            return None
        return answer

    def _settle(self, generation):
        # a read abandoned by refresh() must not reset the state of its successor
        if generation != self._generation:
            return False
        self._midprompt = False
        self._paused = False
        return True

    def refresh(self):
        """
        Abandon the active line and have the owner start a fresh one.

        Returns False when there is no active line or no owner.
        """
        if self._owner is None or not self._midprompt:
            return False
        self._abandon()
        self._owner._prompt()
        return True

    def _abandon(self):
        self._editor.clean()
        self._cancelled = True
        self._editor.done()
        self._generation += 1
        self._midprompt = False
        self._paused = False
        self._cancelled = False

    def pause(self):
        """
        Hide the live line; return its content, or False when not prompting.
        """
        if not self._midprompt or self._paused:
            return False
        line = self._editor.line
        self._editor.clean()
        self._paused = True
        return line

    def resume(self, line=None, /):
        if not self._midprompt or not self._paused:
            return False
        if line is not None:
            self._editor.line = line
        self._editor.set_cursor_position(len(self._editor.line))
        self._paused = False
        self._editor.render()
        return True

    def redraw(self):
        if self._midprompt and not self._paused:
            self._editor.render()
        return self

    def log(self, *args):
        """
        Write through the pipeline without disturbing the live line.
        """
        args = self._pipeline.apply(args)
        if args is None:
            return self
        if self._midprompt and not self._paused:
            line = self.pause()
            self._pipeline.write(args)
            self.resume(line)
        else:
            self._pipeline.write(args)
        return self

    def imprint(self):
        """
        Log the delimiter and the current line, as if the line was submitted.
        """
        return self.log(self._delimiter + self._editor.line)

    def _keypress(self, event):
        self.emit("client_keypress", event)
        if self._owner is None:
            return
        payload = {"key": event.name, "value": self._editor.line.strip()}
        self.emit("keypress", payload)
        self._owner.emit("keypress", payload)


__all__ = (
    "LineEditor",
    "KeyEvent",
    "Session",
)
