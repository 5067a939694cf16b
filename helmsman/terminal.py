"""
Helmsman terminal: the default line editor, built on prompt_toolkit.

Terminal implements the LineEditor protocol of helmsman.session:
- reads run through PromptSession.prompt_async under patch_stdout, so output
  printed while a line is active lands above the prompt;
- done() exits the running application with a None answer;
- every printable key and the editing keys (tab, arrows, backspace, delete)
  are reported as KeyEvents once their edit is applied.
"""
import asyncio
import functools

from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.patch_stdout import patch_stdout

from .session import KeyEvent


_EDITS = {
    "tab": None,
    "up": lambda buffer, data: buffer.history_backward(),
    "down": lambda buffer, data: buffer.history_forward(),
    "left": lambda buffer, data: buffer.cursor_left(),
    "right": lambda buffer, data: buffer.cursor_right(),
    "backspace": lambda buffer, data: buffer.delete_before_cursor(1),
    "delete": lambda buffer, data: buffer.delete(1),
}


class Terminal:

    def __init__(self, history=None, /):
        self._history = history if history is not None else InMemoryHistory()
        self._session = None
        self._handlers = []
        self._default = ""
        self._lock = asyncio.Lock()

    def _build(self):
        bindings = KeyBindings()

        @bindings.add(Keys.Any)
        def _(event):
            self._press(None, event)

        for name in _EDITS:
            bindings.add(name)(functools.partial(self._press, name))

        return PromptSession(history=self._history, key_bindings=bindings)

    def _press(self, name, event, /):
        """
        Apply the edit bound to `name` (printable keys insert their data), then report the key.
        """
        buffer = event.current_buffer
        if name is None:
            buffer.insert_text(event.data)
            name = event.data
        elif (edit := _EDITS[name]) is not None:
            edit(buffer, event.data)
        self._emit(KeyEvent(name, event.data))

    @property
    def _app(self):
        if self._session is None or not self._session.app.is_running:
            return None
        return self._session.app

    def _emit(self, event):
        for handler in tuple(self._handlers):
            handler(event)

    def on_keypress(self, handler, /):
        self._handlers.append(handler)
        return handler

    @property
    def line(self):
        if (app := self._app) is None:
            return self._default
        return app.current_buffer.text

    @line.setter
    def line(self, text):
        if (app := self._app) is None:
            self._default = str(text)
        else:
            app.current_buffer.text = str(text)

    def get_cursor_position(self):
        if (app := self._app) is None:
            return len(self._default)
        return app.current_buffer.cursor_position

    def set_cursor_position(self, position, /):
        if (app := self._app) is not None:
            app.current_buffer.cursor_position = max(0, min(position, len(app.current_buffer.text)))

    async def read(self, message):
        # an abandoned read may still be tearing its application down
        async with self._lock:
            if self._session is None:
                self._session = self._build()
            self._session.app.erase_when_done = False
            default, self._default = self._default, ""
            with patch_stdout():
                return await self._session.prompt_async(message, default=default)

    def done(self):
        if (app := self._app) is None or (app.future is not None and app.future.done()):
            return
        app.erase_when_done = True
        app.exit(result=None)

    def render(self):
        if (app := self._app) is not None:
            app.invalidate()

    def clean(self):
        if (app := self._app) is not None:
            app.renderer.erase()

    def write(self, text, /):
        print_formatted_text(text, end="")


__all__ = (
    "Terminal",
)
