"""
Helmsman pipeline log: a single output transform in front of the console.

- pipe(fn) installs the transform (last writer wins, pipe(None) removes it).
- apply(args) runs it: a falsy return suppresses the output, a non-sequence
  return is wrapped into a one-element tuple.
- write(args) prints through rich with markup and highlighting disabled, so
  user text is printed verbatim.
"""
from collections.abc import Sequence

from rich.console import Console


class Pipeline:

    def __init__(self, console=None, /):
        self._console = console if console is not None else Console()
        self._transform = None

    @property
    def console(self):
        return self._console

    @property
    def transform(self):
        return self._transform

    def pipe(self, transform, /):
        if transform is not None and not callable(transform):
            raise TypeError("pipe() argument must be callable or None")
        self._transform = transform
        return self

    def apply(self, args, /):
        """
        Return the arguments to print, or None when the transform suppressed them.
        """
        args = list(args)
        if self._transform is None:
            return tuple(args)
        transformed = self._transform(args)
        if not transformed:
            return None
        if isinstance(transformed, Sequence) and not isinstance(transformed, str):
            return tuple(transformed)
        return (transformed,)

    def write(self, args, /):
        self._console.print(*args, markup=False, highlight=False)

    def log(self, *args):
        """
        Transform then print. Returns False when the output was suppressed.
        """
        if (args := self.apply(args)) is None:
            return False
        self.write(args)
        return True


__all__ = (
    "Pipeline",
)
