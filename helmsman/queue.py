"""
Helmsman execution queue: one action at a time, in submission order.

Scope
- Outcome: tagged (error, result) pair delivered exactly once per request.
- Sink: one-shot completion callable handed to callback-style actions.
- Request: a raw line waiting for its turn, plus its Execution handle.
- Execution: awaitable handle that also accepts node-style callbacks fn(err, result).
- ExecutionQueue: strict FIFO drainer around an injected dispatch coroutine.

Behavior
- Requests run one at a time; the next one starts only after the current action
  completed (returned, raised, or fired its sink). An action that never fires
  its sink stalls the queue.
- Requests submitted while an action is running are recorded as that action's
  children (a context variable identifies the submitter) and run, in order,
  while the action is suspended. An action may therefore await its own nested
  executions without deadlocking the queue.
- Action failures never halt the queue: they are delivered as ActionError
  (routing faults from strict shells are delivered unchanged).

Calling conventions (see call())
- action(payload) -> result: the return value is the result (awaited if awaitable).
- action(payload, sink): the result is whatever the sink receives.
"""
import asyncio
import contextvars
import inspect
from collections import deque, namedtuple

from .faults import ShellException, ActionError
from .utils import Unset

_running = contextvars.ContextVar("running", default=None)


class Outcome(namedtuple("Outcome", ("error", "result"))):
    """
    Result of one execution: exactly one of `error` or `result` is meaningful.
    """
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None

    def unwrap(self):
        """
        Return the result, or raise the error.
        """
        if self.error is not None:
            raise self.error
        return self.result


class Sink:
    """
    One-shot completion callable: sink(error=None, result=None).

    A non-exception error value is wrapped in ActionError. Calling a sink a
    second time raises RuntimeError.
    """

    def __init__(self, future, /):
        self._future = future
        self._fired = False

    @property
    def fired(self):
        return self._fired

    def __call__(self, error=None, result=None):
        if self._fired:
            raise RuntimeError("sink was already fired")
        self._fired = True
        if self._future.done():
            return
        if error is None:
            self._future.set_result(result)
        elif isinstance(error, ShellException):
            self._future.set_exception(error)
        elif isinstance(error, Exception):
            self._future.set_exception(ActionError(str(error) or type(error).__name__, error=error))
        else:
            self._future.set_exception(ActionError(str(error), error=error))


def _arity(callback):
    try:
        parameters = inspect.signature(callback).parameters.values()
    except (TypeError, ValueError):
        return 1
    # parameters with defaults never receive the sink
    return sum(
        parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and parameter.default is inspect.Parameter.empty
        for parameter in parameters
    )


async def call(callback, payload, /):
    """
    Invoke an action with its payload and return its result.

    Callables requiring two positional parameters receive a Sink and complete
    when it fires; any other callable completes with its (awaited) return value.
    """
    if callback is None or callback is Unset:
        return None

    if _arity(callback) >= 2:
        future = asyncio.get_running_loop().create_future()
        sink = Sink(future)
        returned = callback(payload, sink)
        if inspect.isawaitable(returned):
            returned = await returned
            # coroutine actions may finish by returning instead of firing the sink
            if not sink.fired:
                sink(None, returned)
        return await future

    result = callback(payload)
    if inspect.isawaitable(result):
        result = await result
    return result


class Execution:
    """
    Handle on a submitted line.

    - `await execution` yields the result or raises the error.
    - add_done_callback(fn) calls fn(error, result) once the execution settles;
      the callback runs through the event loop, in the context it was
      registered from.
    """

    def __init__(self, future, line, /):
        self._future = future
        self._line = line

    @property
    def line(self):
        return self._line

    def __await__(self):
        return self._future.__await__()

    def done(self):
        return self._future.done()

    def result(self):
        return self._future.result()

    def exception(self):
        return self._future.exception()

    def cancel(self):
        return self._future.cancel()

    def add_done_callback(self, callback, /):
        if not callable(callback):
            raise TypeError("add_done_callback() argument must be callable")

        def deliver(future):
            if future.cancelled():
                return callback(asyncio.CancelledError(), None)
            # retrieving the exception keeps asyncio from reporting it as unhandled
            if (error := future.exception()) is not None:
                return callback(error, None)
            return callback(None, future.result())

        self._future.add_done_callback(deliver, context=contextvars.copy_context())
        return self

    def _settle(self, outcome, /):
        if self._future.done():
            return
        if outcome.error is not None:
            self._future.set_exception(outcome.error)
        else:
            self._future.set_result(outcome.result)

    def __repr__(self):
        state = "done" if self._future.done() else "pending"
        return f"execution(line={self._line!r}, state={state!r})"


class Request:
    __slots__ = ("line", "execution", "children", "wake", "settled")

    def __init__(self, line, execution, /):
        self.line = line
        self.execution = execution
        self.children = deque()
        self.wake = asyncio.Event()
        self.settled = False


class ExecutionQueue:
    """
    Strict FIFO queue driving an injected `dispatch(request)` coroutine.

    dispatch returns the result of the request or raises; its failures are
    turned into Outcome errors (see module docstring).
    """

    def __init__(self, dispatch, /):
        if not callable(dispatch):
            raise TypeError("ExecutionQueue() argument must be callable")
        self._dispatch = dispatch
        self._pending = deque()
        self._drainer = None
        self._current = None

    @property
    def busy(self):
        return self._current is not None

    def __len__(self):
        return len(self._pending)

    def submit(self, line, /, callback=None):
        """
        Enqueue a raw line and return its Execution handle.

        Must be called with a running event loop.
        """
        loop = asyncio.get_running_loop()
        request = Request(line, Execution(loop.create_future(), line))
        if callback is not None:
            request.execution.add_done_callback(callback)

        parent = _running.get()
        if parent is not None and not parent.settled:
            parent.children.append(request)
            parent.wake.set()
        else:
            self._pending.append(request)
            if self._drainer is None or self._drainer.done():
                self._drainer = loop.create_task(self._drain())

        return request.execution

    async def _drain(self):
        while self._pending:
            await self._run(self._pending.popleft())

    async def _invoke(self, request):
        try:
            result = await self._dispatch(request)
        except ShellException as fault:
            return Outcome(fault, None)
        except Exception as error:
            return Outcome(ActionError(str(error) or type(error).__name__, error=error), None)
        return Outcome(None, result)

    async def _run(self, request):
        loop = asyncio.get_running_loop()
        outer, self._current = self._current, request

        # the action task inherits a context marking it as the running request
        token = _running.set(request)
        try:
            task = loop.create_task(self._invoke(request))
        finally:
            _running.reset(token)

        try:
            while True:
                if task.done() and not request.settled:
                    request.settled = True
                    if task.cancelled():
                        request.execution.cancel()
                    else:
                        request.execution._settle(task.result())
                if request.children:
                    await self._run(request.children.popleft())
                    continue
                if task.done():
                    break
                request.wake.clear()
                waiter = loop.create_task(request.wake.wait())
                try:
                    await asyncio.wait((task, waiter), return_when=asyncio.FIRST_COMPLETED)
                finally:
                    waiter.cancel()
        finally:
            self._current = outer


__all__ = (
    "Outcome",
    "Sink",
    "Execution",
    "Request",
    "ExecutionQueue",
    "call",
)
