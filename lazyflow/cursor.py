"""
Cursor protocol and source adapters.

A cursor is a stateful, pull-based iteration object:

    cursor.reset()
    while cursor.valid():
        use(cursor.key(), cursor.current())
        cursor.advance()

Every pipeline stage implements this protocol. ``to_cursor()`` converts the
supported source shapes (mappings, sequences, callables, Python iterables and
scalars) into cursors; the shape is recognised once, when the source is
adapted.
"""

import enum
import inspect
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Callable, Iterator, List, Optional, Tuple

from .utils import InvalidArgumentError


class Signal(enum.Enum):
    """Sentinel values that can never be mistaken for data."""
    STOP = enum.auto()
    DONE = enum.auto()

    def __repr__(self):
        return f"<{self.name}>"


STOP = Signal.STOP
DONE = Signal.DONE


class Rekeyed:
    """A value paired with the key it should be exposed under.

    Returned by map and generator callbacks that want to change the key of the
    element they produce.
    """
    __slots__ = ("value", "key")

    def __init__(self, value, key):
        self.value = value
        self.key = key

    def __repr__(self):
        return f"Rekeyed({self.value!r}, {self.key!r})"

    def __eq__(self, other):
        return isinstance(other, Rekeyed) and (self.value, self.key) == (other.value, other.key)


class Cursor(ABC):
    """Base class of every sequence in the engine."""

    __slots__ = ()

    @abstractmethod
    def valid(self) -> bool:
        ...

    @abstractmethod
    def current(self) -> Any:
        ...

    @abstractmethod
    def key(self) -> Any:
        ...

    @abstractmethod
    def advance(self) -> None:
        ...

    @abstractmethod
    def reset(self) -> None:
        ...

    def __iter__(self) -> Iterator[Any]:
        self.reset()
        while self.valid():
            yield self.current()
            self.advance()

    def items(self) -> Iterator[Tuple[Any, Any]]:
        """Rewind and yield ``(key, value)`` pairs."""
        self.reset()
        while self.valid():
            yield self.key(), self.current()
            self.advance()


class EmptyCursor(Cursor):
    """A sequence with no elements. Stateless; use the EMPTY instance."""

    __slots__ = ()

    def valid(self):
        return False

    def current(self):
        return None

    def key(self):
        return None

    def advance(self):
        pass

    def reset(self):
        pass

    def __repr__(self):
        return "EMPTY"


EMPTY = EmptyCursor()


class ListCursor(Cursor):
    """Iterates a sequence by index; keys are the indexes."""

    def __init__(self, items: Sequence):
        self._items = items
        self._idx = 0

    def valid(self):
        return self._idx < len(self._items)

    def current(self):
        return self._items[self._idx] if self.valid() else None

    def key(self):
        return self._idx if self.valid() else None

    def advance(self):
        if self.valid():
            self._idx += 1

    def reset(self):
        self._idx = 0


class MappingCursor(Cursor):
    """Iterates the items of a mapping in insertion order."""

    def __init__(self, mapping: Mapping):
        self._mapping = mapping
        self._it = None
        self._pair = None

    def _pull(self):
        try:
            self._pair = next(self._it)
        except StopIteration:
            self._pair = None

    def valid(self):
        return self._pair is not None

    def current(self):
        return self._pair[1] if self._pair is not None else None

    def key(self):
        return self._pair[0] if self._pair is not None else None

    def advance(self):
        if self._pair is not None:
            self._pull()

    def reset(self):
        self._it = iter(self._mapping.items())
        self._pull()


class IterableCursor(Cursor):
    """Adapts any Python iterable; keys are auto-incremented from 0.

    Rewinding calls ``iter()`` again, so re-iterable sources (ranges, sets,
    lists) restart while one-shot iterators and generators just continue where
    they stopped, usually yielding nothing.
    """

    def __init__(self, iterable: Iterable):
        self._iterable = iterable
        self._it = None
        self._idx = -1
        self._has_value = False
        self._value = None

    def _pull(self):
        try:
            self._value = next(self._it)
            self._has_value = True
            self._idx += 1
        except StopIteration:
            self._value = None
            self._has_value = False

    def valid(self):
        return self._has_value

    def current(self):
        return self._value

    def key(self):
        return self._idx if self._has_value else None

    def advance(self):
        if self._has_value:
            self._pull()

    def reset(self):
        self._it = iter(self._iterable)
        self._idx = -1
        self._pull()


class FunctionState:
    """Per-call state handed to one-argument generator callables.

    ``key`` is the auto-incremented key of the element being produced; the
    callable may assign a different key to it. ``data`` is a free slot the
    callable may use to carry a value between calls.
    """
    __slots__ = ("key", "data")

    def __init__(self, data=None):
        self.key = 0
        self.data = data


class FunctionCursor(Cursor):
    """Calls a function once per step until it returns STOP."""

    def __init__(self, fn: Callable, data=None):
        self._fn = fn
        # builtins without a readable signature are called with no arguments
        self._takes_state = arity(fn, default=0) >= 1
        self._initial_data = data
        self._state = FunctionState(data)
        self._counter = 0
        self._value = None
        self._key = None
        self._valid = False

    def _call(self):
        self._state.key = self._counter
        result = self._fn(self._state) if self._takes_state else self._fn()
        if result is STOP:
            self._value = self._key = None
            self._valid = False
            return
        if isinstance(result, Rekeyed):
            self._value, self._key = result.value, result.key
        else:
            self._value, self._key = result, self._state.key
        self._counter += 1
        self._valid = True

    def valid(self):
        return self._valid

    def current(self):
        return self._value

    def key(self):
        return self._key

    def advance(self):
        if self._valid:
            self._call()

    def reset(self):
        self._counter = 0
        self._state = FunctionState(self._initial_data)
        self._call()


class SingleValueCursor(Cursor):
    """Exposes one value under one key."""

    def __init__(self, value, key=0):
        self._value = value
        self._key = key
        self._read = False

    def valid(self):
        return not self._read

    def current(self):
        return None if self._read else self._value

    def key(self):
        return None if self._read else self._key

    def advance(self):
        self._read = True

    def reset(self):
        self._read = False


class AppendCursor(Cursor):
    """Iterates several cursors one after the other, keeping their keys."""

    def __init__(self, cursors: Optional[List[Cursor]] = None):
        self._cursors = list(cursors or [])
        self._idx = 0

    def append(self, cursor: Cursor) -> None:
        self._cursors.append(cursor)

    def _settle(self):
        while self._idx < len(self._cursors) and not self._cursors[self._idx].valid():
            self._idx += 1
            if self._idx < len(self._cursors):
                self._cursors[self._idx].reset()

    def valid(self):
        self._settle()
        return self._idx < len(self._cursors)

    def current(self):
        return self._cursors[self._idx].current() if self.valid() else None

    def key(self):
        return self._cursors[self._idx].key() if self.valid() else None

    def advance(self):
        if self.valid():
            self._cursors[self._idx].advance()

    def reset(self):
        self._idx = 0
        if self._cursors:
            self._cursors[0].reset()


class LimitCursor(Cursor):
    """Skips ``offset`` elements, then exposes at most ``count`` (-1 = all)."""

    def __init__(self, upstream: Cursor, offset: int = 0, count: int = -1):
        self._upstream = upstream
        self._offset = offset
        self._count = count
        self._pos = 0

    def valid(self):
        if 0 <= self._count <= self._pos:
            return False
        return self._upstream.valid()

    def current(self):
        return self._upstream.current() if self.valid() else None

    def key(self):
        return self._upstream.key() if self.valid() else None

    def advance(self):
        if self.valid():
            self._upstream.advance()
            self._pos += 1

    def reset(self):
        self._pos = 0
        self._upstream.reset()
        for _ in range(self._offset):
            if not self._upstream.valid():
                break
            self._upstream.advance()


class NoRewindCursor(Cursor):
    """Guard that lets a cursor be rewound only once.

    The first ``reset()`` is forwarded; later ones are ignored so that the
    wrapped cursor continues from its current position.
    """

    def __init__(self, upstream: Cursor):
        self._upstream = upstream
        self._started = False

    def valid(self):
        return self._upstream.valid()

    def current(self):
        return self._upstream.current()

    def key(self):
        return self._upstream.key()

    def advance(self):
        self._upstream.advance()

    def reset(self):
        if not self._started:
            self._started = True
            self._upstream.reset()


# ---------- adapters ----------

def arity(fn: Callable, limit: int = 3, default: int = 1) -> int:
    """Number of positional arguments ``fn`` can take, capped at ``limit``.

    Callables whose signature cannot be inspected (some builtins) are assumed
    to take ``default`` arguments.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return min(default, limit)
    count = 0
    for param in sig.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return limit
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            count += 1
    return min(count, limit)


def adapt_callback(fn: Callable, max_args: int) -> Callable:
    """Wrap ``fn`` so it can always be called with ``max_args`` positional arguments."""
    if not callable(fn):
        raise InvalidArgumentError(f"Expected a callable, got {type(fn).__name__}")
    n = arity(fn, max_args)
    if n >= max_args:
        return fn
    return lambda *args: fn(*args[:n])


def _is_text(value) -> bool:
    return isinstance(value, (str, bytes, bytearray))


def is_iterable(value) -> bool:
    """Whether ``value`` is a collection that unfolding would expand."""
    if isinstance(value, Cursor):
        return True
    if _is_text(value):
        return False
    if hasattr(value, "get_cursor") and not isinstance(value, type):
        return True
    return isinstance(value, Iterable) and not isinstance(value, type)


def to_cursor(source, wrap_scalars: bool = False, key=0) -> Cursor:
    """Convert a source into a cursor.

    Raises InvalidArgumentError for values that are not iterable, unless
    ``wrap_scalars`` is set, in which case they become a one-element sequence
    under ``key``.
    """
    if isinstance(source, Cursor):
        return source
    if not isinstance(source, type):
        if hasattr(source, "get_cursor"):
            return to_cursor(source.get_cursor(), wrap_scalars, key)
        if isinstance(source, Mapping):
            return MappingCursor(source)
        if isinstance(source, Sequence) and not _is_text(source):
            return ListCursor(source)
        if callable(source):
            return FunctionCursor(source)
        if isinstance(source, Iterable) and not _is_text(source):
            return IterableCursor(source)
    if wrap_scalars:
        return SingleValueCursor(source, key)
    raise InvalidArgumentError(f"Cannot iterate over a value of type {type(source).__name__}")
