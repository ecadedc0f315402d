"""
Combinator cursors.

Each combinator owns the cursor(s) it wraps and re-exposes a transformed
sequence through the cursor protocol. Work only happens when the downstream
consumer calls ``valid()``, ``current()``, ``key()`` or ``advance()``; the
exceptions are ReduceCursor, which drains its upstream on ``reset()``, and
CacheCursor, which keeps what it has seen.
"""

from abc import abstractmethod
from typing import Any, Callable, Hashable, List, Optional, Tuple

from .cursor import Cursor, Rekeyed, adapt_callback, is_iterable, to_cursor
from .models import RecursionMode, ZipMode
from .utils import PreconditionError


class MapCursor(Cursor):
    """Transforms values with ``fn(value, key, arg)``.

    The callback may return ``Rekeyed(value, key)`` to change the key of the
    element. Its result is computed once per position.
    """

    def __init__(self, upstream: Cursor, fn: Callable, arg: Any = None):
        self._upstream = upstream
        self._fn = adapt_callback(fn, 3)
        self._arg = arg
        self._computed = False
        self._value = None
        self._key = None

    def _compute(self):
        if self._computed:
            return
        if self._upstream.valid():
            key = self._upstream.key()
            result = self._fn(self._upstream.current(), key, self._arg)
            if isinstance(result, Rekeyed):
                self._value, self._key = result.value, result.key
            else:
                self._value, self._key = result, key
        else:
            self._value = self._key = None
        self._computed = True

    def valid(self):
        return self._upstream.valid()

    def current(self):
        self._compute()
        return self._value

    def key(self):
        self._compute()
        return self._key

    def advance(self):
        self._upstream.advance()
        self._computed = False
        self._value = self._key = None

    def reset(self):
        self._upstream.reset()
        self._computed = False
        self._value = self._key = None


class FilterCursor(Cursor):
    """Keeps the elements for which ``fn(value, key)`` is truthy."""

    def __init__(self, upstream: Cursor, fn: Callable):
        self._upstream = upstream
        self._fn = adapt_callback(fn, 2)
        self._checked = False

    def _settle(self):
        if self._checked:
            return
        upstream = self._upstream
        while upstream.valid() and not self._fn(upstream.current(), upstream.key()):
            upstream.advance()
        self._checked = True

    def valid(self):
        self._settle()
        return self._upstream.valid()

    def current(self):
        return self._upstream.current() if self.valid() else None

    def key(self):
        return self._upstream.key() if self.valid() else None

    def advance(self):
        if self.valid():
            self._upstream.advance()
            self._checked = False

    def reset(self):
        self._upstream.reset()
        self._checked = False


class ReindexCursor(Cursor):
    """Replaces keys with the arithmetic sequence ``start, start+step, ...``."""

    def __init__(self, upstream: Cursor, start=0, step=1):
        self._upstream = upstream
        self._start = start
        self._step = step
        self._idx = start

    def valid(self):
        return self._upstream.valid()

    def current(self):
        return self._upstream.current()

    def key(self):
        return self._idx if self._upstream.valid() else None

    def advance(self):
        if self._upstream.valid():
            self._upstream.advance()
            self._idx += self._step

    def reset(self):
        self._upstream.reset()
        self._idx = self._start


class FlipCursor(Cursor):
    """Exposes keys as values and/or values as keys."""

    def __init__(self, upstream: Cursor, flip_values: bool = True, flip_keys: bool = True):
        self._upstream = upstream
        self._flip_values = flip_values
        self._flip_keys = flip_keys

    def valid(self):
        return self._upstream.valid()

    def current(self):
        return self._upstream.key() if self._flip_values else self._upstream.current()

    def key(self):
        return self._upstream.current() if self._flip_keys else self._upstream.key()

    def advance(self):
        self._upstream.advance()

    def reset(self):
        self._upstream.reset()


class RangeCursor(Cursor):
    """Numbers from ``start`` to ``stop`` inclusive.

    A negative step counts down; a zero step repeats ``start`` forever.
    """

    def __init__(self, start, stop, step=1):
        self._start = start
        self._stop = stop
        self._step = step
        self._cur = start
        self._idx = 0

    def valid(self):
        if self._step > 0:
            return self._cur <= self._stop
        if self._step < 0:
            return self._cur >= self._stop
        return True

    def current(self):
        return self._cur if self.valid() else None

    def key(self):
        return self._idx if self.valid() else None

    def advance(self):
        if self.valid():
            self._cur += self._step
            self._idx += 1

    def reset(self):
        self._cur = self._start
        self._idx = 0


class ReduceCursor(Cursor):
    """A one-element sequence holding the reduction of its upstream.

    ``fn(accumulator, value, key)`` is applied to every upstream element when
    the cursor is reset; the result is exposed under key 0.
    """

    def __init__(self, upstream: Cursor, fn: Callable, seed: Any = None):
        self._upstream = upstream
        self._fn = adapt_callback(fn, 3)
        self._seed = seed
        self._result = None
        self._idx = 1

    def valid(self):
        return self._idx == 0

    def current(self):
        return self._result if self._idx == 0 else None

    def key(self):
        return 0 if self._idx == 0 else None

    def advance(self):
        self._idx = 1

    def reset(self):
        acc = self._seed
        upstream = self._upstream
        upstream.reset()
        while upstream.valid():
            acc = self._fn(acc, upstream.current(), upstream.key())
            upstream.advance()
        self._result = acc
        self._idx = 0


class CacheCursor(Cursor):
    """Memoizes its upstream so that it is traversed only once.

    The first pass records every ``(key, value)`` pair as it is pulled. Once
    that pass steps past the last element, every later pass replays the
    recording, even if the consumer never asked for more. A pass
    that restarts before the end discards the partial recording and rewinds
    the upstream.
    """

    def __init__(self, upstream: Cursor):
        self._upstream = upstream
        self._buffer: Optional[List[Tuple[Any, Any]]] = None
        self._complete = False
        self._pos = 0

    @property
    def complete(self) -> bool:
        return self._complete

    def _record(self):
        if len(self._buffer) == self._pos:
            self._buffer.append((self._upstream.key(), self._upstream.current()))

    def valid(self):
        if self._complete:
            return self._pos < len(self._buffer)
        if self._upstream.valid():
            return True
        if self._buffer is not None:
            self._complete = True
        return False

    def current(self):
        if self._complete:
            return self._buffer[self._pos][1] if self._pos < len(self._buffer) else None
        if self._buffer is None or not self._upstream.valid():
            return None
        self._record()
        return self._buffer[self._pos][1]

    def key(self):
        if self._complete:
            return self._buffer[self._pos][0] if self._pos < len(self._buffer) else None
        if self._buffer is None or not self._upstream.valid():
            return None
        self._record()
        return self._buffer[self._pos][0]

    def advance(self):
        if self._complete:
            if self._pos < len(self._buffer):
                self._pos += 1
            return
        if self._buffer is not None and self._upstream.valid():
            self._record()
            self._upstream.advance()
            self._pos += 1
            if not self._upstream.valid():
                self._complete = True

    def reset(self):
        self._pos = 0
        if self._complete:
            return
        self._buffer = []
        self._upstream.reset()


class LoopCursor(Cursor):
    """Repeats its upstream.

    ``times`` is the number of passes (0 = none, negative = forever) and
    ``limit`` caps the total number of elements (negative = unlimited); the
    first one reached ends the iteration. When ``test`` is set it replaces the
    pass counter: it is called each time the upstream runs out and another
    pass starts only if it returns true. The upstream is already exhausted at
    that moment, so ``test`` receives ``None`` for both value and key.

    Counters are restored by ``reset()``. Repeating requires a rewindable
    upstream; a one-shot source just ends after its first pass.
    """

    def __init__(self, upstream: Cursor, times: int = 1, limit: int = -1,
                 test: Optional[Callable] = None):
        self._upstream = upstream
        self._initial_times = times
        self._initial_limit = limit
        self._test = adapt_callback(test, 2) if test is not None else None
        self._times = times
        self._limit = limit
        self._stopped = False

    def valid(self):
        if self._stopped or self._limit == 0 or self._times == 0:
            return False
        upstream = self._upstream
        if upstream.valid():
            return True
        if self._test is not None:
            if not self._test(upstream.current(), upstream.key()):
                self._stopped = True
                return False
        else:
            if self._times > 0:
                self._times -= 1
            if self._times == 0:
                self._stopped = True
                return False
        upstream.reset()
        if not upstream.valid():
            self._stopped = True
            return False
        return True

    def current(self):
        return self._upstream.current() if self.valid() else None

    def key(self):
        return self._upstream.key() if self.valid() else None

    def advance(self):
        if self.valid():
            self._upstream.advance()
            if self._limit > 0:
                self._limit -= 1

    def reset(self):
        self._times = self._initial_times
        self._limit = self._initial_limit
        self._stopped = False
        self._upstream.reset()


class ConditionalCursor(Cursor):
    """Iterates while ``fn(value, key)`` holds; stops for good at the first failure."""

    def __init__(self, upstream: Cursor, fn: Callable):
        self._upstream = upstream
        self._fn = adapt_callback(fn, 2)
        self._checked = False
        self._failed = False

    def valid(self):
        if self._failed or not self._upstream.valid():
            return False
        if not self._checked:
            self._checked = True
            if not self._fn(self._upstream.current(), self._upstream.key()):
                self._failed = True
                return False
        return True

    def current(self):
        return self._upstream.current() if self.valid() else None

    def key(self):
        return self._upstream.key() if self.valid() else None

    def advance(self):
        if self.valid():
            self._upstream.advance()
            self._checked = False

    def reset(self):
        self._upstream.reset()
        self._checked = False
        self._failed = False


class HeadAndTailCursor(Cursor):
    """A head value followed by the elements of a tail sequence.

    With ``keep_tail_keys`` the tail keeps its own keys; otherwise the whole
    sequence is keyed 0, 1, 2, ... starting at the head (whose key is then
    still ``head_key``).
    """

    def __init__(self, head, tail, head_key=0, keep_tail_keys: bool = False):
        self._head = head
        self._tail = to_cursor(tail)
        self._head_key = head_key
        self._keep_tail_keys = keep_tail_keys
        self._idx = 0

    def valid(self):
        return self._idx == 0 or self._tail.valid()

    def current(self):
        if self._idx == 0:
            return self._head
        return self._tail.current()

    def key(self):
        if self._idx == 0:
            return self._head_key
        if not self._tail.valid():
            return None
        return self._tail.key() if self._keep_tail_keys else self._idx

    def advance(self):
        if not self.valid():
            return
        self._idx += 1
        if self._idx > 1:
            self._tail.advance()

    def reset(self):
        self._idx = 0
        self._tail.reset()


class UnfoldCursor(Cursor):
    """Expands iterable elements in place, one level deep.

    Non-iterable elements pass through; empty iterables contribute nothing.
    Keys are either the original keys of whichever sequence produced each
    element (duplicates are possible) or a flat 0-based counter.
    """

    def __init__(self, upstream: Cursor, use_original_keys: bool = False):
        self._upstream = upstream
        self._use_original_keys = use_original_keys
        self._inner: Optional[Cursor] = None
        self._index = 0

    def _next_inner(self):
        upstream = self._upstream
        while upstream.valid():
            value = upstream.current()
            if not is_iterable(value):
                break
            inner = to_cursor(value)
            inner.reset()
            if inner.valid():
                self._inner = inner
                return
            upstream.advance()
        self._inner = None

    def valid(self):
        return self._inner is not None or self._upstream.valid()

    def current(self):
        if self._inner is not None:
            return self._inner.current()
        return self._upstream.current()

    def key(self):
        if not self.valid():
            return None
        if not self._use_original_keys:
            return self._index
        if self._inner is not None:
            return self._inner.key()
        return self._upstream.key()

    def advance(self):
        if not self.valid():
            return
        self._index += 1
        if self._inner is not None:
            self._inner.advance()
            if self._inner.valid():
                return
        self._upstream.advance()
        self._next_inner()

    def reset(self):
        self._index = 0
        self._upstream.reset()
        self._next_inner()


class WalkCursor(Cursor):
    """Base for cursors whose sequence is produced by a generator of ``(key, value)`` pairs."""

    def __init__(self):
        self._gen = None
        self._pair = None

    @abstractmethod
    def _walk(self):
        ...

    def _pull(self):
        self._pair = None
        try:
            self._pair = next(self._gen)
        except StopIteration:
            self._gen = None

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
        self._gen = self._walk()
        self._pull()


class RecursiveCursor(WalkCursor):
    """Depth-first walk of a tree whose children are found by a callback.

    ``fn(value, key, depth)`` returns the children of a node as any iterable,
    or ``None`` for a leaf. Depth is 0 for the upstream's own elements. The
    callback runs when the walk reaches a node, and a child sequence is only
    iterated when the walk descends into it.
    """

    def __init__(self, upstream: Cursor, fn: Callable,
                 mode: RecursionMode = RecursionMode.SELF_FIRST):
        super().__init__()
        self._upstream = upstream
        self._fn = adapt_callback(fn, 3)
        self._mode = RecursionMode(mode)

    def _children(self, value, key, depth) -> Optional[Cursor]:
        children = self._fn(value, key, depth)
        if children is None:
            return None
        if not is_iterable(children):
            raise PreconditionError(
                f"recursive(): the children callback must return an iterable or None, "
                f"got {type(children).__name__} for key {key!r}"
            )
        return to_cursor(children)

    def _walk(self):
        mode = self._mode
        self._upstream.reset()
        # frame: [cursor, depth, (key, value) of the node whose children are being walked]
        stack = [[self._upstream, 0, None]]
        while stack:
            frame = stack[-1]
            cursor, depth, pending = frame
            if pending is not None:
                frame[2] = None
                if mode is RecursionMode.CHILD_FIRST:
                    yield pending
                cursor.advance()
                continue
            if not cursor.valid():
                stack.pop()
                continue
            key, value = cursor.key(), cursor.current()
            children = self._children(value, key, depth)
            if children is None:
                yield key, value
                cursor.advance()
                continue
            if mode is RecursionMode.SELF_FIRST:
                yield key, value
            children.reset()
            frame[2] = (key, value)
            stack.append([children, depth + 1, None])


class MultipleCursor(Cursor):
    """Iterates several cursors in lockstep.

    Each step exposes a dict mapping every source's field name to its current
    value, keyed by the step index. With ``ZipMode.ANY`` iteration goes on
    until all sources are exhausted and finished ones contribute ``None``;
    with ``ZipMode.ALL`` it stops as soon as one source is exhausted.
    """

    def __init__(self, sources: List[Tuple[Hashable, Cursor]], mode: ZipMode = ZipMode.ANY):
        self._sources = list(sources)
        self._mode = ZipMode(mode)
        self._idx = 0
        self._record = None

    def valid(self):
        if not self._sources:
            return False
        flags = [cursor.valid() for _, cursor in self._sources]
        return any(flags) if self._mode is ZipMode.ANY else all(flags)

    def current(self):
        if not self.valid():
            return None
        if self._record is None:
            self._record = {
                field: cursor.current() if cursor.valid() else None
                for field, cursor in self._sources
            }
        return self._record

    def key(self):
        return self._idx if self.valid() else None

    def advance(self):
        if not self.valid():
            return
        for _, cursor in self._sources:
            if cursor.valid():
                cursor.advance()
        self._idx += 1
        self._record = None

    def reset(self):
        for _, cursor in self._sources:
            cursor.reset()
        self._idx = 0
        self._record = None


class ChunkCursor(Cursor):
    """Groups consecutive values into tuples of ``size``; keys are chunk indexes."""

    def __init__(self, upstream: Cursor, size: int):
        self._upstream = upstream
        self._size = size
        self._chunk = None
        self._idx = 0

    def _fill(self):
        chunk = []
        upstream = self._upstream
        while upstream.valid() and len(chunk) < self._size:
            chunk.append(upstream.current())
            upstream.advance()
        self._chunk = tuple(chunk) if chunk else None

    def valid(self):
        return self._chunk is not None

    def current(self):
        return self._chunk

    def key(self):
        return self._idx if self._chunk is not None else None

    def advance(self):
        if self._chunk is not None:
            self._idx += 1
            self._fill()

    def reset(self):
        self._upstream.reset()
        self._idx = 0
        self._fill()
