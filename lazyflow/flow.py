"""
The Flow facade.

``Flow`` chains combinator cursors behind a fluent interface and adds the
operations that need the whole data set (sorting, reversing, dropping,
swapping), which materialize it into an ordered dict first.
"""

import functools
import logging
import random
import re
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError

from .combinators import (
    CacheCursor,
    ChunkCursor,
    ConditionalCursor,
    FilterCursor,
    FlipCursor,
    HeadAndTailCursor,
    LoopCursor,
    MapCursor,
    MultipleCursor,
    RangeCursor,
    RecursiveCursor,
    ReduceCursor,
    ReindexCursor,
    UnfoldCursor,
)
from .cursor import (
    DONE,
    EMPTY,
    AppendCursor,
    Cursor,
    LimitCursor,
    MappingCursor,
    NoRewindCursor,
    SingleValueCursor,
    adapt_callback,
    is_iterable,
    to_cursor,
)
from .models import (
    ChunkOptions,
    CombineOptions,
    LoopOptions,
    PageOptions,
    RecursionMode,
    RegexMode,
    SliceOptions,
    SortKind,
    SortOptions,
    ZipMode,
)
from .regex import RegexCursor
from .utils import InvalidArgumentError, invalid_options

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


def _natural_key(value, fold_case=False):
    text = str(value)
    if fold_case:
        text = text.casefold()
    return [(0, int(part)) if part.isdigit() else (1, part) for part in _DIGITS.split(text)]


def _validate(operation: str, model, **kwargs):
    try:
        return model(**kwargs)
    except ValidationError as e:
        raise invalid_options(operation, e) from e


class Flow(Cursor):
    """
    A fluent builder of lazy iteration pipelines.

    Each chained operation wraps the current cursor in a new one, so no
    intermediate results are stored; data is only pulled when the flow is
    iterated or a terminal operation runs. Operations that need the whole
    data set (sorting, reversing, dropping from the end, swapping) materialize
    it into an ordered dict first, and the dict is turned back into a cursor
    the next time the flow is iterated.

    A Flow is itself a cursor, so it can be used as the source of another one.
    """

    def __init__(self, source=None):
        self._cursor: Optional[Cursor] = None
        self._data: Optional[Dict[Any, Any]] = None
        self._fetching = False
        self.set_cursor([] if source is None else source)

    def __repr__(self):
        if self._data is not None:
            return f"<Flow materialized={len(self._data)}>"
        return f"<Flow cursor={type(self._cursor).__name__}>"

    # --------- source constructors ----------

    @classmethod
    def from_(cls, source) -> "Flow":
        return cls(source)

    @classmethod
    def combine(cls, inputs, fields=None, mode=ZipMode.ANY) -> "Flow":
        """Iterate several sources in parallel.

        Each element is a dict with one entry per input, named after the
        input's key in ``inputs`` or after the matching entry of ``fields``.
        """
        pairs = list(to_cursor(inputs).items())
        options = _validate("combine", CombineOptions, fields=fields, mode=mode, input_count=len(pairs))
        sources = [
            (options.fields[i] if options.fields is not None else k, to_cursor(src))
            for i, (k, src) in enumerate(pairs)
        ]
        return cls(MultipleCursor(sources, options.mode))

    @classmethod
    def range(cls, start, stop, step=1) -> "Flow":
        """Numbers from ``start`` to ``stop``, inclusive."""
        return cls(RangeCursor(start, stop, step))

    @classmethod
    def sequence(cls, sources) -> "Flow":
        """Concatenate a sequence of iterables. Keys are kept, so they may repeat."""
        return cls(AppendCursor([to_cursor(src) for src in to_cursor(sources)]))

    @classmethod
    def void(cls) -> "Flow":
        return cls(EMPTY)

    # --------- cursor protocol ----------

    def get_cursor(self) -> Cursor:
        """The live cursor, re-created from the materialized data if needed."""
        if self._data is not None:
            self._cursor = MappingCursor(self._data)
            self._data = None
            self._fetching = False
        return self._cursor

    def set_cursor(self, source) -> "Flow":
        self._cursor = to_cursor(source, wrap_scalars=True)
        self._data = None
        self._fetching = False
        return self

    def valid(self):
        return self.get_cursor().valid()

    def current(self):
        return self.get_cursor().current()

    def key(self):
        return self.get_cursor().key()

    def advance(self):
        self.get_cursor().advance()

    def reset(self):
        self.get_cursor().reset()

    def _stage(self, cursor: Cursor) -> "Flow":
        logger.debug(f"Appending {type(cursor).__name__} stage")
        return self.set_cursor(cursor)

    # --------- chainable operations (lazy) ----------

    def append(self, *sources) -> "Flow":
        """Iterate ``sources`` after the current data."""
        cur = self.get_cursor()
        if isinstance(cur, AppendCursor):
            for src in sources:
                cur.append(to_cursor(src))
            return self
        return self._stage(AppendCursor([cur] + [to_cursor(src) for src in sources]))

    def prepend(self, *sources) -> "Flow":
        """Iterate ``sources`` before the current data."""
        return self._stage(AppendCursor([to_cursor(src) for src in sources] + [self.get_cursor()]))

    def prepend_value(self, value, key=0) -> "Flow":
        return self._stage(HeadAndTailCursor(value, self.get_cursor(), key, keep_tail_keys=True))

    def apply(self, cursor_class, *args, **kwargs) -> "Flow":
        """Wrap the current cursor with ``cursor_class(cursor, *args, **kwargs)``."""
        return self._stage(cursor_class(self.get_cursor(), *args, **kwargs))

    def cache(self) -> "Flow":
        """Memoize the data so later iterations do not recompute it."""
        return self._stage(CacheCursor(self.get_cursor()))

    def concat(self) -> "Flow":
        """Treat each value as an iterable and iterate all of them in sequence.

        The outer sequence is read immediately; the inner ones stay lazy.
        """
        return self._stage(AppendCursor([to_cursor(v) for v in self.get_cursor()]))

    def expand(self, fn: Callable, keep_originals: bool = False) -> "Flow":
        """Replace each value by the iterable ``fn(value, key)`` returns, flattened inline.

        With ``keep_originals`` the original value stays in front of its expansion.
        """
        if keep_originals:
            return self.intercalate(fn)
        return self.map(fn).unfold()

    def intercalate(self, fn: Callable) -> "Flow":
        """Insert after each element the value(s) returned by ``fn(value, key)``.

        The inserted elements reuse the original key (or their own keys, when
        ``fn`` returns an iterable); use reindex() to normalize them.
        """
        fn = adapt_callback(fn, 2)

        def _intercalate(v, k):
            r = fn(v, k)
            tail = to_cursor(r) if is_iterable(r) else SingleValueCursor(r, k)
            return HeadAndTailCursor(v, tail, k, keep_tail_keys=True)

        return self.map(_intercalate).unfold()

    def flip(self) -> "Flow":
        """Swap values and keys."""
        return self._stage(FlipCursor(self.get_cursor()))

    def keys(self) -> "Flow":
        """Replace values by their keys, keyed 0, 1, 2, ..."""
        self._stage(FlipCursor(self.get_cursor(), flip_values=True, flip_keys=False))
        return self.reindex()

    def map(self, fn: Callable, arg: Any = None) -> "Flow":
        """Transform values with ``fn(value, key, arg)``.

        Return ``Rekeyed(value, key)`` from ``fn`` to change the element's key.
        """
        return self._stage(MapCursor(self.get_cursor(), fn, arg))

    def map_and_filter(self, fn: Callable, arg: Any = None) -> "Flow":
        """Like map(), but elements mapped to ``None`` are dropped."""
        return self._stage(FilterCursor(MapCursor(self.get_cursor(), fn, arg), lambda v: v is not None))

    def no_rewind(self) -> "Flow":
        return self._stage(NoRewindCursor(self.get_cursor()))

    def only(self, n: int) -> "Flow":
        """Iterate at most ``n`` elements; a negative ``n`` has no effect."""
        options = _validate("only", LoopOptions, limit=n)
        return self._stage(LoopCursor(self.get_cursor(), limit=options.limit))

    def skip(self, n: int = 1) -> "Flow":
        return self.slice(n)

    def slice(self, offset: int = 0, count: int = -1) -> "Flow":
        """Skip ``offset`` elements then iterate at most ``count`` (-1 = all)."""
        options = _validate("slice", SliceOptions, offset=offset, count=count)
        return self._stage(LimitCursor(self.get_cursor(), options.offset, options.count))

    def page(self, page_number: int, page_size: int) -> "Flow":
        """Restrict iteration to a 1-indexed page."""
        options = _validate("page", PageOptions, page_number=page_number, page_size=page_size)
        return self.slice(options.offset, options.page_size)

    def batch(self, size: int) -> "Flow":
        """Group values into tuples of ``size``."""
        options = _validate("batch", ChunkOptions, size=size)
        return self._stage(ChunkCursor(self.get_cursor(), options.size))

    def chunk(self, size: int) -> "Flow":
        """Alias for batch()"""
        return self.batch(size)

    def recursive(self, fn: Callable, mode=RecursionMode.SELF_FIRST) -> "Flow":
        """Walk a tree depth-first.

        ``fn(value, key, depth)`` returns the children of a node or ``None``.
        ``mode`` selects whether parents come before their children, after
        them, or are left out (leaves only).
        """
        try:
            mode = RecursionMode(mode)
        except ValueError as e:
            raise InvalidArgumentError(f"Bad recursion mode: {mode!r}") from e
        return self._stage(RecursiveCursor(self.get_cursor(), fn, mode))

    def recursive_unfold(self, fn: Callable, keep_originals: bool = False) -> "Flow":
        """Recursively replace values by the iterables ``fn(value, key, depth)`` returns.

        Values that map to a non-iterable are replaced by it (return the value
        itself to keep it); returning ``EMPTY`` or any empty iterable drops
        the value. With ``keep_originals`` values that expand are kept in front
        of their expansion. Keys are the original keys of each level.
        """
        fn = adapt_callback(fn, 3)

        def _descend(v, k, depth):
            r = fn(v, k, depth)
            if is_iterable(r):
                it = UnfoldCursor(MapCursor(to_cursor(r), _descend, depth + 1), use_original_keys=True)
                if keep_originals:
                    return HeadAndTailCursor(v, it, k, keep_tail_keys=True)
                return it
            return r

        self.map(_descend, 0)
        return self.unfold()

    def reduce(self, fn: Callable, seed: Any = None) -> "Flow":
        """Reduce the data to the single value ``fn(acc, value, key)`` accumulates, under key 0."""
        return self._stage(ReduceCursor(self.get_cursor(), fn, seed))

    def reindex(self, start=0, step=1) -> "Flow":
        return self._stage(ReindexCursor(self.get_cursor(), start, step))

    def repeat(self, times: int) -> "Flow":
        """Iterate the data ``times`` times (0 = none, negative = forever). Keys repeat."""
        options = _validate("repeat", LoopOptions, times=times)
        return self._stage(LoopCursor(self.get_cursor(), times=options.times))

    def repeat_while(self, fn: Callable) -> "Flow":
        """Restart the iteration each time it ends, for as long as ``fn(value, key)`` holds.

        ``fn`` runs after the data is exhausted, so it receives ``None, None``.
        """
        return self._stage(LoopCursor(self.get_cursor(), test=fn))

    def unfold(self, flat_keys: bool = False) -> "Flow":
        """Expand iterable values inline.

        Keys are kept from whichever sequence produced each value unless
        ``flat_keys`` is set, in which case they run 0, 1, 2, ...
        """
        return self._stage(UnfoldCursor(self.get_cursor(), use_original_keys=not flat_keys))

    def where(self, fn: Callable) -> "Flow":
        """Keep the elements for which ``fn(value, key)`` is truthy."""
        return self._stage(FilterCursor(self.get_cursor(), fn))

    def while_(self, fn: Callable) -> "Flow":
        """Stop at the first element for which ``fn(value, key)`` is falsy."""
        return self._stage(ConditionalCursor(self.get_cursor(), fn))

    # --------- regular expressions ----------

    def regex(self, pattern, flags: int = 0, use_keys: bool = False) -> "Flow":
        """Replace each value by the list of all its matches."""
        return self._stage(RegexCursor(self.get_cursor(), pattern, RegexMode.ALL_MATCHES,
                                       use_keys=use_keys, flags=flags))

    def regex_extract(self, pattern, flags: int = 0, use_keys: bool = False) -> "Flow":
        """Keep matching values, replaced by their first match and its groups."""
        return self._stage(RegexCursor(self.get_cursor(), pattern, RegexMode.GET_MATCH,
                                       use_keys=use_keys, flags=flags))

    def regex_map(self, pattern, replacement: str, use_keys: bool = False) -> "Flow":
        """Substitute ``replacement`` (``re.sub`` syntax) for every match."""
        return self._stage(RegexCursor(self.get_cursor(), pattern, RegexMode.REPLACE,
                                       replacement=replacement, use_keys=use_keys))

    def regex_split(self, pattern, flags: int = 0, use_keys: bool = False) -> "Flow":
        """Split values on a pattern, keeping those that split at least once."""
        return self._stage(RegexCursor(self.get_cursor(), pattern, RegexMode.SPLIT,
                                       use_keys=use_keys, flags=flags))

    def where_match(self, pattern, flags: int = 0, use_keys: bool = False) -> "Flow":
        """Keep the values that match a pattern."""
        return self._stage(RegexCursor(self.get_cursor(), pattern, RegexMode.MATCH,
                                       use_keys=use_keys, flags=flags))

    # --------- materialization ----------

    def _materialize(self) -> Dict[Any, Any]:
        if self._data is None:
            cursor = self._cursor
            self._data = dict(cursor.items())
            self._cursor = None
            self._fetching = False
            logger.debug(f"Materialized {len(self._data)} elements from {type(cursor).__name__}")
        return self._data

    def collect(self) -> Dict[Any, Any]:
        """Materialize the data into a dict, keeping the original keys.

        Later elements overwrite earlier ones with the same key.
        """
        return dict(self._materialize())

    def pack(self) -> "Flow":
        """Materialize the data with keys 0, 1, 2, ..."""
        if self._data is not None:
            values = list(self._data.values())
        else:
            values = list(self._cursor)
        self._data = dict(enumerate(values))
        self._cursor = None
        self._fetching = False
        logger.debug(f"Packed {len(values)} elements")
        return self

    def drop(self, n: int = 1) -> "Flow":
        """Drop the last ``n`` elements. Materializes and reindexes the data."""
        if n < 0:
            raise InvalidArgumentError(f"drop() expects a non-negative count, got {n}")
        self.pack()
        if n:
            values = list(self._data.values())[:-n]
            self._data = dict(enumerate(values))
        return self

    def sort(self, kind="sort", comparator: Optional[Callable[[Any, Any], int]] = None) -> "Flow":
        """Sort the data. Materializes it.

        ``kind`` is one of the SortKind identifiers: ``sort``/``rsort``/``usort``
        sort values and renumber the keys, ``asort``/``arsort``/``uasort`` sort
        values and keep keys, ``ksort``/``krsort``/``uksort`` sort by key,
        ``natsort``/``natcasesort`` use natural order and keep keys, ``shuffle``
        randomizes. The ``u*`` kinds need a three-way ``comparator``.
        """
        options = _validate("sort", SortOptions, kind=kind, comparator=comparator)
        items = list(self._materialize().items())
        kind = options.kind

        if kind in (SortKind.SORT, SortKind.ASORT):
            items.sort(key=lambda kv: kv[1])
        elif kind in (SortKind.RSORT, SortKind.ARSORT):
            items.sort(key=lambda kv: kv[1], reverse=True)
        elif kind in (SortKind.USORT, SortKind.UASORT):
            items.sort(key=functools.cmp_to_key(lambda a, b: options.comparator(a[1], b[1])))
        elif kind is SortKind.KSORT:
            items.sort(key=lambda kv: kv[0])
        elif kind is SortKind.KRSORT:
            items.sort(key=lambda kv: kv[0], reverse=True)
        elif kind is SortKind.UKSORT:
            items.sort(key=functools.cmp_to_key(lambda a, b: options.comparator(a[0], b[0])))
        elif kind is SortKind.NATSORT:
            items.sort(key=lambda kv: _natural_key(kv[1]))
        elif kind is SortKind.NATCASESORT:
            items.sort(key=lambda kv: _natural_key(kv[1], fold_case=True))
        else:
            random.shuffle(items)

        if kind.keeps_keys:
            self._data = dict(items)
        else:
            self._data = {i: v for i, (_, v) in enumerate(items)}
        logger.debug(f"Sorted {len(items)} elements with {kind.value}")
        return self

    def reverse(self, preserve_keys: bool = False) -> "Flow":
        """Reverse the order of the data. Materializes it.

        Integer keys are renumbered from 0 unless ``preserve_keys`` is set;
        other keys are always kept.
        """
        items = list(self._materialize().items())
        items.reverse()
        if preserve_keys:
            self._data = dict(items)
        else:
            data = {}
            n = 0
            for k, v in items:
                if isinstance(k, int) and not isinstance(k, bool):
                    data[n] = v
                    n += 1
                else:
                    data[k] = v
            self._data = data
        return self

    def swap(self, fn: Callable[[List[Any]], Any]) -> "Flow":
        """Replace the whole data set with ``fn(values)``.

        ``fn`` receives the packed values as a list and returns a new
        sequence or mapping.
        """
        self.pack()
        result = fn(list(self._data.values()))
        if isinstance(result, Mapping):
            self._data = dict(result)
        elif is_iterable(result):
            self._data = dict(enumerate(to_cursor(result)))
        else:
            raise InvalidArgumentError(
                f"swap() callback must return a sequence or mapping, got {type(result).__name__}"
            )
        return self

    # --------- terminal operations ----------

    def to_list(self) -> List[Any]:
        """The values, in order, as a list."""
        return list(self.get_cursor())

    def count(self) -> int:
        """Return the count of elements"""
        return sum(1 for _ in self.get_cursor().items())

    def first(self, default=None):
        """Return the first value, or default if empty"""
        cursor = self.get_cursor()
        cursor.reset()
        return cursor.current() if cursor.valid() else default

    def last(self, default=None):
        """Return the last value, or default if empty"""
        last_item = default
        for item in self.get_cursor():
            last_item = item
        return last_item

    def paginate(self, page_size: int) -> Iterator[List[Any]]:
        """Yield the values in lists of up to ``page_size``."""
        options = _validate("paginate", PageOptions, page_number=1, page_size=page_size)
        return self._pages(options.page_size)

    def _pages(self, page_size: int) -> Iterator[List[Any]]:
        page = []
        for value in self.get_cursor():
            page.append(value)
            if len(page) == page_size:
                yield page
                page = []
        if page:
            yield page

    def each(self, fn: Callable) -> "Flow":
        """Call ``fn(value, key)`` for every element; returning ``False`` stops early."""
        fn = adapt_callback(fn, 2)
        for k, v in self.get_cursor().items():
            if fn(v, k) is False:
                break
        return self

    def fetch(self):
        """Return the next value, rewinding on the first call; DONE once finished."""
        cursor = self._fetch_cursor()
        if cursor.valid():
            value = cursor.current()
            cursor.advance()
            return value
        return DONE

    def fetch_key(self):
        """Return the next key, rewinding on the first call; DONE once finished."""
        cursor = self._fetch_cursor()
        if cursor.valid():
            key = cursor.key()
            cursor.advance()
            return key
        return DONE

    def _fetch_cursor(self) -> Cursor:
        cursor = self.get_cursor()
        if not self._fetching:
            self._fetching = True
            cursor.reset()
        return cursor


def flow(source=None) -> Flow:
    """Create a Flow from anything; non-iterable values become a one-element flow."""
    return Flow(source)
