"""
lazyflow - lazy, pull-based iteration pipelines.

    from lazyflow import Flow

    Flow.range(1, 10).where(lambda v: v % 2).map(lambda v: v * v).pack().collect()
    # {0: 1, 1: 9, 2: 25, 3: 49, 4: 81}
"""

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
    WalkCursor,
)
from .cursor import (
    DONE,
    EMPTY,
    STOP,
    AppendCursor,
    Cursor,
    EmptyCursor,
    FunctionCursor,
    FunctionState,
    IterableCursor,
    LimitCursor,
    ListCursor,
    MappingCursor,
    NoRewindCursor,
    Rekeyed,
    Signal,
    SingleValueCursor,
    is_iterable,
    to_cursor,
)
from .filesystem import DirectoryCursor, FilesystemFlow
from .flow import Flow, flow
from .models import FlowSettings, RecursionMode, RegexMode, SortKind, ZipMode
from .regex import RegexCursor
from .utils import (
    FlowError,
    InvalidArgumentError,
    PreconditionError,
    setup_logging,
)

__version__ = "1.0.0"
