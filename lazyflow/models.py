"""
lazyflow - Pydantic Models

Enumerations and option models validated by the pipeline operations, plus the
settings object used to configure logging and performance tracking.
"""

import logging
import os
from enum import Enum
from typing import Any, Callable, Hashable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SortKind(str, Enum):
    """Supported sort kinds"""
    SORT = "sort"
    RSORT = "rsort"
    USORT = "usort"
    ASORT = "asort"
    ARSORT = "arsort"
    UASORT = "uasort"
    KSORT = "ksort"
    KRSORT = "krsort"
    UKSORT = "uksort"
    NATSORT = "natsort"
    NATCASESORT = "natcasesort"
    SHUFFLE = "shuffle"

    @property
    def needs_comparator(self) -> bool:
        return self.value.startswith("u")

    @property
    def keeps_keys(self) -> bool:
        return self not in (SortKind.SORT, SortKind.RSORT, SortKind.USORT, SortKind.SHUFFLE)


class RecursionMode(str, Enum):
    """Which nodes a recursive walk exposes"""
    LEAVES_ONLY = "leaves_only"
    SELF_FIRST = "self_first"
    CHILD_FIRST = "child_first"


class ZipMode(str, Enum):
    """When a zipped iteration stops"""
    ANY = "any"   # until every source is exhausted
    ALL = "all"   # as soon as one source is exhausted


class RegexMode(str, Enum):
    """Operation performed by a regular expression stage"""
    MATCH = "match"
    GET_MATCH = "get_match"
    ALL_MATCHES = "all_matches"
    SPLIT = "split"
    REPLACE = "replace"


class SliceOptions(BaseModel):
    """Arguments of slice() and skip()"""
    offset: int = Field(0, description="Number of leading elements to skip", ge=0)
    count: int = Field(-1, description="Maximum number of elements, -1 for all", ge=-1)


class PageOptions(BaseModel):
    """Arguments of page()"""
    page_number: int = Field(..., description="1-indexed page number", ge=1)
    page_size: int = Field(..., description="Elements per page", ge=1)

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size


class ChunkOptions(BaseModel):
    """Arguments of batch()"""
    size: int = Field(..., description="Number of values per chunk", ge=1)


class LoopOptions(BaseModel):
    """Arguments of repeat() and only()"""
    times: int = Field(1, description="Loop count: 0 = none, negative = forever")
    limit: int = Field(-1, description="Total element count: 0 = none, negative = unlimited")


class CombineOptions(BaseModel):
    """Arguments of Flow.combine()"""
    fields: Optional[List[Hashable]] = Field(
        None,
        description="Field names for each input, in input order"
    )
    mode: ZipMode = Field(ZipMode.ANY, description="Continuation policy")
    input_count: int = Field(..., description="Number of inputs being combined", ge=0)

    @model_validator(mode="after")
    def validate_fields(self):
        """Field names must line up with the inputs"""
        if self.fields is not None and len(self.fields) != self.input_count:
            raise ValueError(
                f"Expected {self.input_count} field names, got {len(self.fields)}"
            )
        return self


class SortOptions(BaseModel):
    """Arguments of sort()"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: SortKind = Field(SortKind.SORT, description="Sort kind identifier")
    comparator: Optional[Callable[[Any, Any], int]] = Field(
        None,
        description="Three-way comparison function for the u* kinds"
    )

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        """Accept kind names in any case"""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def validate_comparator(self):
        """u* kinds need a comparator, the others must not get one"""
        if self.kind.needs_comparator and self.comparator is None:
            raise ValueError(f"Sort kind '{self.kind.value}' requires a comparator")
        if not self.kind.needs_comparator and self.comparator is not None:
            raise ValueError(f"Sort kind '{self.kind.value}' does not take a comparator")
        return self


class FlowSettings(BaseModel):
    """Logging and diagnostics settings"""
    log_level: str = Field(
        "WARNING",
        description="Level of the lazyflow logger"
    )
    log_format: str = Field(
        '%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s',
        description="Format of records emitted by the lazyflow handler"
    )
    track_performance: bool = Field(
        True,
        description="Whether measure_performance() records into the metrics registry"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate the level is a standard logging level name"""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def from_env(cls) -> "FlowSettings":
        """Build settings from LAZYFLOW_* environment variables"""
        values = {}
        if "LAZYFLOW_LOG_LEVEL" in os.environ:
            values["log_level"] = os.environ["LAZYFLOW_LOG_LEVEL"]
        if "LAZYFLOW_LOG_FORMAT" in os.environ:
            values["log_format"] = os.environ["LAZYFLOW_LOG_FORMAT"]
        if "LAZYFLOW_TRACK_PERFORMANCE" in os.environ:
            values["track_performance"] = os.environ["LAZYFLOW_TRACK_PERFORMANCE"]
        return cls(**values)
