from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

Number = Union[int, float]
# None marks a missing value (empty CSV field)
Row = Sequence[Optional[Number]]


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval over the timestamp column."""
    start: float
    end: float

    @classmethod
    def unbounded(cls) -> "TimeWindow":
        return cls(start=-math.inf, end=math.inf)


class WriterState(enum.Enum):
    FRESH = "fresh"        # nothing emitted, no encoder opened
    WRITING = "writing"
    CLOSED = "closed"
