"""
Records table helpers.

- records_frame: the page of schools as the DataFrame shown in the table
- RowAction: view / edit / delete intents emitted for a selected row
- VirtualWindow: visible-slice arithmetic for the scrolling variant

Virtualization renders only rows that intersect the viewport plus one
row of overscan; the slice is recomputed for every scroll position.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from .config import VIRTUAL_OVERSCAN, VIRTUAL_ROW_HEIGHT, VIRTUAL_VIEWPORT_HEIGHT
from .models import School

T = TypeVar('T')

TABLE_COLUMNS = [
    'School',
    'UDISE Code',
    'Village / Block',
    'District / State',
    'Management',
    'Type',
    'Students',
]

ROW_ACTIONS = ('view', 'edit', 'delete')


def records_frame(schools: Sequence[School]) -> pd.DataFrame:
    """One row per school, in the order the API returned them."""
    rows = [
        {
            'School': school.school_name,
            'UDISE Code': school.udise_code,
            'Village / Block': f"{school.village}, {school.block}",
            'District / State': f"{school.district}, {school.state}",
            'Management': school.management,
            'Type': school.school_type,
            'Students': str(school.total_students) if school.total_students else 'N/A',
        }
        for school in schools
    ]
    frame = pd.DataFrame(rows, columns=TABLE_COLUMNS)
    frame.index = [school.id for school in schools]
    return frame


@dataclass(frozen=True)
class RowAction:
    kind: str
    school: School

    def __post_init__(self):
        if self.kind not in ROW_ACTIONS:
            raise ValueError(f"Unknown row action: {self.kind}")


def row_action(kind: str, schools: Sequence[School], row_index: Optional[int]) -> Optional[RowAction]:
    """Action for the selected table row, or None when nothing valid is selected."""
    if row_index is None or not 0 <= row_index < len(schools):
        return None
    return RowAction(kind=kind, school=schools[row_index])


class VirtualWindow:
    """
    Fixed-row-height virtual scrolling.

    Args:
        total_rows: Number of rows in the full list
        viewport_height: Visible height in pixels
        row_height: Height of every row in pixels
        overscan: Extra rows rendered past the bottom edge
    """

    def __init__(
        self,
        total_rows: int,
        viewport_height: int = VIRTUAL_VIEWPORT_HEIGHT,
        row_height: int = VIRTUAL_ROW_HEIGHT,
        overscan: int = VIRTUAL_OVERSCAN
    ):
        if row_height <= 0:
            raise ValueError("row_height must be positive")
        if viewport_height <= 0:
            raise ValueError("viewport_height must be positive")
        self.total_rows = max(0, total_rows)
        self.viewport_height = viewport_height
        self.row_height = row_height
        self.overscan = max(0, overscan)

    @property
    def visible_count(self) -> int:
        return math.ceil(self.viewport_height / self.row_height)

    @property
    def total_height(self) -> int:
        return self.total_rows * self.row_height

    @property
    def max_scroll(self) -> int:
        return max(0, self.total_height - self.viewport_height)

    def slice(self, scroll_top: float) -> Tuple[int, int]:
        """Half-open (start, end) row range to render at ``scroll_top``."""
        scroll_top = min(max(0, scroll_top), self.max_scroll)
        start = min(math.floor(scroll_top / self.row_height), self.total_rows)
        end = min(start + self.visible_count + self.overscan, self.total_rows)
        return start, end

    def offset_of(self, index: int) -> int:
        """Pixel top of row ``index`` inside the scroll container."""
        return index * self.row_height

    def rows(self, items: Sequence[T], scroll_top: float) -> List[T]:
        start, end = self.slice(scroll_top)
        return list(items[start:end])
