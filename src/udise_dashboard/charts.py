"""
Summary statistics and distribution charts.

Distribution percentages are rounded to whole numbers, the same way the
cards show them, and a zero total gives 0% rather than an error.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .filters import FilterState
from .models import DistributionData, DistributionItem, School, SchoolPage

# Configure logging
logger = logging.getLogger(__name__)


CHART_COLORS = {
    'management_type': '#2563eb',  # blue
    'location': '#16a34a',         # green
    'school_type': '#9333ea',      # purple
}

CHART_TITLES = {
    'management_type': 'Management Type',
    'location': 'Location',
    'school_type': 'School Type',
}


# ============================================================================
# Distributions
# ============================================================================

def distribution_total(items: Sequence[DistributionItem]) -> int:
    return sum(item.count for item in items)


def percentage(count: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(count / total * 100)


def distribution_frame(items: Sequence[DistributionItem]) -> pd.DataFrame:
    total = distribution_total(items)
    return pd.DataFrame(
        [
            {'label': item.label, 'count': item.count, 'percent': percentage(item.count, total)}
            for item in items
        ],
        columns=['label', 'count', 'percent']
    )


def distribution_figure(
    title: str,
    items: Sequence[DistributionItem],
    kind: str = 'bar',
    color: Optional[str] = None
) -> Optional[go.Figure]:
    """
    Plotly figure for one distribution.

    Args:
        title: Chart title
        items: Category counts
        kind: 'bar' or 'pie'
        color: Bar colour (ignored for pies)

    Returns:
        Figure, or None when there is nothing to plot
    """
    frame = distribution_frame(items)
    if frame.empty:
        return None

    frame['text'] = frame['percent'].map(lambda p: f"{p}%")

    if kind == 'pie':
        fig = px.pie(frame, names='label', values='count', title=title, hole=0.4)
    elif kind == 'bar':
        fig = px.bar(
            frame,
            x='label',
            y='count',
            text='text',
            title=title,
            color_discrete_sequence=[color] if color else None
        )
        fig.update_layout(xaxis_title=None, yaxis_title='Schools')
    else:
        raise ValueError(f"Unknown chart kind: {kind}")

    fig.update_layout(margin=dict(l=10, r=10, t=40, b=10), height=320, showlegend=(kind == 'pie'))
    return fig


def distribution_figures(data: DistributionData) -> dict:
    """The three dashboard charts keyed by dimension."""
    kinds = {'management_type': 'bar', 'location': 'pie', 'school_type': 'bar'}
    return {
        key: distribution_figure(
            CHART_TITLES[key],
            getattr(data, key),
            kind=kinds[key],
            color=CHART_COLORS[key]
        )
        for key in kinds
    }


# ============================================================================
# Stats cards
# ============================================================================

@dataclass(frozen=True)
class StatCard:
    title: str
    value: str
    help: str = ''


def stats_cards(page: Optional[SchoolPage], filter_state: FilterState) -> List[StatCard]:
    """Headline cards; before the first page arrives they fall back to 0 / 1 / 1."""
    if page is not None:
        total_records = page.pagination.total_records
        current_page = page.pagination.current_page
        total_pages = page.pagination.total_pages or 1
    else:
        total_records, current_page, total_pages = 0, 1, 1

    return [
        StatCard('Total Schools', f"{total_records:,}", 'Schools matching the current filters'),
        StatCard('Active Filters', str(filter_state.active_filter_count), 'Location levels and search applied'),
        StatCard('Current Page', str(current_page)),
        StatCard('Total Pages', str(total_pages)),
    ]


@dataclass(frozen=True)
class SchoolStats:
    total_students: int
    total_teachers: int
    teacher_student_ratio: str


def school_stats(schools: Sequence[School]) -> SchoolStats:
    students = sum(school.total_students or 0 for school in schools)
    teachers = sum(school.total_teachers or 0 for school in schools)
    ratio = f"1:{students / teachers:.0f}" if teachers else 'N/A'
    return SchoolStats(students, teachers, ratio)
