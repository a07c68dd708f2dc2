"""
Task view pipeline.

Turns a user's full task collection plus a view selector into the ordered
subset the UI displays. Stages run in a fixed order and each one only narrows
the previous output; the final stage is a single stable multi-key sort.

    1. list scope        (takes precedence over the time window)
    2. time window       (today / next7days / upcoming / all)
    3. completion filter
    4. fuzzy search      (name + description)
    5. sort              (open first, dated by date, priority, newest)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, List, Mapping, Optional

from django.utils import timezone

from .search import search as fuzzy_search

VIEW_TODAY = 'today'
VIEW_NEXT_7_DAYS = 'next7days'
VIEW_UPCOMING = 'upcoming'
VIEW_ALL = 'all'

VIEWS = (VIEW_TODAY, VIEW_NEXT_7_DAYS, VIEW_UPCOMING, VIEW_ALL)

PRIORITY_RANK = {'high': 0, 'medium': 1, 'low': 2, 'none': 3}

NEXT_DAYS_WINDOW = 7

Searcher = Callable[[List[Any], str], List[Any]]

_TRUTHY = {'1', 'true', 'yes', 'y', 'on'}


@dataclass(frozen=True)
class ViewState:
    """What the user is looking at."""
    selected_list_id: Optional[str] = None
    selected_view: str = VIEW_ALL
    search_query: str = ''
    show_completed: bool = True

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> 'ViewState':
        """Build a ViewState from ``?list=&view=&q=&show_completed=``."""
        raw_show = params.get('show_completed')
        return cls(
            selected_list_id=params.get('list') or None,
            selected_view=params.get('view') or VIEW_ALL,
            search_query=params.get('q') or '',
            show_completed=True if raw_show is None else raw_show.strip().lower() in _TRUTHY,
        )


def local_date(value: Any) -> Optional[date]:
    """Calendar day of a date/datetime in the active time zone."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _instant(value: Any) -> float:
    """Sortable number for a date/datetime (0.0 when unknown)."""
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).timestamp()
    return 0.0


def _list_id(task: Any) -> Optional[str]:
    value = getattr(task, 'list_id', None)
    return None if value is None else str(value)


# ==================== Stages ====================

def filter_by_list(tasks: List[Any], list_id: Optional[str]) -> List[Any]:
    if not list_id:
        return tasks
    wanted = str(list_id)
    return [t for t in tasks if _list_id(t) == wanted]


def filter_by_view(tasks: List[Any], view: str, today: date) -> List[Any]:
    """
    Keep tasks whose scheduled date falls in the selected window.

    Unknown views behave like 'all'. Undated tasks never match a window.
    """
    if view == VIEW_TODAY:
        return [t for t in tasks if local_date(getattr(t, 'date', None)) == today]

    if view == VIEW_NEXT_7_DAYS:
        end = today + timedelta(days=NEXT_DAYS_WINDOW)
        kept = []
        for task in tasks:
            day = local_date(getattr(task, 'date', None))
            if day is not None and today <= day <= end:
                kept.append(task)
        return kept

    if view == VIEW_UPCOMING:
        kept = []
        for task in tasks:
            day = local_date(getattr(task, 'date', None))
            if day is not None and day >= today:
                kept.append(task)
        return kept

    return tasks


def filter_completed(tasks: List[Any], show_completed: bool) -> List[Any]:
    if show_completed:
        return tasks
    return [t for t in tasks if not getattr(t, 'completed', False)]


def sort_key(task: Any):
    """
    Multi-key sort, in precedence order:

    - incomplete before completed
    - dated before undated, dated ascending by date
    - priority rank high < medium < low < none
    - newest created_at first
    """
    task_date = getattr(task, 'date', None)
    has_date = task_date is not None
    return (
        bool(getattr(task, 'completed', False)),
        0 if has_date else 1,
        _instant(task_date) if has_date else 0.0,
        PRIORITY_RANK.get(getattr(task, 'priority', None) or 'none', PRIORITY_RANK['none']),
        -_instant(getattr(task, 'created_at', None)),
    )


def sort_tasks(tasks: Iterable[Any]) -> List[Any]:
    # sorted() is stable: full ties keep their input order
    return sorted(tasks, key=sort_key)


# ==================== Entry point ====================

def select_visible_tasks(
    tasks: Iterable[Any],
    view_state: ViewState,
    now: Optional[datetime] = None,
    searcher: Optional[Searcher] = None
) -> List[Any]:
    """
    Produce the ordered list of tasks to display for ``view_state``.

    Args:
        tasks: Model instances or any objects exposing list_id, date,
               completed, name, description, priority and created_at
        view_state: The selected list/view/query/visibility
        now: Reference moment for the time windows (defaults to now)
        searcher: ``searcher(items, query) -> items``; defaults to the
                  fuzzy search over name and description

    Returns:
        A new list; the input collection is not modified.
    """
    visible = list(tasks)
    if not visible:
        return []

    today = local_date(now or timezone.now())

    if view_state.selected_list_id:
        visible = filter_by_list(visible, view_state.selected_list_id)
    else:
        visible = filter_by_view(visible, view_state.selected_view, today)

    visible = filter_completed(visible, view_state.show_completed)

    query = (view_state.search_query or '').strip()
    if query:
        if searcher is None:
            visible = fuzzy_search(visible, query, keys=('name', 'description'))
        else:
            visible = list(searcher(visible, query))

    return sort_tasks(visible)
