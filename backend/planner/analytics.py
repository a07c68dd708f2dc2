"""
Analytics aggregation for the Daily Task Planner.

Builds a read-only snapshot of a user's tasks: summary counts, a 30-day
productivity trend, and per-list / per-label breakdowns. The heavy lifting is a
pure function over in-memory collections so it can be exercised without a
database; ``compute_analytics`` only loads the rows and delegates.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.utils import timezone

from .models import Label, Task, TaskList
from .pipeline import local_date

logger = logging.getLogger(__name__)

TREND_DAYS = 30


def parse_duration_minutes(value: Optional[str]) -> int:
    """
    Convert a tracked-time string to whole minutes.

    - "mm:ss"     -> minutes of the total seconds ("01:30" -> 1)
    - "hh:mm:ss"  -> minutes of the total seconds ("01:30:00" -> 90)
    - anything else, including None, contributes 0
    """
    if not value or not isinstance(value, str):
        return 0
    parts = value.strip().split(':')
    if len(parts) not in (2, 3):
        return 0
    # ASCII digits only; int() would also accept other scripts and signs
    if not all(p.isascii() and p.isdigit() for p in parts):
        return 0
    numbers = [int(p) for p in parts]

    if len(numbers) == 2:
        minutes, seconds = numbers
        total_seconds = minutes * 60 + seconds
    else:
        hours, minutes, seconds = numbers
        total_seconds = hours * 3600 + minutes * 60 + seconds
    return total_seconds // 60


def _empty_trend(today) -> Dict[str, Dict]:
    trend = {}
    for offset in range(TREND_DAYS):
        key = (today - timedelta(days=offset)).isoformat()
        trend[key] = {'date': key, 'completed': 0, 'created': 0}
    return trend


def build_analytics_snapshot(
    tasks: Iterable[Any],
    lists: Iterable[Any],
    labels: Iterable[Any],
    label_ids_by_task: Mapping[Any, Iterable[Any]],
    now: Optional[datetime] = None
) -> Dict:
    """
    Aggregate tasks into the analytics snapshot.

    Args:
        tasks: Task-like objects (id, list_id, completed, completed_at,
               created_at, actual_time)
        lists: List-like objects (id, name, color)
        labels: Label-like objects (id, name, color)
        label_ids_by_task: task id -> label ids attached to it
        now: Anchor of the 30-day window (defaults to now)

    Returns:
        dict with summary, productivity_trend, tasks_by_list,
        tasks_by_label and time_spent_by_list. Never mutates its inputs.
    """
    tasks = list(tasks)
    today = local_date(now or timezone.now())

    # 1. Summary
    total_tasks = len(tasks)
    completed_tasks = sum(1 for t in tasks if getattr(t, 'completed', False))
    completion_rate = (completed_tasks / total_tasks) * 100 if total_tasks > 0 else 0

    # 2. Productivity trend (today and the 29 days before it)
    trend = _empty_trend(today)
    for task in tasks:
        created_day = local_date(getattr(task, 'created_at', None))
        if created_day is not None and created_day.isoformat() in trend:
            trend[created_day.isoformat()]['created'] += 1

        if getattr(task, 'completed', False):
            completed_day = local_date(getattr(task, 'completed_at', None))
            if completed_day is not None and completed_day.isoformat() in trend:
                trend[completed_day.isoformat()]['completed'] += 1

    productivity_trend = sorted(trend.values(), key=lambda bucket: bucket['date'])

    # 3-5. Breakdowns
    count_by_list: Dict[str, int] = defaultdict(int)
    minutes_by_list: Dict[str, int] = defaultdict(int)
    task_ids = set()
    for task in tasks:
        list_key = str(getattr(task, 'list_id', None))
        count_by_list[list_key] += 1
        minutes_by_list[list_key] += parse_duration_minutes(getattr(task, 'actual_time', None))
        task_ids.add(str(task.id))

    count_by_label: Dict[str, int] = defaultdict(int)
    for task_id, label_ids in label_ids_by_task.items():
        if str(task_id) not in task_ids:
            continue
        for label_id in set(str(l) for l in label_ids):
            count_by_label[label_id] += 1

    tasks_by_list: List[Dict] = []
    time_spent_by_list: List[Dict] = []
    for task_list in lists:
        key = str(task_list.id)
        if count_by_list.get(key, 0) > 0:
            tasks_by_list.append({
                'id': key,
                'name': task_list.name,
                'count': count_by_list[key],
                'color': task_list.color,
            })
        if minutes_by_list.get(key, 0) > 0:
            time_spent_by_list.append({
                'id': key,
                'name': task_list.name,
                'minutes': minutes_by_list[key],
                'color': task_list.color,
            })

    tasks_by_label = [
        {
            'id': str(label.id),
            'name': label.name,
            'count': count_by_label[str(label.id)],
            'color': label.color,
        }
        for label in labels
        if count_by_label.get(str(label.id), 0) > 0
    ]

    return {
        'summary': {
            'total_tasks': total_tasks,
            'completed_tasks': completed_tasks,
            'active_tasks': total_tasks - completed_tasks,
            'completion_rate': completion_rate,
        },
        'productivity_trend': productivity_trend,
        'tasks_by_list': tasks_by_list,
        'tasks_by_label': tasks_by_label,
        'time_spent_by_list': time_spent_by_list,
    }


def compute_analytics(user, now: Optional[datetime] = None) -> Dict:
    """Load the user's planner data and build the analytics snapshot."""
    tasks = list(Task.objects.filter(user=user))
    lists = list(TaskList.objects.filter(user=user))
    labels = list(Label.objects.filter(user=user))

    label_ids_by_task: Dict[Any, List[Any]] = defaultdict(list)
    pairs = Task.labels.through.objects.filter(task__user=user).values_list('task_id', 'label_id')
    for task_id, label_id in pairs:
        label_ids_by_task[task_id].append(label_id)

    logger.debug(
        "Computing analytics user=%s tasks=%d lists=%d labels=%d",
        user.pk, len(tasks), len(lists), len(labels)
    )
    return build_analytics_snapshot(tasks, lists, labels, label_ids_by_task, now=now)
