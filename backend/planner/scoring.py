"""
Priority Suggestion Scorer for the Daily Task Planner.

This module ranks open tasks to propose the few the user should focus on
today. The score is additive: every factor contributes a fixed number of
points and a higher total means more urgent.

Scoring Formula:
---------------
score = priority_points + deadline_points + schedule_points + recurrence_points

- Priority:   high +100, medium +50, low +20, none +0
- Deadline:   overdue +200, due today +150, within 3 days +80,
              within 7 days +40, later +0
- Scheduled:  date today or earlier +50
- Recurring:  any recurrence +10

The deadline bands are hard cutoffs, not a decay curve.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone

from .pipeline import local_date

PRIORITY_POINTS = {
    'high': 100,
    'medium': 50,
    'low': 20,
    'none': 0,
}


@dataclass
class ScoreBreakdown:
    """Detailed breakdown of how a task's score was calculated."""
    priority: int = 0
    deadline: int = 0
    schedule: int = 0
    recurrence: int = 0

    @property
    def total(self) -> int:
        return self.priority + self.deadline + self.schedule + self.recurrence

    def to_dict(self) -> Dict:
        return {
            'priority': self.priority,
            'deadline': self.deadline,
            'schedule': self.schedule,
            'recurrence': self.recurrence,
        }


@dataclass
class ScoredTask:
    """A task with its suggestion score and metadata."""
    task: Any
    score: int = 0
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    days_until_deadline: Optional[int] = None
    is_overdue: bool = False
    explanation: str = ""


class TaskPriorityScorer:
    """
    Heuristic scorer for picking the top tasks of the day.

    Works on model instances or any object exposing priority, deadline, date,
    recurring and completed.
    """

    OVERDUE_POINTS = 200
    DUE_TODAY_POINTS = 150
    DUE_SOON_POINTS = 80
    DUE_THIS_WEEK_POINTS = 40
    DUE_SOON_DAYS = 3
    DUE_THIS_WEEK_DAYS = 7

    SCHEDULED_POINTS = 50
    RECURRING_POINTS = 10

    def __init__(self, reference_date: Optional[date] = None):
        """
        Args:
            reference_date: The day treated as "today" (defaults to the
                            current local date at scoring time)
        """
        self.reference_date = reference_date

    def _today(self) -> date:
        return self.reference_date or timezone.localdate()

    def days_until(self, value: Optional[datetime]) -> Optional[int]:
        """Whole calendar days from today to ``value`` (negative when past)."""
        day = local_date(value)
        if day is None:
            return None
        return (day - self._today()).days

    def calculate_priority_points(self, priority: Optional[str]) -> int:
        return PRIORITY_POINTS.get(priority or 'none', 0)

    def calculate_deadline_points(self, days: Optional[int]) -> int:
        """
        Points for deadline proximity.

        Scoring Logic:
        - No deadline: 0
        - Overdue (< 0 days): 200
        - Due today: 150
        - Due in 1-3 days: 80
        - Due in 4-7 days: 40
        - Later: 0
        """
        if days is None:
            return 0
        if days < 0:
            return self.OVERDUE_POINTS
        if days == 0:
            return self.DUE_TODAY_POINTS
        if days <= self.DUE_SOON_DAYS:
            return self.DUE_SOON_POINTS
        if days <= self.DUE_THIS_WEEK_DAYS:
            return self.DUE_THIS_WEEK_POINTS
        return 0

    def calculate_schedule_points(self, scheduled: Optional[datetime]) -> int:
        """Tasks scheduled for today or earlier get a flat bonus; future dates get nothing."""
        days = self.days_until(scheduled)
        if days is not None and days <= 0:
            return self.SCHEDULED_POINTS
        return 0

    def calculate_recurrence_points(self, recurring: Optional[str]) -> int:
        return self.RECURRING_POINTS if recurring else 0

    def score_task(self, task: Any) -> ScoredTask:
        """Score a single task and explain the result."""
        days = self.days_until(getattr(task, 'deadline', None))
        breakdown = ScoreBreakdown(
            priority=self.calculate_priority_points(getattr(task, 'priority', None)),
            deadline=self.calculate_deadline_points(days),
            schedule=self.calculate_schedule_points(getattr(task, 'date', None)),
            recurrence=self.calculate_recurrence_points(getattr(task, 'recurring', None)),
        )
        scored = ScoredTask(
            task=task,
            score=breakdown.total,
            breakdown=breakdown,
            days_until_deadline=days,
            is_overdue=days is not None and days < 0,
        )
        scored.explanation = self._generate_explanation(scored)
        return scored

    def _generate_explanation(self, scored: ScoredTask) -> str:
        """Short human-readable reason for the score."""
        parts = []
        days = scored.days_until_deadline

        if scored.is_overdue:
            parts.append(f"Overdue by {abs(days)} day(s)")
        elif days == 0:
            parts.append("Due today")
        elif days is not None and days <= self.DUE_THIS_WEEK_DAYS:
            parts.append(f"Due in {days} day(s)")

        priority = getattr(scored.task, 'priority', None) or 'none'
        if priority != 'none':
            parts.append(f"{priority.capitalize()} priority")

        if scored.breakdown.schedule:
            parts.append("Scheduled for today or earlier")
        if scored.breakdown.recurrence:
            parts.append("Recurring")

        if not parts:
            parts.append("No urgency signals")
        parts.append(f"Score: {scored.score}")
        return " | ".join(parts)

    def analyze_tasks(self, tasks: Iterable[Any]) -> List[ScoredTask]:
        """
        Score every open task.

        Returns:
            ScoredTask objects sorted by score (highest first). Ties keep
            their input order.
        """
        open_tasks = [t for t in tasks if not getattr(t, 'completed', False)]
        scored = [self.score_task(t) for t in open_tasks]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def suggest_top_tasks(self, tasks: Iterable[Any], count: int = 3) -> List[ScoredTask]:
        """
        Suggest the top ``count`` open tasks.

        Returns fewer than ``count`` when fewer qualify; never pads.
        """
        if count <= 0:
            return []
        return self.analyze_tasks(tasks)[:count]


def suggest_top(tasks: Iterable[Any], n: int = 3, reference_date: Optional[date] = None) -> List[Any]:
    """The top ``n`` open tasks themselves, most urgent first."""
    return [s.task for s in TaskPriorityScorer(reference_date).suggest_top_tasks(tasks, n)]


def scored_task_to_dict(scored: ScoredTask, task_data: Optional[Dict] = None) -> Dict:
    """
    Convert a ScoredTask to a dictionary for JSON serialization.

    ``task_data`` is the already-serialized task; when omitted only the id
    and name are included.
    """
    task = scored.task
    if task_data is None:
        task_data = {
            'id': str(getattr(task, 'id', '')) or None,
            'name': getattr(task, 'name', ''),
        }
    return {
        'task': task_data,
        'score': scored.score,
        'score_breakdown': scored.breakdown.to_dict(),
        'days_until_deadline': scored.days_until_deadline,
        'is_overdue': scored.is_overdue,
        'explanation': scored.explanation,
    }
