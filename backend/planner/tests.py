"""
Unit Tests for the Daily Task Planner.

This module contains tests for the activity logger, fuzzy search, the view
pipeline, the suggestion scorer, the analytics aggregator, the service layer
and the REST endpoints.
"""

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from .activity import ActivityLogger, stringify_value
from .analytics import build_analytics_snapshot, compute_analytics, parse_duration_minutes
from .errors import ErrorCode, PlannerError
from .models import (
    ActivityLog,
    ActivityLogImmutableError,
    Label,
    Task,
    TaskList,
    TaskTemplate,
    duration_validator,
)
from .pipeline import ViewState, select_visible_tasks
from .scoring import TaskPriorityScorer, scored_task_to_dict, suggest_top
from .search import SequenceSimilarity, TrigramSimilarity, search
from .services import PlannerService

User = get_user_model()

UTC = dt_timezone.utc
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
TODAY = NOW.date()


def at(days: int, hour: int = 9) -> datetime:
    """An aware datetime ``days`` away from NOW's calendar day."""
    day = TODAY + timedelta(days=days)
    return datetime(day.year, day.month, day.day, hour, 0, tzinfo=UTC)


def make_task(name, **overrides):
    data = {
        'id': uuid.uuid4(),
        'list_id': 'inbox',
        'name': name,
        'description': '',
        'date': None,
        'deadline': None,
        'priority': 'none',
        'completed': False,
        'completed_at': None,
        'recurring': None,
        'actual_time': None,
        'created_at': NOW,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def names(tasks):
    return [t.name for t in tasks]


# ============================================
# ACTIVITY LOGGER
# ============================================

class StringifyValueTests(TestCase):
    """Tests for canonical value strings used in diffs."""

    def test_none_stays_none(self):
        self.assertIsNone(stringify_value(None))

    def test_booleans(self):
        self.assertEqual(stringify_value(True), 'true')
        self.assertEqual(stringify_value(False), 'false')

    def test_same_instant_in_different_zones_is_equal(self):
        """Datetimes compare by instant, not by wall clock."""
        plus_two = dt_timezone(timedelta(hours=2))
        self.assertEqual(
            stringify_value(datetime(2024, 1, 1, 12, 0, tzinfo=UTC)),
            stringify_value(datetime(2024, 1, 1, 14, 0, tzinfo=plus_two)),
        )

    def test_sets_are_order_independent(self):
        self.assertEqual(stringify_value({'b', 'a'}), stringify_value({'a', 'b'}))

    def test_value_without_stable_form_raises(self):
        with self.assertRaises(TypeError):
            stringify_value(object())


class ActivityLoggerTests(TestCase):
    """Tests for diff-based activity logging."""

    def setUp(self):
        self.written = []
        self.logger = ActivityLogger(writer=self.written.append, clock=lambda: NOW)
        self.task_id = uuid.uuid4()

    def test_identical_update_logs_nothing(self):
        """Updates equal to the current values produce zero entries."""
        old = {'name': 'Buy milk', 'priority': 'high', 'completed': False}
        future = self.logger.log_update(self.task_id, dict(old), old)

        self.assertEqual(future.result(), [])
        self.assertEqual(self.written, [])

    def test_one_changed_field_logs_one_entry(self):
        """Exactly one changed field produces exactly one entry with old and new values."""
        old = {'name': 'Buy milk', 'priority': 'high'}
        future = self.logger.log_update(self.task_id, {'name': 'Buy oat milk', 'priority': 'high'}, old)

        entries = future.result()
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertEqual(entry['task_id'], self.task_id)
        self.assertEqual(entry['action'], 'updated')
        self.assertEqual(entry['field'], 'name')
        self.assertEqual(entry['old_value'], 'Buy milk')
        self.assertEqual(entry['new_value'], 'Buy oat milk')
        self.assertEqual(entry['created_at'], NOW)

    def test_null_to_value(self):
        """A field set for the first time has a null old value."""
        entries = self.logger.log_update(self.task_id, {'deadline': at(1)}, {'deadline': None}).result()

        self.assertEqual(len(entries), 1)
        self.assertIsNone(entries[0]['old_value'])
        self.assertEqual(entries[0]['new_value'], at(1).isoformat())

    def test_reordered_labels_are_not_a_change(self):
        entries = self.logger.log_update(self.task_id, {'labels': {'b', 'a'}}, {'labels': {'a', 'b'}}).result()
        self.assertEqual(entries, [])

    def test_lifecycle_entry_has_no_field(self):
        entries = self.logger.log_lifecycle(self.task_id, 'completed', actor_id=7).result()

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]['action'], 'completed')
        self.assertIsNone(entries[0]['field'])
        self.assertEqual(entries[0]['user_id'], 7)

    def test_list_entries_reference_the_list(self):
        list_id = uuid.uuid4()
        entries = self.logger.log_lifecycle(list_id, 'created', kind='list').result()

        self.assertEqual(entries[0]['list_id'], list_id)
        self.assertNotIn('task_id', entries[0])

    def test_failing_writer_is_swallowed(self):
        """Writer errors are reported to the diagnostic logger and never raised."""

        def broken(entry):
            raise RuntimeError('database is down')

        logger = ActivityLogger(writer=broken)
        with self.assertLogs('planner.activity', level='ERROR') as captured:
            future = logger.log_update(self.task_id, {'name': 'B'}, {'name': 'A'})

        self.assertEqual(future.result(), [])
        self.assertIn('Failed to write activity log', captured.output[0])

    def test_partial_failure_keeps_other_entries(self):
        """Each entry is attempted once; one failure does not drop the others."""

        def picky(entry):
            if entry['field'] == 'name':
                raise RuntimeError('rejected')
            self.written.append(entry)

        logger = ActivityLogger(writer=picky)
        with self.assertLogs('planner.activity', level='ERROR'):
            entries = logger.log_update(
                self.task_id,
                {'name': 'B', 'priority': 'low'},
                {'name': 'A', 'priority': 'high'},
            ).result()

        self.assertEqual([e['field'] for e in entries], ['priority'])
        self.assertEqual(len(self.written), 1)

    def test_unloggable_field_is_skipped(self):
        """A field with no canonical form is reported; the other fields still log."""
        with self.assertLogs('planner.activity', level='ERROR'):
            entries = self.logger.log_update(
                self.task_id,
                {'blob': object(), 'name': 'B'},
                {'blob': object(), 'name': 'A'},
            ).result()

        self.assertEqual([e['field'] for e in entries], ['name'])
        self.assertNotIn('object at', str(self.written))

    def test_executor_mode_completes_future(self):
        """With an executor the caller may wait on the returned future."""
        with ThreadPoolExecutor(max_workers=1) as executor:
            logger = ActivityLogger(writer=self.written.append, executor=executor)
            future = logger.log_update(self.task_id, {'priority': 'high'}, {'priority': 'low'})
            entries = future.result(timeout=5)

        self.assertEqual(len(entries), 1)
        self.assertEqual(len(self.written), 1)

    def test_default_writer_persists_rows(self):
        user = User.objects.create_user(username='logger', password='pw')
        ActivityLogger().log_lifecycle(self.task_id, 'created', actor_id=user.pk).result()

        log = ActivityLog.objects.get()
        self.assertEqual(log.task_id, self.task_id)
        self.assertEqual(log.action, 'created')
        self.assertEqual(log.user, user)


class ActivityLogModelTests(TestCase):
    """Tests for the append-only audit trail."""

    def test_entries_cannot_be_updated(self):
        log = ActivityLog.objects.create(task_id=uuid.uuid4(), action='created')
        log.action = 'deleted'
        with self.assertRaises(ActivityLogImmutableError):
            log.save()

    def test_entries_cannot_be_deleted(self):
        log = ActivityLog.objects.create(task_id=uuid.uuid4(), action='created')
        with self.assertRaises(ActivityLogImmutableError):
            log.delete()
        self.assertEqual(ActivityLog.objects.count(), 1)

    def test_bulk_update_refused(self):
        ActivityLog.objects.create(task_id=uuid.uuid4(), action='created')
        with self.assertRaises(ActivityLogImmutableError):
            ActivityLog.objects.filter(action='created').update(action='deleted')
        self.assertEqual(ActivityLog.objects.get().action, 'created')

    def test_bulk_delete_refused(self):
        ActivityLog.objects.create(task_id=uuid.uuid4(), action='created')
        with self.assertRaises(ActivityLogImmutableError):
            ActivityLog.objects.all().delete()
        self.assertEqual(ActivityLog.objects.count(), 1)

    def test_deleting_user_keeps_entries_intact(self):
        user = User.objects.create_user(username='leaver', password='pw')
        user_pk = user.pk
        log = ActivityLog.objects.create(task_id=uuid.uuid4(), action='created', user=user)

        user.delete()

        log.refresh_from_db()
        self.assertEqual(log.user_id, user_pk)
        self.assertEqual(log.action, 'created')

    def test_exactly_one_reference_required(self):
        with self.assertRaises(ValidationError):
            ActivityLog.objects.create(action='created')
        with self.assertRaises(ValidationError):
            ActivityLog.objects.create(task_id=uuid.uuid4(), list_id=uuid.uuid4(), action='created')


# ============================================
# SEARCH
# ============================================

class SearchTests(TestCase):
    """Tests for fuzzy search over name and description."""

    def setUp(self):
        self.items = [
            {'name': 'Buy groceries for the week', 'description': ''},
            {'name': 'Walk the dog', 'description': ''},
            {'name': 'Call mom', 'description': 'Ask about the groceries list'},
        ]

    def test_typo_still_matches(self):
        """A misspelt word still finds the task."""
        result = search(self.items, 'groceris', keys=('name',))
        self.assertEqual([i['name'] for i in result], ['Buy groceries for the week'])

    def test_description_is_searched(self):
        result = search(self.items, 'groceries')
        self.assertEqual([i['name'] for i in result], ['Buy groceries for the week', 'Call mom'])

    def test_blank_query_returns_everything_in_order(self):
        self.assertEqual(search(self.items, '   '), self.items)

    def test_no_match(self):
        self.assertEqual(search(self.items, 'xylophone'), [])

    def test_input_order_preserved(self):
        reversed_items = list(reversed(self.items))
        result = search(reversed_items, 'groceries')
        self.assertEqual([i['name'] for i in result], ['Call mom', 'Buy groceries for the week'])

    def test_exact_substring_scores_one(self):
        self.assertEqual(SequenceSimilarity().score('dog', 'Walk the dog'), 1.0)
        self.assertEqual(TrigramSimilarity().score('dog', 'Walk the dog'), 1.0)

    def test_trigram_similarity_is_pluggable(self):
        result = search(self.items, 'groceris', keys=('name',), similarity=TrigramSimilarity(), threshold=0.5)
        self.assertEqual([i['name'] for i in result], ['Buy groceries for the week'])

    def test_works_on_objects(self):
        task = make_task('Pay rent')
        self.assertEqual(search([task], 'rent'), [task])


# ============================================
# VIEW PIPELINE
# ============================================

class ViewStateTests(TestCase):

    def test_defaults(self):
        state = ViewState.from_query_params({})
        self.assertIsNone(state.selected_list_id)
        self.assertEqual(state.selected_view, 'all')
        self.assertEqual(state.search_query, '')
        self.assertTrue(state.show_completed)

    def test_parses_query_params(self):
        state = ViewState.from_query_params({'view': 'today', 'list': 'abc', 'q': 'milk', 'show_completed': 'false'})
        self.assertEqual(state, ViewState('abc', 'today', 'milk', False))


class PipelineTests(TestCase):
    """Tests for select_visible_tasks."""

    def select(self, tasks, **state):
        return select_visible_tasks(tasks, ViewState(**state), now=NOW)

    def test_today_hides_completed_when_asked(self):
        """Only today's open tasks remain when completed ones are hidden."""
        tasks = [
            make_task('A', date=at(0), priority='high'),
            make_task('B', date=at(0), priority='low', completed=True),
        ]
        result = self.select(tasks, selected_view='today', show_completed=False)
        self.assertEqual(names(result), ['A'])

    def test_today_window(self):
        tasks = [
            make_task('yesterday', date=at(-1)),
            make_task('morning', date=at(0, 6)),
            make_task('evening', date=at(0, 22)),
            make_task('tomorrow', date=at(1)),
            make_task('undated'),
        ]
        result = self.select(tasks, selected_view='today')
        self.assertEqual(sorted(names(result)), ['evening', 'morning'])

    def test_next_seven_days_window_is_inclusive(self):
        tasks = [
            make_task('past', date=at(-1)),
            make_task('today', date=at(0)),
            make_task('day seven', date=at(7)),
            make_task('day eight', date=at(8)),
            make_task('undated'),
        ]
        result = self.select(tasks, selected_view='next7days')
        self.assertEqual(names(result), ['today', 'day seven'])

    def test_windows_use_the_active_time_zone(self):
        """Calendar days come from the local zone, not from UTC."""
        # 21:00 on March 14 in Los Angeles
        now = datetime(2024, 3, 15, 4, 0, tzinfo=UTC)
        tasks = [
            make_task('local evening', date=datetime(2024, 3, 15, 2, 0, tzinfo=UTC)),
            make_task('local tomorrow', date=datetime(2024, 3, 15, 9, 0, tzinfo=UTC)),
            make_task('local yesterday', date=datetime(2024, 3, 14, 6, 0, tzinfo=UTC)),
        ]
        with timezone.override('America/Los_Angeles'):
            today = select_visible_tasks(tasks, ViewState(selected_view='today'), now=now)
            upcoming = select_visible_tasks(tasks, ViewState(selected_view='upcoming'), now=now)

        self.assertEqual(names(today), ['local evening'])
        self.assertEqual(sorted(names(upcoming)), ['local evening', 'local tomorrow'])

    def test_upcoming_has_no_upper_bound(self):
        tasks = [
            make_task('past', date=at(-3)),
            make_task('far', date=at(90)),
            make_task('today', date=at(0)),
            make_task('undated'),
        ]
        result = self.select(tasks, selected_view='upcoming')
        self.assertEqual(names(result), ['today', 'far'])

    def test_unknown_view_behaves_like_all(self):
        tasks = [make_task('dated', date=at(-5)), make_task('undated')]
        result = self.select(tasks, selected_view='someday')
        self.assertEqual(len(result), 2)

    def test_list_scope_overrides_time_window(self):
        tasks = [
            make_task('work undated', list_id='work'),
            make_task('work later', list_id='work', date=at(30)),
            make_task('home today', list_id='home', date=at(0)),
        ]
        result = self.select(tasks, selected_list_id='work', selected_view='today')
        self.assertEqual(sorted(names(result)), ['work later', 'work undated'])

    def test_search_runs_after_filters(self):
        tasks = [
            make_task('Buy groceries', date=at(0)),
            make_task('Buy groceries again', date=at(3)),
            make_task('Walk the dog', date=at(0)),
        ]
        result = self.select(tasks, selected_view='today', search_query='groceries')
        self.assertEqual(names(result), ['Buy groceries'])

    def test_custom_searcher(self):
        tasks = [make_task('one'), make_task('two')]
        result = select_visible_tasks(
            tasks,
            ViewState(search_query='anything'),
            now=NOW,
            searcher=lambda items, query: [t for t in items if t.name == 'two'],
        )
        self.assertEqual(names(result), ['two'])

    def test_sort_order(self):
        """Open first, dated by date, then priority, then newest."""
        tasks = [
            make_task('done', date=at(-2), completed=True),
            make_task('undated high', priority='high'),
            make_task('later', date=at(2)),
            make_task('soon low', date=at(1), priority='low'),
            make_task('soon high', date=at(1), priority='high'),
            make_task('soon high newer', date=at(1), priority='high', created_at=NOW + timedelta(hours=1)),
        ]
        result = self.select(tasks)
        self.assertEqual(names(result), [
            'soon high newer', 'soon high', 'soon low', 'later', 'undated high', 'done',
        ])

    def test_full_ties_keep_input_order(self):
        tasks = [make_task(f'tie {i}', date=at(0), priority='medium') for i in range(5)]
        self.assertEqual(names(self.select(tasks)), names(tasks))

    def test_idempotent_and_input_untouched(self):
        tasks = [make_task('b', date=at(2)), make_task('a', date=at(1)), make_task('c')]
        snapshot = list(tasks)
        first = self.select(tasks, selected_view='all')
        second = self.select(tasks, selected_view='all')

        self.assertEqual(first, second)
        self.assertEqual(tasks, snapshot)

    def test_output_is_subset_of_input(self):
        tasks = [make_task(str(i), date=at(i - 3), completed=i % 2 == 0) for i in range(8)]
        result = self.select(tasks, selected_view='upcoming', show_completed=False)
        for task in result:
            self.assertIn(task, tasks)
            self.assertFalse(task.completed)

    def test_empty_input(self):
        self.assertEqual(self.select([], selected_view='today'), [])


# ============================================
# SUGGESTION SCORER
# ============================================

class TaskPriorityScorerTests(TestCase):
    """Tests for the additive suggestion score."""

    def setUp(self):
        self.scorer = TaskPriorityScorer(reference_date=TODAY)

    def test_priority_points(self):
        self.assertEqual(self.scorer.calculate_priority_points('high'), 100)
        self.assertEqual(self.scorer.calculate_priority_points('medium'), 50)
        self.assertEqual(self.scorer.calculate_priority_points('low'), 20)
        self.assertEqual(self.scorer.calculate_priority_points('none'), 0)

    def test_deadline_bands_are_hard_cutoffs(self):
        self.assertEqual(self.scorer.calculate_deadline_points(None), 0)
        self.assertEqual(self.scorer.calculate_deadline_points(-1), 200)
        self.assertEqual(self.scorer.calculate_deadline_points(0), 150)
        self.assertEqual(self.scorer.calculate_deadline_points(1), 80)
        self.assertEqual(self.scorer.calculate_deadline_points(3), 80)
        self.assertEqual(self.scorer.calculate_deadline_points(4), 40)
        self.assertEqual(self.scorer.calculate_deadline_points(7), 40)
        self.assertEqual(self.scorer.calculate_deadline_points(8), 0)

    def test_deadline_days_are_calendar_days(self):
        """A deadline late tomorrow is one day away regardless of the hour."""
        self.assertEqual(self.scorer.days_until(at(1, 23)), 1)
        self.assertEqual(self.scorer.days_until(at(-1, 23)), -1)

    def test_schedule_points(self):
        self.assertEqual(self.scorer.calculate_schedule_points(at(-2)), 50)
        self.assertEqual(self.scorer.calculate_schedule_points(at(0)), 50)
        self.assertEqual(self.scorer.calculate_schedule_points(at(1)), 0)
        self.assertEqual(self.scorer.calculate_schedule_points(None), 0)

    def test_recurrence_points(self):
        self.assertEqual(self.scorer.calculate_recurrence_points('weekly'), 10)
        self.assertEqual(self.scorer.calculate_recurrence_points(None), 0)

    def test_overdue_without_priority_beats_medium(self):
        """An overdue task with no priority (200) outranks a medium task with no deadline (50)."""
        overdue = make_task('overdue', deadline=at(-1))
        medium = make_task('medium', priority='medium')

        self.assertEqual(self.scorer.score_task(overdue).score, 200)
        self.assertEqual(self.scorer.score_task(medium).score, 50)
        self.assertEqual(names(suggest_top([medium, overdue], 3, reference_date=TODAY)), ['overdue', 'medium'])

    def test_completed_tasks_excluded(self):
        tasks = [
            make_task('done', priority='high', deadline=at(-1), completed=True),
            make_task('open', priority='low'),
        ]
        self.assertEqual(names(suggest_top(tasks, 3, reference_date=TODAY)), ['open'])

    def test_truncates_and_never_pads(self):
        tasks = [make_task(f't{i}', priority='high') for i in range(5)]
        self.assertEqual(len(self.scorer.suggest_top_tasks(tasks, count=3)), 3)
        self.assertEqual(len(self.scorer.suggest_top_tasks(tasks[:2], count=3)), 2)
        self.assertEqual(self.scorer.suggest_top_tasks([], count=3), [])

    def test_scores_non_increasing_and_ties_stable(self):
        tasks = [
            make_task('low a', priority='low'),
            make_task('high', priority='high'),
            make_task('low b', priority='low'),
            make_task('today', deadline=at(0)),
        ]
        suggested = self.scorer.suggest_top_tasks(tasks, count=4)
        scores = [s.score for s in suggested]

        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual([s.task.name for s in suggested], ['today', 'high', 'low a', 'low b'])

    def test_explanation_and_dict(self):
        scored = self.scorer.score_task(make_task('rent', priority='high', deadline=at(-2), recurring='monthly'))
        data = scored_task_to_dict(scored)

        self.assertEqual(data['score'], 310)
        self.assertTrue(data['is_overdue'])
        self.assertEqual(data['days_until_deadline'], -2)
        self.assertEqual(data['score_breakdown'], {'priority': 100, 'deadline': 200, 'schedule': 0, 'recurrence': 10})
        self.assertIn('Overdue by 2 day(s)', data['explanation'])
        self.assertEqual(data['task']['name'], 'rent')


# ============================================
# ANALYTICS
# ============================================

class DurationParsingTests(TestCase):

    def test_two_part_is_minutes_and_seconds(self):
        self.assertEqual(parse_duration_minutes('01:30'), 1)
        self.assertEqual(parse_duration_minutes('45:59'), 45)

    def test_three_part_is_hours_minutes_seconds(self):
        self.assertEqual(parse_duration_minutes('01:30:00'), 90)
        self.assertEqual(parse_duration_minutes('00:00:59'), 0)

    def test_malformed_is_zero(self):
        for value in (None, '', 'abc', '1', '1:2:3:4', 'aa:bb', '-1:00'):
            self.assertEqual(parse_duration_minutes(value), 0, value)

    def test_only_ascii_digits_count(self):
        self.assertEqual(parse_duration_minutes('١٢:٣٠'), 0)
        self.assertEqual(parse_duration_minutes('+1:00'), 0)


class AnalyticsSnapshotTests(TestCase):
    """Tests for the pure analytics aggregation."""

    def setUp(self):
        self.work = SimpleNamespace(id='work', name='Work', color='#111111')
        self.home = SimpleNamespace(id='home', name='Home', color='#222222')
        self.empty = SimpleNamespace(id='empty', name='Empty', color='#333333')
        self.urgent = SimpleNamespace(id='urgent', name='Urgent', color='#ff0000')
        self.unused = SimpleNamespace(id='unused', name='Unused', color='#00ff00')

    def snapshot(self, tasks, label_ids_by_task=None):
        return build_analytics_snapshot(
            tasks,
            [self.work, self.home, self.empty],
            [self.urgent, self.unused],
            label_ids_by_task or {},
            now=NOW,
        )

    def test_empty_input(self):
        """Zero tasks yields a zero completion rate and empty breakdowns."""
        result = self.snapshot([])

        self.assertEqual(result['summary'], {
            'total_tasks': 0, 'completed_tasks': 0, 'active_tasks': 0, 'completion_rate': 0,
        })
        self.assertEqual(result['tasks_by_list'], [])
        self.assertEqual(result['tasks_by_label'], [])
        self.assertEqual(result['time_spent_by_list'], [])
        self.assertEqual(len(result['productivity_trend']), 30)

    def test_summary(self):
        tasks = [
            make_task('a', list_id='work', completed=True, completed_at=at(0)),
            make_task('b', list_id='work'),
            make_task('c', list_id='home'),
            make_task('d', list_id='home'),
        ]
        summary = self.snapshot(tasks)['summary']

        self.assertEqual(summary['total_tasks'], 4)
        self.assertEqual(summary['completed_tasks'], 1)
        self.assertEqual(summary['active_tasks'], 3)
        self.assertEqual(summary['completion_rate'], 25.0)

    def test_trend_buckets(self):
        tasks = [
            make_task('new', created_at=at(0)),
            make_task('week old', created_at=at(-7), completed=True, completed_at=at(-1)),
            make_task('ancient', created_at=at(-60), completed=True, completed_at=at(-45)),
        ]
        trend = self.snapshot(tasks)['productivity_trend']
        by_date = {bucket['date']: bucket for bucket in trend}

        self.assertEqual(trend[0]['date'], (TODAY - timedelta(days=29)).isoformat())
        self.assertEqual(trend[-1]['date'], TODAY.isoformat())
        self.assertEqual([b['date'] for b in trend], sorted(b['date'] for b in trend))
        self.assertEqual(by_date[TODAY.isoformat()]['created'], 1)
        self.assertEqual(by_date[(TODAY - timedelta(days=7)).isoformat()]['created'], 1)
        self.assertEqual(by_date[(TODAY - timedelta(days=1)).isoformat()]['completed'], 1)
        self.assertEqual(sum(b['completed'] for b in trend), 1)
        self.assertEqual(sum(b['created'] for b in trend), 2)

    def test_breakdowns_are_sparse(self):
        tasks = [
            make_task('a', id='t1', list_id='work'),
            make_task('b', id='t2', list_id='work'),
            make_task('c', id='t3', list_id='home'),
        ]
        result = self.snapshot(tasks, {'t1': ['urgent'], 't3': ['urgent']})

        self.assertEqual(result['tasks_by_list'], [
            {'id': 'work', 'name': 'Work', 'count': 2, 'color': '#111111'},
            {'id': 'home', 'name': 'Home', 'count': 1, 'color': '#222222'},
        ])
        self.assertEqual(result['tasks_by_label'], [
            {'id': 'urgent', 'name': 'Urgent', 'count': 2, 'color': '#ff0000'},
        ])

    def test_two_part_and_three_part_time_differ(self):
        """'01:30' is one minute while '01:30:00' is ninety minutes."""
        tasks = [
            make_task('short', list_id='work', actual_time='01:30'),
            make_task('long', list_id='home', actual_time='01:30:00'),
            make_task('broken', list_id='home', actual_time='soon'),
            make_task('none', list_id='empty'),
        ]
        spent = {e['id']: e['minutes'] for e in self.snapshot(tasks)['time_spent_by_list']}

        self.assertEqual(spent, {'work': 1, 'home': 90})

    def test_inputs_not_mutated(self):
        tasks = [make_task('a', list_id='work', actual_time='00:10:00')]
        before = vars(tasks[0]).copy()
        first = self.snapshot(tasks)
        second = self.snapshot(tasks)

        self.assertEqual(first, second)
        self.assertEqual(vars(tasks[0]), before)


# ============================================
# MODELS AND SERVICES
# ============================================

class ModelTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='pw')

    def test_default_list_created_once(self):
        inbox = TaskList.objects.default_for(self.user)

        self.assertEqual(inbox.name, 'Inbox')
        self.assertTrue(inbox.is_default)
        self.assertEqual(TaskList.objects.default_for(self.user), inbox)
        self.assertEqual(TaskList.objects.filter(user=self.user).count(), 1)

    def test_completed_at_follows_completed(self):
        task = Task.objects.create(user=self.user, list=TaskList.objects.default_for(self.user), name='x')
        self.assertIsNone(task.completed_at)

        task.completed = True
        task.save()
        self.assertIsNotNone(task.completed_at)

        task.completed = False
        task.save()
        self.assertIsNone(task.completed_at)

    def test_duration_validator_rejects_non_ascii_digits(self):
        duration_validator('01:30')
        duration_validator('01:30:00')
        with self.assertRaises(ValidationError):
            duration_validator('١٢:٣٠')

    def test_label_names_unique_per_user(self):
        Label.objects.create(user=self.user, name='urgent')
        other = User.objects.create_user(username='bob', password='pw')
        Label.objects.create(user=other, name='urgent')

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Label.objects.create(user=self.user, name='urgent')


class PlannerServiceTests(TestCase):
    """Tests for mutations and the activity entries they produce."""

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='pw')
        self.entries = []
        self.service = PlannerService(self.user, ActivityLogger(writer=self.entries.append))

    def actions(self):
        return [(e['action'], e['field']) for e in self.entries]

    def test_create_task_uses_default_list(self):
        task = self.service.create_task({'name': 'Buy milk'})

        self.assertEqual(task.list, TaskList.objects.default_for(self.user))
        self.assertEqual(self.actions(), [('created', None)])

    def test_update_logs_changed_fields_only(self):
        task = self.service.create_task({'name': 'Buy milk', 'priority': 'low'})
        self.entries.clear()

        self.service.update_task(task.pk, {'name': 'Buy milk', 'priority': 'high'})

        self.assertEqual(self.actions(), [('updated', 'priority')])
        self.assertEqual(self.entries[0]['old_value'], 'low')
        self.assertEqual(self.entries[0]['new_value'], 'high')

    def test_label_reorder_is_not_logged(self):
        a = Label.objects.create(user=self.user, name='a')
        b = Label.objects.create(user=self.user, name='b')
        task = self.service.create_task({'name': 'x', 'labels': [a, b]})
        self.entries.clear()

        self.service.update_task(task.pk, {'labels': [b, a]})
        self.assertEqual(self.entries, [])

        self.service.update_task(task.pk, {'labels': [a]})
        self.assertEqual(self.actions(), [('updated', 'labels')])

    def test_toggle_logs_completed_then_field_change(self):
        task = self.service.create_task({'name': 'x'})
        self.entries.clear()

        task = self.service.toggle_task(task.pk)
        self.assertTrue(task.completed)
        self.assertEqual(self.actions(), [('completed', None)])

        task = self.service.toggle_task(task.pk)
        self.assertFalse(task.completed)
        self.assertIsNone(task.completed_at)
        self.assertEqual(self.entries[-1]['field'], 'completed')
        self.assertEqual(self.entries[-1]['old_value'], 'true')
        self.assertEqual(self.entries[-1]['new_value'], 'false')

    def test_move_task(self):
        task = self.service.create_task({'name': 'x'})
        work = self.service.create_list({'name': 'Work'})
        self.entries.clear()

        task = self.service.move_task(task.pk, work.pk)

        self.assertEqual(task.list, work)
        self.assertEqual(self.actions(), [('moved', None)])

    def test_move_to_foreign_list_rejected(self):
        task = self.service.create_task({'name': 'x'})
        other = User.objects.create_user(username='bob', password='pw')
        foreign = TaskList.objects.default_for(other)

        with self.assertRaises(PlannerError) as ctx:
            self.service.move_task(task.pk, foreign.pk)
        self.assertEqual(ctx.exception.code, ErrorCode.ERR_INVALID_LIST)

    def test_delete_task(self):
        task = self.service.create_task({'name': 'x'})
        self.service.delete_task(task.pk)

        self.assertFalse(Task.objects.filter(pk=task.pk).exists())
        self.assertEqual(self.entries[-1]['action'], 'deleted')
        self.assertEqual(self.entries[-1]['task_id'], task.pk)

    def test_default_list_cannot_be_deleted(self):
        inbox = TaskList.objects.default_for(self.user)
        with self.assertRaises(PlannerError) as ctx:
            self.service.delete_list(inbox.pk)
        self.assertEqual(ctx.exception.code, ErrorCode.ERR_DEFAULT_LIST)

    def test_deleting_list_cascades(self):
        work = self.service.create_list({'name': 'Work'})
        task = self.service.create_task({'name': 'x', 'list': work})

        self.service.delete_list(work.pk)

        self.assertFalse(Task.objects.filter(pk=task.pk).exists())
        self.assertEqual(self.entries[-1]['list_id'], work.pk)

    def test_default_switch_logs_demoted_list(self):
        inbox = TaskList.objects.default_for(self.user)
        work = self.service.create_list({'name': 'Work', 'is_default': True})

        inbox.refresh_from_db()
        self.assertFalse(inbox.is_default)
        demoted = self.entries[0]
        self.assertEqual(demoted['list_id'], inbox.pk)
        self.assertEqual(
            (demoted['field'], demoted['old_value'], demoted['new_value']),
            ('is_default', 'true', 'false'),
        )
        self.assertEqual(self.entries[1]['list_id'], work.pk)

        self.entries.clear()
        self.service.update_list(inbox.pk, {'is_default': True})

        work.refresh_from_db()
        self.assertFalse(work.is_default)
        self.assertEqual(
            [(e['list_id'], e['field'], e['new_value']) for e in self.entries],
            [(work.pk, 'is_default', 'false'), (inbox.pk, 'is_default', 'true')],
        )

    def test_label_logging_references_label(self):
        label = self.service.create_label({'name': 'urgent'})
        self.service.update_label(label.pk, {'color': '#ff0000'})

        self.assertEqual(self.entries[0]['label_id'], label.pk)
        self.assertEqual(self.actions(), [('created', None), ('updated', 'color')])

    def test_duplicate_label_rejected(self):
        self.service.create_label({'name': 'urgent'})
        with self.assertRaises(PlannerError):
            self.service.create_label({'name': 'urgent'})

    def test_instantiate_template(self):
        work = self.service.create_list({'name': 'Work'})
        template = TaskTemplate.objects.create(
            user=self.user, name='Weekly report', priority='high', estimate='01:00', list=work
        )

        task = self.service.instantiate_template(template.pk, {'deadline': at(3)})

        self.assertEqual(task.name, 'Weekly report')
        self.assertEqual(task.priority, 'high')
        self.assertEqual(task.list, work)
        self.assertEqual(task.deadline, at(3))

    def test_failing_activity_log_does_not_fail_mutation(self):
        def broken(entry):
            raise RuntimeError('down')

        service = PlannerService(self.user, ActivityLogger(writer=broken))
        with self.assertLogs('planner.activity', level='ERROR'):
            task = service.create_task({'name': 'still saved'})
        self.assertTrue(Task.objects.filter(pk=task.pk).exists())

    def test_compute_analytics_from_database(self):
        label = Label.objects.create(user=self.user, name='urgent')
        self.service.create_task({'name': 'a', 'labels': [label], 'actual_time': '00:45:00'})
        done = self.service.create_task({'name': 'b'})
        self.service.toggle_task(done.pk)

        result = compute_analytics(self.user)

        self.assertEqual(result['summary']['total_tasks'], 2)
        self.assertEqual(result['summary']['completion_rate'], 50.0)
        self.assertEqual(result['tasks_by_label'][0]['count'], 1)
        self.assertEqual(result['time_spent_by_list'][0]['minutes'], 45)
        self.assertEqual(result['productivity_trend'][-1]['created'], 2)
        self.assertEqual(result['productivity_trend'][-1]['completed'], 1)


# ============================================
# API ENDPOINTS
# ============================================

class APIEndpointTests(APITestCase):
    """Integration tests for the API endpoints."""

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='pw')
        self.client.force_authenticate(user=self.user)

    def create_task(self, **data):
        response = self.client.post('/api/tasks/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data

    def test_authentication_required(self):
        self.client.force_authenticate(user=None)
        response = self.client.get('/api/tasks/')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_api_info_endpoint(self):
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('endpoints', response.data)
        self.assertIn('ERR_NOT_FOUND', response.data['error_codes'])

    def test_create_task_lands_in_inbox(self):
        data = self.create_task(name='  Buy milk  ')

        inbox = TaskList.objects.get(user=self.user, is_default=True)
        self.assertEqual(data['name'], 'Buy milk')
        self.assertEqual(str(data['list']), str(inbox.pk))
        self.assertEqual(ActivityLog.objects.filter(action='created').count(), 1)

    def test_blank_name_rejected(self):
        response = self.client.post('/api/tasks/', {'name': '   '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], 'ERR_VALIDATION')
        self.assertIn('name', response.data['errors'])

    def test_bad_duration_rejected(self):
        response = self.client.post('/api/tasks/', {'name': 'x', 'estimate': '90 minutes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_today_view_hides_completed(self):
        now = timezone.now().isoformat()
        self.create_task(name='A', date=now, priority='high')
        done = self.create_task(name='B', date=now, priority='low')
        self.client.post(f"/api/tasks/{done['id']}/toggle/")
        self.create_task(name='C')

        response = self.client.get('/api/tasks/', {'view': 'today', 'show_completed': 'false'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['name'] for t in response.data], ['A'])

    def test_fuzzy_search_endpoint(self):
        self.create_task(name='Buy groceries for the week')
        self.create_task(name='Walk the dog')

        response = self.client.get('/api/tasks/', {'q': 'groceris'})
        self.assertEqual([t['name'] for t in response.data], ['Buy groceries for the week'])

    def test_patch_logs_changed_field(self):
        task = self.create_task(name='Buy milk')

        response = self.client.patch(f"/api/tasks/{task['id']}/", {'priority': 'high'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['priority'], 'high')

        log = ActivityLog.objects.get(action='updated')
        self.assertEqual(log.field, 'priority')
        self.assertEqual(log.old_value, 'none')
        self.assertEqual(log.new_value, 'high')

        self.client.patch(f"/api/tasks/{task['id']}/", {'priority': 'high'}, format='json')
        self.assertEqual(ActivityLog.objects.filter(action='updated').count(), 1)

    def test_toggle_sets_completed_at(self):
        task = self.create_task(name='x')

        response = self.client.post(f"/api/tasks/{task['id']}/toggle/")
        self.assertTrue(response.data['completed'])
        self.assertIsNotNone(response.data['completed_at'])

        response = self.client.post(f"/api/tasks/{task['id']}/toggle/")
        self.assertFalse(response.data['completed'])
        self.assertIsNone(response.data['completed_at'])

    def test_move_task(self):
        task = self.create_task(name='x')
        work = self.client.post('/api/lists/', {'name': 'Work'}, format='json').data

        response = self.client.post(f"/api/tasks/{task['id']}/move/", {'list': work['id']}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(str(response.data['list']), work['id'])
        self.assertTrue(ActivityLog.objects.filter(action='moved').exists())

    def test_move_to_unknown_list(self):
        task = self.create_task(name='x')
        response = self.client.post(f"/api/tasks/{task['id']}/move/", {'list': str(uuid.uuid4())}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_LIST')

    def test_other_users_tasks_are_invisible(self):
        other = User.objects.create_user(username='bob', password='pw')
        foreign = Task.objects.create(user=other, list=TaskList.objects.default_for(other), name='secret')

        self.assertEqual(self.client.get(f'/api/tasks/{foreign.pk}/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get('/api/tasks/').data, [])
        response = self.client.delete(f'/api/tasks/{foreign.pk}/')
        self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')
        self.assertTrue(Task.objects.filter(pk=foreign.pk).exists())

    def test_cannot_use_another_users_list(self):
        other = User.objects.create_user(username='bob', password='pw')
        foreign = TaskList.objects.default_for(other)

        response = self.client.post('/api/tasks/', {'name': 'x', 'list': str(foreign.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_task(self):
        task = self.create_task(name='x')

        response = self.client.delete(f"/api/tasks/{task['id']}/")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(ActivityLog.objects.filter(action='deleted', task_id=task['id']).exists())

    def test_subtasks(self):
        task = self.create_task(name='Trip')
        url = f"/api/tasks/{task['id']}/subtasks/"

        created = self.client.post(url, {'name': 'Pack'}, format='json')
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        updated = self.client.patch(f"/api/subtasks/{created.data['id']}/", {'completed': True}, format='json')
        self.assertTrue(updated.data['completed'])

        detail = self.client.get(f"/api/tasks/{task['id']}/")
        self.assertEqual([s['name'] for s in detail.data['subtasks']], ['Pack'])

        response = self.client.delete(f"/api/subtasks/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_attachments_and_reminders(self):
        task = self.create_task(name='Taxes')

        attachment = self.client.post(
            f"/api/tasks/{task['id']}/attachments/",
            {'filename': 'w2.pdf', 'file_path': '/uploads/w2.pdf', 'file_size': 2048, 'mime_type': 'application/pdf'},
            format='json',
        )
        reminder = self.client.post(
            f"/api/tasks/{task['id']}/reminders/",
            {'reminder_time': '2030-04-01T09:00:00Z'},
            format='json',
        )
        self.assertEqual(attachment.status_code, status.HTTP_201_CREATED)
        self.assertEqual(reminder.status_code, status.HTTP_201_CREATED)

        self.assertEqual(len(self.client.get(f"/api/tasks/{task['id']}/reminders/").data), 1)
        self.assertEqual(
            self.client.delete(f"/api/attachments/{attachment.data['id']}/").status_code,
            status.HTTP_204_NO_CONTENT,
        )

    def test_lists_include_inbox(self):
        response = self.client.get('/api/lists/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([l['name'] for l in response.data], ['Inbox'])

    def test_default_list_delete_refused(self):
        inbox = TaskList.objects.default_for(self.user)

        response = self.client.delete(f'/api/lists/{inbox.pk}/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_DEFAULT_LIST')

    def test_list_tasks(self):
        work = self.client.post('/api/lists/', {'name': 'Work'}, format='json').data
        self.create_task(name='report', list=work['id'])
        self.create_task(name='groceries')

        response = self.client.get(f"/api/lists/{work['id']}/tasks/")
        self.assertEqual([t['name'] for t in response.data], ['report'])

    def test_labels(self):
        created = self.client.post('/api/labels/', {'name': 'urgent', 'color': '#ff0000'}, format='json')
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        duplicate = self.client.post('/api/labels/', {'name': 'urgent'}, format='json')
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)

        task = self.create_task(name='x', labels=[created.data['id']])
        self.assertEqual([str(l) for l in task['labels']], [created.data['id']])

    def test_templates(self):
        created = self.client.post('/api/templates/', {'name': 'Standup', 'priority': 'medium'}, format='json')
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        response = self.client.post(f"/api/templates/{created.data['id']}/instantiate/", {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Standup')
        self.assertEqual(response.data['priority'], 'medium')

    def test_activity_logs_filter_and_paginate(self):
        first = self.create_task(name='one')
        self.create_task(name='two')
        self.client.patch(f"/api/tasks/{first['id']}/", {'name': 'uno'}, format='json')

        response = self.client.get('/api/activity-logs/', {'task': first['id']})
        self.assertEqual(response.data['count'], 2)
        self.assertEqual({e['action'] for e in response.data['results']}, {'created', 'updated'})

        page = self.client.get('/api/activity-logs/', {'limit': 1, 'offset': 1})
        self.assertEqual(page.data['count'], 3)
        self.assertEqual(len(page.data['results']), 1)

    def test_activity_logs_bad_query(self):
        response = self.client.get('/api/activity-logs/', {'limit': 'lots'})
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_QUERY')

    def test_suggest_endpoint(self):
        yesterday = (timezone.now() - timedelta(days=1)).isoformat()
        self.create_task(name='overdue', deadline=yesterday)
        self.create_task(name='medium', priority='medium')
        self.create_task(name='low', priority='low')
        done = self.create_task(name='done', priority='high')
        self.client.post(f"/api/tasks/{done['id']}/toggle/")

        response = self.client.get('/api/tasks/suggest/', {'count': 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(
            [s['task']['name'] for s in response.data['suggested_tasks']],
            ['overdue', 'medium'],
        )
        self.assertEqual(response.data['suggested_tasks'][0]['score'], 200)

    def test_analytics_endpoint_empty(self):
        response = self.client.get('/api/analytics/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['completion_rate'], 0)
        self.assertEqual(response.data['tasks_by_list'], [])
        self.assertEqual(len(response.data['productivity_trend']), 30)
