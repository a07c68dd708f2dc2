"""
Diff-based activity logging.

Every mutation path reports to an ActivityLogger, which compares the old and
new value of each updated field and appends one ActivityLog entry per field
that actually changed. Lifecycle events (created, completed, moved, deleted)
produce a single entry without field details.

Logging is best-effort: each write is attempted once, failures are recorded on
the ``planner.activity`` logger and skipped, and nothing is ever raised back
into the mutation that triggered it.
"""

import json
import logging
import uuid
from collections.abc import Mapping
from concurrent.futures import Executor, Future
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.core.exceptions import FieldDoesNotExist
from django.db import models
from django.utils import timezone

from .models import ActivityAction, ActivityLog

logger = logging.getLogger(__name__)

Entry = Dict[str, Any]
Writer = Callable[[Entry], Any]

ENTITY_KINDS = ('task', 'list', 'label')


def create_activity_log(entry: Entry) -> ActivityLog:
    """Default writer: persist one entry as an ActivityLog row."""
    return ActivityLog.objects.create(**entry)


def _plain(value: Any) -> Any:
    """
    Reduce a value to JSON-friendly primitives with a stable layout.

    Raises TypeError for values with no stable form.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        if isinstance(value, Enum):
            return value.value
        return value
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = value.astimezone(dt_timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, models.Model):
        return str(value.pk)
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(v) for v in value), key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    raise TypeError(f"Cannot log a value of type {type(value).__name__}")


def stringify_value(value: Any) -> Optional[str]:
    """
    Canonical string form of a field value.

    Two values are considered equal when their canonical strings are equal,
    which gives structural equality for dates, collections and related objects.
    """
    plain = _plain(value)
    if plain is None:
        return None
    if isinstance(plain, bool):
        return 'true' if plain else 'false'
    if isinstance(plain, str):
        return plain
    if isinstance(plain, (int, float)):
        return str(plain)
    return json.dumps(plain, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def read_field(entity: Any, field: str) -> Any:
    """
    Read a field from a mapping or a model instance.

    Many-to-many fields on saved instances read as a set of primary keys.
    """
    if isinstance(entity, Mapping):
        return entity.get(field)
    if isinstance(entity, models.Model):
        try:
            model_field = entity._meta.get_field(field)
        except FieldDoesNotExist:
            model_field = None
        if model_field is not None and model_field.many_to_many:
            if entity.pk is None or entity._state.adding:
                return set()
            return {str(pk) for pk in getattr(entity, field).values_list('pk', flat=True)}
    return getattr(entity, field, None)


def snapshot(entity: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Copy the current values of ``fields`` before a mutation overwrites them."""
    return {field: read_field(entity, field) for field in fields}


class ActivityLogger:
    """
    Builds activity log entries and hands them to a writer.

    Args:
        writer: The createActivityLog collaborator; receives one entry dict
                per call. Defaults to inserting an ActivityLog row.
        executor: Optional executor. When given, writes are submitted to it
                  and the caller may wait on or ignore the returned future.
        clock: Source of entry timestamps.
        id_factory: Source of entry ids.

    Both public methods return a Future that resolves to the list of entries
    that were persisted. Without an executor the future is already done when
    returned.
    """

    def __init__(
        self,
        writer: Optional[Writer] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = timezone.now,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4
    ):
        self.writer = writer or create_activity_log
        self.executor = executor
        self.clock = clock
        self.id_factory = id_factory

    # ---- entry construction ----

    def _entry(
        self,
        kind: str,
        entity_id: Any,
        action: str,
        actor_id: Any,
        field: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None
    ) -> Entry:
        if kind not in ENTITY_KINDS:
            raise ValueError(f"Unknown activity entity kind: {kind}")
        return {
            'id': self.id_factory(),
            f'{kind}_id': entity_id,
            'action': ActivityAction(action).value,
            'field': field,
            'old_value': old_value,
            'new_value': new_value,
            'user_id': actor_id,
            'created_at': self.clock(),
        }

    def diff_entries(
        self,
        entity_id: Any,
        updates: Mapping,
        old_entity: Any,
        actor_id: Any = None,
        kind: str = 'task'
    ) -> List[Entry]:
        """
        Entries for every key of ``updates`` whose value differs from ``old_entity``.

        A field whose value has no canonical string form is reported and
        skipped; the other fields are still compared.
        """
        entries = []
        for field, new in updates.items():
            try:
                old_str = stringify_value(read_field(old_entity, field))
                new_str = stringify_value(new)
            except TypeError:
                logger.exception("Skipping field %s of %s %s in activity log", field, kind, entity_id)
                continue
            if old_str == new_str:
                continue
            entries.append(self._entry(
                kind, entity_id, ActivityAction.UPDATED, actor_id,
                field=field, old_value=old_str, new_value=new_str
            ))
        return entries

    # ---- public API ----

    def log_update(
        self,
        entity_id: Any,
        updates: Mapping,
        old_entity: Any,
        actor_id: Any = None,
        kind: str = 'task'
    ) -> Future:
        """Log one 'updated' entry per changed field."""
        try:
            entries = self.diff_entries(entity_id, updates, old_entity, actor_id, kind)
        except Exception:
            logger.exception("Failed to diff %s %s for activity log", kind, entity_id)
            entries = []
        return self._dispatch(entries)

    def log_lifecycle(
        self,
        entity_id: Any,
        action: str,
        actor_id: Any = None,
        kind: str = 'task'
    ) -> Future:
        """Log a single field-less entry for created/completed/moved/deleted."""
        try:
            entries = [self._entry(kind, entity_id, action, actor_id)]
        except Exception:
            logger.exception("Failed to build %s entry for %s %s", action, kind, entity_id)
            entries = []
        return self._dispatch(entries)

    # ---- writing ----

    def _dispatch(self, entries: List[Entry]) -> Future:
        if not entries:
            done: Future = Future()
            done.set_result([])
            return done

        if self.executor is not None:
            try:
                return self.executor.submit(self._write_all, entries)
            except Exception:
                logger.exception("Activity executor rejected %d entries; writing inline", len(entries))

        done = Future()
        done.set_result(self._write_all(entries))
        return done

    def _write_all(self, entries: List[Entry]) -> List[Entry]:
        written = []
        for entry in entries:
            try:
                self.writer(entry)
            except Exception:
                logger.exception(
                    "Failed to write activity log action=%s field=%s",
                    entry.get('action'),
                    entry.get('field'),
                )
                continue
            written.append(entry)
        if written:
            logger.debug("Wrote %d activity log entries", len(written))
        return written
