"""
Mutation services for the Daily Task Planner.

Every write to tasks, lists, labels and their children goes through a
PlannerService bound to one user. The service enforces ownership, keeps the
task invariants, and reports each change to the ActivityLogger. Activity
logging never blocks or fails a mutation.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from django.db import transaction

from .activity import ActivityLogger, snapshot
from .errors import ErrorCode, NotFoundError, PlannerError
from .models import (
    ActivityAction,
    Attachment,
    Label,
    Reminder,
    Subtask,
    Task,
    TaskList,
    TaskTemplate,
)

logger = logging.getLogger(__name__)


def _label_ids(labels: Iterable[Any]) -> set:
    return {str(getattr(label, 'pk', label)) for label in labels}


class PlannerService:
    """
    Write operations for one user's planner data.

    Args:
        user: The owner every lookup and write is scoped to
        activity: ActivityLogger receiving created/updated/completed/moved/deleted events
    """

    def __init__(self, user, activity: ActivityLogger):
        self.user = user
        self.activity = activity

    @property
    def actor_id(self):
        return self.user.pk

    # ==================== Lookups ====================

    def get_task(self, task_id) -> Task:
        task = Task.objects.filter(pk=task_id, user=self.user).first()
        if task is None:
            raise NotFoundError('Task')
        return task

    def get_list(self, list_id) -> TaskList:
        task_list = TaskList.objects.filter(pk=list_id, user=self.user).first()
        if task_list is None:
            raise NotFoundError('List')
        return task_list

    def get_label(self, label_id) -> Label:
        label = Label.objects.filter(pk=label_id, user=self.user).first()
        if label is None:
            raise NotFoundError('Label')
        return label

    def get_template(self, template_id) -> TaskTemplate:
        template = TaskTemplate.objects.filter(pk=template_id, user=self.user).first()
        if template is None:
            raise NotFoundError('Template')
        return template

    def _own_list(self, task_list: Optional[TaskList]) -> TaskList:
        if task_list is None:
            return TaskList.objects.default_for(self.user)
        if task_list.user_id != self.user.pk:
            raise PlannerError(ErrorCode.ERR_INVALID_LIST, 'List not found')
        return task_list

    def _own_labels(self, labels: Iterable[Label]) -> list:
        labels = list(labels)
        if any(label.user_id != self.user.pk for label in labels):
            raise PlannerError(ErrorCode.ERR_INVALID_LABEL, 'Label not found')
        return labels

    # ==================== Tasks ====================

    def create_task(self, data: Dict) -> Task:
        """
        Create a task. Without a list it lands in the user's default list.

        Logs a single 'created' entry.
        """
        data = dict(data)
        labels = self._own_labels(data.pop('labels', []))
        data['list'] = self._own_list(data.get('list'))

        with transaction.atomic():
            task = Task.objects.create(user=self.user, **data)
            if labels:
                task.labels.set(labels)

        logger.info("Created task %s in list %s", task.pk, task.list_id)
        self.activity.log_lifecycle(task.pk, ActivityAction.CREATED, self.actor_id)
        return task

    def update_task(self, task_id, updates: Dict) -> Task:
        """
        Apply a partial update and log one 'updated' entry per changed field.

        Labels are compared as sets of ids, so reordering is not a change.
        """
        task = self.get_task(task_id)
        updates = dict(updates)
        if 'list' in updates:
            updates['list'] = self._own_list(updates['list'])
        if 'labels' in updates:
            updates['labels'] = self._own_labels(updates['labels'])

        old = snapshot(task, updates.keys())

        with transaction.atomic():
            labels = updates.get('labels')
            for field, value in updates.items():
                if field != 'labels':
                    setattr(task, field, value)
            task.save()
            if labels is not None:
                task.labels.set(labels)

        logged = dict(updates)
        if labels is not None:
            logged['labels'] = _label_ids(labels)
        self.activity.log_update(task.pk, logged, old, self.actor_id)
        logger.debug("Updated task %s fields=%s", task.pk, sorted(updates))
        return task

    def toggle_task(self, task_id) -> Task:
        """
        Flip completion.

        Completing logs 'completed'; reopening logs the field change.
        """
        task = self.get_task(task_id)
        old = snapshot(task, ['completed'])
        task.completed = not task.completed
        task.save()

        if task.completed:
            self.activity.log_lifecycle(task.pk, ActivityAction.COMPLETED, self.actor_id)
        else:
            self.activity.log_update(task.pk, {'completed': False}, old, self.actor_id)
        logger.info("Task %s completed=%s", task.pk, task.completed)
        return task

    def move_task(self, task_id, list_id) -> Task:
        task = self.get_task(task_id)
        target = TaskList.objects.filter(pk=list_id, user=self.user).first()
        if target is None:
            raise PlannerError(ErrorCode.ERR_INVALID_LIST, 'Target list not found')
        if task.list_id == target.pk:
            return task

        task.list = target
        task.save(update_fields=['list', 'updated_at'])
        self.activity.log_lifecycle(task.pk, ActivityAction.MOVED, self.actor_id)
        logger.info("Moved task %s to list %s", task.pk, target.pk)
        return task

    def delete_task(self, task_id) -> None:
        task = self.get_task(task_id)
        pk = task.pk
        task.delete()
        self.activity.log_lifecycle(pk, ActivityAction.DELETED, self.actor_id)
        logger.info("Deleted task %s", pk)

    # ==================== Lists ====================

    def _demote_default_lists(self) -> None:
        """Clear is_default on the user's current default list(s), logging each change."""
        demoted = list(
            TaskList.objects.filter(user=self.user, is_default=True).values_list('pk', flat=True)
        )
        TaskList.objects.filter(pk__in=demoted).update(is_default=False)
        for pk in demoted:
            self.activity.log_update(pk, {'is_default': False}, {'is_default': True}, self.actor_id, kind='list')

    def create_list(self, data: Dict) -> TaskList:
        data = dict(data)
        if data.get('is_default'):
            self._demote_default_lists()
        task_list = TaskList.objects.create(user=self.user, **data)
        self.activity.log_lifecycle(task_list.pk, ActivityAction.CREATED, self.actor_id, kind='list')
        logger.info("Created list %s", task_list.pk)
        return task_list

    def update_list(self, list_id, updates: Dict) -> TaskList:
        task_list = self.get_list(list_id)
        old = snapshot(task_list, updates.keys())
        if updates.get('is_default') and not task_list.is_default:
            self._demote_default_lists()
        for field, value in updates.items():
            setattr(task_list, field, value)
        task_list.save()
        self.activity.log_update(task_list.pk, updates, old, self.actor_id, kind='list')
        return task_list

    def delete_list(self, list_id) -> None:
        """Delete a list and its tasks. The default list cannot be deleted."""
        task_list = self.get_list(list_id)
        if task_list.is_default:
            raise PlannerError(ErrorCode.ERR_DEFAULT_LIST, 'The default list cannot be deleted')
        pk = task_list.pk
        task_list.delete()
        self.activity.log_lifecycle(pk, ActivityAction.DELETED, self.actor_id, kind='list')
        logger.info("Deleted list %s", pk)

    # ==================== Labels ====================

    def _check_label_name(self, name: str, exclude=None) -> None:
        clash = Label.objects.filter(user=self.user, name=name)
        if exclude is not None:
            clash = clash.exclude(pk=exclude)
        if clash.exists():
            raise PlannerError(ErrorCode.ERR_VALIDATION, f"Label '{name}' already exists")

    def create_label(self, data: Dict) -> Label:
        self._check_label_name(data['name'])
        label = Label.objects.create(user=self.user, **data)
        self.activity.log_lifecycle(label.pk, ActivityAction.CREATED, self.actor_id, kind='label')
        return label

    def update_label(self, label_id, updates: Dict) -> Label:
        label = self.get_label(label_id)
        if 'name' in updates:
            self._check_label_name(updates['name'], exclude=label.pk)
        old = snapshot(label, updates.keys())
        for field, value in updates.items():
            setattr(label, field, value)
        label.save()
        self.activity.log_update(label.pk, updates, old, self.actor_id, kind='label')
        return label

    def delete_label(self, label_id) -> None:
        label = self.get_label(label_id)
        pk = label.pk
        label.delete()
        self.activity.log_lifecycle(pk, ActivityAction.DELETED, self.actor_id, kind='label')

    # ==================== Subtasks / attachments / reminders ====================

    def create_subtask(self, task_id, data: Dict) -> Subtask:
        task = self.get_task(task_id)
        return Subtask.objects.create(task=task, **data)

    def get_subtask(self, subtask_id) -> Subtask:
        subtask = Subtask.objects.filter(pk=subtask_id, task__user=self.user).first()
        if subtask is None:
            raise NotFoundError('Subtask')
        return subtask

    def update_subtask(self, subtask_id, updates: Dict) -> Subtask:
        subtask = self.get_subtask(subtask_id)
        for field, value in updates.items():
            setattr(subtask, field, value)
        subtask.save()
        return subtask

    def delete_subtask(self, subtask_id) -> None:
        self.get_subtask(subtask_id).delete()

    def create_attachment(self, task_id, data: Dict) -> Attachment:
        task = self.get_task(task_id)
        return Attachment.objects.create(task=task, **data)

    def delete_attachment(self, attachment_id) -> None:
        attachment = Attachment.objects.filter(pk=attachment_id, task__user=self.user).first()
        if attachment is None:
            raise NotFoundError('Attachment')
        attachment.delete()

    def create_reminder(self, task_id, data: Dict) -> Reminder:
        task = self.get_task(task_id)
        return Reminder.objects.create(task=task, **data)

    def delete_reminder(self, reminder_id) -> None:
        reminder = Reminder.objects.filter(pk=reminder_id, task__user=self.user).first()
        if reminder is None:
            raise NotFoundError('Reminder')
        reminder.delete()

    # ==================== Templates ====================

    def create_template(self, data: Dict) -> TaskTemplate:
        data = dict(data)
        if data.get('list') is not None:
            data['list'] = self._own_list(data['list'])
        return TaskTemplate.objects.create(user=self.user, **data)

    def update_template(self, template_id, updates: Dict) -> TaskTemplate:
        template = self.get_template(template_id)
        updates = dict(updates)
        if updates.get('list') is not None:
            updates['list'] = self._own_list(updates['list'])
        for field, value in updates.items():
            setattr(template, field, value)
        template.save()
        return template

    def delete_template(self, template_id) -> None:
        self.get_template(template_id).delete()

    def instantiate_template(self, template_id, overrides: Optional[Dict] = None) -> Task:
        """Create a task seeded from a template; ``overrides`` win over template values."""
        template = self.get_template(template_id)
        data = {
            'name': template.name,
            'description': template.description,
            'priority': template.priority,
            'estimate': template.estimate,
            'list': template.list,
        }
        data.update(overrides or {})
        return self.create_task(data)


def build_planner_service(user, activity: Optional[ActivityLogger] = None) -> PlannerService:
    """Wire a PlannerService for ``user`` with the default activity logger."""
    return PlannerService(user, activity or ActivityLogger())
