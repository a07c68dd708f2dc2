"""
Models for the Daily Task Planner.

This module defines the planner's entities: lists, labels, tasks with their
subtasks, attachments and reminders, reusable task templates, and the
append-only activity log.
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone


duration_validator = RegexValidator(
    regex=r'^[0-9]{2}:[0-9]{2}(:[0-9]{2})?$',
    message='Use a duration such as 01:30 or 01:30:00',
)

color_validator = RegexValidator(
    regex=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$',
    message='Use a hex color such as #3B82F6',
)


class Priority(models.TextChoices):
    HIGH = 'high', 'High'
    MEDIUM = 'medium', 'Medium'
    LOW = 'low', 'Low'
    NONE = 'none', 'None'


class Recurring(models.TextChoices):
    DAILY = 'daily', 'Daily'
    WEEKLY = 'weekly', 'Weekly'
    WEEKDAY = 'weekday', 'Weekdays'
    MONTHLY = 'monthly', 'Monthly'
    YEARLY = 'yearly', 'Yearly'
    CUSTOM = 'custom', 'Custom'


class TaskListManager(models.Manager):

    def default_for(self, user):
        """
        Return the user's default list, creating an Inbox if none exists.

        New tasks without an explicit list land here.
        """
        task_list = self.filter(user=user, is_default=True).order_by('created_at').first()
        if task_list is None:
            task_list = self.create(
                user=user,
                name=settings.PLANNER['DEFAULT_LIST_NAME'],
                emoji='📥',
                is_default=True,
            )
        return task_list


class TaskList(models.Model):
    """A named, colored bucket of tasks owned by one user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_lists',
    )
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=7, default='#3B82F6', validators=[color_validator])
    emoji = models.CharField(max_length=16, default='📋')
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TaskListManager()

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.emoji} {self.name}"


class Label(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='labels',
    )
    name = models.CharField(max_length=50)
    color = models.CharField(max_length=7, default='#6B7280', validators=[color_validator])
    icon = models.CharField(max_length=16, default='🏷️')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['user', 'name'], name='unique_label_name_per_user'),
        ]

    def __str__(self):
        return self.name


class Task(models.Model):
    """
    A planned unit of work.

    Attributes:
        list: The list the task belongs to (exactly one)
        date: When the task is scheduled (optional)
        deadline: Hard due date/time (optional)
        estimate: Planned effort as HH:mm or HH:mm:ss text
        actual_time: Tracked effort as mm:ss or HH:mm:ss text
        completed_at: Set if and only if the task is completed
        order: Manual sort position inside a list
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    list = models.ForeignKey(TaskList, on_delete=models.CASCADE, related_name='tasks')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tasks',
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    date = models.DateTimeField(null=True, blank=True)
    deadline = models.DateTimeField(null=True, blank=True)
    estimate = models.CharField(max_length=8, blank=True, null=True, validators=[duration_validator])
    actual_time = models.CharField(max_length=8, blank=True, null=True, validators=[duration_validator])
    priority = models.CharField(max_length=6, choices=Priority.choices, default=Priority.NONE)
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    recurring = models.CharField(max_length=7, choices=Recurring.choices, null=True, blank=True)
    recurring_end_date = models.DateTimeField(null=True, blank=True)
    order = models.PositiveIntegerField(default=0)
    labels = models.ManyToManyField(Label, related_name='tasks', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order', '-created_at']
        indexes = [
            models.Index(fields=['list'], name='idx_tasks_list_id'),
            models.Index(fields=['date'], name='idx_tasks_date'),
            models.Index(fields=['deadline'], name='idx_tasks_deadline'),
            models.Index(fields=['completed'], name='idx_tasks_completed'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if not self.name or not self.name.strip():
            raise ValidationError({'name': 'Task name cannot be empty'})
        if self.user_id and self.list_id and self.list.user_id != self.user_id:
            raise ValidationError({'list': 'List belongs to another user'})

    def save(self, *args, **kwargs):
        # completed_at mirrors completed
        if self.completed and self.completed_at is None:
            self.completed_at = timezone.now()
        elif not self.completed:
            self.completed_at = None
        super().save(*args, **kwargs)


class Subtask(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='subtasks')
    name = models.CharField(max_length=255)
    completed = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order', 'created_at']

    def __str__(self):
        return self.name


class Attachment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='attachments')
    filename = models.CharField(max_length=255)
    file_path = models.CharField(max_length=1024)
    file_size = models.PositiveIntegerField()
    mime_type = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return self.filename


class Reminder(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='reminders')
    reminder_time = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['reminder_time']
        indexes = [
            models.Index(fields=['reminder_time'], name='idx_reminders_time'),
        ]

    def __str__(self):
        return f"Reminder for {self.task_id} at {self.reminder_time.isoformat()}"


class TaskTemplate(models.Model):
    """A named, reusable seed for new tasks."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_templates',
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    priority = models.CharField(max_length=6, choices=Priority.choices, default=Priority.NONE)
    estimate = models.CharField(max_length=8, blank=True, null=True, validators=[duration_validator])
    list = models.ForeignKey(
        TaskList,
        on_delete=models.SET_NULL,
        related_name='templates',
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class ActivityAction(models.TextChoices):
    CREATED = 'created', 'Created'
    UPDATED = 'updated', 'Updated'
    COMPLETED = 'completed', 'Completed'
    DELETED = 'deleted', 'Deleted'
    MOVED = 'moved', 'Moved'


class ActivityLogImmutableError(Exception):
    """Raised when code tries to rewrite or remove an activity log entry."""


class ActivityLogQuerySet(models.QuerySet):
    """Bulk writes are refused just like per-instance ones."""

    def update(self, **kwargs):
        raise ActivityLogImmutableError("Activity log entries are append-only")

    def delete(self):
        raise ActivityLogImmutableError("Activity log entries are append-only")


class ActivityLog(models.Model):
    """
    One append-only entry of the audit trail.

    References are plain UUID columns rather than foreign keys so that the
    trail outlives the task, list or label it describes. Exactly one of
    task_id / list_id / label_id is set. The actor reference is likewise
    left untouched when the user is deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task_id = models.UUIDField(null=True, blank=True, db_index=True)
    list_id = models.UUIDField(null=True, blank=True, db_index=True)
    label_id = models.UUIDField(null=True, blank=True, db_index=True)
    action = models.CharField(max_length=10, choices=ActivityAction.choices)
    field = models.CharField(max_length=64, null=True, blank=True)
    old_value = models.TextField(null=True, blank=True)
    new_value = models.TextField(null=True, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='activity_logs',
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = ActivityLogQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        target = self.task_id or self.list_id or self.label_id
        if self.field:
            return f"{self.action} {self.field} on {target}"
        return f"{self.action} {target}"

    def clean(self):
        refs = [r for r in (self.task_id, self.list_id, self.label_id) if r is not None]
        if len(refs) != 1:
            raise ValidationError('An activity log entry references exactly one task, list or label')

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ActivityLogImmutableError(f"Activity log {self.pk} is append-only")
        self.clean()
        kwargs['force_insert'] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ActivityLogImmutableError(f"Activity log {self.pk} is append-only")
