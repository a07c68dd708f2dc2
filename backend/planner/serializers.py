"""
Serializers for the planner models.

This module provides serialization/deserialization for tasks, lists, labels,
their child records and the activity log, and handles validation of incoming
data. Ownership checks that depend on the requesting user live in the
service layer.
"""

from rest_framework import serializers

from .models import (
    ActivityLog,
    Attachment,
    Label,
    Reminder,
    Subtask,
    Task,
    TaskList,
    TaskTemplate,
)


def _clean_name(value):
    """Ensure a name is not empty or just whitespace."""
    if not value or not value.strip():
        raise serializers.ValidationError("Name cannot be empty")
    return value.strip()


class UserScopedPrimaryKeyField(serializers.PrimaryKeyRelatedField):
    """Primary key field that only resolves rows owned by the requesting user."""

    def get_queryset(self):
        queryset = super().get_queryset()
        request = self.context.get('request')
        if request is None or not getattr(request.user, 'is_authenticated', False):
            return queryset.none()
        return queryset.filter(user=request.user)


class SubtaskSerializer(serializers.ModelSerializer):

    class Meta:
        model = Subtask
        fields = ['id', 'task', 'name', 'completed', 'order', 'created_at', 'updated_at']
        read_only_fields = ['id', 'task', 'created_at', 'updated_at']

    def validate_name(self, value):
        return _clean_name(value)


class AttachmentSerializer(serializers.ModelSerializer):

    class Meta:
        model = Attachment
        fields = ['id', 'task', 'filename', 'file_path', 'file_size', 'mime_type', 'created_at']
        read_only_fields = ['id', 'task', 'created_at']


class ReminderSerializer(serializers.ModelSerializer):

    class Meta:
        model = Reminder
        fields = ['id', 'task', 'reminder_time', 'created_at']
        read_only_fields = ['id', 'task', 'created_at']


class TaskSerializer(serializers.ModelSerializer):
    """
    Full task representation.

    Subtasks, attachments and reminders are nested read-only; they have their
    own endpoints for writes.
    """

    list = UserScopedPrimaryKeyField(queryset=TaskList.objects.all(), required=False)
    labels = UserScopedPrimaryKeyField(queryset=Label.objects.all(), many=True, required=False)
    subtasks = SubtaskSerializer(many=True, read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    reminders = ReminderSerializer(many=True, read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'list', 'name', 'description', 'date', 'deadline',
            'estimate', 'actual_time', 'priority', 'completed', 'completed_at',
            'recurring', 'recurring_end_date', 'order', 'labels',
            'subtasks', 'attachments', 'reminders', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'completed_at', 'created_at', 'updated_at']

    def validate_name(self, value):
        return _clean_name(value)

    def validate(self, attrs):
        end = attrs.get('recurring_end_date')
        if end is not None and not attrs.get('recurring', getattr(self.instance, 'recurring', None)):
            raise serializers.ValidationError({'recurring_end_date': 'Only recurring tasks have an end date'})
        return attrs


class TaskListSerializer(serializers.ModelSerializer):
    task_count = serializers.SerializerMethodField()

    class Meta:
        model = TaskList
        fields = ['id', 'name', 'color', 'emoji', 'is_default', 'task_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_task_count(self, obj) -> int:
        return obj.tasks.count()

    def validate_name(self, value):
        return _clean_name(value)


class LabelSerializer(serializers.ModelSerializer):

    class Meta:
        model = Label
        fields = ['id', 'name', 'color', 'icon', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        return _clean_name(value)


class TaskTemplateSerializer(serializers.ModelSerializer):
    list = UserScopedPrimaryKeyField(queryset=TaskList.objects.all(), required=False, allow_null=True)

    class Meta:
        model = TaskTemplate
        fields = ['id', 'name', 'description', 'priority', 'estimate', 'list', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        return _clean_name(value)


class ActivityLogSerializer(serializers.ModelSerializer):

    class Meta:
        model = ActivityLog
        fields = [
            'id', 'task_id', 'list_id', 'label_id', 'action', 'field',
            'old_value', 'new_value', 'user', 'created_at',
        ]
        read_only_fields = fields


class MoveTaskSerializer(serializers.Serializer):
    """Body of POST /api/tasks/<id>/move/."""

    list = serializers.UUIDField()


class TemplateInstantiateSerializer(serializers.Serializer):
    """Optional overrides when creating a task from a template."""

    name = serializers.CharField(max_length=255, required=False)
    date = serializers.DateTimeField(required=False, allow_null=True)
    deadline = serializers.DateTimeField(required=False, allow_null=True)

    def validate_name(self, value):
        return _clean_name(value)


class ActivityLogQuerySerializer(serializers.Serializer):
    task = serializers.UUIDField(required=False)
    limit = serializers.IntegerField(min_value=1, max_value=500, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)


class SuggestQuerySerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=1, max_value=50, required=False)

