from django.contrib import admin

from .models import ActivityLog, Attachment, Label, Reminder, Subtask, Task, TaskList, TaskTemplate


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('name', 'list', 'priority', 'date', 'deadline', 'completed')
    list_filter = ('priority', 'completed', 'recurring')
    search_fields = ('name', 'description')
    inlines = [SubtaskInline]


@admin.register(TaskList)
class TaskListAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'is_default', 'created_at')


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ('action', 'field', 'task_id', 'list_id', 'label_id', 'user', 'created_at')
    list_filter = ('action',)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


admin.site.register(Label)
admin.site.register(Attachment)
admin.site.register(Reminder)
admin.site.register(TaskTemplate)
