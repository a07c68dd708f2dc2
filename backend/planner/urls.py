"""
URL configuration for the planner app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    path('tasks/', views.task_collection, name='task-collection'),
    path('tasks/suggest/', views.suggest_tasks, name='suggest-tasks'),
    path('tasks/<uuid:task_id>/', views.task_detail, name='task-detail'),
    path('tasks/<uuid:task_id>/toggle/', views.toggle_task, name='task-toggle'),
    path('tasks/<uuid:task_id>/move/', views.move_task, name='task-move'),
    # Task children
    path('tasks/<uuid:task_id>/subtasks/', views.subtask_collection, name='subtask-collection'),
    path('subtasks/<uuid:subtask_id>/', views.subtask_detail, name='subtask-detail'),
    path('tasks/<uuid:task_id>/attachments/', views.attachment_collection, name='attachment-collection'),
    path('attachments/<uuid:attachment_id>/', views.attachment_detail, name='attachment-detail'),
    path('tasks/<uuid:task_id>/reminders/', views.reminder_collection, name='reminder-collection'),
    path('reminders/<uuid:reminder_id>/', views.reminder_detail, name='reminder-detail'),
    # Lists and labels
    path('lists/', views.list_collection, name='list-collection'),
    path('lists/<uuid:list_id>/', views.list_detail, name='list-detail'),
    path('lists/<uuid:list_id>/tasks/', views.list_tasks, name='list-tasks'),
    path('labels/', views.label_collection, name='label-collection'),
    path('labels/<uuid:label_id>/', views.label_detail, name='label-detail'),
    # Templates
    path('templates/', views.template_collection, name='template-collection'),
    path('templates/<uuid:template_id>/', views.template_detail, name='template-detail'),
    path('templates/<uuid:template_id>/instantiate/', views.instantiate_template, name='template-instantiate'),
    # History and insights
    path('activity-logs/', views.activity_logs, name='activity-logs'),
    path('analytics/', views.analytics, name='analytics'),
]
