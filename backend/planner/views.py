"""
API Views for the Daily Task Planner.

This module provides the REST API endpoints for tasks, lists, labels,
templates, the activity history, suggestions and analytics. Every endpoint is
scoped to the authenticated user; rows owned by someone else answer 404.
Writes go through PlannerService so that each change is activity-logged.
"""

import logging

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from .analytics import compute_analytics
from .errors import ErrorCode, PlannerError, error_response, planner_error_response
from .models import ActivityLog, Task, TaskList
from .pipeline import VIEWS, ViewState, select_visible_tasks
from .scoring import TaskPriorityScorer, scored_task_to_dict
from .serializers import (
    ActivityLogQuerySerializer,
    ActivityLogSerializer,
    AttachmentSerializer,
    LabelSerializer,
    MoveTaskSerializer,
    ReminderSerializer,
    SubtaskSerializer,
    SuggestQuerySerializer,
    TaskListSerializer,
    TaskSerializer,
    TaskTemplateSerializer,
    TemplateInstantiateSerializer,
)
from .services import build_planner_service

logger = logging.getLogger(__name__)


# ============================================
# RATE LIMITING CLASSES
# ============================================

class SuggestRateThrottle(UserRateThrottle):
    """Rate limit for the suggest endpoint - 30 requests per minute."""
    rate = '30/min'


class AnalyticsRateThrottle(UserRateThrottle):
    """Rate limit for the analytics endpoint - 30 requests per minute."""
    rate = '30/min'


# ============================================
# HELPERS
# ============================================

def _validation_error(serializer) -> Response:
    return error_response(
        ErrorCode.ERR_VALIDATION,
        'Invalid input data. Please check the request body.',
        errors=serializer.errors,
    )


def _user_tasks(user):
    return (
        Task.objects.filter(user=user)
        .select_related('list')
        .prefetch_related('labels', 'subtasks', 'attachments', 'reminders')
    )


def _ok(data, http_status=status.HTTP_200_OK) -> Response:
    return Response(data, status=http_status)


# ============================================
# TASKS
# ============================================

@extend_schema(
    summary="List or create tasks",
    description="""
    GET returns the user's tasks filtered and ordered by the view pipeline:
    list scope, time window, completion filter, fuzzy search, then sort.

    POST creates a task. Without a list it lands in the default list.
    """,
    parameters=[
        OpenApiParameter('view', OpenApiTypes.STR, enum=list(VIEWS), description='Time window (default all)'),
        OpenApiParameter('list', OpenApiTypes.UUID, description='Restrict to one list; overrides view'),
        OpenApiParameter('q', OpenApiTypes.STR, description='Fuzzy search over name and description'),
        OpenApiParameter('show_completed', OpenApiTypes.BOOL, description='Include completed tasks (default true)'),
    ],
    request=TaskSerializer,
    responses={200: TaskSerializer(many=True), 201: TaskSerializer},
    tags=['Tasks']
)
@api_view(['GET', 'POST'])
def task_collection(request: Request) -> Response:
    """
    GET  /api/tasks/?view=today&list=<id>&q=groceries&show_completed=false
    POST /api/tasks/
    """
    if request.method == 'POST':
        serializer = TaskSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return _validation_error(serializer)
        try:
            task = build_planner_service(request.user).create_task(serializer.validated_data)
        except PlannerError as exc:
            return planner_error_response(exc)
        return _ok(TaskSerializer(task, context={'request': request}).data, status.HTTP_201_CREATED)

    view_state = ViewState.from_query_params(request.query_params)
    tasks = select_visible_tasks(_user_tasks(request.user), view_state)
    return _ok(TaskSerializer(tasks, many=True, context={'request': request}).data)


@extend_schema(
    summary="Get task suggestions for today",
    description="""
    Return the top open tasks the user should work on, scored by priority,
    deadline proximity, schedule and recurrence. Returns fewer than `count`
    when fewer open tasks exist.
    """,
    parameters=[
        OpenApiParameter('count', OpenApiTypes.INT, description='Number of suggestions (default 3)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Suggestions']
)
@api_view(['GET'])
@throttle_classes([SuggestRateThrottle])
def suggest_tasks(request: Request) -> Response:
    """
    Return the top tasks the user should work on today with explanations.

    GET /api/tasks/suggest/?count=3
    """
    query = SuggestQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return _validation_error(query)
    count = query.validated_data.get('count', settings.PLANNER['SUGGESTION_COUNT'])

    scorer = TaskPriorityScorer()
    suggested = scorer.suggest_top_tasks(_user_tasks(request.user).filter(completed=False), count=count)

    result_tasks = [
        scored_task_to_dict(s, TaskSerializer(s.task, context={'request': request}).data)
        for s in suggested
    ]
    return _ok({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'count': len(result_tasks),
        'suggested_tasks': result_tasks,
    })


@extend_schema(
    summary="Retrieve, update or delete a task",
    request=TaskSerializer,
    responses={200: TaskSerializer, 204: None},
    tags=['Tasks']
)
@api_view(['GET', 'PATCH', 'DELETE'])
def task_detail(request: Request, task_id) -> Response:
    service = build_planner_service(request.user)
    try:
        if request.method == 'GET':
            task = service.get_task(task_id)
        elif request.method == 'PATCH':
            task = service.get_task(task_id)
            serializer = TaskSerializer(task, data=request.data, partial=True, context={'request': request})
            if not serializer.is_valid():
                return _validation_error(serializer)
            task = service.update_task(task_id, serializer.validated_data)
        else:
            service.delete_task(task_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskSerializer(task, context={'request': request}).data)


@extend_schema(
    summary="Toggle task completion",
    request=None,
    responses={200: TaskSerializer},
    tags=['Tasks']
)
@api_view(['POST'])
def toggle_task(request: Request, task_id) -> Response:
    try:
        task = build_planner_service(request.user).toggle_task(task_id)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskSerializer(task, context={'request': request}).data)


@extend_schema(
    summary="Move a task to another list",
    request=MoveTaskSerializer,
    responses={200: TaskSerializer},
    tags=['Tasks']
)
@api_view(['POST'])
def move_task(request: Request, task_id) -> Response:
    serializer = MoveTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return _validation_error(serializer)
    try:
        task = build_planner_service(request.user).move_task(task_id, serializer.validated_data['list'])
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskSerializer(task, context={'request': request}).data)


# ============================================
# SUBTASKS / ATTACHMENTS / REMINDERS
# ============================================

@extend_schema(
    summary="List or add subtasks",
    request=SubtaskSerializer,
    responses={200: SubtaskSerializer(many=True), 201: SubtaskSerializer},
    tags=['Subtasks']
)
@api_view(['GET', 'POST'])
def subtask_collection(request: Request, task_id) -> Response:
    service = build_planner_service(request.user)
    try:
        task = service.get_task(task_id)
        if request.method == 'GET':
            return _ok(SubtaskSerializer(task.subtasks.all(), many=True).data)
        serializer = SubtaskSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)
        subtask = service.create_subtask(task_id, serializer.validated_data)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(SubtaskSerializer(subtask).data, status.HTTP_201_CREATED)


@extend_schema(
    summary="Update or delete a subtask",
    request=SubtaskSerializer,
    responses={200: SubtaskSerializer, 204: None},
    tags=['Subtasks']
)
@api_view(['PATCH', 'DELETE'])
def subtask_detail(request: Request, subtask_id) -> Response:
    service = build_planner_service(request.user)
    try:
        if request.method == 'DELETE':
            service.delete_subtask(subtask_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        subtask = service.get_subtask(subtask_id)
        serializer = SubtaskSerializer(subtask, data=request.data, partial=True)
        if not serializer.is_valid():
            return _validation_error(serializer)
        subtask = service.update_subtask(subtask_id, serializer.validated_data)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(SubtaskSerializer(subtask).data)


@extend_schema(
    summary="List or add attachments",
    request=AttachmentSerializer,
    responses={200: AttachmentSerializer(many=True), 201: AttachmentSerializer},
    tags=['Attachments']
)
@api_view(['GET', 'POST'])
def attachment_collection(request: Request, task_id) -> Response:
    service = build_planner_service(request.user)
    try:
        task = service.get_task(task_id)
        if request.method == 'GET':
            return _ok(AttachmentSerializer(task.attachments.all(), many=True).data)
        serializer = AttachmentSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)
        attachment = service.create_attachment(task_id, serializer.validated_data)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(AttachmentSerializer(attachment).data, status.HTTP_201_CREATED)


@extend_schema(summary="Delete an attachment", request=None, responses={204: None}, tags=['Attachments'])
@api_view(['DELETE'])
def attachment_detail(request: Request, attachment_id) -> Response:
    try:
        build_planner_service(request.user).delete_attachment(attachment_id)
    except PlannerError as exc:
        return planner_error_response(exc)
    return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    summary="List or add reminders",
    request=ReminderSerializer,
    responses={200: ReminderSerializer(many=True), 201: ReminderSerializer},
    tags=['Reminders']
)
@api_view(['GET', 'POST'])
def reminder_collection(request: Request, task_id) -> Response:
    service = build_planner_service(request.user)
    try:
        task = service.get_task(task_id)
        if request.method == 'GET':
            return _ok(ReminderSerializer(task.reminders.all(), many=True).data)
        serializer = ReminderSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)
        reminder = service.create_reminder(task_id, serializer.validated_data)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(ReminderSerializer(reminder).data, status.HTTP_201_CREATED)


@extend_schema(summary="Delete a reminder", request=None, responses={204: None}, tags=['Reminders'])
@api_view(['DELETE'])
def reminder_detail(request: Request, reminder_id) -> Response:
    try:
        build_planner_service(request.user).delete_reminder(reminder_id)
    except PlannerError as exc:
        return planner_error_response(exc)
    return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================
# LISTS
# ============================================

@extend_schema(
    summary="List or create task lists",
    request=TaskListSerializer,
    responses={200: TaskListSerializer(many=True), 201: TaskListSerializer},
    tags=['Lists']
)
@api_view(['GET', 'POST'])
def list_collection(request: Request) -> Response:
    if request.method == 'POST':
        serializer = TaskListSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)
        task_list = build_planner_service(request.user).create_list(serializer.validated_data)
        return _ok(TaskListSerializer(task_list).data, status.HTTP_201_CREATED)

    # Make sure the Inbox exists before the first listing
    TaskList.objects.default_for(request.user)
    lists = TaskList.objects.filter(user=request.user)
    return _ok(TaskListSerializer(lists, many=True).data)


@extend_schema(
    summary="Retrieve, update or delete a task list",
    description="Deleting a list deletes its tasks. The default list cannot be deleted.",
    request=TaskListSerializer,
    responses={200: TaskListSerializer, 204: None},
    tags=['Lists']
)
@api_view(['GET', 'PATCH', 'DELETE'])
def list_detail(request: Request, list_id) -> Response:
    service = build_planner_service(request.user)
    try:
        if request.method == 'GET':
            task_list = service.get_list(list_id)
        elif request.method == 'PATCH':
            task_list = service.get_list(list_id)
            serializer = TaskListSerializer(task_list, data=request.data, partial=True)
            if not serializer.is_valid():
                return _validation_error(serializer)
            task_list = service.update_list(list_id, serializer.validated_data)
        else:
            service.delete_list(list_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskListSerializer(task_list).data)


@extend_schema(
    summary="Tasks of one list",
    description="Shortcut for GET /api/tasks/?list=<id>; accepts q and show_completed.",
    responses={200: TaskSerializer(many=True)},
    tags=['Lists']
)
@api_view(['GET'])
def list_tasks(request: Request, list_id) -> Response:
    try:
        task_list = build_planner_service(request.user).get_list(list_id)
    except PlannerError as exc:
        return planner_error_response(exc)
    params = request.query_params.copy()
    params['list'] = str(task_list.pk)
    tasks = select_visible_tasks(_user_tasks(request.user), ViewState.from_query_params(params))
    return _ok(TaskSerializer(tasks, many=True, context={'request': request}).data)


# ============================================
# LABELS
# ============================================

@extend_schema(
    summary="List or create labels",
    request=LabelSerializer,
    responses={200: LabelSerializer(many=True), 201: LabelSerializer},
    tags=['Labels']
)
@api_view(['GET', 'POST'])
def label_collection(request: Request) -> Response:
    if request.method == 'POST':
        serializer = LabelSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)
        try:
            label = build_planner_service(request.user).create_label(serializer.validated_data)
        except PlannerError as exc:
            return planner_error_response(exc)
        return _ok(LabelSerializer(label).data, status.HTTP_201_CREATED)

    labels = request.user.labels.all()
    return _ok(LabelSerializer(labels, many=True).data)


@extend_schema(
    summary="Retrieve, update or delete a label",
    request=LabelSerializer,
    responses={200: LabelSerializer, 204: None},
    tags=['Labels']
)
@api_view(['GET', 'PATCH', 'DELETE'])
def label_detail(request: Request, label_id) -> Response:
    service = build_planner_service(request.user)
    try:
        if request.method == 'GET':
            label = service.get_label(label_id)
        elif request.method == 'PATCH':
            label = service.get_label(label_id)
            serializer = LabelSerializer(label, data=request.data, partial=True)
            if not serializer.is_valid():
                return _validation_error(serializer)
            label = service.update_label(label_id, serializer.validated_data)
        else:
            service.delete_label(label_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(LabelSerializer(label).data)


# ============================================
# TEMPLATES
# ============================================

@extend_schema(
    summary="List or create task templates",
    request=TaskTemplateSerializer,
    responses={200: TaskTemplateSerializer(many=True), 201: TaskTemplateSerializer},
    tags=['Templates']
)
@api_view(['GET', 'POST'])
def template_collection(request: Request) -> Response:
    if request.method == 'POST':
        serializer = TaskTemplateSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return _validation_error(serializer)
        try:
            template = build_planner_service(request.user).create_template(serializer.validated_data)
        except PlannerError as exc:
            return planner_error_response(exc)
        return _ok(TaskTemplateSerializer(template).data, status.HTTP_201_CREATED)

    templates = request.user.task_templates.all()
    return _ok(TaskTemplateSerializer(templates, many=True).data)


@extend_schema(
    summary="Retrieve, update or delete a task template",
    request=TaskTemplateSerializer,
    responses={200: TaskTemplateSerializer, 204: None},
    tags=['Templates']
)
@api_view(['GET', 'PATCH', 'DELETE'])
def template_detail(request: Request, template_id) -> Response:
    service = build_planner_service(request.user)
    try:
        if request.method == 'GET':
            template = service.get_template(template_id)
        elif request.method == 'PATCH':
            template = service.get_template(template_id)
            serializer = TaskTemplateSerializer(
                template, data=request.data, partial=True, context={'request': request}
            )
            if not serializer.is_valid():
                return _validation_error(serializer)
            template = service.update_template(template_id, serializer.validated_data)
        else:
            service.delete_template(template_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskTemplateSerializer(template).data)


@extend_schema(
    summary="Create a task from a template",
    request=TemplateInstantiateSerializer,
    responses={201: TaskSerializer},
    tags=['Templates']
)
@api_view(['POST'])
def instantiate_template(request: Request, template_id) -> Response:
    serializer = TemplateInstantiateSerializer(data=request.data)
    if not serializer.is_valid():
        return _validation_error(serializer)
    try:
        task = build_planner_service(request.user).instantiate_template(template_id, serializer.validated_data)
    except PlannerError as exc:
        return planner_error_response(exc)
    return _ok(TaskSerializer(task, context={'request': request}).data, status.HTTP_201_CREATED)


# ============================================
# ACTIVITY / ANALYTICS
# ============================================

@extend_schema(
    summary="Activity history",
    description="Newest first. Filter by task; paginate with limit and offset.",
    parameters=[
        OpenApiParameter('task', OpenApiTypes.UUID),
        OpenApiParameter('limit', OpenApiTypes.INT),
        OpenApiParameter('offset', OpenApiTypes.INT),
    ],
    responses={200: ActivityLogSerializer(many=True)},
    tags=['Activity']
)
@api_view(['GET'])
def activity_logs(request: Request) -> Response:
    """
    GET /api/activity-logs/?task=<id>&limit=50&offset=0
    """
    query = ActivityLogQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return error_response(ErrorCode.ERR_INVALID_QUERY, 'Invalid query parameters', errors=query.errors)
    params = query.validated_data

    logs = ActivityLog.objects.filter(user=request.user)
    if params.get('task'):
        logs = logs.filter(task_id=params['task'])
    total = logs.count()
    window = logs[params['offset']:params['offset'] + params['limit']]
    return _ok({
        'count': total,
        'results': ActivityLogSerializer(window, many=True).data,
    })


@extend_schema(
    summary="Productivity analytics",
    description="Summary counts, a 30-day trend, and per-list / per-label breakdowns.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Analytics']
)
@api_view(['GET'])
@throttle_classes([AnalyticsRateThrottle])
def analytics(request: Request) -> Response:
    snapshot = compute_analytics(request.user)
    logger.debug("Analytics for user=%s total_tasks=%d", request.user.pk, snapshot["summary"]["total_tasks"])
    return _ok(snapshot)


@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Daily Task Planner API',
        'version': settings.SPECTACULAR_SETTINGS['VERSION'],
        'documentation': '/api/docs/',
        'views': list(VIEWS),
        'endpoints': {
            'GET|POST /api/tasks/': 'List tasks through the view pipeline, or create one',
            'GET /api/tasks/suggest/': 'Top task suggestions for today',
            'GET|PATCH|DELETE /api/tasks/<id>/': 'One task',
            'POST /api/tasks/<id>/toggle/': 'Toggle completion',
            'POST /api/tasks/<id>/move/': 'Move to another list',
            'GET|POST /api/lists/': 'Task lists',
            'GET|POST /api/labels/': 'Labels',
            'GET|POST /api/templates/': 'Task templates',
            'GET /api/activity-logs/': 'Activity history',
            'GET /api/analytics/': 'Productivity analytics',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })
