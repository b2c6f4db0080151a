# views.py
import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .choices import ProjectStatus, TaskStatus, label_for
from .leveling import build_task_nodes, find_cycle, group_by_level, would_create_cycle
from .models import Project, Task, TaskDependency
from .serializers import ProjectSerializer, TaskDependencySerializer, TaskSerializer
from .timeline import month_labels, optional_bar

logger = logging.getLogger(__name__)


def _parse_uuid_param(value: Optional[str]) -> Optional[uuid.UUID]:
    """Return a UUID for a query parameter, None when absent. Raises ValueError if malformed."""
    if value in (None, ''):
        return None
    return uuid.UUID(str(value))


def project_edges(project_id) -> List[Tuple[uuid.UUID, uuid.UUID]]:
    """All (task_id, depends_on_task_id) pairs whose dependent task is in the project."""
    return list(
        TaskDependency.objects
        .filter(task__project_id=project_id)
        .values_list('task_id', 'depends_on_task_id')
    )


def all_edges() -> List[Tuple[uuid.UUID, uuid.UUID]]:
    """Every stored (task_id, depends_on_task_id) pair, across all projects."""
    return list(TaskDependency.objects.values_list('task_id', 'depends_on_task_id'))


def check_and_respond_cycle(task: Task, depends_on: Task):
    """Return a 400 Response if the new edge would close a cycle; otherwise None."""
    if would_create_cycle(all_edges(), task.id, depends_on.id):
        logger.info("Rejected dependency %s -> %s: circular dependency", task.id, depends_on.id)
        return Response({"message": "Circular dependency detected"},
                        status=status.HTTP_400_BAD_REQUEST)
    return None


class ProjectList(APIView):
    """
    GET  /api/projects  -> all projects, newest first
    POST /api/projects  -> create a project
    """

    def get(self, request):
        projects = Project.objects.all()
        return Response(ProjectSerializer(projects, many=True).data)

    def post(self, request):
        serializer = ProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = serializer.save()
        logger.info("Created project %s", project.id)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)


class ProjectDetail(APIView):
    """GET/PUT/DELETE /api/projects/<id>"""

    def get(self, request, pk):
        project = get_object_or_404(Project, pk=pk)
        return Response(ProjectSerializer(project).data)

    def put(self, request, pk):
        project = get_object_or_404(Project, pk=pk)
        serializer = ProjectSerializer(project, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    def delete(self, request, pk):
        project = get_object_or_404(Project, pk=pk)
        project.delete()
        logger.info("Deleted project %s", pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaskList(APIView):
    """
    GET  /api/tasks?projectId=<id>  -> tasks, optionally of one project, newest first
    POST /api/tasks                 -> create a task (status 'todo', priority 'medium' by default)
    """

    def get(self, request):
        try:
            project_id = _parse_uuid_param(request.query_params.get('projectId'))
        except ValueError:
            return Response({"message": "Invalid projectId"}, status=status.HTTP_400_BAD_REQUEST)

        tasks = Task.objects.all()
        if project_id is not None:
            tasks = tasks.filter(project_id=project_id)
        return Response(TaskSerializer(tasks, many=True).data)

    def post(self, request):
        serializer = TaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = serializer.save()
        logger.info("Created task %s in project %s", task.id, task.project_id)
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


class TaskDetail(APIView):
    """GET/PUT/DELETE /api/tasks/<id>"""

    def get(self, request, pk):
        task = get_object_or_404(Task, pk=pk)
        return Response(TaskSerializer(task).data)

    def put(self, request, pk):
        task = get_object_or_404(Task, pk=pk)
        serializer = TaskSerializer(task, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    def delete(self, request, pk):
        task = get_object_or_404(Task, pk=pk)
        task.delete()
        logger.info("Deleted task %s", pk)
        return Response({"message": "Task deleted successfully"})


class TaskDependencies(APIView):
    """
    GET  /api/tasks/<id>/dependencies  -> edges where this task is the dependent one
    POST /api/tasks/<id>/dependencies  -> add {"depends_on_task": <id>}; rejects cycles
    """

    def get(self, request, pk):
        task = get_object_or_404(Task, pk=pk)
        deps = TaskDependency.objects.filter(task=task)
        return Response(TaskDependencySerializer(deps, many=True).data)

    def post(self, request, pk):
        task = get_object_or_404(Task, pk=pk)
        serializer = TaskDependencySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        depends_on = serializer.validated_data['depends_on_task']

        if depends_on.project_id != task.project_id:
            return Response({"message": "Tasks belong to different projects"},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            with transaction.atomic():
                # serializes dependency writes within the project
                Project.objects.select_for_update().get(pk=task.project_id)
                cycle_resp = check_and_respond_cycle(task, depends_on)
                if cycle_resp:
                    return cycle_resp
                dependency = serializer.save(task=task)
        except IntegrityError:
            return Response({"message": "Dependency already exists"},
                            status=status.HTTP_400_BAD_REQUEST)

        logger.info("Created dependency %s -> %s", task.id, depends_on.id)
        return Response(TaskDependencySerializer(dependency).data, status=status.HTTP_201_CREATED)


class TaskDependencyDetail(APIView):
    """DELETE /api/task-dependencies/<id>"""

    def delete(self, request, pk):
        dependency = get_object_or_404(TaskDependency, pk=pk)
        dependency.delete()
        logger.info("Deleted dependency %s", pk)
        return Response({"message": "Task dependency deleted successfully"})


class ProjectDependencyGraph(APIView):
    """
    GET /api/projects/<id>/dependency-graph
    Levels every task of the project and groups them into hierarchy rows.
    Stored cycles are not an error here: they are broken at level 0 and reported.
    """

    def get(self, request, pk):
        project = get_object_or_404(Project, pk=pk)
        tasks = list(project.tasks.values('id', 'title', 'status'))
        edges = project_edges(project.id)

        nodes = build_task_nodes(tasks, edges)
        cycle = find_cycle(edges)
        if cycle:
            logger.warning("Project %s has a dependency cycle: %s", project.id, cycle)

        return Response({
            "project_id": project.id,
            "nodes": nodes,
            "levels": group_by_level(nodes),
            "max_level": max((n["level"] for n in nodes), default=0),
            "cycle": cycle,
        }, status=status.HTTP_200_OK)


def _gantt_task(task: Task, year: int) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status,
        "status_label": label_for(TaskStatus, task.status),
        "bar": optional_bar(task.start_date, task.end_date, year),
    }


class Gantt(APIView):
    """
    GET /api/gantt?year=<yyyy>&projectId=<id>
    Projects and their tasks with bar positions inside the given year (default: current year).
    """

    def get(self, request):
        try:
            year = int(request.query_params.get('year') or date.today().year)
            project_id = _parse_uuid_param(request.query_params.get('projectId'))
        except ValueError:
            return Response({"message": "Invalid year or projectId"}, status=status.HTTP_400_BAD_REQUEST)
        if not 1 <= year <= 9999:
            return Response({"message": "Invalid year or projectId"}, status=status.HTTP_400_BAD_REQUEST)

        projects = Project.objects.prefetch_related('tasks')
        if project_id is not None:
            projects = projects.filter(pk=project_id)

        rows = []
        for project in projects:
            rows.append({
                "id": project.id,
                "name": project.name,
                "status": project.status,
                "status_label": label_for(ProjectStatus, project.status),
                # projects without an end date run to the end of the year
                "bar": optional_bar(project.start_date, project.end_date or date(year, 12, 31), year),
                "tasks": [_gantt_task(t, year) for t in project.tasks.all()],
            })

        return Response({
            "year": year,
            "months": month_labels(date(year, 1, 1)),
            "projects": rows,
        }, status=status.HTTP_200_OK)


ACTIVE_PROJECT_STATUSES = [ProjectStatus.PLANNING, ProjectStatus.IN_PROGRESS, ProjectStatus.REVIEW]


class DashboardStats(APIView):
    """GET /api/dashboard/stats -> counts of active projects and completed tasks"""

    def get(self, request):
        return Response({
            "active_projects": Project.objects.filter(status__in=ACTIVE_PROJECT_STATUSES).count(),
            "completed_tasks": Task.objects.filter(status=TaskStatus.COMPLETED).count(),
        }, status=status.HTTP_200_OK)
