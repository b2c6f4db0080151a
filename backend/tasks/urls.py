from django.urls import path

from . import views

urlpatterns = [
    path('projects', views.ProjectList.as_view(), name='project-list'),
    path('projects/<uuid:pk>', views.ProjectDetail.as_view(), name='project-detail'),
    path('projects/<uuid:pk>/dependency-graph', views.ProjectDependencyGraph.as_view(), name='project-dependency-graph'),
    path('tasks', views.TaskList.as_view(), name='task-list'),
    path('tasks/<uuid:pk>', views.TaskDetail.as_view(), name='task-detail'),
    path('tasks/<uuid:pk>/dependencies', views.TaskDependencies.as_view(), name='task-dependencies'),
    path('task-dependencies/<uuid:pk>', views.TaskDependencyDetail.as_view(), name='task-dependency-detail'),
    path('gantt', views.Gantt.as_view(), name='gantt'),
    path('dashboard/stats', views.DashboardStats.as_view(), name='dashboard-stats'),
]
