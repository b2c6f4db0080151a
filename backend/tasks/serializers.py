from rest_framework import serializers

from .choices import ProjectStatus, TaskStatus, label_for
from .models import Project, Task, TaskDependency


class ProjectSerializer(serializers.ModelSerializer):
    status_label = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = ['id', 'name', 'description', 'status', 'status_label',
                  'start_date', 'end_date', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_status_label(self, obj) -> str:
        return label_for(ProjectStatus, obj.status)

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'end_date must not be before start_date'})
        return attrs


class TaskSerializer(serializers.ModelSerializer):
    status_label = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = ['id', 'title', 'description', 'status', 'status_label', 'priority', 'project',
                  'start_date', 'end_date', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_status_label(self, obj) -> str:
        return label_for(TaskStatus, obj.status)

    def _has_dependencies(self) -> bool:
        task = self.instance
        return task.dependencies.exists() or task.dependents.exists()

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'end_date must not be before start_date'})

        project = attrs.get('project')
        if (self.instance is not None and project is not None
                and project.pk != self.instance.project_id and self._has_dependencies()):
            raise serializers.ValidationError(
                {'project': 'Cannot move a task that has dependencies or dependents to another project'})
        return attrs


class TaskDependencySerializer(serializers.ModelSerializer):
    # the dependent task comes from the URL, not the body
    task = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = TaskDependency
        fields = ['id', 'task', 'depends_on_task', 'created_at']
        read_only_fields = ['id', 'created_at']
