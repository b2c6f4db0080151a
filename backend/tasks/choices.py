from django.db import models


class ProjectStatus(models.TextChoices):
    PLANNING = "planning", "Planning"
    IN_PROGRESS = "in_progress", "In Progress"
    REVIEW = "review", "Review"
    COMPLETED = "completed", "Completed"
    ON_HOLD = "on_hold", "On Hold"


class TaskStatus(models.TextChoices):
    TODO = "todo", "To Do"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"


class TaskPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


def label_for(choices, value: str) -> str:
    """Return the display label for `value`, or `value` itself when unknown."""
    return str(dict(choices.choices).get(value, value))
