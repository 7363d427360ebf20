"""ORM model exports."""

from lumo.models.task import Task, TaskStatus
from lumo.models.task_list import TaskList
from lumo.models.user import User

__all__ = [
    "Task",
    "TaskList",
    "TaskStatus",
    "User",
]
