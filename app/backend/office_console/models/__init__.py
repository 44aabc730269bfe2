"""ORM model package."""

from office_console.models.entities import (
    Client,
    Module,
    Project,
    ProjectMember,
    Requirement,
    RequirementActivity,
    Task,
    TaskActivity,
    TaskAssignee,
    TaskComment,
    TaskLink,
    User,
    WorkLog,
)

__all__ = [
    "Client",
    "Module",
    "Project",
    "ProjectMember",
    "Requirement",
    "RequirementActivity",
    "Task",
    "TaskActivity",
    "TaskAssignee",
    "TaskComment",
    "TaskLink",
    "User",
    "WorkLog",
]
