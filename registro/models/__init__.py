"""ORM model package."""

from registro.models.entities import (
    Client,
    Project,
    ProjectAssignment,
    ProjectStatus,
    System,
    TimeEntry,
    TimeEntryStatus,
    User,
    UserRole,
    WorkFront,
)

__all__ = [
    "Client",
    "Project",
    "ProjectAssignment",
    "ProjectStatus",
    "System",
    "TimeEntry",
    "TimeEntryStatus",
    "User",
    "UserRole",
    "WorkFront",
]
