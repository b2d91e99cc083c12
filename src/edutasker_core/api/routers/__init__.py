"""API routers for EduTasker Core."""

from . import boards, projects, tasks, users

__all__ = ["boards", "projects", "tasks", "users"]
