"""EduTasker core: projects, boards and tasks with dense sibling ordering."""

__version__ = "1.0.0"
