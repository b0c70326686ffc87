# models/__init__.py
from .user import User
from .project import Project
from .task_template import TaskTemplate
from .task import Task
from .task_progress import TaskProgress
from .template_change import TemplateChange
