# lifeplan type definitions
# Rev 0.1.1

from __future__ import annotations
from enum import Enum
from typing import Literal

# Entity classification hierarchy: project → task → subtask
EntityType = Literal["project", "task", "subtask"]


class Status(str, Enum):
    BACKLOG = "backlog"
    SPRINT = "sprint"
    TODAY = "today"
    ACTIVE = "active"
    COMPLETED = "completed"
    REFINEMENT = "refinement"
    ROUTINE = "routine"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
