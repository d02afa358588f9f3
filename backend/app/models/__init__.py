from app.models.mission import Mission, MissionPhase
from app.models.task import Task, TaskStatus
from app.models.agent import Agent, AgentRole, AgentStatus
from app.models.finding import Confidence, Finding, QCStatus
from app.models.activity_log import ActivityLog

__all__ = [
    "Mission",
    "MissionPhase",
    "Task",
    "TaskStatus",
    "Agent",
    "AgentRole",
    "AgentStatus",
    "Finding",
    "Confidence",
    "QCStatus",
    "ActivityLog",
]
