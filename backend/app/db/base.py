from app.db.base_class import Base

# Import every model so Base.metadata knows all tables
from app.models.mission import Mission
from app.models.task import Task
from app.models.agent import Agent
from app.models.finding import Finding
from app.models.activity_log import ActivityLog
