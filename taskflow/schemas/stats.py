"""Schemas for dashboard statistics"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class PriorityBreakdown(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0


class TimeTotals(BaseModel):
    estimated: float
    actual: float
    difference: float


class ProjectTaskCounts(BaseModel):
    project_id: int
    name: str
    total: int
    completed: int


class UserStats(BaseModel):
    total: int
    completed: int
    overdue: int
    by_status: Dict[str, int]
    priority: PriorityBreakdown
    projects: List[ProjectTaskCounts]
    time: TimeTotals
    completion_rate: float


class MemberStats(BaseModel):
    user_id: int
    role: str
    tasks: int
    completed: int
    overdue: int


class ProjectStats(BaseModel):
    total_tasks: int
    completed_tasks: int
    progress: float
    overdue_tasks: int
    active_members: int
    by_status: Dict[str, int]
    priority: PriorityBreakdown
    time: TimeTotals
    members: List[MemberStats]


class ActivityItem(BaseModel):
    task_id: int
    task_title: str
    project_id: int
    project_name: str
    actor_id: int
    action: str
    detail: str
    created_at: datetime
    status: Optional[str] = None
