"""Dashboard statistics and the recent-activity feed"""
from collections import Counter
from typing import Iterable, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from taskflow.api.v1.access import ensure_project_view, load_project
from taskflow.database import get_db
from taskflow.dependencies import get_current_user
from taskflow.models import Project, ProjectMember, Task, TaskHistoryEntry, User
from taskflow.models.task import PRIORITIES
from taskflow.schemas import ActivityItem, ProjectStats, UserStats
from taskflow.schemas.stats import MemberStats, PriorityBreakdown, ProjectTaskCounts, TimeTotals
from taskflow.utils.timeutils import utcnow

router = APIRouter()


def is_completed(task: Task) -> bool:
    """A task is done once it sits in the last column of its board."""
    columns = task.project.columns or []
    return bool(columns) and task.status == columns[-1]


def is_overdue(task: Task, now=None) -> bool:
    return task.due_date is not None and task.due_date < (now or utcnow()) and not is_completed(task)


def _priority_breakdown(tasks: Iterable[Task]) -> PriorityBreakdown:
    counts = Counter(task.priority for task in tasks)
    return PriorityBreakdown(**{priority: counts.get(priority, 0) for priority in PRIORITIES})


def _time_totals(tasks: List[Task]) -> TimeTotals:
    estimated = round(sum(task.estimated_hours or 0 for task in tasks), 2)
    actual = round(sum(task.actual_hours or 0 for task in tasks), 2)
    return TimeTotals(estimated=estimated, actual=actual, difference=round(actual - estimated, 2))


def _percent(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 1) if whole else 0.0


@router.get("/stats/user", response_model=UserStats)
async def user_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Figures over the tasks assigned to the current user."""
    tasks = db.query(Task).options(selectinload(Task.project)).filter(
        Task.assignee_id == current_user.id
    ).all()
    now = utcnow()

    completed = [task for task in tasks if is_completed(task)]
    per_project = {}
    for task in tasks:
        entry = per_project.setdefault(
            task.project_id,
            ProjectTaskCounts(project_id=task.project_id, name=task.project.name, total=0, completed=0),
        )
        entry.total += 1
        if is_completed(task):
            entry.completed += 1

    return UserStats(
        total=len(tasks),
        completed=len(completed),
        overdue=sum(1 for task in tasks if is_overdue(task, now)),
        by_status=dict(Counter(task.status for task in tasks)),
        priority=_priority_breakdown(tasks),
        projects=sorted(per_project.values(), key=lambda item: item.project_id),
        time=_time_totals(tasks),
        completion_rate=_percent(len(completed), len(tasks)),
    )


@router.get("/stats/projects/{project_id}", response_model=ProjectStats)
async def project_stats(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    ensure_project_view(project, current_user)

    tasks = db.query(Task).filter(Task.project_id == project_id).all()
    now = utcnow()
    completed = [task for task in tasks if is_completed(task)]
    by_status = {column: 0 for column in project.columns}
    by_status.update(Counter(task.status for task in tasks))

    members = []
    for member in project.members:
        assigned = [task for task in tasks if task.assignee_id == member.user_id]
        members.append(MemberStats(
            user_id=member.user_id,
            role=member.role,
            tasks=len(assigned),
            completed=sum(1 for task in assigned if is_completed(task)),
            overdue=sum(1 for task in assigned if is_overdue(task, now)),
        ))

    return ProjectStats(
        total_tasks=len(tasks),
        completed_tasks=len(completed),
        progress=_percent(len(completed), len(tasks)),
        overdue_tasks=sum(1 for task in tasks if is_overdue(task, now)),
        active_members=len(project.members),
        by_status=by_status,
        priority=_priority_breakdown(tasks),
        time=_time_totals(tasks),
        members=members,
    )


@router.get("/activity/recent", response_model=List[ActivityItem])
async def recent_activity(
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """History entries across the user's projects, newest first."""
    project_ids = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.id)
    rows = db.query(TaskHistoryEntry, Task, Project).join(
        Task, TaskHistoryEntry.task_id == Task.id
    ).join(
        Project, Task.project_id == Project.id
    ).filter(
        Project.id.in_(project_ids)
    ).order_by(TaskHistoryEntry.id.desc()).limit(limit).all()

    return [
        ActivityItem(
            task_id=task.id,
            task_title=task.title,
            project_id=project.id,
            project_name=project.name,
            actor_id=entry.actor_id,
            action=entry.action,
            detail=entry.detail,
            created_at=entry.created_at,
            status=task.status,
        )
        for entry, task, project in rows
    ]
