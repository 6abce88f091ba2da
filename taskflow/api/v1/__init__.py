"""Version 1 of the REST API"""
from fastapi import APIRouter

from taskflow.api.v1 import auth, comments, invites, projects, stats, tasks

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(invites.router, tags=["invites"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(comments.router, prefix="/tasks", tags=["comments"])
api_router.include_router(stats.router, tags=["stats"])
