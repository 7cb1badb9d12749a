from fastapi import APIRouter, BackgroundTasks, Query, status

from taskhub.core.events import TASK_CREATED, TASK_UPDATED
from taskhub.dependencies import Broadcaster, CurrentUserId, TaskServiceDep
from taskhub.models import Priority, TaskStatus
from taskhub.schemas import (
    DashboardStats,
    MessageResponse,
    TaskCreate,
    TaskEnvelope,
    TaskList,
    TaskUpdate,
)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    user_id: CurrentUserId,
    service: TaskServiceDep,
    broadcaster: Broadcaster,
    background_tasks: BackgroundTasks,
):
    """Create a new task"""
    change = await service.create_task(task_data, user_id)
    background_tasks.add_task(broadcaster.task_changed, TASK_CREATED, change)
    return TaskEnvelope(task=change.task)


@router.get("", response_model=TaskList)
async def get_tasks(
    user_id: CurrentUserId,
    service: TaskServiceDep,
    status: TaskStatus | None = None,
    priority: Priority | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
):
    tasks = await service.get_all_tasks(status=status, priority=priority, sort_by=sort_by)
    return TaskList(tasks=tasks)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard(user_id: CurrentUserId, service: TaskServiceDep):
    return await service.get_dashboard_stats(user_id)


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(task_id: str, user_id: CurrentUserId, service: TaskServiceDep):
    """Get a specific task by ID"""
    return TaskEnvelope(task=await service.get_task_by_id(task_id))


@router.patch("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_id: str,
    task_data: TaskUpdate,
    user_id: CurrentUserId,
    service: TaskServiceDep,
    broadcaster: Broadcaster,
    background_tasks: BackgroundTasks,
):
    change = await service.update_task(task_id, task_data, user_id)
    background_tasks.add_task(broadcaster.task_changed, TASK_UPDATED, change)
    return TaskEnvelope(task=change.task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    user_id: CurrentUserId,
    service: TaskServiceDep,
    broadcaster: Broadcaster,
    background_tasks: BackgroundTasks,
):
    """Delete a task (creator only)"""
    result = await service.delete_task(task_id, user_id)
    background_tasks.add_task(broadcaster.task_deleted, task_id)
    return result
