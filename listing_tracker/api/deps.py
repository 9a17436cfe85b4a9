"""FastAPI dependencies."""

from fastapi import Request

from listing_tracker.worker.tasks import TaskRunner


def get_task_runner(request: Request) -> TaskRunner:
    """Dependency for the task runner created in the app lifespan."""
    return request.app.state.task_runner
