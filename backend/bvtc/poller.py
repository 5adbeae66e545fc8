"""
上传任务轮询

TaskPoller is a small state machine (idle -> pending -> processing ->
completed | failed) driven by one repeating asyncio task that queries the
backend's task status endpoint.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from .errors import ApiError, TransportError
from .models import FailedItem, TaskStatus, UploadTask

logger = logging.getLogger(__name__)

STATUS_QUERY_FAILED = "查询任务状态失败"

# checktask answers 406 "task is not running" while the task waits in the queue
_HTTP_NOT_ACCEPTABLE = 406


class PollState(BaseModel):
    """Observable snapshot of one upload session."""
    task_id: Optional[str] = None
    status: TaskStatus = TaskStatus.IDLE
    progress: int = 0
    success: List[str] = Field(default_factory=list)
    failed: List[FailedItem] = Field(default_factory=list)
    error: str = ""
    # True when polling ended because the status query itself failed
    query_failed: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class TaskPoller:
    def __init__(self, client, interval: float = 2.0,
                 on_update: Optional[Callable[[PollState], None]] = None):
        self.client = client
        self.interval = interval
        self.on_update = on_update
        self.state = PollState()
        self._task: Optional[asyncio.Task] = None
        self._stopped = True
        self._done = asyncio.Event()
        self._done.set()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, task_id: str) -> asyncio.Task:
        if self.active:
            raise RuntimeError(f"poller already running for task {self.state.task_id}")

        self.state = PollState(task_id=task_id, status=TaskStatus.PENDING)
        self._stopped = False
        self._done = asyncio.Event()
        self._emit()
        logger.info("Start polling task %s every %.1fs", task_id, self.interval)
        self._task = asyncio.create_task(self._run(task_id))
        return self._task

    async def _run(self, task_id: str):
        try:
            while not self._stopped:
                await self.tick(task_id)
                if self.state.is_terminal:
                    break
                await asyncio.sleep(self.interval)
        finally:
            self._stopped = True
            self._done.set()

    async def tick(self, task_id: str):
        """One status query. Transport failures end the poll, no retry."""
        try:
            task = await self.client.check_task(task_id)
        except TransportError as e:
            if self._stopped:
                return
            logger.error("Status query for task %s failed: %s", task_id, e.message)
            self._finish(status=TaskStatus.FAILED, error=STATUS_QUERY_FAILED, query_failed=True)
            return
        except ApiError as e:
            if self._stopped:
                return
            if e.http_status == _HTTP_NOT_ACCEPTABLE:
                self._apply(UploadTask(task_id=task_id, status=TaskStatus.PENDING, progress=self.state.progress))
                return
            logger.warning("Task %s reported failure: %s", task_id, e.message)
            self._finish(status=TaskStatus.FAILED, error=e.msg or STATUS_QUERY_FAILED)
            return

        # Teardown happened while the request was in flight
        if self._stopped:
            return
        self._apply(task)

    def _apply(self, task: UploadTask):
        if task.status.is_terminal:
            self._finish(
                status=task.status,
                progress=100 if task.status == TaskStatus.COMPLETED else task.progress,
                success=task.success,
                failed=task.failed,
                error=task.error,
            )
            return
        self.state = self.state.model_copy(update={
            "status": task.status,
            "progress": task.progress,
            "success": task.success,
            "failed": task.failed,
        })
        logger.debug("Task %s %s %d%%", task.task_id, task.status.value, task.progress)
        self._emit()

    def _finish(self, **update):
        self.state = self.state.model_copy(update=update)
        logger.info("Task %s finished: %s", self.state.task_id, self.state.status.value)
        self.stop()
        self._emit()

    def _emit(self):
        if self.on_update:
            self.on_update(self.state)

    def stop(self):
        """Stop polling. Safe to call any number of times."""
        self._stopped = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._done.set()

    async def wait(self) -> PollState:
        await self._done.wait()
        return self.state

    def reset(self):
        """Forget a finished session (the result has been dismissed)."""
        self.stop()
        self._task = None
        self.state = PollState()
        self._emit()
