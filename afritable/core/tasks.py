"""Background task queue with queryable outcomes."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class TaskRecord:
    id: str
    name: str
    status: TaskStatus = TaskStatus.QUEUED
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "submitted_at": self.submitted_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "result": self.result,
            "error": self.error,
        }


class TaskQueue:
    def __init__(self, max_workers: int = 4, max_history: int = 500) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="task")
        self._tasks: Dict[str, TaskRecord] = {}
        self._lock = threading.Lock()
        self._max_history = max_history

    def submit(self, name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> str:
        task_id = uuid.uuid4().hex
        record = TaskRecord(id=task_id, name=name)
        with self._lock:
            self._tasks[task_id] = record
            self._prune()
        self._executor.submit(self._run, record, func, args, kwargs)
        logger.info("Queued task %s (%s)", task_id, name)
        return task_id

    def _run(self, record: TaskRecord, func: Callable[..., Any], args: tuple, kwargs: Dict[str, Any]) -> None:
        with self._lock:
            record.status = TaskStatus.RUNNING
            record.started_at = datetime.now(timezone.utc)
        try:
            outcome = func(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Task %s (%s) failed: %s", record.id, record.name, exc)
            with self._lock:
                record.status = TaskStatus.FAILED
                record.error = str(exc)
                record.finished_at = datetime.now(timezone.utc)
            return
        with self._lock:
            record.status = TaskStatus.SUCCEEDED
            record.result = outcome
            record.finished_at = datetime.now(timezone.utc)
        logger.info("Task %s (%s) succeeded", record.id, record.name)

    def _prune(self) -> None:
        if len(self._tasks) <= self._max_history:
            return
        finished = [
            task for task in self._tasks.values() if task.status in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)
        ]
        finished.sort(key=lambda task: task.submitted_at)
        for task in finished[: len(self._tasks) - self._max_history]:
            del self._tasks[task.id]

    def get(self, task_id: str) -> Optional[TaskRecord]:
        with self._lock:
            return self._tasks.get(task_id)

    def list(self) -> List[TaskRecord]:
        with self._lock:
            return sorted(self._tasks.values(), key=lambda task: task.submitted_at)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
