from afritable.core.tasks import TaskQueue, TaskStatus


def test_successful_task_records_result():
    queue = TaskQueue(max_workers=1)
    task_id = queue.submit("enhance", lambda value: {"total": value}, 3)
    queue.shutdown(wait=True)

    task = queue.get(task_id)
    assert task.status is TaskStatus.SUCCEEDED
    assert task.result == {"total": 3}
    assert task.error is None
    assert task.to_dict()["status"] == "SUCCEEDED"
    assert task.to_dict()["finished_at"] is not None


def test_failed_task_records_error():
    def broken():
        raise RuntimeError("database unavailable")

    queue = TaskQueue(max_workers=1)
    task_id = queue.submit("collect", broken)
    queue.shutdown(wait=True)

    task = queue.get(task_id)
    assert task.status is TaskStatus.FAILED
    assert task.error == "database unavailable"
    assert task.result is None


def test_unknown_task_is_none():
    queue = TaskQueue(max_workers=1)
    try:
        assert queue.get("missing") is None
    finally:
        queue.shutdown()
