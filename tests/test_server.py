from types import SimpleNamespace

import pytest

from afritable.core.enhancement import DataEnhancementService
from afritable.core.monitoring import DataMonitoringService
from afritable.core.tasks import TaskRecord, TaskStatus
from afritable.jobs.server import create_app
from afritable.models import Provider, RestaurantRecord
from conftest import FIXED_NOW, FakeAdapter, FakeStore


class RecordingTasks:
    def __init__(self):
        self.submitted = {}
        self.records = {}

    def submit(self, name, func):
        task_id = f"task-{len(self.submitted) + 1}"
        self.submitted[task_id] = (name, func)
        self.records[task_id] = TaskRecord(id=task_id, name=name)
        return task_id

    def get(self, task_id):
        return self.records.get(task_id)


@pytest.fixture
def services(settings):
    store = FakeStore([RestaurantRecord(name="Blue Nile", address="123 Main St", last_updated=FIXED_NOW)])
    adapters = {provider: FakeAdapter(provider) for provider in Provider}
    return SimpleNamespace(
        settings=settings,
        store=store,
        adapters=adapters,
        enhancement=DataEnhancementService(store, adapters, clock=lambda: FIXED_NOW),
        monitoring=DataMonitoringService(store, clock=lambda: FIXED_NOW),
        tasks=RecordingTasks(),
    )


@pytest.fixture
def client(services):
    return create_app(services).test_client()


def test_healthcheck_reports_providers(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["providers"] == {"google": True, "yelp": True, "foursquare": True}
    assert body["maps_backend"] == "browser"
    assert body["worker_port_config"] == 9000


def test_enhance_is_queued_and_runs(client, services):
    response = client.post("/enhance", json={"restaurant_id": "1", "batch_size": 5, "include_photos": False})

    assert response.status_code == 202
    assert response.get_json() == {"data": {"status": "queued", "task_id": "task-1"}}
    name, run = services.tasks.submitted["task-1"]
    assert name == "enhance"

    outcome = run()
    assert outcome["total"] == 1
    assert outcome["enhanced"] == 1
    assert services.store.records["1"].last_updated == FIXED_NOW


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"batch_size": 0}, "batch_size must be positive"),
        ({"batch_size": "many"}, "batch_size must be numeric"),
        ({"force_update": "yes"}, "force_update must be a boolean"),
        ({"restaurant_id": ""}, "restaurant_id must be a non-empty string"),
        ({"restaurant_id": True}, "restaurant_id must be a non-empty string"),
    ],
)
def test_enhance_rejects_bad_payloads(client, services, payload, message):
    response = client.post("/enhance", json=payload)

    assert response.status_code == 400
    assert response.get_json() == {"error": message}
    assert services.tasks.submitted == {}


def test_collect_validates_metros(client, services):
    bad = client.post("/collect", json={"metros": ["atlantis"]})
    wrong_type = client.post("/collect", json={"metros": "atlanta"})
    good = client.post("/collect", json={"metros": ["atlanta"], "quick": True})

    assert bad.status_code == 400
    assert bad.get_json() == {"error": "unknown metros: atlantis"}
    assert wrong_type.status_code == 400
    assert good.status_code == 202
    assert services.tasks.submitted["task-1"][0] == "collect"


def test_task_status(client, services):
    assert client.get("/tasks/missing").status_code == 404

    client.post("/enhance", json={})
    services.tasks.records["task-1"].status = TaskStatus.SUCCEEDED
    response = client.get("/tasks/task-1")

    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "SUCCEEDED"


def test_quality_endpoints(client):
    overview = client.get("/quality/overview")
    restaurant = client.get("/quality/restaurants/1")
    missing = client.get("/quality/restaurants/99")
    outdated = client.get("/quality/outdated")

    assert overview.status_code == 200
    assert overview.get_json()["data"]["total_restaurants"] == 1
    assert restaurant.status_code == 200
    data = restaurant.get_json()["data"]
    assert data["restaurant_id"] == "1"
    assert data["last_assessed"] == FIXED_NOW.isoformat()
    assert data["issues"][0]["type"] == "MISSING_DATA"
    assert missing.status_code == 404
    assert outdated.get_json() == {"data": {"count": 0, "restaurant_ids": []}}
