import pytest
from fastapi.testclient import TestClient

from policysim.api.deps import get_dispatcher, get_settings
from policysim.config import Settings
from policysim.main import app
from policysim.services.catalog_service import get_catalog
from policysim.services.dispatch import DispatchError, DispatchJob
from policysim.services.storage import InMemorySimulationStore, User, seed_case_data

USER = {"X-User-Id": "7", "X-User-Login": "octocat"}
OTHER_USER = {"X-User-Id": "8", "X-User-Login": "hubot"}
RUNNER_TOKEN = "runner-secret"


class RecordingDispatcher:
    """Dispatcher that records jobs instead of calling the pipeline."""

    def __init__(self):
        self.jobs: list[DispatchJob] = []

    async def dispatch(self, job: DispatchJob) -> None:
        self.jobs.append(job)


class FailingDispatcher:
    async def dispatch(self, job: DispatchJob) -> None:
        raise DispatchError("control repository unreachable")


class RecordingReporter:
    def __init__(self):
        self.captured: list[BaseException] = []

    def capture_exception(self, exc: BaseException) -> None:
        self.captured.append(exc)


@pytest.fixture
def test_settings():
    return Settings(runner_callback_token=RUNNER_TOKEN, local_mode=False)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(test_settings, dispatcher):
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def catalog():
    return get_catalog()


@pytest.fixture
def store(test_settings):
    store = InMemorySimulationStore()
    seed_case_data(store, test_settings.data_dir / "case_data.json")
    return store


@pytest.fixture
def user():
    return User(id=7, login="octocat")


@pytest.fixture
def valid_config():
    return {
        "regionID": "US",
        "subregionID": "US-CA",
        "label": "Test",
        "r0": None,
        "customCalibrationDate": None,
        "interventionPeriods": [{"startDate": "2020-03-01", "reductionPopulationContact": 50}],
    }
