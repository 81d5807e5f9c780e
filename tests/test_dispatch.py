import json
import logging
from datetime import date

import httpx
import pytest

from policysim.api.v1.schemas.simulation import (
    InterventionPeriodInput,
    ModelInput,
    ModelParameters,
)
from policysim.services.dispatch import (
    DispatchError,
    DispatchJob,
    DispatchModel,
    GitHubDispatcher,
    LoggingErrorReporter,
)


@pytest.fixture
def job():
    return DispatchJob(
        id=12,
        models=(DispatchModel("basel", "ghcr.io/example/basel:latest"),),
        configuration=ModelInput(
            region="US",
            subregion="US-CA",
            parameters=ModelParameters(
                r0=None,
                calibration_case_count=4914,
                calibration_death_count=102,
                calibration_date=date(2020, 3, 27),
                intervention_periods=[
                    InterventionPeriodInput(start_date=date(2020, 3, 1), reduction_population_contact=40)
                ],
            ),
        ),
        callback_url="https://policysim.example/api/v1/simulations",
    )


def test_payload_uses_wire_names(job):
    """Test the dispatch payload uses wire field names."""
    payload = job.payload()
    assert payload["models"] == [{"slug": "basel", "imageURL": "ghcr.io/example/basel:latest"}]
    assert payload["callbackURL"] == "https://policysim.example/api/v1/simulations"
    parameters = payload["configuration"]["parameters"]
    assert parameters["calibrationDate"] == "2020-03-27"
    assert parameters["calibrationCaseCount"] == 4914
    assert parameters["interventionPeriods"][0]["startDate"] == "2020-03-01"


def test_rejects_malformed_repository():
    """Test a control repository without an owner is refused."""
    with pytest.raises(ValueError):
        GitHubDispatcher(repo_nwo="model-runner", event_type="run-simulation", token="t")


@pytest.mark.asyncio
async def test_dispatch_posts_repository_dispatch(job):
    """Test dispatching posts a repository_dispatch event."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    dispatcher = GitHubDispatcher(
        repo_nwo="covid-policy-modelling/model-runner",
        event_type="run-simulation",
        token="secret",
        transport=httpx.MockTransport(handler),
    )
    await dispatcher.dispatch(job)

    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == (
        "https://api.github.com/repos/covid-policy-modelling/model-runner/dispatches"
    )
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body["event_type"] == "run-simulation"
    assert body["client_payload"]["id"] == 12


@pytest.mark.asyncio
async def test_dispatch_error_status(job):
    """Test an error status from the API raises DispatchError."""
    dispatcher = GitHubDispatcher(
        repo_nwo="covid-policy-modelling/model-runner",
        event_type="run-simulation",
        token="secret",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"message": "Not Found"})),
    )
    with pytest.raises(DispatchError):
        await dispatcher.dispatch(job)


@pytest.mark.asyncio
async def test_dispatch_connection_error(job):
    """Test a connection failure raises DispatchError."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = GitHubDispatcher(
        repo_nwo="covid-policy-modelling/model-runner",
        event_type="run-simulation",
        token="secret",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(DispatchError):
        await dispatcher.dispatch(job)


def test_logging_error_reporter(caplog):
    """Test the default reporter logs the exception."""
    with caplog.at_level(logging.ERROR, logger="policysim.errors"):
        LoggingErrorReporter().capture_exception(RuntimeError("boom"))
    assert "RuntimeError: boom" in caplog.text
