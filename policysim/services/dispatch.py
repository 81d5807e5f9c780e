"""Dispatch of simulation jobs to the external execution pipeline.

The pipeline is triggered with a GitHub ``repository_dispatch`` event on a
control repository; the event payload carries the job, and the pipeline
reports each model's status back to the callback URL.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..api.v1.schemas.simulation import ModelInput

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Raised when the execution pipeline could not be triggered."""


@dataclass(frozen=True)
class DispatchModel:
    slug: str
    image_url: str


@dataclass(frozen=True)
class DispatchJob:
    """Everything the execution pipeline needs to run a simulation.

    Attributes
    ----------
    id : int
        Simulation identifier.
    models : tuple of DispatchModel
        Supported models to run.
    configuration : ModelInput
        Shared model input.
    callback_url : str
        Where the pipeline reports run status.
    """

    id: int
    models: tuple[DispatchModel, ...]
    configuration: ModelInput
    callback_url: str

    def payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "models": [{"slug": m.slug, "imageURL": m.image_url} for m in self.models],
            "configuration": self.configuration.model_dump(mode="json", by_alias=True),
            "callbackURL": self.callback_url,
        }


class Dispatcher(Protocol):
    async def dispatch(self, job: DispatchJob) -> None: ...


class GitHubDispatcher:
    """Trigger the pipeline through a ``repository_dispatch`` event.

    Parameters
    ----------
    repo_nwo : str
        Control repository as ``owner/name``.
    event_type : str
        Event type of the dispatch.
    token : str
        API token with access to the control repository.
    api_url : str
        Base URL of the GitHub REST API.
    timeout : float
        Request timeout in seconds.
    transport : httpx.AsyncBaseTransport or None
        Transport override, used by tests.
    """

    def __init__(
        self,
        repo_nwo: str,
        event_type: str,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        owner, _, name = repo_nwo.partition("/")
        if not owner or not name:
            raise ValueError(f"Control repository must be 'owner/name', got '{repo_nwo}'")
        self.owner = owner
        self.name = name
        self.event_type = event_type
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.name}/dispatches"

    async def dispatch(self, job: DispatchJob) -> None:
        """Send the dispatch event.

        Raises
        ------
        DispatchError
            If the request fails or GitHub answers with an error status.
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
        }
        body = {"event_type": self.event_type, "client_payload": job.payload()}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=headers, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=body)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise DispatchError(f"Dispatch of simulation {job.id} failed: {e}") from e
        logger.info(
            f"Dispatched simulation {job.id} to {self.owner}/{self.name} "
            f"with {len(job.models)} models"
        )


class ErrorReporter(Protocol):
    def capture_exception(self, exc: BaseException) -> None: ...


class LoggingErrorReporter:
    """Report errors to the application log."""

    def __init__(self, logger_name: str = "policysim.errors"):
        self._logger = logging.getLogger(logger_name)

    def capture_exception(self, exc: BaseException) -> None:
        self._logger.error(f"{type(exc).__name__}: {exc}", exc_info=exc)
