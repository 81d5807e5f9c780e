"""Request dependencies shared by the API endpoints."""

import hmac

from fastapi import Depends, Header, HTTPException, Request

from ..config import Settings, settings
from ..services.catalog_service import Catalog, get_catalog
from ..services.dispatch import Dispatcher, ErrorReporter, GitHubDispatcher, LoggingErrorReporter
from ..services.storage import SimulationStore, User


def get_settings() -> Settings:
    return settings


def get_store(request: Request) -> SimulationStore:
    """Return the store created by the application lifespan."""
    return request.app.state.store


def get_app_catalog() -> Catalog:
    return get_catalog()


def get_dispatcher(app_settings: Settings = Depends(get_settings)) -> Dispatcher | None:
    """Build the dispatcher for the configured control repository.

    Local mode never dispatches, so no dispatcher is built.
    """
    if app_settings.local_mode:
        return None
    return GitHubDispatcher(
        repo_nwo=app_settings.control_repo_nwo,
        event_type=app_settings.control_repo_event_type,
        token=app_settings.github_api_token,
        api_url=app_settings.github_api_url,
        timeout=app_settings.dispatch_timeout,
    )


def get_error_reporter() -> ErrorReporter:
    return LoggingErrorReporter()


def get_current_user(
    x_user_id: int | None = Header(default=None),
    x_user_login: str | None = Header(default=None),
) -> User:
    """Identify the requesting user from the headers set by the auth proxy.

    Raises
    ------
    HTTPException
        401 if either header is missing.
    """
    if x_user_id is None or not x_user_login:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return User(id=x_user_id, login=x_user_login)


def verify_runner_token(
    x_runner_token: str | None = Header(default=None),
    app_settings: Settings = Depends(get_settings),
) -> None:
    """Check the shared token presented by the execution pipeline.

    Raises
    ------
    HTTPException
        401 if no token is configured or the presented one does not match.
    """
    expected = app_settings.runner_callback_token
    if not expected or not x_runner_token:
        raise HTTPException(status_code=401, detail="Invalid runner token")
    # header values arrive latin-1 decoded and may be non-ASCII
    if not hmac.compare_digest(x_runner_token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid runner token")
