"""Application configuration settings.

This module defines the Settings class which loads configuration from
environment variables with the POLICYSIM_ prefix.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden by environment variables with the
    POLICYSIM_ prefix (e.g., POLICYSIM_LOCAL_MODE=true).

    Attributes
    ----------
    app_name : str
        Application display name.
    app_version : str
        Application version string.
    debug : bool
        Enable debug mode.
    api_v1_prefix : str
        URL prefix for API v1 endpoints.
    default_region : str
        Region the new-simulation draft starts from.
    local_mode : bool
        Skip external dispatch and complete supported runs against fixture data.
    control_repo_nwo : str
        ``owner/name`` of the repository receiving dispatch events.
    control_repo_event_type : str
        Event type sent with each dispatch.
    github_api_url : str
        Base URL of the GitHub REST API.
    github_api_token : str
        Token used to authenticate dispatch calls.
    runner_callback_url : str
        URL the execution pipeline calls back with run status.
    runner_callback_token : str
        Shared token the execution pipeline presents on callbacks.
    dispatch_timeout : float
        Timeout in seconds for the dispatch call.
    data_dir : Path
        Directory holding the bundled region, intervention and case data.
    fixtures_dir : Path
        Directory holding stub model outputs used in local mode.
    seed_case_data : bool
        Load the bundled case data into the store on startup.
    """

    model_config = SettingsConfigDict(env_prefix="POLICYSIM_")

    app_name: str = "Policy Simulation WebAPI"
    app_version: str = "0.1.0"
    debug: bool = False

    # API settings
    api_v1_prefix: str = "/api/v1"

    # Draft defaults
    default_region: str = "US"

    # Execution pipeline
    local_mode: bool = False
    control_repo_nwo: str = "covid-policy-modelling/model-runner"
    control_repo_event_type: str = "run-simulation"
    github_api_url: str = "https://api.github.com"
    github_api_token: str = ""
    runner_callback_url: str = "http://localhost:8000/api/v1/simulations"
    runner_callback_token: str = ""
    dispatch_timeout: float = 30.0

    # Bundled data
    data_dir: Path = PACKAGE_DIR / "data"
    fixtures_dir: Path = PACKAGE_DIR / "data" / "fixtures"
    seed_case_data: bool = True


settings = Settings()
