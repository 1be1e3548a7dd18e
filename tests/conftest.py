"""Shared pytest configuration and fixtures."""

from collections.abc import Generator
from pathlib import Path

import pytest
from helpers import ACTION_GROUP_ID, APPINSIGHTS_ID, InMemoryAlertBackend

from appinsights_report.config import Settings, get_settings


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that hit real Azure services (requires .env with valid credentials)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="Need --run-e2e flag to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def _no_dotenv(request: pytest.FixtureRequest) -> Generator[None]:
    """Block .env loading so tests only see settings they construct explicitly."""
    if "e2e" in request.keywords:
        yield
        return

    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fake settings so tests don't need a .env file."""
    return Settings(
        appinsights_resource_id=APPINSIGHTS_ID,
        app_name="shop-api",
        app_resource_group="rg-shop",
        subscription_id="sub-123",
        alert_resource_group="rg-alerts",
        action_group_id=ACTION_GROUP_ID,
        report_output_path=str(tmp_path / "report.html"),
        azure_openai_endpoint="",
        azure_openai_api_key="",
    )


@pytest.fixture
def alert_backend() -> InMemoryAlertBackend:
    return InMemoryAlertBackend()
