from functools import lru_cache
from typing import ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

CRITICAL_EXCEPTION_MARKERS: tuple[str, ...] = ("OutOfMemory", "StackOverflow", "Sql", "Timeout")


class AlertThresholds(BaseModel):
    """Policy constants for the alert decision rules.

    ``*_threshold`` values are compared against the trailing analysis window to
    decide whether a rule is warranted; ``monitor_*`` values are embedded in the
    provisioned rule's 24-hour query.
    """

    model_config = ConfigDict(frozen=True)

    avg_response_ms_threshold: float = 3000
    monitor_avg_response_ms: float = 5000
    failure_rate_pct_threshold: float = 1
    monitor_failure_rate_pct: float = 2
    critical_exception_markers: tuple[str, ...] = CRITICAL_EXCEPTION_MARKERS
    dependency_failure_pct_threshold: float = 5
    monitor_dependency_failure_pct: float = 5
    slow_request_count_threshold: int = 20
    monitor_slow_request_count: int = 10
    monitor_slow_request_ms: float = 8000


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Monitoring backend (Application Insights component ARM id)
    appinsights_resource_id: str
    app_name: str
    app_resource_group: str
    subscription_id: str

    # Alerting backend (optional action group; empty string means rules notify nobody)
    alert_resource_group: str = ""
    alert_location: str = "eastus"
    action_group_id: str = ""

    report_output_path: str = "appinsights_report.html"
    report_table_rows: int = 20

    # Azure OpenAI (optional, empty endpoint means narrative is skipped)
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_deployment: str = "gpt-4o"
    azure_openai_api_version: str = "2024-06-01"
    narrative_sample_rows: int = 50
    narrative_max_tokens: int = 800

    analysis_window_days: int = 30
    slow_request_ms: float = 5000
    http_timeout_seconds: float = 60

    # Alert policy thresholds, each independently overridable
    avg_response_ms_threshold: float = 3000
    monitor_avg_response_ms: float = 5000
    failure_rate_pct_threshold: float = 1
    monitor_failure_rate_pct: float = 2
    dependency_failure_pct_threshold: float = 5
    monitor_dependency_failure_pct: float = 5
    slow_request_count_threshold: int = 20
    monitor_slow_request_count: int = 10
    monitor_slow_request_ms: float = 8000

    # SMTP / Email (optional, empty = email disabled)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    report_recipient_email: str = ""

    # Prometheus Pushgateway (optional, empty = run metrics are not pushed)
    pushgateway_url: str = ""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    @property
    def effective_alert_resource_group(self) -> str:
        """Alert rules live beside the application unless a separate group is configured."""
        return self.alert_resource_group or self.app_resource_group

    def thresholds(self) -> AlertThresholds:
        return AlertThresholds(
            avg_response_ms_threshold=self.avg_response_ms_threshold,
            monitor_avg_response_ms=self.monitor_avg_response_ms,
            failure_rate_pct_threshold=self.failure_rate_pct_threshold,
            monitor_failure_rate_pct=self.monitor_failure_rate_pct,
            dependency_failure_pct_threshold=self.dependency_failure_pct_threshold,
            monitor_dependency_failure_pct=self.monitor_dependency_failure_pct,
            slow_request_count_threshold=self.slow_request_count_threshold,
            monitor_slow_request_count=self.monitor_slow_request_count,
            monitor_slow_request_ms=self.monitor_slow_request_ms,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()  # type: ignore[call-arg]  # pyright: ignore[reportCallIssue]
