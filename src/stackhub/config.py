"""stackhub configuration using pydantic-settings.

Configuration hierarchy:
- DockerConfig: Container runtime access
- PortRangesConfig: Reserved port range per port category
- ProvisioningConfig: Provisioning script, artifacts and operation timeouts
- ValidationConfig: Post-creation polling cadence and thresholds
- StoreConfig: Persisted instance collection
- LoggingConfig: Logging behavior
- ServerConfig: HTTP server
- StackHubConfig: Main config aggregating all sub-configs

Environment variable prefix: STACKHUB_
Example: STACKHUB_PROVISIONING_HOST_ADDRESS=10.0.0.5

Only the process entry point reads the cached singleton (get_config).
Core components receive their config explicitly so that several
orchestrators can run side by side with independent ranges.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stackhub.core.domain import PortCategory


class DockerConfig(BaseSettings):
    """Container runtime configuration."""

    model_config = SettingsConfigDict(env_prefix="STACKHUB_DOCKER_")

    host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Docker daemon socket or TCP address",
    )
    api_timeout: float = Field(default=30.0, description="Docker API call timeout (seconds)")

    # Compose CLI. The legacy binary is tried when the plugin form is missing.
    compose_command: list[str] = Field(default=["docker", "compose"])
    legacy_compose_command: list[str] = Field(default=["docker-compose"])


class PortRange(BaseModel):
    """Inclusive reserved port range."""

    start: int = Field(ge=1, le=65535)
    end: int = Field(ge=1, le=65535)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_bounds(self) -> "PortRange":
        if self.start > self.end:
            raise ValueError(f"Port range start {self.start} is after end {self.end}")
        return self

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.start <= port <= self.end


class PortRangesConfig(BaseSettings):
    """Reserved port range per port category.

    Ranges are given as JSON in the environment:
      STACKHUB_PORTS_KONG_HTTP='{"start": 8010, "end": 8099}'
    """

    model_config = SettingsConfigDict(env_prefix="STACKHUB_PORTS_")

    kong_http: PortRange = Field(default=PortRange(start=8010, end=8099))
    kong_https: PortRange = Field(default=PortRange(start=8410, end=8499))
    postgres_ext: PortRange = Field(default=PortRange(start=5410, end=5499))
    analytics: PortRange = Field(default=PortRange(start=4010, end=4099))

    def for_category(self, category: PortCategory) -> PortRange:
        return getattr(self, category.value)


class ProvisioningConfig(BaseSettings):
    """Provisioning script and generated artifact configuration."""

    model_config = SettingsConfigDict(env_prefix="STACKHUB_PROVISIONING_")

    docker_path: Path = Field(
        default=Path("docker"),
        description="Script working directory, also the root of generated artifacts",
    )
    script_name: str = Field(default="generate.bash")
    templates: list[str] = Field(default=[".env.template", "docker-compose.yml"])

    host_address: str = Field(
        default="127.0.0.1",
        description="Host address used for derived URLs and the gateway probe",
    )

    # Container naming: {container_prefix}{service}-{instance_id}
    container_prefix: str = Field(default="supabase-")
    primary_service: str = Field(default="studio")

    # Timeouts (seconds)
    script_timeout: float = Field(default=600.0)  # 10 minutes, hard kill
    settle_delay: float = Field(default=5.0)
    start_timeout: float = Field(default=120.0)
    stop_timeout: float = Field(default=60.0)
    cleanup_timeout: float = Field(default=60.0)


class ValidationConfig(BaseSettings):
    """Post-creation validation configuration.

    Container ceiling: poll_interval * container_attempts (60s by default).
    Connectivity ceiling: poll_interval * connectivity_attempts (30s by default).
    """

    model_config = SettingsConfigDict(env_prefix="STACKHUB_VALIDATION_")

    poll_interval: float = Field(default=5.0)
    container_attempts: int = Field(default=12, ge=1)
    # Primary UI, gateway and database
    min_containers: int = Field(default=3, ge=1)
    connectivity_attempts: int = Field(default=6, ge=1)
    request_timeout: float = Field(default=5.0)

    # When False an unreachable gateway is reported but does not roll back
    # an instance whose containers are confirmed running.
    require_connectivity: bool = Field(default=False)


class StoreConfig(BaseSettings):
    """Instance store configuration."""

    model_config = SettingsConfigDict(env_prefix="STACKHUB_STORE_")

    data_file: Path = Field(default=Path("data/instances.json"))


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats for different environments:
    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="STACKHUB_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="stackhub", description="Service identifier in logs")
    instance_log_file: str = Field(
        default="logs/instances.log",
        description="Instance-tagged log file (empty disables)",
    )


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="STACKHUB_SERVER_")

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3030, description="Server port")
    api_key: str = Field(default="", description="API key for authentication")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    reconcile_interval: float = Field(
        default=60.0,
        description="Seconds between background status reconciliations (0 disables)",
    )


class StackHubConfig(BaseSettings):
    """Main configuration aggregating all sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="STACKHUB_",
        env_nested_delimiter="__",
    )

    docker: DockerConfig = Field(default_factory=DockerConfig)
    ports: PortRangesConfig = Field(default_factory=PortRangesConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


@lru_cache
def get_config() -> StackHubConfig:
    """Get cached configuration singleton."""
    return StackHubConfig()
