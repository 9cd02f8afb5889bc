"""Global configuration: loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class AgencySettings(BaseSettings):
    workspace_dir: Path = Path(".cryptoagency")
    db_filename: str = "agentic_suggestions.db"
    log_level: str = "INFO"
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8430

    # Seed for every simulated feed and decision draw (None = nondeterministic)
    random_seed: int | None = None

    # Market hunter
    alpha_threshold: float = 0.7
    discovery_history_limit: int = 1000

    # Scheduling
    daemon_interval_seconds: int = 30
    bench_pause_seconds: float = 0.0
    bench_results_limit: int = 200

    model_config = {"env_prefix": "CRYPTOAGENCY_"}

    @property
    def db_path(self) -> Path:
        return self.workspace_dir / self.db_filename


settings = AgencySettings()
