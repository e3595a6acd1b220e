"""
Settings - Application configuration with validation.
"""

import os
from pathlib import Path
from typing import Dict, Mapping, Optional
from dataclasses import dataclass

from cqroute.infra.exceptions import ConfigurationError
from cqroute.infra.logger import DEFAULT_FORMAT, get_logger


logger = get_logger(__name__)


def read_env_file(path: Path) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` lines of a .env file.

    Blank lines, comments and lines without ``=`` are skipped. Matching
    single or double quotes around a value are removed.
    """
    values: Dict[str, str] = {}
    with open(path, "r") as f:
        for line in f:
            key, sep, value = line.strip().partition("=")
            if not sep or key.startswith("#"):
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            values[key.strip()] = value
    return values


@dataclass
class Settings:
    """
    Application settings loaded from ``CQ_*`` environment variables.
    """

    port: int = 8080
    server: str = ""
    token: str = ""
    secret: str = ""
    self_id: Optional[int] = None

    command_prefix: str = ""

    log_level: str = "INFO"
    log_format: str = DEFAULT_FORMAT
    log_file: Optional[str] = None

    environment: str = "development"

    def __post_init__(self):
        """Validate settings after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate settings values."""
        errors = []

        if not 0 < self.port < 65536:
            errors.append(f"CQ_PORT out of range: {self.port}")

        if self.server and not self.server.startswith(("http://", "https://")):
            errors.append(f"CQ_SERVER must be an http(s) URL: {self.server}")

        if self.environment == "production" and not self.secret:
            errors.append("CQ_SECRET is required in production")

        if errors and self.environment != "test":
            raise ConfigurationError(
                "Configuration errors:\n" + "\n".join(f"- {e}" for e in errors)
            )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = ".env",
        environ: Optional[Mapping[str, str]] = None
    ) -> "Settings":
        """
        Create settings from the process environment.

        Keys missing from the environment are taken from ``env_file`` when
        it exists; the process environment always wins.

        Args:
            env_file: Path of a .env file, or None to skip it
            environ: Environment to read instead of ``os.environ``
        """
        env: Dict[str, str] = {}
        if env_file and Path(env_file).exists():
            env.update(read_env_file(Path(env_file)))
            logger.info(f"Loaded environment from: {env_file}")
        env.update(os.environ if environ is None else environ)

        self_id_str = env.get("CQ_SELF_ID", "")
        self_id = None
        if self_id_str:
            try:
                self_id = int(self_id_str)
            except ValueError:
                raise ConfigurationError(
                    f"CQ_SELF_ID must be an integer: {self_id_str}",
                    missing_keys=["CQ_SELF_ID"]
                )

        port_str = env.get("CQ_PORT", "8080")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(
                f"CQ_PORT must be an integer: {port_str}",
                missing_keys=["CQ_PORT"]
            )

        return cls(
            port=port,
            server=env.get("CQ_SERVER", "").rstrip("/"),
            token=env.get("CQ_TOKEN", ""),
            secret=env.get("CQ_SECRET", ""),
            self_id=self_id,
            command_prefix=env.get("CQ_COMMAND_PREFIX", ""),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_file=env.get("LOG_FILE"),
            environment=env.get("ENVIRONMENT", "development")
        )

    def to_dict(self) -> dict:
        """Convert to dictionary (excluding sensitive data)."""
        return {
            "port": self.port,
            "server": self.server,
            "self_id": self.self_id,
            "command_prefix": self.command_prefix,
            "environment": self.environment,
            "log_level": self.log_level
        }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
