# Planboard: configuration
# Defaults, overridden by a YAML file, overridden by environment variables.

import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .client import DEFAULT_API_URL
from .conversation import DEFAULT_GUIDANCE_PROMPT

CONFIG_PATH = Path("~/.config/planboard/config.yaml")

ENV_API_URL = "PLANBOARD_API_URL"
ENV_LOG_LEVEL = "PLANBOARD_LOG_LEVEL"
ENV_CONFIG = "PLANBOARD_CONFIG"


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the dashboard client."""

    api_url: str = DEFAULT_API_URL
    request_timeout: float = 10.0
    log_level: str = "INFO"

    # Seed turn for new conversations; {title}, {description}, {goal} available
    guidance_prompt: str = DEFAULT_GUIDANCE_PROMPT

    def validate(self) -> "Config":
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigError(f"api_url must be an http(s) URL, got {self.api_url!r}")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if "{title}" not in self.guidance_prompt:
            raise ConfigError("guidance_prompt must contain {title}")
        try:
            self.guidance_prompt.format(title="", description="", goal="")
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"guidance_prompt has an unusable placeholder: {e}") from e
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Unknown log_level: {self.log_level}")
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """
        Load config from YAML, falling back to defaults when no file exists.

        Lookup: explicit path, then $PLANBOARD_CONFIG, then
        ~/.config/planboard/config.yaml. Unknown keys are ignored.
        """
        explicit = path or os.environ.get(ENV_CONFIG)
        cfg_path = Path(explicit).expanduser() if explicit else CONFIG_PATH.expanduser()

        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        elif explicit:
            raise ConfigError(f"Config file not found: {cfg_path}")

        known = {f.name for f in fields(cls)}
        cfg = cls(**{k: v for k, v in data.items() if k in known})

        # ── Environment overrides ──
        if os.environ.get(ENV_API_URL):
            cfg.api_url = os.environ[ENV_API_URL]
        if os.environ.get(ENV_LOG_LEVEL):
            cfg.log_level = os.environ[ENV_LOG_LEVEL]

        cfg.api_url = cfg.api_url.rstrip("/")
        try:
            cfg.request_timeout = float(cfg.request_timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"request_timeout must be a number, got {cfg.request_timeout!r}")
        return cfg.validate()


def setup_logging(level: str = "INFO", stream=None) -> None:
    """Route log records to stream (stdout by default) with the planboard format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [planboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(stream or sys.stdout)],
    )
