"""Configuration loader for the plan analyzer."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .plan_images import DEFAULT_MAX_IMAGE_BYTES, DEFAULT_PDF_DPI
from .vision_providers import API_KEY_ENV_VARS, DEFAULT_MAX_TOKENS

logger = logging.getLogger(__name__)

MANUAL_MAX_TOKENS = 8192


@dataclass
class AnalyzerConfig:
    provider: str = "anthropic"
    model: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    manual_max_tokens: int = MANUAL_MAX_TOKENS
    max_attempts: int = 3
    backoff_scale: float = 1.0
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    pdf_dpi: int = DEFAULT_PDF_DPI
    price_book_path: Optional[str] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.max_image_bytes <= 0:
            raise ValueError(f"max_image_bytes must be positive, got {self.max_image_bytes}")
        if self.backoff_scale < 0:
            raise ValueError(f"backoff_scale must be non-negative, got {self.backoff_scale}")

    def resolve_api_key(self) -> Optional[str]:
        """Explicit key, else the provider's environment variable."""
        if self.api_key:
            return self.api_key
        env_var = API_KEY_ENV_VARS.get(self.provider.lower(), "ANTHROPIC_API_KEY")
        return os.getenv(env_var)


def _find_config_file() -> Optional[Path]:
    search_paths = [
        Path.cwd() / 'plan_budget.yaml',
        Path(__file__).parent.parent / 'config' / 'plan_budget.yaml',
        Path.home() / '.plan-budget' / 'config.yaml',
    ]
    for path in search_paths:
        if path.exists():
            return path
    return None


def _apply_env(values: dict) -> dict:
    env_map = {
        'VISION_PROVIDER': ('provider', str),
        'VISION_MODEL': ('model', str),
        'PLAN_MAX_IMAGE_BYTES': ('max_image_bytes', int),
        'PRICE_BOOK_PATH': ('price_book_path', str),
    }
    for env_var, (name, cast) in env_map.items():
        raw = os.getenv(env_var)
        if raw:
            try:
                values[name] = cast(raw)
            except ValueError:
                raise ValueError(f"Invalid {env_var}: {raw!r}") from None
    return values


def load_config(config_path: Optional[str] = None) -> AnalyzerConfig:
    """
    Load analyzer configuration.

    Values come from the YAML file (explicit path or first default
    location found), then environment variables override them.

    Args:
        config_path: Path to config file. If None, looks in default locations.

    Returns:
        AnalyzerConfig object

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
    """
    values = {}
    path = Path(config_path) if config_path else _find_config_file()

    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        known = {f.name for f in fields(AnalyzerConfig)}
        unknown = set(raw) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {path}: {sorted(unknown)}")
        values = {k: v for k, v in raw.items() if k in known}
        logger.debug(f"Loaded config from {path}")

    return AnalyzerConfig(**_apply_env(values))
