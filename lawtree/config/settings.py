"""Crawl settings: packaged YAML defaults, optional YAML file, env vars, flags."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULTS_FILE = CONFIG_DIR / "defaults.yaml"

ENV_VARS = {
    "base_url": "LAWTREE_BASE_URL",
    "output_path": "LAWTREE_OUTPUT",
    "max_retries": "LAWTREE_MAX_RETRIES",
    "retry_delay": "LAWTREE_RETRY_DELAY",
    "step_timeout": "LAWTREE_STEP_TIMEOUT",
    "pace_delay": "LAWTREE_PACE_DELAY",
}


@dataclass
class CrawlConfig:
    """Everything a crawl run can be tuned with. Durations are in seconds."""

    base_url: str = "https://malegislature.gov/Laws/GeneralLaws"
    output_path: Path = Path("massachusetts_general_laws.json")
    max_retries: int = 3
    retry_delay: float = 5.0
    step_timeout: float = 30.0
    pace_delay: float = 1.0
    expand_timeout: float = 10.0
    expand_poll_interval: float = 0.5
    expand_url_template: str = "/GeneralLaws/GetChaptersForTitle?partId={part_id}&titleId={title_id}&code={code}"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    def __post_init__(self):
        self.output_path = Path(self.output_path)
        self.max_retries = int(self.max_retries)
        for name in ("retry_delay", "step_timeout", "pace_delay", "expand_timeout", "expand_poll_interval"):
            setattr(self, name, float(getattr(self, name)))
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")

    def with_overrides(self, overrides: Mapping[str, object]) -> CrawlConfig:
        """Copy with every non-None value of ``overrides`` applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        _check_keys(changes, "overrides")
        return dataclasses.replace(self, **changes)


def _check_keys(values: Mapping[str, object], source: str) -> None:
    known = {f.name for f in dataclasses.fields(CrawlConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {source}: {', '.join(unknown)}")


def _read_yaml(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    section = data.get("crawl", {}) if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise ValueError(f"{path}: expected a 'crawl' mapping")
    _check_keys(section, str(path))
    return section


def _from_env(environ: Mapping[str, str]) -> dict:
    return {field: environ[var] for field, var in ENV_VARS.items() if environ.get(var)}


def load_config(
    config_file: Path | None = None,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> CrawlConfig:
    """Resolve settings: defaults.yaml < config_file < environment < overrides."""
    values = _read_yaml(DEFAULTS_FILE) if DEFAULTS_FILE.exists() else {}
    if config_file is not None:
        values.update(_read_yaml(Path(config_file)))
        logger.debug("Loaded config file %s", config_file)
    values.update(_from_env(os.environ if environ is None else environ))
    config = CrawlConfig(**values)
    return config.with_overrides(overrides or {})
