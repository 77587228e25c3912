"""Configuration for TestUp, loaded from a YAML file and the environment."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOME = "~/.testup"
DEFAULT_CONFIG_FILE = "testup.yaml"
DEFAULT_COVERAGE_CATEGORY = "api_classes"

# Environment variable -> config key
ENV_KEYS = {
    'TESTUP_HOME': 'home',
    'TESTUP_TESTS_DIR': 'tests_dir',
    'TESTUP_RESULTS_DIR': 'results_dir',
    'TESTUP_COVERAGE_LIST': 'coverage_list',
    'TESTUP_COVERAGE_CATEGORY': 'coverage_category',
    'TESTUP_TEST_EXTENSION': 'test_extension',
    'TESTUP_HOST_TARGET': 'host_target',
    'TESTUP_POLL_INTERVAL': 'poll_interval',
    'TESTUP_WAIT_TIMEOUT': 'wait_timeout',
    'TESTUP_KEEP_RUNS': 'keep_runs',
}


class ConfigurationError(Exception):
    """A required path or setting is missing or invalid."""


class HostTarget(Enum):
    """How results are delivered to the presentation layer."""
    DIALOG = "dialog"  # live per-file updates to a UI surface
    STATIC = "static"  # one static HTML results page per run


@dataclass(frozen=True)
class TestUpConfig:
    __test__ = False

    tests_dir: Path
    results_dir: Path
    coverage_list: Path
    coverage_category: str = DEFAULT_COVERAGE_CATEGORY
    test_extension: str = ".py"
    host_target: HostTarget = HostTarget.STATIC
    poll_interval: float = 3.0
    wait_timeout: Optional[float] = 600.0
    keep_runs: int = 10

    @property
    def coverage_html(self) -> Path:
        return self.coverage_list.parent / "testup_coverage.html"


def _read_yaml(path: Path) -> dict:
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(config_file: Optional[str] = None) -> dict:
    """Load raw config values from the YAML file and environment variables.

    Environment variables take precedence over the file so a shell or
    container can override single settings.
    """
    paths = [
        config_file,
        os.environ.get('TESTUP_CONFIG'),
        Path.cwd() / DEFAULT_CONFIG_FILE,
    ]
    config = {}
    for p in paths:
        if p and Path(p).is_file():
            config.update(_read_yaml(Path(p)))
            logger.debug(f"Loaded config file {p}")
            break
        if p and p == config_file:
            raise ConfigurationError(f"Config file not found: {p}")

    for env_key, key in ENV_KEYS.items():
        env_value = os.environ.get(env_key)
        if env_value is not None:
            config[key] = env_value

    return config


def _to_float(key: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")


def _to_timeout(value) -> Optional[float]:
    if value is None or str(value).strip().lower() in ("", "0", "none", "never"):
        return None
    timeout = _to_float('wait_timeout', value)
    if timeout < 0:
        raise ConfigurationError(f"wait_timeout must not be negative, got {value!r}")
    return timeout


def get_config(config_file: Optional[str] = None, **overrides) -> TestUpConfig:
    """Build a TestUpConfig from file, environment and explicit overrides."""
    raw = load_config(config_file)
    raw.update({k: v for k, v in overrides.items() if v is not None})

    home = Path(raw.get('home', DEFAULT_HOME)).expanduser()

    def path_of(key: str, default: Path) -> Path:
        return Path(raw[key]).expanduser() if raw.get(key) else default

    try:
        host_target = HostTarget(str(raw.get('host_target', HostTarget.STATIC.value)).lower())
    except ValueError:
        choices = ", ".join(t.value for t in HostTarget)
        raise ConfigurationError(f"host_target must be one of: {choices}")

    extension = str(raw.get('test_extension', '.py'))
    if not extension.startswith('.'):
        extension = '.' + extension

    poll_interval = _to_float('poll_interval', raw.get('poll_interval', 3.0))
    if poll_interval <= 0:
        raise ConfigurationError("poll_interval must be positive")

    try:
        keep_runs = int(raw.get('keep_runs', 10))
    except (TypeError, ValueError):
        raise ConfigurationError(f"keep_runs must be an integer, got {raw.get('keep_runs')!r}")

    return TestUpConfig(
        tests_dir=path_of('tests_dir', home / 'tests'),
        results_dir=path_of('results_dir', home / 'results'),
        coverage_list=path_of('coverage_list', home / 'coverage' / 'api_methods.csv'),
        coverage_category=str(raw.get('coverage_category', DEFAULT_COVERAGE_CATEGORY)),
        test_extension=extension,
        host_target=host_target,
        poll_interval=poll_interval,
        wait_timeout=_to_timeout(raw.get('wait_timeout', 600.0)),
        keep_runs=keep_runs,
    )
