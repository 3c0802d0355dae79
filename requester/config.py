"""
load the config from config.yaml and environment variables
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional


DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_10_3) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/41.0.2272.76 Safari/537.36'
)


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# env var -> (section, key, converter)
ENV_OVERRIDES = {
    'REQUESTER_USER_AGENT': ('requester', 'user_agent', str),
    'REQUESTER_FAIL_ON_COOKIE_ERROR': ('requester', 'fail_on_cookie_error', _to_bool),
    'REQUESTER_TIMEOUT': ('fetcher', 'timeout', float),
    'REQUESTER_MAX_REDIRECTS': ('fetcher', 'max_redirects', int),
    'LOG_LEVEL': ('logging', 'level', str),
    'LOG_FORMAT': ('logging', 'format', str),
}


class Config:
    """config.yaml sections with environment variable overrides applied."""

    def __init__(self, config_path: str = None):
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        for env_var, (section, key, convert) in ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            try:
                value = convert(env_value)
            except ValueError:
                raise ValueError(f"Invalid value for {env_var}: {env_value!r}")
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][key] = value

        return config

    def section(self, name: str) -> Dict[str, Any]:
        value = self._config.get(name)
        return value if isinstance(value, dict) else {}

    @property
    def requester(self) -> Dict[str, Any]:
        return self.section('requester')

    @property
    def fetcher(self) -> Dict[str, Any]:
        return self.section('fetcher')

    @property
    def logging(self) -> Dict[str, Any]:
        return self.section('logging')


class RequesterConfig:
    """Settings a Requester and its fetcher are built with."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        default_headers: Dict[str, str] = None,
        fail_on_cookie_error: bool = False,
        timeout: Optional[float] = 30.0,
        max_redirects: int = 10,
    ):
        self.user_agent = user_agent
        self.default_headers = dict(default_headers or {})
        self.fail_on_cookie_error = fail_on_cookie_error
        self.timeout = timeout
        self.max_redirects = max_redirects

    @classmethod
    def from_config(cls, config: Config) -> "RequesterConfig":
        requester = config.requester
        fetcher = config.fetcher
        return cls(
            user_agent=requester.get('user_agent') or DEFAULT_USER_AGENT,
            default_headers=requester.get('default_headers') or {},
            fail_on_cookie_error=bool(requester.get('fail_on_cookie_error', False)),
            timeout=fetcher.get('timeout', 30.0),
            max_redirects=int(fetcher.get('max_redirects', 10)),
        )

    def __repr__(self):
        return (
            f"RequesterConfig(user_agent={self.user_agent!r}, "
            f"fail_on_cookie_error={self.fail_on_cookie_error}, "
            f"timeout={self.timeout}, max_redirects={self.max_redirects})"
        )


def load_settings(config_path: str = None) -> RequesterConfig:
    """Load a RequesterConfig from a YAML file plus environment overrides."""
    return RequesterConfig.from_config(Config(config_path))
