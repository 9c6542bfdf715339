"""Process level settings.

Values come from the environment first, then from an optional YAML or JSON
settings file, then from the defaults below.
"""
import json
import os
from dataclasses import dataclass

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError

DEFAULT_AUTH_CONFIG = os.path.join("~", ".gitforge", "gitAuth.yaml")
DEFAULT_POLL_ATTEMPTS = 30
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_HTTP_TIMEOUT = 30.0


def load_config(config_file):
    """
    Load configuration from a YAML or JSON file.
    A missing file gives an empty dict; a file that cannot be parsed raises ConfigError.
    """
    if not config_file or not os.path.exists(config_file):
        return {}

    try:
        with open(config_file, 'r') as f:
            if config_file.endswith('.json'):
                data = json.load(f)
            else:
                data = YAML(typ='safe').load(f)
    except (OSError, ValueError, YAMLError) as e:
        raise ConfigError(f"Error loading config file {config_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_file} must contain a mapping")
    return data


def _number(name, value, cast):
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {name}: {value!r}") from e


@dataclass
class Settings:
    auth_config_file: str = DEFAULT_AUTH_CONFIG
    poll_attempts: int = DEFAULT_POLL_ATTEMPTS
    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def auth_config_path(self):
        return os.path.expanduser(self.auth_config_file)

    @classmethod
    def load(cls, config_file=None, environ=None):
        """Build settings from a settings file overlaid with GITFORGE_* environment variables."""
        environ = os.environ if environ is None else environ
        data = load_config(config_file or environ.get("GITFORGE_CONFIG"))

        def pick(key, env_name, default):
            if environ.get(env_name):
                return environ[env_name]
            return data.get(key, default)

        settings = cls(
            auth_config_file=pick("auth_config_file", "GITFORGE_AUTH_CONFIG", DEFAULT_AUTH_CONFIG),
            poll_attempts=_number(
                "poll_attempts", pick("poll_attempts", "GITFORGE_POLL_ATTEMPTS", DEFAULT_POLL_ATTEMPTS), int),
            poll_interval=_number(
                "poll_interval", pick("poll_interval", "GITFORGE_POLL_INTERVAL", DEFAULT_POLL_INTERVAL), float),
            http_timeout=_number(
                "http_timeout", pick("http_timeout", "GITFORGE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT), float),
        )
        if settings.poll_attempts < 1:
            raise ConfigError("poll_attempts must be at least 1")
        if settings.poll_interval < 0:
            raise ConfigError("poll_interval must not be negative")
        return settings
