import os
from abc import ABC, abstractmethod

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .config import AuthConfig, AuthServer, UserAuth
from ..errors import ConfigError


class ConfigSaver(ABC):
    @abstractmethod
    def load_config(self):
        """Load the stored AuthConfig."""
        pass

    @abstractmethod
    def save_config(self, config):
        """Persist the whole AuthConfig."""
        pass


def config_to_dict(config):
    return {
        "servers": [
            {
                "url": s.url,
                "users": [
                    {"username": u.username, "apitoken": u.api_token, "bearertoken": u.bearer_token}
                    for u in s.users
                ],
                "name": s.name,
                "kind": s.kind,
                "currentuser": s.current_user,
            }
            for s in config.servers
        ],
        "defaultusername": config.default_username,
        "currentserver": config.current_server,
        "pipelineusername": config.pipeline_username,
        "pipelineserver": config.pipeline_server,
    }


def _str(data, key):
    value = data.get(key)
    return "" if value is None else str(value)


def config_from_dict(data):
    """Build an AuthConfig from the stored mapping. Unknown keys are ignored."""
    data = data or {}
    servers = []
    for s in data.get("servers") or []:
        users = [
            UserAuth(
                username=_str(u, "username"),
                api_token=_str(u, "apitoken"),
                bearer_token=_str(u, "bearertoken"),
            )
            for u in (s.get("users") or [])
        ]
        servers.append(AuthServer(
            url=_str(s, "url"),
            kind=_str(s, "kind"),
            name=_str(s, "name"),
            users=users,
            current_user=_str(s, "currentuser"),
        ))
    return AuthConfig(
        servers=servers,
        default_username=_str(data, "defaultusername"),
        current_server=_str(data, "currentserver"),
        pipeline_username=_str(data, "pipelineusername"),
        pipeline_server=_str(data, "pipelineserver"),
    )


class FileConfigSaver(ConfigSaver):
    """Stores the credential registry in a YAML file."""

    def __init__(self, file_name):
        self.file_name = file_name

    def _path(self):
        if not self.file_name:
            raise ConfigError("No filename defined!")
        return os.path.expanduser(self.file_name)

    def load_config(self):
        path = self._path()
        if not os.path.exists(path):
            return AuthConfig()
        try:
            with open(path, 'r') as f:
                data = YAML(typ='safe').load(f)
        except (OSError, YAMLError) as e:
            raise ConfigError(f"failed to load {path}: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"{path} does not contain a credential mapping")
        return config_from_dict(data)

    def save_config(self, config):
        path = self._path()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, mode=0o760, exist_ok=True)
        yaml = YAML()
        yaml.default_flow_style = False
        with open(path, 'w') as f:
            yaml.dump(config_to_dict(config), f)
        os.chmod(path, 0o600)


class MemoryConfigSaver(ConfigSaver):
    """Keeps the last saved registry in memory."""

    def __init__(self, config=None):
        self.config = config.copy() if config is not None else AuthConfig()
        self.saves = 0

    def load_config(self):
        return self.config.copy()

    def save_config(self, config):
        self.config = config.copy()
        self.saves += 1
