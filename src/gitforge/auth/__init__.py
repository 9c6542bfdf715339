from .config import AuthConfig, AuthServer, UserAuth
from .savers import ConfigSaver, FileConfigSaver, MemoryConfigSaver
from .service import AuthConfigService

__all__ = [
    "AuthConfig",
    "AuthServer",
    "UserAuth",
    "ConfigSaver",
    "FileConfigSaver",
    "MemoryConfigSaver",
    "AuthConfigService",
]
