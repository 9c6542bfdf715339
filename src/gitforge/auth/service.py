from .. import log
from .config import AuthConfig


class AuthConfigService:
    """Owns an AuthConfig and writes it through a ConfigSaver after every change."""

    def __init__(self, saver, config=None):
        self.saver = saver
        self.config = config if config is not None else AuthConfig()

    def load_config(self):
        self.config = self.saver.load_config()
        return self.config

    def save_config(self):
        self.saver.save_config(self.config)

    def _save_or_restore(self, previous):
        try:
            self.saver.save_config(self.config)
        except Exception:
            self.config = previous
            raise

    def save_user_auth(self, url, auth):
        """
        Store a credential and persist the registry.

        The default user name follows the latest save, the pipeline identity is
        only written the first time, and the server becomes the current one.
        When persisting fails the in-memory registry is rolled back.
        """
        previous = self.config.copy()
        self.config.set_user_auth(url, auth)
        if auth.username:
            self.config.default_username = auth.username
            self.config.set_pipeline_identity(url, auth.username)
        self.config.current_server = url
        self._save_or_restore(previous)
        log.debug(f"saved credentials for {auth.username} on {url}")

    def save_server_kind(self, url, kind):
        previous = self.config.copy()
        self.config.set_server_kind(url, kind)
        self._save_or_restore(previous)

    def delete_server(self, url):
        previous = self.config.copy()
        self.config.delete_server(url)
        self._save_or_restore(previous)

    def delete_user_auth(self, url, username):
        previous = self.config.copy()
        self.config.delete_user_auth(url, username)
        self._save_or_restore(previous)

    def save_server(self, url, name="", kind=""):
        """Register a server, updating its display name and kind when given."""
        previous = self.config.copy()
        self.config.get_or_create_server_name(url, name, kind)
        if name:
            self.config.set_server_name(url, name)
        if kind:
            self.config.set_server_kind(url, kind)
        self._save_or_restore(previous)
        return self.config.get_server(url)
