class GitForgeError(Exception):
    """Base class for every error raised by gitforge."""


class ConfigError(GitForgeError):
    """Missing or invalid configuration, e.g. a bad server URL or no store file name."""


class CredentialError(GitForgeError):
    """A credential was selected but it cannot authenticate."""

    def __init__(self, message=None):
        super().__init__(message or "you did not properly define the user authentication")


class NoCredentialsError(CredentialError):
    """No credential could be found and prompting is not allowed."""

    def __init__(self, server_url):
        self.server_url = server_url
        super().__init__(f"no credentials available for server {server_url} in batch mode")


class BatchModeError(GitForgeError):
    """Raised when something tries to prompt the user while running in batch mode."""


class RepositoryExistsError(GitForgeError):
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name
        super().__init__(f"repository {owner}/{name} already exists")


class NotImplementedForBackend(GitForgeError, NotImplementedError):
    def __init__(self, operation, kind):
        self.operation = operation
        self.kind = kind
        super().__init__(f"{operation} is not implemented for {kind or 'this backend'}")


class ReadAfterWriteTimeout(GitForgeError):
    """A resource never became readable after it was written."""

    def __init__(self, description, attempts, last_error=None):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        message = f"gave up waiting for {description} after {attempts} attempts"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)


class ApiError(GitForgeError):
    """A vendor REST call answered with a non-2xx status."""

    def __init__(self, status_code, url, body=""):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"{url} returned status {status_code}: {body}")

    def is_not_found(self):
        return self.status_code == 404
