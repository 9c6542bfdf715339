from urllib.parse import urlparse

from .errors import ConfigError


def url_join(*parts):
    """Join URL fragments with exactly one slash between them. A trailing slash on the last part is kept."""
    parts = [p for p in parts if p]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    result = parts[0].rstrip("/")
    for part in parts[1:-1]:
        result += "/" + part.strip("/")
    return result + "/" + parts[-1].lstrip("/")


def normalize_server_url(url):
    """Validate a server URL and strip trailing slashes. Raises ConfigError."""
    if not url or not url.strip():
        raise ConfigError("no git server URL was given")
    url = url.strip()
    if "://" not in url:
        url = "https://" + url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigError(f"invalid git server URL: {url}")
    return url.rstrip("/")
