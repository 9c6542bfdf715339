import json

import pytest

from gitforge.auth import AuthConfigService, MemoryConfigSaver
from gitforge.auth.prompts import Prompter
from gitforge.providers.client import RestClient
from gitforge.retry import Poller


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None, links=None):
        self.status_code = status_code
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text
        self.links = links or {}

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands in for requests.Session. Responses are queued per (method, url)."""

    def __init__(self):
        self.headers = {}
        self.auth = None
        self.routes = {}
        self.calls = []

    def add(self, method, url, *responses):
        self.routes.setdefault((method, url), []).extend(responses)
        return self

    def request(self, method, url, params=None, json=None, data=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "json": json})
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(404, {"message": "Not Found"})
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    def calls_to(self, method, url):
        return [c for c in self.calls if c["method"] == method and c["url"] == url]


class ScriptedPrompter(Prompter):
    """Answers prompts from a list, in order, and records every question."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.questions = []

    def _next(self, message):
        self.questions.append(message)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {message}")
        return self.answers.pop(0)

    def select_one(self, message, options, default=None):
        return self._next(message)

    def select_many(self, message, options, defaults=None):
        return self._next(message)

    def prompt_text(self, message, default="", validator=None):
        value = self._next(message)
        if validator is not None:
            problem = validator(value)
            if problem:
                raise AssertionError(problem)
        return value

    def prompt_secret(self, message):
        return self._next(message)

    def confirm(self, message, default=False):
        return self._next(message)


def make_client(base_url, session, **kwargs):
    return RestClient(base_url, session=session, **kwargs)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def poller(sleeps):
    return Poller(attempts=30, interval=2.0, sleep=sleeps.append)


@pytest.fixture
def saver():
    return MemoryConfigSaver()


@pytest.fixture
def service(saver):
    svc = AuthConfigService(saver)
    svc.load_config()
    return svc
