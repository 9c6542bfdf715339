import functools
import os
import sys

import click

from .. import kinds, log
from ..auth import AuthConfigService, FileConfigSaver
from ..auth.prompts import BatchPrompter, ClickPrompter
from ..auth.resolver import CredentialResolver
from ..config import Settings
from ..errors import GitForgeError
from ..retry import Poller


def fail(message):
    log.error(message)
    sys.exit(1)


def handle_errors(f):
    """Report gitforge errors on stderr and exit non-zero instead of printing a traceback."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except GitForgeError as e:
            fail(str(e))
    return wrapper


def state(ctx):
    return ctx.ensure_object(dict)


def is_batch_mode(ctx):
    return bool(state(ctx).get("batch_mode"))


def in_cluster():
    return bool(os.environ.get("KUBERNETES_SERVICE_HOST"))


def get_settings(ctx):
    obj = state(ctx)
    if "settings" not in obj:
        obj["settings"] = Settings.load(obj.get("config_file"))
    return obj["settings"]


def get_service(ctx):
    obj = state(ctx)
    if "service" not in obj:
        settings = get_settings(ctx)
        log.debug(f"Loading git credentials from {settings.auth_config_path}")
        service = AuthConfigService(FileConfigSaver(settings.auth_config_path))
        service.load_config()
        obj["service"] = service
    return obj["service"]


def get_prompter(ctx):
    if is_batch_mode(ctx):
        return BatchPrompter()
    return state(ctx).get("prompter") or ClickPrompter(err=True)


def resolve_provider(ctx, server, kind=None, username=None):
    settings = get_settings(ctx)
    resolver = CredentialResolver(
        get_service(ctx),
        prompter=get_prompter(ctx),
        poller=Poller.from_settings(settings),
        http_timeout=settings.http_timeout,
    )
    return resolver.resolve(server, kind=kind or None, username=username or None,
                            batch_mode=is_batch_mode(ctx), in_cluster=in_cluster())


server_option = click.option('--server', envvar='GIT_SERVER', default='https://github.com',
                             help='Git server URL (env: GIT_SERVER)')
kind_option = click.option('--kind', type=click.Choice(kinds.ALL_KINDS),
                           help='Git provider kind, inferred from the server when omitted')
username_option = click.option('--username', help='Git user name to authenticate as')
