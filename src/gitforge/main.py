import click

from .commands.auth import auth
from .commands.repo import repo


@click.group()
@click.option('--config-file', envvar='GITFORGE_CONFIG', required=False,
              help='Path to settings file (YAML/JSON) (env: GITFORGE_CONFIG)')
@click.option('--batch-mode', is_flag=True, envvar='GITFORGE_BATCH_MODE',
              help='Never prompt; fail when a value is missing (env: GITFORGE_BATCH_MODE)')
@click.pass_context
def cli(ctx, config_file, batch_mode):
    """Git Forge Tooling"""
    obj = ctx.ensure_object(dict)
    obj["config_file"] = config_file
    obj["batch_mode"] = batch_mode


cli.add_command(auth)
cli.add_command(repo)

if __name__ == '__main__':
    cli()
