"""
Command Line Interface for MqDockerUp.
"""
import asyncio
import logging
import os
import sys

import click
from docker.errors import DockerException

from ..exceptions import ConfigError, MqDockerUpError
from ..MANAGERS.service_context import ServiceContext
from ..MANAGERS.supervisor import Supervisor
from ..MODELS.update_progress import UpdateState
from ..PARSERS.config_parser import ConfigParser
from ..UTILS.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def _format_update(available):
    if available is None:
        return "unknown"
    return "yes" if available else "no"


async def _run_daemon(config) -> int:
    context = await ServiceContext.create(config)
    return await Supervisor(context).run()


async def _check(config):
    context = await ServiceContext.create(config)
    try:
        rows = []
        containers = await context.gateway.list_managed(context.ignore_policy.ignore_container)
        for container in containers:
            if context.ignore_policy.ignore_updates(container):
                rows.append((container.name, container.image, "-", "ignored"))
                continue
            state = await context.checker.check(container)
            rows.append((container.name, container.image, state.registry or "-", _format_update(state.update_available)))
        return rows
    finally:
        await context.close()


async def _update(config, container_ref):
    context = await ServiceContext.create(config)
    try:
        container = await context.gateway.inspect(container_ref)
        return await context.orchestrator.update(container)
    finally:
        await context.close()


async def _restart(config, container_ref):
    context = await ServiceContext.create(config)
    try:
        container = await context.gateway.inspect(container_ref)
        await context.gateway.restart(container.id)
        return container
    finally:
        await context.close()


@click.group()
@click.option('--config', '-f', 'config_path', default='config.yaml', help='Configuration file path')
@click.option('--env-file', default=None, help='.env file with configuration overrides')
@click.pass_context
def cli(ctx, config_path, env_file):
    """
    MqDockerUp - container update watcher.

    Watches the local container runtime and reports and applies image updates.
    """
    ctx.ensure_object(dict)
    ctx.obj['file'] = config_path
    try:
        parser = ConfigParser(env_file=env_file)
        path = config_path if os.path.exists(config_path) else None
        ctx.obj['config'] = parser.parse(path)
    except ConfigError as e:
        raise click.ClickException(str(e))
    logs = ctx.obj['config'].logs
    try:
        configure_logging(logs.level, logs.directory)
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.pass_context
def run(ctx):
    """Run the watcher daemon until interrupted."""
    try:
        exit_code = asyncio.run(_run_daemon(ctx.obj['config']))
    except DockerException as e:
        raise click.ClickException(f"Cannot reach the container runtime: {e}")
    sys.exit(exit_code)


@cli.command()
@click.pass_context
def check(ctx):
    """Check all managed containers for image updates once."""
    try:
        rows = asyncio.run(_check(ctx.obj['config']))
    except DockerException as e:
        raise click.ClickException(f"Cannot reach the container runtime: {e}")
    click.echo(f"{'CONTAINER':25} {'IMAGE':40} {'REGISTRY':16} {'UPDATE':8}")
    click.echo("-" * 92)
    for name, image, registry, update in rows:
        click.echo(f"{name:25} {image:40} {registry:16} {update:8}")


@cli.command()
@click.argument('container')
@click.pass_context
def update(ctx, container):
    """Update CONTAINER (name or id) to the latest version of its image."""
    try:
        outcome = asyncio.run(_update(ctx.obj['config'], container))
    except (MqDockerUpError, DockerException) as e:
        raise click.ClickException(str(e))
    if outcome.state == UpdateState.STARTED:
        click.echo(f"Updated {container}: new container {outcome.new_container.short_id}")
    else:
        raise click.ClickException(f"Update of {container} failed: {outcome.error}")


@cli.command()
@click.argument('container')
@click.pass_context
def restart(ctx, container):
    """Restart CONTAINER (name or id)."""
    try:
        restarted = asyncio.run(_restart(ctx.obj['config'], container))
    except (MqDockerUpError, DockerException) as e:
        raise click.ClickException(str(e))
    click.echo(f"Restarted {restarted.name}.")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
