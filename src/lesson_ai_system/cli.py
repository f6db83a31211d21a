import json

import click

from . import __version__


def get_version():
    return __version__


def run_server(host=None, port=None, reload=False):
    from .server.main import start_server

    start_server(host=host, port=port, reload=reload)


def routing_table():
    from .config.settings import get_settings
    from .providers.registry import build_registry
    from .server.dependencies import build_router

    settings = get_settings()
    try:
        registry = build_registry(settings)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return build_router(settings, registry).describe()


@click.group()
def cli():
    pass


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def version(format):
    if format == "json":
        click.echo(json.dumps({"version": get_version()}))
    else:
        click.echo(f"v{get_version()}")


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to PORT)")
@click.option("--reload", is_flag=True)
def serve(host, port, reload):
    run_server(host, port, reload)


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def routes(format):
    """Show which model serves each task type."""
    table = routing_table()
    if format == "json":
        click.echo(json.dumps(table, indent=2))
        return
    width = max(len(task) for task in table)
    for task, model in table.items():
        click.echo(f"{task.ljust(width)}  {model}")


if __name__ == "__main__":
    cli()
