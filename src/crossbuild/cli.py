import logging

import click
from rich.logging import RichHandler

from .core import CrossBuilder, CrossError
from .termination import install_termination_hook

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(verbose: bool, log_file=None):
    logger = logging.getLogger("crossbuild")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _builder(ctx: click.Context, **kwargs) -> CrossBuilder:
    options = ctx.find_root().obj or {}
    try:
        return CrossBuilder(
            verbose=options.get("verbose", False),
            dry_run=options.get("dry_run", False),
            engine=options.get("engine"),
            config_path=options.get("config"),
            **kwargs,
        )
    except CrossError as exc:
        raise click.ClickException(str(exc)) from exc


def _maintenance(ctx: click.Context):
    try:
        return _builder(ctx).maintenance()
    except CrossError as exc:
        raise click.ClickException(str(exc)) from exc


def _run_maintenance(action, *args, **kwargs):
    try:
        action(*args, **kwargs)
    except CrossError as exc:
        raise click.ClickException(str(exc)) from exc


execute_option = click.option(
    "--execute",
    is_flag=True,
    default=False,
    help="Run the removal. Without it the engine commands are only printed.",
)
force_option = click.option("--force", "-f", is_flag=True, default=False, help="Force removal.")


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Log engine commands that change state instead of running them.",
)
@click.option("--engine", required=False, help="Container engine executable (docker, podman, ...).")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .crossbuild.yml if present.",
)
@click.version_option(package_name="crossbuild")
@click.pass_context
def main(ctx, verbose, log_file, dry_run, engine, config):
    """Cross-compile Rust projects inside target-matched containers."""
    _configure_logging(verbose, log_file)
    install_termination_hook()
    ctx.obj = {
        "verbose": verbose,
        "dry_run": dry_run,
        "engine": engine,
        "config": config,
    }


@main.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.option("--target", required=False, help="Target triple (defaults to the host triple).")
@click.option(
    "--remote/--no-remote",
    default=None,
    help="Copy data into a volume instead of bind mounting it (CROSS_REMOTE).",
)
@click.option(
    "--docker-in-docker/--no-docker-in-docker",
    default=None,
    help="Translate paths when running inside a container (CROSS_DOCKER_IN_DOCKER).",
)
@click.option("--xargo/--no-xargo", default=None, help="Build with xargo instead of cargo.")
@click.option("--manifest-path", type=click.Path(), help="Path to Cargo.toml.")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx, target, remote, docker_in_docker, xargo, manifest_path, args):
    """Run the build tool for TARGET inside its container."""
    builder = _builder(
        ctx,
        target=target,
        args=args,
        remote=remote,
        docker_in_docker=docker_in_docker,
        xargo=xargo,
        manifest_path=manifest_path,
    )
    raise SystemExit(builder.run())


@main.group()
def volumes():
    """Manage crossbuild data volumes."""


@volumes.command("list")
@click.pass_context
def list_volumes(ctx):
    """List crossbuild data volumes."""
    _run_maintenance(_maintenance(ctx).list_volumes)


@volumes.command("remove-all")
@force_option
@execute_option
@click.pass_context
def remove_all_volumes(ctx, force, execute):
    """Remove all crossbuild data volumes."""
    _run_maintenance(_maintenance(ctx).remove_all_volumes, force=force, execute=execute)


@volumes.command("prune")
@execute_option
@click.pass_context
def prune_volumes(ctx, execute):
    """Remove all unused volumes."""
    _run_maintenance(_maintenance(ctx).prune_volumes, execute=execute)


@volumes.command("create")
@click.option("--target", required=False, help="Target triple (defaults to the host triple).")
@click.option(
    "--copy-registry",
    is_flag=True,
    default=False,
    help="Copy the cargo registry and git checkouts into the volume.",
)
@click.option("--docker-in-docker/--no-docker-in-docker", default=None)
@click.option("--manifest-path", type=click.Path(), help="Path to Cargo.toml.")
@click.pass_context
def create_volume(ctx, target, copy_registry, docker_in_docker, manifest_path):
    """Create a persistent data volume for the current project."""
    builder = _builder(
        ctx,
        target=target,
        remote=True,
        docker_in_docker=docker_in_docker,
        manifest_path=manifest_path,
    )
    raise SystemExit(builder.create_volume(copy_registry=copy_registry))


@volumes.command("remove")
@click.option("--target", required=False, help="Target triple (defaults to the host triple).")
@click.option("--docker-in-docker/--no-docker-in-docker", default=None)
@click.option("--manifest-path", type=click.Path(), help="Path to Cargo.toml.")
@click.pass_context
def remove_volume(ctx, target, docker_in_docker, manifest_path):
    """Remove the persistent data volume for the current project."""
    builder = _builder(
        ctx,
        target=target,
        remote=True,
        docker_in_docker=docker_in_docker,
        manifest_path=manifest_path,
    )
    raise SystemExit(builder.remove_volume())


@main.group()
def containers():
    """Manage crossbuild containers."""


@containers.command("list")
@click.pass_context
def list_containers(ctx):
    """List crossbuild containers."""
    _run_maintenance(_maintenance(ctx).list_containers)


@containers.command("remove-all")
@force_option
@execute_option
@click.pass_context
def remove_all_containers(ctx, force, execute):
    """Stop and remove all crossbuild containers."""
    _run_maintenance(_maintenance(ctx).remove_all_containers, force=force, execute=execute)


@main.group()
def images():
    """Manage crossbuild images."""


@images.command("list")
@click.pass_context
def list_images(ctx):
    """List crossbuild images."""
    _run_maintenance(_maintenance(ctx).list_images)


@images.command("remove")
@click.argument("targets", nargs=-1)
@click.option("--local", is_flag=True, default=False, help="Also remove locally built images.")
@force_option
@execute_option
@click.pass_context
def remove_images(ctx, targets, local, force, execute):
    """Remove crossbuild images, optionally only those for TARGETS."""
    _run_maintenance(
        _maintenance(ctx).remove_images,
        targets=targets,
        force=force,
        local=local,
        execute=execute,
    )


if __name__ == "__main__":
    main()
