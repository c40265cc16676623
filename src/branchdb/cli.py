import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DUMP_FOLDER,
    DEFAULT_ENVIRONMENT_TOKEN,
    DEFAULT_FORMATTER_MARKER,
    DEFAULT_TEST_ENVIRONMENT_TOKEN,
    DEFAULT_WATCHER_MARKER,
)
from .core import BranchDb, BranchDbError
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader, build_database_config
from .services.git import GitService


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(logger: logging.Logger, verbose: bool, log_file):
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


def _build_branchdb(ctx: click.Context) -> BranchDb:
    config_values = ctx.obj["config"]
    if ctx.obj["password"] is not None:
        config_values = dict(config_values, password=ctx.obj["password"])

    timeout = config_values.get("command_timeout")
    try:
        return BranchDb(
            database_config=build_database_config(config_values),
            dump_folder=str(config_values.get("dump_folder") or DEFAULT_DUMP_FOLDER),
            container_service=config_values.get("container_service"),
            environment_token=str(
                config_values.get("environment_token", DEFAULT_ENVIRONMENT_TOKEN)
            ),
            test_environment_token=str(
                config_values.get("test_environment_token", DEFAULT_TEST_ENVIRONMENT_TOKEN)
            ),
            watcher_marker=str(config_values.get("watcher_marker", DEFAULT_WATCHER_MARKER)),
            formatter_marker=str(
                config_values.get("formatter_marker", DEFAULT_FORMATTER_MARKER)
            ),
            strict_restore=bool(config_values.get("strict_restore", False)),
            command_timeout=float(timeout) if timeout is not None else None,
        )
    except BranchDbError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--password",
    required=False,
    envvar="BRANCHDB_PASSWORD",
    show_envvar=True,
    help="Database password. Overrides the config file value.",
)
@click.pass_context
def main(ctx, config, verbose, log_file, password):
    """Keep a separate database state for every git branch."""
    logger = logging.getLogger("branchdb")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except BranchDbError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(logger, verbose, log_file)

    ctx.obj = {"config": config_values, "password": password}


@main.command("post-checkout")
@click.argument("previous_head")
@click.argument("new_head")
@click.argument("checkout_flag")
@click.pass_context
def post_checkout(ctx, previous_head, new_head, checkout_flag):
    """Run from git's post-checkout hook."""
    # flag 0 is a file checkout, not a branch switch
    if checkout_flag != "1":
        logging.getLogger("branchdb").debug(
            "File checkout (%s -> %s); nothing to do.", previous_head, new_head
        )
        raise SystemExit(0)

    branchdb = _build_branchdb(ctx)
    raise SystemExit(branchdb.run_post_checkout(previous_head))


@main.command("switch")
@click.option(
    "--from",
    "source_branches",
    multiple=True,
    required=True,
    help="Branch whose database state is saved. Repeat for several branches.",
)
@click.option("--to", "destination_branch", required=True, help="Branch whose state is restored.")
@click.pass_context
def switch(ctx, source_branches, destination_branch):
    """Save the state of the --from branches and restore the --to branch."""
    branchdb = _build_branchdb(ctx)
    raise SystemExit(branchdb.run(list(source_branches), destination_branch))


@main.command("install-hook")
@click.option("--force", is_flag=True, default=False, help="Replace an existing post-checkout hook.")
def install_hook(force):
    """Install the git post-checkout hook that calls branchdb."""
    logger = logging.getLogger("branchdb")
    git_service = GitService(logger=logger, run_cmd=CommandRunner(logger=logger).run)
    try:
        hook_path = git_service.install_hook(force=force)
    except BranchDbError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Installed post-checkout hook at {hook_path}")


if __name__ == "__main__":
    main()
