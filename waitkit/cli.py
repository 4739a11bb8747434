"""
CLI interface for waitkit.

Provides commands to discover, inspect, validate and simulate waiters.

Waiter definitions are loaded from the bundled definitions directory plus any
directories listed in config.yaml or passed with --definitions.
"""

import json
from pathlib import Path

import click
import yaml

from waitkit import __version__
from waitkit.errors import (
    AttemptsExhausted,
    Cancelled,
    ConfigurationError,
    WaitFailure,
)

# Exit codes for `simulate`
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_FAILURE = 2
EXIT_ATTEMPTS_EXHAUSTED = 3
EXIT_CANCELLED = 4


def _get_registry(ctx):
    """Build the registry from config and --definitions options."""
    from waitkit.registry import WaiterRegistry

    config = ctx.obj["config"]
    dirs = list(config.definitions_dirs) + list(ctx.obj.get("definitions", ()))
    return WaiterRegistry(dirs, include_builtin=config.include_builtin)


@click.group()
@click.version_option(version=__version__, prog_name="waitkit")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.yaml")
@click.option(
    "--definitions", "-d",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Extra directory of waiter definition files (repeatable)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every attempt (DEBUG)")
@click.pass_context
def main(ctx, config_path, definitions, verbose):
    """
    waitkit - Acceptor-driven waiters.

    Inspect, validate and simulate declarative waiter definitions.
    """
    from waitkit.config import load_config
    from waitkit.utils import setup_logging

    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        click.echo(f"✗ Config error: {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)

    ctx.obj["config"] = config
    ctx.obj["definitions"] = definitions

    setup_logging(
        log_level="DEBUG" if verbose else config.get_log_level(),
        log_format=config.get_log_format(),
        log_file=config.get_log_file_path(),
    )


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize waitkit configuration."""
    from waitkit.config import get_waitkit_home

    home = get_waitkit_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    definitions_dir = home / "definitions"
    definitions_dir.mkdir(exist_ok=True)

    default_cfg = {
        "definitions_dirs": [str(definitions_dir)],
        "include_builtin": True,
        "default_max_attempts": None,
        "default_delay": None,
        "logging": {
            "level": "WARNING",
            "format": "plain",
            "file": None,
        },
    }
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))

    click.echo(f"Initialized waitkit config at {cfg_path}")
    click.echo(f"Put waiter definition files in {definitions_dir}")


@main.group("waiters")
def waiters_group():
    """List and inspect waiter definitions."""
    pass


@waiters_group.command("list")
@click.option("--operation", help="Only waiters polling this operation")
@click.pass_context
def list_waiters(ctx, operation: str = None):
    """List available waiters."""
    registry = _get_registry(ctx)
    try:
        names = registry.list_waiters()
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)

    if operation:
        names = [n for n in names if registry.get(n).operation == operation]

    if not names:
        click.echo("No waiter definitions found.")
        return

    for name in names:
        waiter_def = registry.get(name)
        click.echo(
            f"{name:<32} {waiter_def.operation:<24} "
            f"max_attempts={waiter_def.max_attempts} delay={waiter_def.delay}"
        )


@waiters_group.command("show")
@click.argument("name")
@click.option("--format", "fmt", type=click.Choice(["yaml", "json"]), default="yaml", show_default=True)
@click.pass_context
def show_waiter(ctx, name: str, fmt: str):
    """Show a waiter definition."""
    registry = _get_registry(ctx)
    try:
        waiter_def = registry.get(name)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)

    click.echo(f"Waiter: {name}")
    source = registry.source_of(name)
    if source is not None:
        click.echo(f"Definition: {source}")
    click.echo(f"Hash: {registry.compute_hash(waiter_def)}")
    click.echo()
    if fmt == "json":
        click.echo(json.dumps(waiter_def.to_dict(), indent=2))
    else:
        click.echo(yaml.safe_dump(waiter_def.to_dict(), sort_keys=False).rstrip())


@main.command("validate")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def validate(path: Path):
    """
    Validate waiter definition files.

    PATH is a model file or a directory of model files.

    Examples:

        waitkit validate waiters/cloudformation.yaml

        waitkit validate waiters/
    """
    from waitkit.registry import WaiterRegistry, load_model_file

    try:
        if path.is_dir():
            count = WaiterRegistry([path], include_builtin=False).preload_all()
        else:
            count = len(load_model_file(path).waiters)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)

    click.echo(f"✓ {path}: {count} waiter(s) valid")


def _load_outcomes(path: Path) -> list:
    with open(path) as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"{path}: {e}") from e
        else:
            data = json.load(f)
    if not isinstance(data, list) or not data:
        raise click.UsageError(f"{path} must contain a non-empty list of outcomes")
    return data


def _parse_params(values: tuple[str, ...]) -> dict:
    params = {}
    for item in values:
        if "=" not in item:
            raise click.UsageError(f"--param expects KEY=VALUE, got {item!r}")
        key, value = item.split("=", 1)
        params[key] = value
    return params


@main.command("simulate")
@click.argument("name")
@click.option(
    "--outcomes", "outcomes_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="JSON/YAML list of recorded outcomes to replay",
)
@click.option("--max-attempts", type=int, help="Override the definition's maxAttempts")
@click.option("--delay", type=float, default=0.0, show_default=True, help="Seconds between attempts")
@click.option("--param", "params", multiple=True, help="Request parameter KEY=VALUE (repeatable)")
@click.pass_context
def simulate(ctx, name: str, outcomes_path: Path, max_attempts: int, delay: float, params: tuple):
    """
    Replay recorded outcomes through a waiter.

    Each outcome is {"response": {...}, "status_code": 200} or
    {"error": "Code", "message": "..."}. The last outcome repeats
    once the list is used up.

    Exit codes: 0 success, 1 configuration error, 2 failure,
    3 attempts exhausted, 4 cancelled.

    Examples:

        waitkit simulate StackCreateComplete --outcomes stack_events.json

        waitkit simulate StackExists --outcomes missing.yaml --max-attempts 3
    """
    from waitkit.invoker import ScriptedInvoker
    from waitkit.utils import format_attempt
    from waitkit.waiter import Waiter

    config = ctx.obj["config"]
    registry = _get_registry(ctx)
    try:
        waiter_def = registry.get(name)
        invoker = ScriptedInvoker(_load_outcomes(outcomes_path))
        overrides = {**config.wait_overrides(), "delay": delay}
        if max_attempts is not None:
            overrides["max_attempts"] = max_attempts
        waiter = Waiter(waiter_def, invoker)
        result = waiter.run(_parse_params(params), **overrides)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)
    except ValueError as e:
        click.echo(f"✗ Invalid outcomes file: {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)
    except WaitFailure as e:
        for record in e.attempts:
            click.echo(format_attempt(record))
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_FAILURE)
    except AttemptsExhausted as e:
        for record in e.attempts:
            click.echo(format_attempt(record))
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ATTEMPTS_EXHAUSTED)
    except Cancelled as e:
        for record in e.attempts:
            click.echo(format_attempt(record))
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_CANCELLED)

    for record in result.attempts:
        click.echo(format_attempt(record))
    click.echo(f"✓ {name} succeeded after {result.attempt_count} attempt(s)")


if __name__ == "__main__":
    main()
