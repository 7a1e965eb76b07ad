"""CLI entry point for almonds.

Invoked as::

    almonds [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m almonds.cli.main

Commands
--------
version    Show version information
mint       Create a new Almond (needs the secret key)
restrict   Append caveats to an existing Almond (no secret key)
inspect    Validate an Almond and show its contents
verify     Validate an Almond and check its caveats against rules
"""
from __future__ import annotations

import logging
import sys
from typing import NoReturn, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from almonds.config import AlmondConfig, load_config
from almonds.token import Almond, AlmondError
from almonds.verifier import Decision, Verifier

console = Console()

_profile_options = [
    click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="JSON issuer profile with secret_key, generation and almond_type.",
    ),
    click.option("--secret", "-s", default=None, help="Secret key (overrides --config)."),
    click.option("--type", "-t", "almond_type", default=None, help="Almond type (overrides --config)."),
    click.option(
        "--generation",
        "-g",
        type=click.IntRange(0, 255),
        default=None,
        help="Generation byte (overrides --config).",
    ),
]


def profile_options(func):  # type: ignore[no-untyped-def]
    """Attach the shared --config/--secret/--type/--generation options."""
    for option in reversed(_profile_options):
        func = option(func)
    return func


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="almonds")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level.",
)
def cli(log_level: str) -> None:
    """Mint, restrict and verify Almond bearer tokens."""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from almonds import __version__

    console.print(f"[bold]almonds[/bold] v{__version__}")


# ------------------------------------------------------------------
# mint
# ------------------------------------------------------------------


@cli.command(name="mint")
@profile_options
@click.option(
    "--caveat",
    "-c",
    multiple=True,
    help="Caveat as 'key' or 'key value' (repeatable).",
)
def mint_command(
    config_file: Optional[str],
    secret: Optional[str],
    almond_type: Optional[str],
    generation: Optional[int],
    caveat: tuple[str, ...],
) -> None:
    """Create a new Almond and print its base64 form."""
    profile = _resolve_profile(config_file, secret, almond_type, generation)
    try:
        almond = Almond.create(profile.secret_bytes, profile.generation, profile.type_bytes)
        for item in caveat:
            almond.add_literal_caveat(item)
    except AlmondError as exc:
        _fail(str(exc))

    click.echo(almond.serialize_base64())


# ------------------------------------------------------------------
# restrict
# ------------------------------------------------------------------


@cli.command(name="restrict")
@click.argument("token")
@click.option(
    "--caveat",
    "-c",
    multiple=True,
    required=True,
    help="Caveat as 'key' or 'key value' (repeatable).",
)
def restrict_command(token: str, caveat: tuple[str, ...]) -> None:
    """Append caveats to TOKEN without the secret key.

    The input is not validated; the receiver validates the result.
    """
    try:
        almond = Almond.parse_base64_unverified(token)
        for item in caveat:
            almond.add_literal_caveat(item)
    except AlmondError as exc:
        _fail(str(exc))

    click.echo(almond.serialize_base64())


# ------------------------------------------------------------------
# inspect
# ------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument("token")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON issuer profile supplying the secret key.",
)
@click.option("--secret", "-s", default=None, help="Secret key (overrides --config).")
def inspect_command(token: str, config_file: Optional[str], secret: Optional[str]) -> None:
    """Validate TOKEN and show its generation, type and caveats."""
    secret_key = _resolve_secret(config_file, secret)
    almond = _parse(secret_key, token)

    console.print(f"  Generation: [bold]{almond.generation}[/bold]")
    console.print(f"  Type:       [bold]{_text(almond.almond_type)}[/bold]")

    if not almond.caveats:
        console.print("[yellow]No caveats: this almond is unrestricted.[/yellow]")
        return

    table = Table(title="Caveats")
    table.add_column("#", justify="right")
    table.add_column("Caveat")
    for index, item in enumerate(almond.caveats, start=1):
        table.add_row(str(index), _text(item))
    console.print(table)


# ------------------------------------------------------------------
# verify
# ------------------------------------------------------------------


@cli.command(name="verify")
@click.argument("token")
@profile_options
@click.option("--allow", "-a", multiple=True, help="Accept any caveat with this key (repeatable).")
@click.option(
    "--exact",
    "-e",
    multiple=True,
    help="Require KEY=VALUE, or KEY alone for a valueless caveat (repeatable).",
)
def verify_command(
    token: str,
    config_file: Optional[str],
    secret: Optional[str],
    almond_type: Optional[str],
    generation: Optional[int],
    allow: tuple[str, ...],
    exact: tuple[str, ...],
) -> None:
    """Validate TOKEN and check every caveat against --allow/--exact rules."""
    profile = _resolve_profile(config_file, secret, almond_type, generation)
    almond = _parse(profile.secret_bytes, token)

    verifier = Verifier(almond, profile.generation, profile.type_bytes)
    for key in allow:
        verifier.allow(key)
    for rule in exact:
        key, sep, value = rule.partition("=")
        verifier.satisfies_exact(key, value if sep else None)

    if verifier.verify():
        console.print("[green]VALID[/green]")
        return

    console.print("[red]INVALID[/red]")
    if verifier.rejected_header:
        console.print("  [red]FAIL[/red]  generation or type does not match")
    for entry in verifier.entries:
        if entry.decision != Decision.ACCEPTED:
            console.print(f"  [red]FAIL[/red]  {_text(entry.key)} ({entry.decision.value})")
    sys.exit(1)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def _text(value: bytes) -> str:
    return escape(value.decode("utf-8", errors="replace"))


def _load(config_file: Optional[str]) -> Optional[AlmondConfig]:
    if not config_file:
        return None
    try:
        return load_config(config_file)
    except (OSError, ValidationError) as exc:
        _fail(f"could not load config {config_file}: {exc}")


def _resolve_secret(config_file: Optional[str], secret: Optional[str]) -> bytes:
    if secret is not None:
        return secret.encode("utf-8")
    profile = _load(config_file)
    if profile is None:
        _fail("a secret key is required (--secret or --config)")
    return profile.secret_bytes


def _resolve_profile(
    config_file: Optional[str],
    secret: Optional[str],
    almond_type: Optional[str],
    generation: Optional[int],
) -> AlmondConfig:
    """Merge --config with explicit options; explicit options win."""
    base = _load(config_file)
    values: dict[str, object] = base.model_dump() if base is not None else {}
    if secret is not None:
        values["secret_key"] = secret
    if almond_type is not None:
        values["almond_type"] = almond_type
    if generation is not None:
        values["generation"] = generation
    try:
        return AlmondConfig.model_validate(values)
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]) if err["loc"] else "profile" for err in exc.errors())
        _fail(f"invalid or missing profile values: {missing}")


def _parse(secret_key: bytes, token: str) -> Almond:
    try:
        return Almond.parse_base64_and_validate(secret_key, token.strip())
    except AlmondError as exc:
        _fail(str(exc))


if __name__ == "__main__":
    cli()
