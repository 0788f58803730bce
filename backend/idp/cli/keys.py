"""Flask CLI commands for managing the RS256 signing key pair."""

from __future__ import annotations

import os
from pathlib import Path

import click
from flask import current_app
from flask.cli import with_appcontext

from idp.services._shared.errors import SigningFailed
from idp.services.tokens.keys import MIN_KEY_SIZE, KeyMaterial


@click.group("keys")
def keys_cli() -> None:
    """Signing key commands."""


@keys_cli.command("generate")
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("keys"),
    show_default=True,
    help="Directory receiving private_key.pem and public_key.pem.",
)
@click.option("--bits", type=int, default=MIN_KEY_SIZE, show_default=True)
@click.option("--force", is_flag=True, help="Overwrite existing key files.")
def generate_keys(out_dir: Path, bits: int, force: bool) -> None:
    """Write a new RSA key pair in PEM format."""
    if bits < MIN_KEY_SIZE:
        raise click.BadParameter(f"must be at least {MIN_KEY_SIZE}", param_hint="--bits")

    private_path = out_dir / "private_key.pem"
    public_path = out_dir / "public_key.pem"
    if not force and (private_path.exists() or public_path.exists()):
        raise click.UsageError(f"Key files already exist in {out_dir}; pass --force to replace.")

    material = KeyMaterial.generate(bits)
    out_dir.mkdir(parents=True, exist_ok=True)
    private_path.write_bytes(material.private_pem())
    os.chmod(private_path, 0o600)
    public_path.write_text(material.public_pem(), encoding="ascii")

    click.echo(f"Wrote {private_path} and {public_path}")
    click.echo(f"kid: {material.kid}")


@keys_cli.command("show-kid")
@with_appcontext
def show_kid() -> None:
    """Print the key id of the key pair the application is configured with."""
    try:
        material = KeyMaterial.from_pem_files(
            current_app.config["JWT_PRIVATE_KEY_PATH"],
            current_app.config.get("JWT_PUBLIC_KEY_PATH"),
        )
    except SigningFailed as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(material.kid)
