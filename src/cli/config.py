"""
CLI config commands — configuration checking.

Usage:
    python -m src.main check-config [--json]
"""

from __future__ import annotations

import click


@click.command("check-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, as_json: bool) -> None:
    """Check mirror configuration status."""
    from ..config.validator import ConfigValidator
    from .core import load_settings

    settings = load_settings(ctx, strict=False)
    validator = ConfigValidator(settings)
    results = validator.validate_all()
    ready = all(status.configured for status in results.values())

    if as_json:
        import json
        click.echo(json.dumps(
            {"ready": ready, "components": {name: s.to_dict() for name, s in results.items()}},
            indent=2,
        ))
        ctx.exit(0 if ready else 1)

    click.echo("\n📋 Mirror Configuration Status\n")

    not_configured = []
    for name, status in results.items():
        if status.configured:
            click.secho(f"  ✓ {name}", fg="green", nl=False)
            click.echo(f" — {status.detail}" if status.detail else "")
        else:
            not_configured.append((name, status))
            click.secho(f"  ✗ {name}", fg="red", nl=False)
            if status.missing:
                click.echo(f" — missing: {', '.join(status.missing)}")
            else:
                click.echo(" — not configured")

    click.echo()
    click.secho(
        f"Summary: {len(results) - len(not_configured)} configured, {len(not_configured)} not configured",
        bold=True,
    )

    if not_configured:
        click.echo("\n📖 Setup Guide:\n")
        for name, status in not_configured:
            if status.guidance:
                click.echo(f"  {name}:")
                click.echo(f"    → {status.guidance}")
        ctx.exit(1)
