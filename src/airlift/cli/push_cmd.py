"""
airlift.cli.push_cmd — airlift push command.

  airlift push airlift-bundle.tar.gz --registry localhost:5000
  airlift push ./bundle --registry localhost:5000 --chart-repo http://localhost:8080
  airlift push ./bundle --registry harbor.internal -u robot -p TOKEN
"""

import sys
import click

from airlift.core.errors import AirliftError


@click.command("push")
@click.argument("source")
@click.option("-r", "--registry", default=None,
              help="Target registry (default: config default registry)")
@click.option("--chart-repo", default=None,
              help="ChartMuseum URL (default: config chart_repo; "
                   "charts are skipped if none)")
@click.option("--username", "-u", default=None, help="Registry username")
@click.option("--password", "-p", default=None, envvar="AIRLIFT_PASSWORD",
              help="Registry password/token (or AIRLIFT_PASSWORD)")
@click.option("--engine", "engine_binary", default="docker", show_default=True,
              help="Container engine used as push fallback")
def push_cmd(source, registry, chart_repo, username, password, engine_binary):
    """Push images and charts from a bundle (archive or directory)."""
    from airlift.config import load_config
    from airlift.oci.client import Credentials
    from airlift.push.engine import ContainerEngine
    from airlift.push.redistributor import Redistributor

    try:
        cfg = load_config()
    except AirliftError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if registry is None:
        default = cfg.default_registry()
        if default is None:
            raise click.UsageError(
                "No target registry. Use --registry or add one to ~/.airlift/config.yaml"
            )
        registry = default.url
    chart_repo = chart_repo or cfg.chart_repo

    credentials = None
    if username:
        if not password:
            password = click.prompt("Password/Token", hide_input=True)
        credentials = Credentials(username, password)

    redistributor = Redistributor(
        registry,
        chart_repo=chart_repo,
        credentials=credentials,
        engine=ContainerEngine(engine_binary),
        config=cfg,
    )

    try:
        report = redistributor.push_bundle(source)
    except AirliftError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo()
    for outcome in report.outcomes:
        if outcome.skipped:
            mark = "-"
        elif outcome.ok:
            mark = "✓"
        else:
            mark = "✗"
        via = f"  [{outcome.tier.value}]" if outcome.tier else ""
        click.echo(f"{mark} {outcome.kind:<5}  {outcome.name}{via}")

    if not report.ok:
        click.echo(f"\n{len(report.failures)} of {len(report.outcomes)} "
                   f"artifacts were not pushed.", err=True)
        sys.exit(1)
