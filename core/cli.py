"""
Command-line interface for Tierwise
"""
import asyncio
import json

import click
import yaml

from core.config import settings
from core.exceptions import TierwiseError
from core.logging import get_logger

logger = get_logger(__name__)


def load_document(path: str) -> dict:
    """Read a JSON or YAML file into a mapping"""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise click.ClickException(f"Could not parse {path}: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a mapping at the top level")
    return data


@click.group()
@click.version_option(version=settings.app_version)
def cli():
    """Tierwise CLI - deterministic tiered rankings from reasoning-service scores"""
    pass


@cli.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--scores", "scores_file", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Saved reasoning service result (JSON or YAML)")
@click.option("--format", "output_format", type=click.Choice(["json", "text"]), default="json",
              help="Print the ranking as JSON or as a text summary")
def rank(request_file: str, scores_file: str, output_format: str):
    """Rank candidates from a request file and a saved reasoning result"""
    from d0_gateway.reasoning_client import parse_result
    from d5_scoring.formula_validator import validate_metric_formulas
    from d5_scoring.ranking import RankingPolicy, build_ranking
    from d5_scoring.report import build_report_summary
    from d5_scoring.schemas import parse_ranking_request

    try:
        request = parse_ranking_request(load_document(request_file))
        validate_metric_formulas(request.metrics)
        result = parse_result(json.dumps(load_document(scores_file)), provider="file")
        response = build_ranking(request, result, RankingPolicy.from_settings(settings))
    except TierwiseError as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    if output_format == "text":
        click.echo(build_report_summary(response, request.metrics).plain_text)
    else:
        click.echo(json.dumps(response.to_payload(), indent=2, ensure_ascii=False))


@cli.command("validate-formulas")
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
def validate_formulas(request_file: str):
    """Check formula metrics against the metrics defined before them"""
    from d5_scoring.formula_validator import validate_metric_formulas
    from d5_scoring.schemas import parse_ranking_request
    from d5_scoring.types import MetricType

    try:
        request = parse_ranking_request(load_document(request_file))
        validate_metric_formulas(request.metrics)
    except TierwiseError as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    count = sum(1 for m in request.metrics if m.type == MetricType.FORMULA)
    click.echo(f"✓ {count} formula metric(s) valid across {len(request.metrics)} metrics")


@cli.command("quota-status")
@click.argument("identity")
@click.option("--authenticated", is_flag=True, help="Treat IDENTITY as a signed-in user id")
def quota_status(identity: str, authenticated: bool):
    """Show remaining daily budgets without consuming them"""
    from d0_gateway.counter_store import InMemoryCounterStore
    from d0_gateway.identity import resolve_identity
    from d0_gateway.quota import QuotaGate
    from d0_gateway.types import ActionClass

    caller = resolve_identity(user_id=identity) if authenticated else resolve_identity(remote_addr=identity)
    gate = QuotaGate.from_settings(settings)

    async def peek_all():
        try:
            return [await gate.peek(caller, action) for action in ActionClass]
        finally:
            await gate.store.close()

    try:
        decisions = asyncio.run(peek_all())
    except TierwiseError as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    click.echo(f"Identity: {caller.value} ({caller.kind.value})")
    for decision in decisions:
        click.echo(
            f"{decision.action_class.value}: {decision.remaining}/{decision.limit} remaining, "
            f"resets {decision.reset_at.isoformat()}"
        )
    if isinstance(gate.store, InMemoryCounterStore):
        click.echo(
            "Note: using the in-process counter store, which is not shared with running services; "
            "set QUOTA_BACKEND=redis and USE_STUBS=false to read live counters"
        )


@cli.command()
def env_info():
    """Display environment information"""
    click.echo(f"{settings.app_name} v{settings.app_version}")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Use stubs: {settings.use_stubs}")
    click.echo(f"Quota backend: {settings.quota_backend}")
    click.echo(f"Scoring limit: {settings.quota_scoring_user_limit}/{settings.quota_scoring_guest_limit} per day (user/guest)")
    click.echo(f"Web limit: {settings.quota_web_user_limit}/{settings.quota_web_guest_limit} per day (user/guest)")
    click.echo(f"Tier labels: {', '.join(settings.tier_labels)}")


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
