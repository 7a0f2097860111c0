"""Command-line interface for PR Reviewer."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from urllib.parse import urlparse

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pr_reviewer import __version__
from pr_reviewer.agents.fixer import AutoFixer
from pr_reviewer.agents.model_client import ModelClient, ModelConfig
from pr_reviewer.agents.reviewer import ReviewAgent
from pr_reviewer.config import (
    ReviewPolicy,
    Settings,
    load_policy,
    load_settings,
    validate_settings,
)
from pr_reviewer.errors import ConfigurationError
from pr_reviewer.github.client import GitHubClient
from pr_reviewer.models.review import RunOutcome
from pr_reviewer.orchestrator.pipeline import ReviewPipeline, RunReport
from pr_reviewer.prompts import build_system_prompt

console = Console()

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """PR Reviewer - policy-driven pull request review with auto-fix."""
    setup_logging(verbose)


def git_host_from_base_url(base_url: str | None) -> str:
    """Host used in push URLs; GitHub Enterprise API URLs map to their server host."""
    if not base_url:
        return "github.com"
    return urlparse(base_url).hostname or "github.com"


def prepare_settings(config_path: str | None, overrides: dict) -> Settings:
    """Load and validate settings.

    Raises:
        ConfigurationError: If a credential or required value is missing
    """
    settings = load_settings(Path(config_path) if config_path else None, overrides)
    errors = validate_settings(settings)
    if errors:
        raise ConfigurationError("; ".join(errors))
    return settings


async def run_review(
    repo: str,
    pr_number: int,
    policy: ReviewPolicy,
    settings: Settings,
    workspace: Path,
) -> RunReport:
    """Wire the collaborators together and run the pipeline for one PR."""
    gateway = GitHubClient(
        settings.github.token,
        repo,
        base_url=settings.github.base_url,
        status_context=settings.review.status_context,
    )

    async with ModelClient(ModelConfig.from_settings(settings.model)) as client:
        fixer = None
        if settings.review.auto_fix:
            fixer = AutoFixer(
                client,
                workspace=workspace,
                repo_name=repo,
                token=settings.github.token,
                git_host=git_host_from_base_url(settings.github.base_url),
                max_tokens=settings.model.fix_max_tokens,
            )
        pipeline = ReviewPipeline(
            gateway=gateway,
            reviewer=ReviewAgent(client, policy),
            policy=policy,
            settings=settings.review,
            fixer=fixer,
        )
        return await pipeline.run(pr_number)


def _print_report(report: RunReport) -> None:
    classified = report.classified
    if report.outcome == RunOutcome.AUTO_APPROVED_ALL_EXCLUDED:
        console.print(f"✅ All {len(report.excluded)} changed file(s) excluded, PR auto-approved")
    elif report.outcome == RunOutcome.FIXES_PUSHED_AWAITING_RERUN:
        console.print("🔧 Auto-fix commit pushed, awaiting re-review")
    elif report.outcome == RunOutcome.REVIEWED_AND_BLOCKED:
        console.print(f"[red]❌ PR review found {len(classified.blocking)} blocking issue(s)[/red]")
    else:
        console.print("[green]✅ Review passed[/green]")

    if report.result is not None and report.outcome != RunOutcome.AUTO_APPROVED_ALL_EXCLUDED:
        console.print(
            f"   Blocking: {len(classified.blocking)} | Suggestions: {len(classified.suggestions)} "
            f"| Tech debt: {len(classified.tech_debt)}"
        )
    if report.issues_created:
        console.print(f"   Issues created: {', '.join(f'#{n}' for n in report.issues_created)}")
    if report.merged:
        console.print("🔀 PR merged")
    elif report.merge_error:
        console.print(f"[red]Merge failed:[/red] {report.merge_error}")


def _execute(
    repo: str,
    pr_number: int,
    policy_path: str,
    settings: Settings,
    workspace: str,
) -> None:
    """Run a review and exit with its status."""
    try:
        policy = load_policy(policy_path)
    except ConfigurationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    console.print(f"🔍 Reviewing PR #{pr_number} in [bold]{repo}[/bold]...")
    try:
        report = asyncio.run(run_review(repo, pr_number, policy, settings, Path(workspace)))
    except Exception as e:
        console.print(f"[red]PR review failed:[/red] {e}")
        sys.exit(1)

    _print_report(report)
    sys.exit(report.exit_code)


@cli.command("review-pr")
@click.argument("repo")
@click.argument("pr_number", type=int)
@click.option("--policy", "policy_path", required=True, type=click.Path(exists=True), help="Review policy file")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings file path")
@click.option("--model", default=None, help="Model identifier")
@click.option("--auto-fix/--no-auto-fix", default=None, help="Apply suggestion fixes and push them")
@click.option("--auto-merge/--no-auto-merge", default=None, help="Merge passing PRs that request auto-merge")
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Checkout of the PR head used for auto-fix",
)
def review_pr(
    repo: str,
    pr_number: int,
    policy_path: str,
    config_path: str | None,
    model: str | None,
    auto_fix: bool | None,
    auto_merge: bool | None,
    workspace: str,
) -> None:
    """Review a GitHub pull request against a review policy."""
    overrides = {"model": model, "auto_fix": auto_fix, "auto_merge": auto_merge}
    try:
        settings = prepare_settings(config_path, overrides)
    except ConfigurationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    _execute(repo, pr_number, policy_path, settings, workspace)


def pr_number_from_event(event_path: str | None) -> int | None:
    """Pull request number from a GitHub Actions event payload."""
    if not event_path:
        return None
    try:
        with open(event_path) as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read event payload {event_path}: {e}")
        return None
    number = (payload.get("pull_request") or {}).get("number")
    return int(number) if number is not None else None


@cli.command("action")
@click.option("--openai-api-key", envvar="INPUT_OPENAI_API_KEY", help="Model provider API key")
@click.option("--github-token", envvar="INPUT_GITHUB_TOKEN", help="Token with write access to the repo")
@click.option(
    "--review-config",
    "policy_path",
    envvar="INPUT_REVIEW_CONFIG",
    default=".github/review-config.yml",
    help="Review policy file",
)
@click.option("--model", envvar="INPUT_MODEL", default=None, help="Model identifier")
@click.option("--auto-fix", type=click.BOOL, envvar="INPUT_AUTO_FIX", default=None, help="true or false")
@click.option("--auto-merge", type=click.BOOL, envvar="INPUT_AUTO_MERGE", default=None, help="true or false")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings file path")
def action(
    openai_api_key: str | None,
    github_token: str | None,
    policy_path: str,
    model: str | None,
    auto_fix: bool | None,
    auto_merge: bool | None,
    config_path: str | None,
) -> None:
    """Run as a GitHub Actions step on a pull_request event."""
    repo = os.getenv("GITHUB_REPOSITORY")
    pr_number = pr_number_from_event(os.getenv("GITHUB_EVENT_PATH"))
    if not repo or pr_number is None:
        console.print("[red]This action must be triggered by a pull_request event[/red]")
        sys.exit(1)

    overrides = {
        "openai_api_key": openai_api_key,
        "github_token": github_token,
        "model": model,
        "auto_fix": auto_fix,
        "auto_merge": auto_merge,
    }
    try:
        settings = prepare_settings(config_path, overrides)
    except ConfigurationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    workspace = os.getenv("GITHUB_WORKSPACE", ".")
    _execute(repo, pr_number, policy_path, settings, workspace)


@cli.group("policy")
def policy_group() -> None:
    """Review policy commands."""
    pass


@policy_group.command("validate")
@click.argument("path", type=click.Path(exists=True))
def policy_validate(path: str) -> None:
    """Validate a review policy file."""
    try:
        load_policy(path)
    except ConfigurationError as e:
        console.print("[red]Policy is invalid:[/red]")
        console.print(f"  • {e}")
        sys.exit(1)
    console.print("[green]✓ Policy is valid[/green]")


@policy_group.command("show")
@click.argument("path", type=click.Path(exists=True))
def policy_show(path: str) -> None:
    """Show a review policy."""
    try:
        policy = load_policy(path)
    except ConfigurationError as e:
        console.print(f"[red]Error loading policy:[/red] {e}")
        sys.exit(1)

    console.print(f"\n[bold]Project:[/bold] {policy.project_type} ({policy.language})")
    if policy.schema:
        console.print(f"[bold]Schema:[/bold] {policy.schema.orm} at {policy.schema.path}")
    if policy.multi_tenancy and policy.multi_tenancy.enabled:
        console.print(f"[bold]Tenant scope column:[/bold] {policy.multi_tenancy.scope_column}")
    if policy.auth:
        console.print(f"[bold]Auth:[/bold] {policy.auth.provider}")
    if policy.testing:
        console.print(f"[bold]Tests:[/bold] {policy.testing.framework} in {policy.testing.test_dir}")

    if policy.exclude_paths:
        table = Table(title="Excluded Paths")
        table.add_column("Prefix")
        table.add_column("Reason")
        for rule in policy.exclude_paths:
            table.add_row(rule.path, rule.reason)
        console.print(table)

    if policy.conventions:
        console.print("\n[bold]Conventions:[/bold]")
        for convention in policy.conventions:
            console.print(f"  • {convention}")


@policy_group.command("prompt")
@click.argument("path", type=click.Path(exists=True))
def policy_prompt(path: str) -> None:
    """Print the system prompt a policy produces."""
    try:
        policy = load_policy(path)
    except ConfigurationError as e:
        console.print(f"[red]Error loading policy:[/red] {e}")
        sys.exit(1)
    click.echo(build_system_prompt(policy))


if __name__ == "__main__":
    cli()
