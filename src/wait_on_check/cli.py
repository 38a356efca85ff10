import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Optional

from tabulate import tabulate
import typer

from wait_on_check.config import Settings, get_settings
from wait_on_check.errors import WaitOnCheckError
from wait_on_check.github.api import API, github_client
from wait_on_check.logger import setup_logging
from wait_on_check.metric import push_metrics
from wait_on_check.model import DEFAULT_ALLOWED_CONCLUSIONS, WaitConfig
from wait_on_check.verifier import GithubChecksVerifier, Verdict, apply_filters

logger = logging.getLogger("wait_on_check")

app = typer.Typer()


@asynccontextmanager
async def repo_api(settings: Settings, repo: str) -> AsyncIterator[API]:
    async with github_client(settings.REPO_TOKEN, settings.API_ENDPOINT) as gh:
        yield API(gh, repo)


async def run_wait(
    settings: Settings, repo: str, ref: str, config: WaitConfig
) -> Verdict:
    async with repo_api(settings, repo) as api:
        verifier = GithubChecksVerifier(api, ref, config)
        verdict = await verifier.wait_for_checks()
        logger.info("Finished waiting on %s, API calls: %d", ref, api.call_count)
        return verdict


def _push_metrics(settings: Settings) -> None:
    try:
        push_metrics(settings.PUSH_GATEWAY)
    except (OSError, ValueError):
        logger.warning(
            "Could not push metrics to %s", settings.PUSH_GATEWAY, exc_info=True
        )


@app.callback()
def init(ctx: typer.Context):
    ctx.obj = get_settings()


RefOption = typer.Option(..., envvar="REF", help="Commit SHA or branch to check")
RepoOption = typer.Option(..., envvar="GITHUB_REPOSITORY", help="owner/name")
CheckNameOption = typer.Option(None, envvar="CHECK_NAME")
CheckRegexpOption = typer.Option(None, envvar="CHECK_REGEXP")
WorkflowNameOption = typer.Option(
    None, envvar="RUNNING_WORKFLOW_NAME", help="Name of the invoking check"
)
IgnoreChecksOption = typer.Option("", envvar="IGNORE_CHECKS", help="Comma separated")


@app.command()
def wait(
    ctx: typer.Context,
    ref: str = RefOption,
    repo: str = RepoOption,
    check_name: Optional[str] = CheckNameOption,
    check_regexp: Optional[str] = CheckRegexpOption,
    workflow_name: Optional[str] = WorkflowNameOption,
    ignore_checks: str = IgnoreChecksOption,
    wait_interval: int = typer.Option(10, envvar="WAIT_INTERVAL"),
    allowed_conclusions: str = typer.Option(
        ",".join(DEFAULT_ALLOWED_CONCLUSIONS),
        envvar="ALLOWED_CONCLUSIONS",
        help="Comma separated",
    ),
    fail_on_no_checks: bool = typer.Option(True, envvar="FAIL_ON_NO_CHECKS"),
    verbose: bool = typer.Option(True, "--verbose/--quiet", envvar="VERBOSE"),
):
    """Block until the selected checks on REF are completed and accepted."""
    settings: Settings = ctx.obj
    setup_logging(settings, verbose=verbose)

    try:
        config = WaitConfig.from_inputs(
            workflow_name=workflow_name,
            ignore_checks=ignore_checks,
            check_name=check_name,
            check_regexp=check_regexp,
            allowed_conclusions=allowed_conclusions,
            fail_on_no_checks=fail_on_no_checks,
            wait=wait_interval,
            verbose=verbose,
        )
        verdict = asyncio.run(run_wait(settings, repo, ref, config))
    except WaitOnCheckError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)
    finally:
        _push_metrics(settings)

    typer.echo(verdict.message)


@app.command()
def checks(
    ctx: typer.Context,
    ref: str = RefOption,
    repo: str = RepoOption,
    check_name: Optional[str] = CheckNameOption,
    check_regexp: Optional[str] = CheckRegexpOption,
    workflow_name: Optional[str] = WorkflowNameOption,
    ignore_checks: str = IgnoreChecksOption,
):
    """Show the checks that `wait` would consider, without waiting."""
    settings: Settings = ctx.obj
    setup_logging(settings)

    async def handle():
        config = WaitConfig.from_inputs(
            workflow_name=workflow_name,
            ignore_checks=ignore_checks,
            check_name=check_name,
            check_regexp=check_regexp,
        )
        async with repo_api(settings, repo) as api:
            return apply_filters(await api.get_check_runs_for_ref(ref), config)

    try:
        selected = asyncio.run(handle())
    except WaitOnCheckError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)

    rows = [(cr.name, cr.status, cr.conclusion or "") for cr in selected]
    typer.echo(
        tabulate(rows, headers=("Check", "Status", "Conclusion"), tablefmt="github")
    )
