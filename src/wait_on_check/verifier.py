import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging
import re
import time
from typing import Awaitable, Callable, Iterable, List

from wait_on_check.errors import (
    CheckConclusionNotAllowedError,
    CheckNeverRunError,
    WaitOnCheckError,
)
from wait_on_check.github.api import CheckRunFetcher
from wait_on_check.github.model import CheckRun
from wait_on_check.metric import poll_count, record_verdict, wait_duration_seconds
from wait_on_check.model import WaitConfig

logger = logging.getLogger("wait_on_check")

NO_CHECKS_MATCHED_MESSAGE = (
    "No checks found matching the filter, but fail-on-no-checks is false. Succeeding..."
)
NO_CHECKS_PRESENT_MESSAGE = (
    "No checks besides the ignored ones were found for this ref. Succeeding..."
)


class EmptyDecision(Enum):
    checks_present = 1
    none_matched_fail = 2
    none_matched_ok = 3
    none_present = 4


class VerdictOutcome(Enum):
    success = "success"
    none_matched = "none_matched"
    none_present = "none_present"


@dataclass(frozen=True)
class Verdict:
    outcome: VerdictOutcome
    message: str
    checks: List[CheckRun] = field(default_factory=list)


def apply_filters(checks: Iterable[CheckRun], config: WaitConfig) -> List[CheckRun]:
    """Narrow a snapshot down to the checks the caller waits on.

    Stages run in a fixed order and each one only removes entries, so the
    result keeps the input order:

    1. the invoking check itself and everything in ``ignore_checks``
    2. exact ``check_name`` match, if given
    3. ``check_regexp`` search, if given
    """
    excluded = config.excluded_names
    checks = [cr for cr in checks if cr.name not in excluded]
    if config.verbose:
        logger.debug("Have %d checks after excluding %s", len(checks), excluded)

    if config.check_name is not None:
        checks = [cr for cr in checks if cr.name == config.check_name]
        if config.verbose:
            logger.debug(
                "Have %d checks after name filter '%s'", len(checks), config.check_name
            )

    if config.check_regexp is not None:
        pattern = re.compile(config.check_regexp)
        checks = [cr for cr in checks if pattern.search(cr.name) is not None]
        if config.verbose:
            logger.debug(
                "Have %d checks after regexp filter '%s'",
                len(checks),
                config.check_regexp,
            )

    return checks


def all_checks_complete(checks: Iterable[CheckRun]) -> bool:
    return all(cr.is_completed for cr in checks)


def decide_on_empty(checks: List[CheckRun], config: WaitConfig) -> EmptyDecision:
    if len(checks) > 0:
        return EmptyDecision.checks_present
    if not config.filters_present:
        return EmptyDecision.none_present
    if config.fail_on_no_checks:
        return EmptyDecision.none_matched_fail
    return EmptyDecision.none_matched_ok


def fail_unless_conclusions_allowed(
    checks: Iterable[CheckRun], allowed_conclusions: List[str]
) -> None:
    if all(cr.conclusion in allowed_conclusions for cr in checks):
        return
    raise CheckConclusionNotAllowedError(allowed_conclusions)


def checks_conclusion_message(checks: Iterable[CheckRun]) -> str:
    return "Checks completed:\n" + "\n".join(str(cr) for cr in checks)


class GithubChecksVerifier:
    api: CheckRunFetcher
    ref: str
    config: WaitConfig

    sleep: Callable[[float], Awaitable[None]]

    def __init__(
        self,
        api: CheckRunFetcher,
        ref: str,
        config: WaitConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api = api
        self.ref = ref
        self.config = config
        self.sleep = sleep

    async def fetch_all(self) -> List[CheckRun]:
        poll_count.inc()
        checks = await self.api.get_check_runs_for_ref(self.ref)
        logger.debug("Fetched %d check runs for %s", len(checks), self.ref)
        if self.config.verbose and logger.getEffectiveLevel() == logging.DEBUG:
            for cr in checks:
                logger.debug("- %s", cr)
        return checks

    async def query_check_status(self) -> List[CheckRun]:
        return apply_filters(await self.fetch_all(), self.config)

    def _never_run_error(self, all_checks: List[CheckRun]) -> CheckNeverRunError:
        others = [cr for cr in all_checks if cr.name not in self.config.excluded_names]
        if len(others) == 0:
            return CheckNeverRunError()
        return CheckNeverRunError(
            f"{len(others)} checks were run against this ref, but none matched "
            "the requested check, exiting..."
        )

    async def wait_for_checks(self) -> Verdict:
        start = time.monotonic()
        try:
            verdict = await self._wait_for_checks()
        except WaitOnCheckError as e:
            record_verdict(type(e).__name__)
            raise
        finally:
            wait_duration_seconds.set(time.monotonic() - start)
        record_verdict(verdict.outcome.value)
        return verdict

    async def _wait_for_checks(self) -> Verdict:
        all_checks = await self.fetch_all()
        checks = apply_filters(all_checks, self.config)

        decision = decide_on_empty(checks, self.config)
        if decision == EmptyDecision.none_matched_fail:
            raise self._never_run_error(all_checks)
        if decision == EmptyDecision.none_matched_ok:
            logger.info(NO_CHECKS_MATCHED_MESSAGE)
            return Verdict(VerdictOutcome.none_matched, NO_CHECKS_MATCHED_MESSAGE)
        if decision == EmptyDecision.none_present:
            logger.info(NO_CHECKS_PRESENT_MESSAGE)
            return Verdict(VerdictOutcome.none_present, NO_CHECKS_PRESENT_MESSAGE)

        while not all_checks_complete(checks):
            plural_part = "checks aren't" if len(checks) > 1 else "check isn't"
            logger.info(
                "The requested %s complete yet, will check back in %d seconds...",
                plural_part,
                self.config.wait,
            )
            await self.sleep(self.config.wait)
            checks = await self.query_check_status()

        message = checks_conclusion_message(checks)
        logger.info(message)

        fail_unless_conclusions_allowed(checks, self.config.allowed_conclusions)

        return Verdict(VerdictOutcome.success, message, checks)
