import logging
from typing import List

import pytest

from wait_on_check.errors import (
    CheckConclusionNotAllowedError,
    CheckNeverRunError,
    TransportError,
)
from wait_on_check.github.model import CheckRun
from wait_on_check.model import WaitConfig
from wait_on_check.verifier import (
    NO_CHECKS_MATCHED_MESSAGE,
    NO_CHECKS_PRESENT_MESSAGE,
    EmptyDecision,
    GithubChecksVerifier,
    VerdictOutcome,
    decide_on_empty,
    fail_unless_conclusions_allowed,
)


class _FakeAPI:
    """Hands out one snapshot per call, repeating the last one."""

    def __init__(self, *snapshots: List[CheckRun]):
        self._snapshots = list(snapshots)
        self.calls = 0

    async def get_check_runs_for_ref(self, ref: str) -> List[CheckRun]:
        self.calls += 1
        idx = min(self.calls, len(self._snapshots)) - 1
        return list(self._snapshots[idx])


class _FailingAPI:
    async def get_check_runs_for_ref(self, ref: str) -> List[CheckRun]:
        raise TransportError("boom", url="/repos/org/repo/commits/main/check-runs")


class _RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _verifier(api, sleep=None, **kwargs) -> GithubChecksVerifier:
    return GithubChecksVerifier(
        api,
        "main",
        WaitConfig(**kwargs),
        sleep=sleep or _RecordingSleep(),
    )


def test_fail_unless_conclusions_allowed():
    allowed = ["success", "skipped"]
    fail_unless_conclusions_allowed(
        [
            CheckRun(name="a", status="completed", conclusion="success"),
            CheckRun(name="b", status="completed", conclusion="skipped"),
        ],
        allowed,
    )

    with pytest.raises(CheckConclusionNotAllowedError) as excinfo:
        fail_unless_conclusions_allowed(
            [
                CheckRun(name="a", status="completed", conclusion="success"),
                CheckRun(name="b", status="completed", conclusion="failure"),
            ],
            allowed,
        )
    assert str(excinfo.value) == (
        "The conclusion of one or more checks were not allowed. Allowed conclusions "
        "are: success, skipped. This can be configured with the "
        "'allowed-conclusions' param."
    )
    assert excinfo.value.allowed_conclusions == allowed


def test_conclusions_are_case_sensitive():
    with pytest.raises(CheckConclusionNotAllowedError):
        fail_unless_conclusions_allowed(
            [CheckRun(name="a", status="completed", conclusion="Success")],
            ["success"],
        )


def test_decide_on_empty():
    checks = [CheckRun(name="a")]
    assert decide_on_empty(checks, WaitConfig()) == EmptyDecision.checks_present
    assert (
        decide_on_empty(checks, WaitConfig(check_name="a"))
        == EmptyDecision.checks_present
    )

    assert decide_on_empty([], WaitConfig()) == EmptyDecision.none_present
    assert (
        decide_on_empty([], WaitConfig(fail_on_no_checks=False))
        == EmptyDecision.none_present
    )

    for filters in ({"check_name": "a"}, {"check_regexp": "a"}):
        assert (
            decide_on_empty([], WaitConfig(**filters))
            == EmptyDecision.none_matched_fail
        )
        assert (
            decide_on_empty([], WaitConfig(fail_on_no_checks=False, **filters))
            == EmptyDecision.none_matched_ok
        )


@pytest.mark.asyncio
async def test_waits_until_all_checks_are_completed(caplog):
    api = _FakeAPI(
        [
            CheckRun(name="A", status="completed", conclusion="success"),
            CheckRun(name="B", status="queued"),
        ],
        [
            CheckRun(name="A", status="completed", conclusion="success"),
            CheckRun(name="B", status="in_progress"),
        ],
        [
            CheckRun(name="A", status="completed", conclusion="success"),
            CheckRun(name="B", status="completed", conclusion="success"),
        ],
    )
    sleep = _RecordingSleep()
    verifier = _verifier(api, sleep=sleep, wait=0)

    with caplog.at_level(logging.INFO, logger="wait_on_check"):
        verdict = await verifier.wait_for_checks()

    assert api.calls == 3
    assert sleep.calls == [0, 0]
    assert verdict.outcome == VerdictOutcome.success
    assert [cr.name for cr in verdict.checks] == ["A", "B"]
    assert (
        "The requested checks aren't complete yet, will check back in 0 seconds..."
        in caplog.text
    )
    assert "A: completed (success)" in caplog.text
    assert "B: completed (success)" in caplog.text


@pytest.mark.asyncio
async def test_single_pending_check_message(caplog):
    api = _FakeAPI(
        [CheckRun(name="A", status="queued")],
        [CheckRun(name="A", status="completed", conclusion="success")],
    )
    with caplog.at_level(logging.INFO, logger="wait_on_check"):
        await _verifier(api, wait=30).wait_for_checks()
    assert (
        "The requested check isn't complete yet, will check back in 30 seconds..."
        in caplog.text
    )


@pytest.mark.asyncio
async def test_unknown_status_keeps_polling():
    api = _FakeAPI(
        [CheckRun(name="A", status="waiting")],
        [CheckRun(name="A", status="completed", conclusion="success")],
    )
    verdict = await _verifier(api).wait_for_checks()
    assert api.calls == 2
    assert verdict.outcome == VerdictOutcome.success


@pytest.mark.asyncio
async def test_completed_checks_do_not_sleep():
    api = _FakeAPI([CheckRun(name="A", status="completed", conclusion="skipped")])
    sleep = _RecordingSleep()
    verdict = await _verifier(api, sleep=sleep).wait_for_checks()
    assert sleep.calls == []
    assert api.calls == 1
    assert verdict.outcome == VerdictOutcome.success


@pytest.mark.asyncio
async def test_self_is_excluded_and_failure_is_reported(caplog):
    api = _FakeAPI(
        [
            CheckRun(name="self", status="in_progress"),
            CheckRun(name="X", status="completed", conclusion="failure"),
        ]
    )
    verifier = _verifier(
        api, workflow_name="self", allowed_conclusions=["success"]
    )
    with caplog.at_level(logging.INFO, logger="wait_on_check"):
        with pytest.raises(CheckConclusionNotAllowedError, match="are: success\\."):
            await verifier.wait_for_checks()
    # summary is shown before the verdict
    assert "X: completed (failure)" in caplog.text
    assert api.calls == 1


@pytest.mark.asyncio
async def test_never_run_when_ref_has_no_checks():
    verifier = _verifier(_FakeAPI([]), check_name="test")
    with pytest.raises(
        CheckNeverRunError,
        match="The requested check was never run against this ref, exiting...",
    ):
        await verifier.wait_for_checks()


@pytest.mark.asyncio
async def test_never_run_when_filter_matches_nothing():
    api = _FakeAPI([CheckRun(name="other", status="queued")])
    verifier = _verifier(api, check_regexp="non-matching-regexp")
    with pytest.raises(CheckNeverRunError, match="none matched the requested check"):
        await verifier.wait_for_checks()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filters", [{"check_name": "non-existing-check"}, {"check_regexp": "nope"}]
)
async def test_no_matches_succeed_without_fail_on_no_checks(filters, caplog):
    api = _FakeAPI([CheckRun(name="other", status="queued")])
    sleep = _RecordingSleep()
    verifier = _verifier(api, sleep=sleep, fail_on_no_checks=False, **filters)
    with caplog.at_level(logging.INFO, logger="wait_on_check"):
        verdict = await verifier.wait_for_checks()
    assert verdict.outcome == VerdictOutcome.none_matched
    assert verdict.message == NO_CHECKS_MATCHED_MESSAGE
    assert verdict.checks == []
    assert NO_CHECKS_MATCHED_MESSAGE in caplog.text
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_only_self_present_is_a_distinct_success(caplog):
    api = _FakeAPI([CheckRun(name="self", status="in_progress")])
    verifier = _verifier(api, workflow_name="self")
    with caplog.at_level(logging.INFO, logger="wait_on_check"):
        verdict = await verifier.wait_for_checks()
    assert verdict.outcome == VerdictOutcome.none_present
    assert verdict.message == NO_CHECKS_PRESENT_MESSAGE
    assert NO_CHECKS_PRESENT_MESSAGE in caplog.text
    assert NO_CHECKS_MATCHED_MESSAGE not in caplog.text


@pytest.mark.asyncio
async def test_transport_errors_propagate():
    sleep = _RecordingSleep()
    with pytest.raises(TransportError, match="boom"):
        await _verifier(_FailingAPI(), sleep=sleep).wait_for_checks()
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_config_is_not_mutated():
    config = WaitConfig(workflow_name="self", ignore_checks={"lint"}, wait=0)
    before = config.model_dump()
    api = _FakeAPI(
        [CheckRun(name="lint", status="queued"), CheckRun(name="A", status="queued")],
        [CheckRun(name="A", status="completed", conclusion="success")],
    )
    await GithubChecksVerifier(
        api, "main", config, sleep=_RecordingSleep()
    ).wait_for_checks()
    assert config.model_dump() == before
