"""Tests for Slack escalation notifications."""

import json

import httpx
import pytest

from src.feedback.domain import EscalationNotice, OutcomeStatus
from src.feedback.infrastructure import (
    CircuitBreaker,
    CircuitState,
    NotificationConfig,
    SlackNotifier,
    TeamDirectory,
)

WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXXX"


def _notice(**overrides) -> EscalationNotice:
    data = dict(
        record_id="3f6c2a9e-0000-0000-0000-000000000001",
        team="security",
        category="Security",
        source="github",
        author="security-bob",
        text="XSS vulnerability in profile page via unsanitized user bio field.",
        notes=None,
    )
    data.update(overrides)
    return EscalationNotice(**data)


def _notifier(handler, max_retries: int = 2, **kwargs) -> SlackNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = NotificationConfig(webhook_url=WEBHOOK, max_retries=max_retries, backoff_base=0)
    return SlackNotifier(config, http_client=client, **kwargs)


@pytest.mark.asyncio
async def test_posts_block_kit_message_to_team_channel() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text="ok")

    notifier = _notifier(handler)
    outcome = await notifier.notify(_notice())
    await notifier.close()

    assert outcome.succeeded
    (request,) = requests
    assert str(request.url) == WEBHOOK
    payload = json.loads(request.content)
    assert payload["channel"] == "#security-alerts"
    assert payload["username"] == "Feedback Triager"
    assert payload["blocks"][0]["text"]["text"] == "Escalation: Security"
    fields = [f["text"] for f in payload["blocks"][1]["fields"]]
    assert fields == [
        "*Team:*\nSecurity",
        "*Source:*\ngithub",
        "*Author:*\nsecurity-bob",
        "*Ticket ID:*\n#3f6c2a9e-0000-0000-0000-000000000001",
    ]


def test_feedback_text_is_truncated() -> None:
    notifier = SlackNotifier(NotificationConfig(webhook_url=WEBHOOK))
    message = notifier.build_message(_notice(text="a" * 800, notes="check logs"))

    assert message["blocks"][2]["text"]["text"] == "*Feedback:*\n>" + "a" * 500
    assert message["blocks"][3]["elements"][0]["text"] == "Notes: check logs"


@pytest.mark.asyncio
async def test_retries_then_succeeds() -> None:
    responses = iter([httpx.Response(500), httpx.Response(200)])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    outcome = await _notifier(handler).notify(_notice())

    assert outcome.succeeded


@pytest.mark.asyncio
async def test_failure_after_retries_is_reported() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    outcome = await _notifier(handler, max_retries=3).notify(_notice())

    assert outcome.status == OutcomeStatus.FAILED
    assert "connection refused" in outcome.reason
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_skipped_without_webhook() -> None:
    outcome = await SlackNotifier(NotificationConfig(webhook_url=None)).notify(_notice())
    assert outcome.status == OutcomeStatus.SKIPPED


@pytest.mark.asyncio
async def test_open_circuit_skips_delivery() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    notifier = _notifier(handler, max_retries=1, circuit_breaker=breaker)

    first = await notifier.notify(_notice())
    second = await notifier.notify(_notice())

    assert first.status == OutcomeStatus.FAILED
    assert breaker.state == CircuitState.OPEN
    assert second.status == OutcomeStatus.SKIPPED
    assert len(calls) == 1


def test_team_directory_yaml_override(tmp_path) -> None:
    path = tmp_path / "teams.yaml"
    path.write_text(
        "teams:\n"
        "  security:\n"
        "    channel: '#sec-oncall'\n"
        "  marketing:\n"
        "    channel: '#mkt'\n"
    )

    directory = TeamDirectory.from_yaml(path)

    assert directory.get("security").channel == "#sec-oncall"
    assert directory.get("security").name == "Security"
    assert directory.get("support").name == "Customer Support"


def test_team_directory_missing_file_uses_defaults(tmp_path) -> None:
    directory = TeamDirectory.from_yaml(tmp_path / "absent.yaml")
    assert directory.get("billing").channel == "#billing-issues"
