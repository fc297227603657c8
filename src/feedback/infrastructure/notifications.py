"""
Feedback Notifications
======================

Escalation notifications for the feedback module:
- Team directory (display names and Slack channels, YAML overridable)
- Slack webhook delivery with circuit breaker and retry logic
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any

import httpx
import yaml

from src.config import settings, Settings, Team, NOTIFICATION_TEXT_LIMIT
from src.feedback.application.services import INotificationDispatcher
from src.feedback.domain import EscalationNotice, Outcome
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Team Directory ==========

@dataclass(frozen=True)
class TeamInfo:
    name: str
    channel: str


DEFAULT_TEAMS: Dict[str, TeamInfo] = {
    Team.ENGINEERING: TeamInfo("Engineering", "#eng-escalations"),
    Team.SECURITY: TeamInfo("Security", "#security-alerts"),
    Team.SUPPORT: TeamInfo("Customer Support", "#support-escalations"),
    Team.PRODUCT: TeamInfo("Product", "#product-feedback"),
    Team.BILLING: TeamInfo("Billing", "#billing-issues"),
}


class TeamDirectory:
    """
    Maps team ids to display names and Slack channels.

    A YAML file may override the name or channel of known teams:

        teams:
          security:
            channel: "#sec-oncall"
    """

    def __init__(self, teams: Optional[Dict[str, TeamInfo]] = None):
        self._teams = dict(teams or DEFAULT_TEAMS)

    @classmethod
    def from_yaml(cls, path: Path) -> "TeamDirectory":
        """Load overrides from ``path``; a missing file means defaults."""
        if not path.exists():
            logger.info(f"Teams config file not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        teams = dict(DEFAULT_TEAMS)
        for team_id, override in (data.get("teams") or {}).items():
            if team_id not in teams:
                logger.warning(f"Ignoring unknown team in {path}: {team_id}")
                continue
            current = teams[team_id]
            teams[team_id] = TeamInfo(
                name=str((override or {}).get("name", current.name)),
                channel=str((override or {}).get("channel", current.channel))
            )
        return cls(teams)

    def get(self, team_id: str) -> TeamInfo:
        return self._teams.get(team_id) or TeamInfo(team_id, f"#{team_id}")


# ========== Circuit Breaker ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failed deliveries, reject requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


# ========== Slack ==========

@dataclass
class NotificationConfig:
    """Slack delivery settings."""
    webhook_url: Optional[str] = None
    timeout_seconds: float = 5.0
    max_retries: int = 2
    backoff_base: float = 0.5

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "NotificationConfig":
        config = config or settings
        return cls(
            webhook_url=config.slack_webhook_url,
            timeout_seconds=config.slack_timeout_seconds,
            max_retries=config.slack_max_retries
        )


class SlackNotifier(INotificationDispatcher):
    """
    Slack webhook notifier for escalations.

    Delivery is attempted ``max_retries`` times with exponential backoff.
    Every failure mode ends in an ``Outcome``; nothing is raised.
    """

    USERNAME = "Feedback Triager"

    def __init__(
        self,
        config: NotificationConfig,
        directory: Optional[TeamDirectory] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._config = config
        self._directory = directory or TeamDirectory()
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker()

    @property
    def is_configured(self) -> bool:
        return bool(self._config.webhook_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
        return self._http_client

    def build_message(self, notice: EscalationNotice) -> Dict[str, Any]:
        """Build the Slack Block Kit message for an escalation."""
        team = self._directory.get(notice.team)

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Escalation: {notice.category}", "emoji": False}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Team:*\n{team.name}"},
                    {"type": "mrkdwn", "text": f"*Source:*\n{notice.source}"},
                    {"type": "mrkdwn", "text": f"*Author:*\n{notice.author}"},
                    {"type": "mrkdwn", "text": f"*Ticket ID:*\n#{notice.record_id}"},
                ]
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Feedback:*\n>{notice.text[:NOTIFICATION_TEXT_LIMIT]}"
                }
            },
        ]
        if notice.notes:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Notes: {notice.notes}"}]
            })

        return {
            "channel": team.channel,
            "username": self.USERNAME,
            "blocks": blocks
        }

    async def notify(self, notice: EscalationNotice) -> Outcome:
        """
        Post an escalation to Slack.

        Returns:
            ``ok`` on a 2xx response, ``skipped`` when no webhook is set or
            the circuit is open, ``failed`` once every attempt failed
        """
        if not self.is_configured:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return Outcome.skipped("webhook not configured")

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"record_id": notice.record_id}
            )
            return Outcome.skipped("circuit breaker open")

        message = self.build_message(notice)
        last_error = "no attempts made"

        for attempt in range(self._config.max_retries):
            try:
                response = await self._get_client().post(self._config.webhook_url, json=message)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"record_id": notice.record_id, "team": notice.team}
                    )
                    return Outcome.ok()

                last_error = f"webhook returned {response.status_code}"
                logger.warning(
                    "Slack webhook returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                logger.error(
                    "Slack notification failed",
                    extra={"error": last_error, "attempt": attempt + 1, "record_id": notice.record_id}
                )

            if attempt < self._config.max_retries - 1:
                await asyncio.sleep(self._config.backoff_base * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return Outcome.failed(last_error)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def create_notifier(config: Optional[Settings] = None) -> SlackNotifier:
    config = config or settings
    return SlackNotifier(
        NotificationConfig.from_settings(config),
        TeamDirectory.from_yaml(config.teams_config_path)
    )
