"""Health check utilities for monitoring service health.

This module provides health check capabilities for the bridge:
- Check configuration consistency
- Check the Discord bot token format
- Check that the Trello board is reachable with the configured credentials
- Generate health status reports
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from discord_trello_sync.utils.async_helpers import SyncError

if TYPE_CHECKING:
    from discord_trello_sync.adapters.board.trello import TrelloAdapter
    from discord_trello_sync.config.schema import BridgeConfig

log = structlog.get_logger()

DISCORD_TOKEN_PATTERN = re.compile(r"^[\w-]{20,}\.[\w-]{4,}\.[\w-]{20,}$")


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
        }


class HealthChecker:
    """Performs health checks on the bridge's dependencies.

    Example:
        checker = HealthChecker(config)
        report = await checker.run_all_checks()
        if not report.healthy:
            print(report.to_dict())
    """

    def __init__(self, config: BridgeConfig, board: TrelloAdapter | None = None) -> None:
        """Initialize the health checker.

        Args:
            config: Application configuration
            board: Trello adapter to probe (built from config if omitted)
        """
        self._config = config
        self._board = board

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks concurrently and return a report."""
        log.info("health_check_start")
        start_time = datetime.now(UTC)

        results = await asyncio.gather(
            self._check_config(),
            self._check_discord_token(),
            self._check_trello_board(),
            return_exceptions=True,
        )

        checks: list[CheckResult] = []
        for result in results:
            if isinstance(result, BaseException):
                checks.append(
                    CheckResult(
                        name="unknown",
                        status=HealthStatus.UNHEALTHY,
                        message=f"Check failed with exception: {result}",
                    )
                )
            else:
                checks.append(result)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            overall_status = HealthStatus.HEALTHY
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            overall_status = HealthStatus.UNHEALTHY
        else:
            overall_status = HealthStatus.DEGRADED

        report = HealthReport(
            healthy=overall_status != HealthStatus.UNHEALTHY,
            status=overall_status,
            timestamp=start_time,
            checks=checks,
        )

        log.info(
            "health_check_complete",
            healthy=report.healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        """Check settings that are valid alone but questionable together."""
        polling = self._config.polling

        if not polling.enabled:
            return CheckResult(
                name="config",
                status=HealthStatus.DEGRADED,
                message="Polling disabled, card changes will not reach threads",
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={
                "board_id": self._config.trello.board_id,
                "forum_channel_id": self._config.discord.forum_channel_id,
                "poll_interval_seconds": polling.interval_seconds,
            },
        )

    async def _check_discord_token(self) -> CheckResult:
        """Check the bot token shape (validity requires a gateway login)."""
        if not DISCORD_TOKEN_PATTERN.match(self._config.discord.bot_token):
            return CheckResult(
                name="discord_token",
                status=HealthStatus.UNHEALTHY,
                message="Discord bot token has an unexpected format",
            )

        return CheckResult(
            name="discord_token",
            status=HealthStatus.HEALTHY,
            message="Discord bot token configured",
        )

    async def _check_trello_board(self) -> CheckResult:
        """Check that the configured board can be read."""
        from discord_trello_sync.adapters.board.trello import TrelloAdapter

        board = self._board or TrelloAdapter(self._config.trello, self._config.retry)
        start = time.monotonic()

        try:
            data = await board.get_board(self._config.trello.board_id)
        except (SyncError, httpx.HTTPError) as e:
            return CheckResult(
                name="trello_board",
                status=HealthStatus.UNHEALTHY,
                message=f"Trello board unreachable: {e}",
                latency_ms=(time.monotonic() - start) * 1000,
            )
        finally:
            if self._board is None:
                await board.close()

        return CheckResult(
            name="trello_board",
            status=HealthStatus.HEALTHY,
            message="Trello board reachable",
            latency_ms=(time.monotonic() - start) * 1000,
            details={"board_name": data.get("name")},
        )
