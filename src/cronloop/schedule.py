"""Next-occurrence computation for cron expressions.

This module wraps croniter so the rest of the package deals only in
parsed ``CronExpression`` objects and timezone-aware datetimes.
"""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadCronError, CroniterBadDateError, croniter

from cronloop.config import settings
from cronloop.errors import InvalidExpressionError, InvalidTimezoneError

logger = logging.getLogger(__name__)


class CronExpression:
    """A parsed cron expression.

    Parsing happens at construction, so a malformed expression is reported
    when the job is registered rather than when it would first fire.

    Example:
        expr = CronExpression("*/5 * * * *")
        expr.next_after(datetime.now(timezone.utc))
    """

    def __init__(self, expression: str) -> None:
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidExpressionError(f"Invalid cron expression: {expression!r}")
        try:
            croniter(expression).get_next(datetime)
        except CroniterBadDateError as e:
            raise InvalidExpressionError(
                f"Cron expression '{expression}' never matches: {e}"
            ) from e
        except (CroniterBadCronError, ValueError, KeyError) as e:
            raise InvalidExpressionError(
                f"Invalid cron expression '{expression}': {e}"
            ) from e
        self._expression = expression

    @property
    def expression(self) -> str:
        """The original expression text."""
        return self._expression

    def next_after(self, moment: datetime) -> datetime:
        """Get the first matching time strictly after ``moment``.

        Args:
            moment: Reference time. Naive datetimes are taken as UTC.

        Returns:
            Timezone-aware datetime in the zone of ``moment``.
        """
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return croniter(self._expression, moment).get_next(datetime)

    def __str__(self) -> str:
        return self._expression

    def __repr__(self) -> str:
        return f"CronExpression({self._expression!r})"


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Resolve a zone name, falling back to the configured default.

    Raises:
        InvalidTimezoneError: If the name is not a known IANA zone.
    """
    name = name or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"Unknown timezone: {name}") from e


def compute_next_run(
    expression: CronExpression,
    now: float,
    tz: ZoneInfo,
) -> datetime:
    """Compute the next fire time for an expression.

    ``now`` is interpreted in ``tz`` before asking croniter, and the result
    is reported in the same zone, so schedules such as ``0 9 * * *`` follow
    the wall clock of the job's zone.

    Args:
        expression: Parsed cron expression.
        now: Current time as epoch seconds.
        tz: Zone the job runs in.

    Returns:
        Next run time, strictly later than ``now``.
    """
    now_tz = datetime.fromtimestamp(now, tz=tz)
    return expression.next_after(now_tz).astimezone(tz)


def preview_runs(
    expression: CronExpression,
    count: int,
    tz: ZoneInfo,
    start: datetime | None = None,
) -> list[datetime]:
    """List the next ``count`` fire times after ``start`` (default: now)."""
    start = start or datetime.now(timezone.utc)
    current = start.astimezone(tz)
    runs = []
    for _ in range(count):
        current = expression.next_after(current).astimezone(tz)
        runs.append(current)
    return runs
