"""Cron expression evaluation.

Thin, validated wrapper over croniter. Everything here is a pure function of
``(expression, reference)``: nothing reads the wall clock, so due
computation is deterministic and replayable.

Semantics:
    - Standard 5-field syntax (minute, hour, day-of-month, month, day-of-week)
      with lists, ranges and steps per field.
    - Macros ``@yearly``, ``@annually``, ``@monthly``, ``@weekly``, ``@daily``,
      ``@midnight`` and ``@hourly``.
    - ``next_run`` is strictly after the reference, ``previous_run`` strictly
      before it; evaluation has minute resolution.
    - References are evaluated in UTC; naive references are taken as UTC.

Example:
    >>> from datetime import datetime, UTC
    >>> next_run("*/5 * * * *", datetime(2024, 1, 1, tzinfo=UTC))
    datetime.datetime(2024, 1, 1, 0, 5, tzinfo=datetime.timezone.utc)
"""

from __future__ import annotations

from datetime import datetime

from croniter import CroniterError, croniter

from taskspine.core.errors import InvalidExpressionError
from taskspine.core.timestamps import ensure_utc

MACROS = frozenset(
    {"@yearly", "@annually", "@monthly", "@weekly", "@daily", "@midnight", "@hourly"}
)

# Any fixed point works: a date that never occurs fails from every reference.
_TRIAL_REFERENCE = datetime(2000, 1, 1)


class CronExpression:
    """A parsed, validated cron expression.

    Instances are immutable and cheap to evaluate repeatedly; croniter
    iterators are stateful, so a fresh one is built per evaluation.
    """

    __slots__ = ("expression",)

    def __init__(self, expression: str) -> None:
        self.expression = expression

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        """Validate ``expression`` and return its parsed form.

        Raises:
            InvalidExpressionError: If it is not 5-field cron syntax or a macro,
                or names a date that never occurs.
        """
        if not isinstance(expression, str):
            raise InvalidExpressionError(
                f"Cron expression must be a string, got {type(expression).__name__}",
                value=expression,
            )

        normalized = " ".join(expression.split())
        if normalized.lower() in MACROS:
            normalized = normalized.lower()
        elif len(normalized.split(" ")) != 5:
            raise InvalidExpressionError(
                f"Invalid cron expression '{expression}': expected 5 fields",
                value=expression,
            )

        if not croniter.is_valid(normalized):
            raise InvalidExpressionError(
                f"Invalid cron expression '{expression}'",
                value=expression,
            )

        parsed = cls(normalized)
        # croniter accepts dates that never occur (e.g. "0 0 31 2 *")
        parsed.next_run(_TRIAL_REFERENCE)
        return parsed

    def next_run(self, reference: datetime) -> datetime:
        """First fire time strictly after ``reference``.

        Raises:
            InvalidExpressionError: If the expression never fires.
        """
        return self._evaluate(reference, previous=False)

    def previous_run(self, reference: datetime) -> datetime:
        """Last fire time strictly before ``reference``.

        Raises:
            InvalidExpressionError: If the expression never fires.
        """
        return self._evaluate(reference, previous=True)

    def _evaluate(self, reference: datetime, *, previous: bool) -> datetime:
        try:
            it = croniter(self.expression, ensure_utc(reference))
            fire = it.get_prev(datetime) if previous else it.get_next(datetime)
        except CroniterError as e:
            raise InvalidExpressionError(
                f"Cron expression '{self.expression}' never fires: {e}",
                value=self.expression,
                cause=e,
            ) from e
        return ensure_utc(fire)

    def matches(self, reference: datetime) -> bool:
        """Whether ``reference`` falls on a fire minute."""
        return croniter.match(self.expression, ensure_utc(reference))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CronExpression) and other.expression == self.expression

    def __hash__(self) -> int:
        return hash(self.expression)

    def __repr__(self) -> str:
        return f"CronExpression({self.expression!r})"

    def __str__(self) -> str:
        return self.expression


def is_valid(expression: str) -> bool:
    """Whether ``expression`` parses."""
    try:
        CronExpression.parse(expression)
    except InvalidExpressionError:
        return False
    return True


def next_run(expression: str, reference: datetime) -> datetime:
    """Next fire time of ``expression`` strictly after ``reference``."""
    return CronExpression.parse(expression).next_run(reference)


def previous_run(expression: str, reference: datetime) -> datetime:
    """Previous fire time of ``expression`` strictly before ``reference``."""
    return CronExpression.parse(expression).previous_run(reference)
