"""
Contains the ``RecurrenceRule`` value type, and the functions which compute occurrences from it: ``next_occurrence``,
``occurrences`` and ``advance_to_next_occurrence``.

Only five kinds of rule exist: ``none``, ``hourly``, ``daily``, ``weekly`` (on a weekday, where 1 is Sunday and 7 is
Saturday) and ``monthly`` (on a day of the month, clamped to the length of shorter months).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, List

from remindsync import helpers
from remindsync.exceptions import ValidationError

if TYPE_CHECKING:
    from remindsync.reminders.model.reminder import Reminder

NONE = 'none'
HOURLY = 'hourly'
DAILY = 'daily'
WEEKLY = 'weekly'
MONTHLY = 'monthly'

KINDS = (NONE, HOURLY, DAILY, WEEKLY, MONTHLY)


@dataclass(frozen=True)
class RecurrenceRule:
    """
    An immutable recurrence rule. Two rules are equal if they have the same kind and parameter.

    Use the class methods (``RecurrenceRule.weekly(2)`` etc.) to build rules rather than the constructor.
    """

    kind: str = NONE
    value: int | None = None

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValidationError('Unknown recurrence kind {}'.format(self.kind))
        if self.kind == WEEKLY and not (isinstance(self.value, int) and 1 <= self.value <= 7):
            raise ValidationError('Weekly recurrence needs a weekday between 1 and 7, got {}'.format(self.value))
        if self.kind == MONTHLY and not (isinstance(self.value, int) and 1 <= self.value <= 31):
            raise ValidationError('Monthly recurrence needs a day between 1 and 31, got {}'.format(self.value))
        if self.kind in (NONE, HOURLY, DAILY) and self.value is not None:
            raise ValidationError('Recurrence kind {} takes no parameter'.format(self.kind))

    @classmethod
    def none(cls) -> RecurrenceRule:
        return cls(NONE)

    @classmethod
    def hourly(cls) -> RecurrenceRule:
        return cls(HOURLY)

    @classmethod
    def daily(cls) -> RecurrenceRule:
        return cls(DAILY)

    @classmethod
    def weekly(cls, weekday: int) -> RecurrenceRule:
        return cls(WEEKLY, weekday)

    @classmethod
    def monthly(cls, day: int) -> RecurrenceRule:
        return cls(MONTHLY, day)

    @classmethod
    def weekly_on_current_day(cls, date: datetime) -> RecurrenceRule:
        """
        Create a weekly rule for the weekday of the given date.

        :param date: the date whose weekday is used.

        :return: a weekly recurrence rule.
        """
        return cls.weekly(weekday_of(date))

    @classmethod
    def monthly_on_current_day(cls, date: datetime) -> RecurrenceRule:
        """
        Create a monthly rule for the day of the month of the given date.

        :param date: the date whose day is used.

        :return: a monthly recurrence rule.
        """
        return cls.monthly(date.day)

    @property
    def weekday(self) -> int | None:
        return self.value if self.kind == WEEKLY else None

    @property
    def day(self) -> int | None:
        return self.value if self.kind == MONTHLY else None

    @property
    def is_recurring(self) -> bool:
        return self.kind != NONE

    @property
    def display_name(self) -> str:
        if self.kind == NONE:
            return "Never"
        if self.kind == WEEKLY:
            return "Every {}".format(calendar.day_name[(self.value - 2) % 7])
        if self.kind == MONTHLY:
            return "Monthly on the {}{}".format(self.value, _day_suffix(self.value))
        return self.kind.capitalize()

    @property
    def short_display_name(self) -> str:
        return "Once" if self.kind == NONE else self.kind.capitalize()

    def to_dict(self) -> dict | None:
        """
        Serialise this rule for storage or for the remote API.

        :return: a JSON-compatible dictionary, or None for a non-recurring rule.
        """
        if self.kind == NONE:
            return None
        data = {'type': self.kind}
        if self.kind == WEEKLY:
            data['weekday'] = self.value
        elif self.kind == MONTHLY:
            data['day'] = self.value
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> RecurrenceRule:
        """
        Deserialise a rule. A missing dictionary, or an unknown type, gives a non-recurring rule. Missing parameters
        default to Monday for weekly rules and to the 1st for monthly rules.

        :param data: the dictionary, as produced by ``to_dict``.

        :return: the recurrence rule.
        """
        if not data:
            return cls.none()
        kind = data.get('type')
        if kind == WEEKLY:
            return cls.weekly(data.get('weekday') or 2)
        if kind == MONTHLY:
            return cls.monthly(data.get('day') or 1)
        if kind in (HOURLY, DAILY):
            return cls(kind)
        return cls.none()

    def __str__(self):
        return self.display_name


def _day_suffix(day: int) -> str:
    if day in (1, 21, 31):
        return "st"
    if day in (2, 22):
        return "nd"
    if day in (3, 23):
        return "rd"
    return "th"


def weekday_of(date: datetime) -> int:
    """
    Get the weekday of a date, numbered 1 (Sunday) to 7 (Saturday).

    :param date: the date.

    :return: the weekday number.
    """
    return (date.weekday() + 1) % 7 + 1


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _normalise(date: datetime) -> datetime:
    """
    Round-trip an aware datetime through UTC. Wall times which do not exist in the time zone (skipped by a daylight
    saving transition) are moved onto a real instant.
    """
    if date.tzinfo is None:
        return date
    return date.astimezone(timezone.utc).astimezone(date.tzinfo)


def _wall_time_exists(date: datetime) -> bool:
    if date.tzinfo is None:
        return True
    return _normalise(date).replace(tzinfo=None, fold=0) == date.replace(tzinfo=None, fold=0)


def _next_weekly(weekday: int, after: datetime) -> datetime:
    next_date = after + timedelta(days=1)
    while weekday_of(next_date) != weekday:
        next_date += timedelta(days=1)

    result = next_date.replace(hour=after.hour, minute=after.minute, second=0, microsecond=0)
    if _wall_time_exists(result):
        return result

    # DST gap: rebuild from the calendar components and let the zone pick the instant
    fallback = datetime(next_date.year, next_date.month, next_date.day, after.hour, after.minute,
                        tzinfo=next_date.tzinfo)
    return _normalise(fallback)


def _next_monthly(day: int, after: datetime) -> datetime:
    year, month = after.year, after.month

    same_month = datetime(year, month, min(day, days_in_month(year, month)), after.hour, after.minute,
                          tzinfo=after.tzinfo)
    same_month = _normalise(same_month)
    if same_month > after:
        return same_month

    month += 1
    if month > 12:
        month = 1
        year += 1
    next_month = datetime(year, month, min(day, days_in_month(year, month)), after.hour, after.minute,
                          tzinfo=after.tzinfo)
    return _normalise(next_month)


def next_occurrence(rule: RecurrenceRule, after: datetime) -> datetime | None:
    """
    Calculate the next occurrence of a rule after the given date.

    - ``none`` has no next occurrence.
    - ``hourly`` adds one hour of elapsed time.
    - ``daily`` adds one calendar day, keeping the wall-clock time.
    - ``weekly`` moves forward 1 to 7 days to the rule's weekday, keeping the hour and minute.
    - ``monthly`` moves to the rule's day in the same month if that is still ahead, otherwise in the next month. The day
      is clamped to the length of the month it lands in.

    :param rule: the recurrence rule.
    :param after: the date to start from.

    :return: the next occurrence, strictly after ``after``, or None.
    """
    if rule.kind == NONE:
        return None
    if rule.kind == HOURLY:
        if after.tzinfo is None:
            return after + timedelta(hours=1)
        return (after.astimezone(timezone.utc) + timedelta(hours=1)).astimezone(after.tzinfo)
    if rule.kind == DAILY:
        return _normalise(after + timedelta(days=1))
    if rule.kind == WEEKLY:
        return _next_weekly(rule.value, after)
    return _next_monthly(rule.value, after)


def occurrences(rule: RecurrenceRule, starting_from: datetime, count: int, now: datetime | None = None) -> List[datetime]:
    """
    Generate up to ``count`` occurrences of a rule, beginning with ``starting_from`` itself. Only occurrences strictly
    after ``now`` are returned, so the result is always in the future and strictly increasing.

    :param rule: the recurrence rule.
    :param starting_from: the anchor date of the series.
    :param count: the maximum number of occurrences to return.
    :param now: the reference time (defaults to the current time).

    :return: the list of future occurrences.
    """
    if now is None:
        now = helpers.utc_now()
    if count <= 0:
        return []
    if rule.kind == NONE:
        return [starting_from] if starting_from > now else []

    dates = []
    current = starting_from
    if current > now:
        dates.append(current)

    while len(dates) < count:
        following = next_occurrence(rule, current)
        if following is None:
            break
        current = following
        if current > now:
            dates.append(current)
    return dates


def advance_to_next_occurrence(reminder: Reminder) -> bool:
    """
    Move a recurring reminder on to its next occurrence. Used when a recurring reminder is completed.

    If the next occurrence falls after the reminder's end date, the series is exhausted: the reminder is marked as
    completed and its scheduled date is left alone. Completed reminders are never advanced again.

    :param reminder: the reminder to advance.

    :return: True if the reminder was changed.
    """
    if reminder.completed:
        return False
    next_date = next_occurrence(reminder.recurrence_rule, reminder.scheduled_date)
    if next_date is None:
        return False

    if reminder.effective_end_date is not None and next_date > reminder.effective_end_date:
        reminder.completed = True
        return True

    reminder.scheduled_date = next_date
    reminder.completed = False
    return True
