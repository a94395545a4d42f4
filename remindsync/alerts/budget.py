"""
Contains the ``AlertBudgetAllocator``, which decides which future occurrences get one of the platform's scarce alert slots.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, List

from remindsync import helpers, settings
from remindsync.exceptions import ValidationError
from remindsync.reminders.model.recurrence import occurrences
from remindsync.reminders.model.reminder import Reminder


@dataclass(frozen=True)
class AlertInstance:
    """
    One alert that should be pending: an occurrence of a reminder. Derived, never persisted.
    """

    reminder: Reminder
    occurrence_date: datetime.datetime
    occurrence_index: int

    @property
    def alert_id(self) -> str:
        return '{}-{}'.format(self.reminder.uuid, self.occurrence_index)

    def sort_key(self) -> tuple:
        return self.occurrence_date, self.reminder.uuid, self.occurrence_index


class AlertBudgetAllocator:
    """
    Splits a budget of ``budget`` alert slots between reminders:

    - ``one_time_reserve`` slots go to one-time reminders which are in the future and not completed, earliest first;
    - the other slots go to the earliest occurrences across all recurring reminders which are not completed.

    The result is deterministic for a given set of reminders and a given ``now``.
    """

    def __init__(self,
                 budget: int | None = None,
                 one_time_reserve: int | None = None,
                 candidates_per_reminder: int | None = None):
        """
        Create a new allocator. Unset parameters take their value from settings.

        :param budget: total number of alert slots.
        :param one_time_reserve: slots reserved for one-time reminders.
        :param candidates_per_reminder: how many occurrences to generate per recurring reminder.
        """
        self.budget: int = settings.ALERT_BUDGET if budget is None else budget
        self.one_time_reserve: int = settings.ONE_TIME_RESERVE if one_time_reserve is None else one_time_reserve
        self.candidates_per_reminder: int = (
            settings.ALERT_CANDIDATES if candidates_per_reminder is None else candidates_per_reminder)
        if self.budget < 0 or self.one_time_reserve < 0 or self.candidates_per_reminder < 0:
            raise ValidationError('Alert budget parameters must not be negative.')
        if self.one_time_reserve > self.budget:
            raise ValidationError('One-time reserve ({}) exceeds the alert budget ({}).'.format(
                self.one_time_reserve, self.budget))

    @property
    def recurring_budget(self) -> int:
        return self.budget - self.one_time_reserve

    def allocate(self, reminders: Iterable[Reminder], now: datetime.datetime | None = None) -> List[AlertInstance]:
        """
        Work out the complete set of alerts that should be pending at this moment.

        :param reminders: every reminder in the local store.
        :param now: the reference time (defaults to the current time).

        :return: the alerts, ordered by firing time.
        """
        if now is None:
            now = helpers.utc_now()
        reminders = list(reminders)

        one_time = sorted(
            (r for r in reminders if not r.is_recurring and not r.completed and r.scheduled_date > now),
            key=lambda r: (r.scheduled_date, r.uuid))
        one_time_alerts = [AlertInstance(r, r.scheduled_date, 0) for r in one_time[:self.one_time_reserve]]

        candidates = []
        for reminder in reminders:
            if not reminder.is_recurring or reminder.completed:
                continue
            dates = occurrences(reminder.recurrence_rule, reminder.scheduled_date, self.candidates_per_reminder, now)
            end_date = reminder.effective_end_date
            for index, date in enumerate(dates):
                if end_date is not None and date > end_date:
                    break
                candidates.append(AlertInstance(reminder, date, index))
        candidates.sort(key=AlertInstance.sort_key)
        recurring_alerts = candidates[:self.recurring_budget]

        logging.debug('Alert budget:: one-time: {}/{} | recurring: {}/{} ({} candidates)'.format(
            len(one_time_alerts), self.one_time_reserve, len(recurring_alerts), self.recurring_budget, len(candidates)))
        return sorted(one_time_alerts + recurring_alerts, key=AlertInstance.sort_key)
