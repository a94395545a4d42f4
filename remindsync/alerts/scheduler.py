"""
Contains the ``AlertScheduler``, which keeps the platform's pending alerts in line with the reminders in the local store.
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Set

from remindsync import helpers, settings
from remindsync.alerts.alertcenter import AlertCenter, AlertPayload
from remindsync.alerts.budget import AlertBudgetAllocator, AlertInstance
from remindsync.exceptions import AlertIssuanceError
from remindsync.reminders.model.recurrence import advance_to_next_occurrence
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.reminderstore import ReminderStore


class AlertAction(str, Enum):
    """Actions a user can take on a delivered alert."""

    MARK_COMPLETE = 'MARK_COMPLETE_ACTION'
    SNOOZE = 'SNOOZE_ACTION'
    DEFAULT = 'DEFAULT_ACTION'


def reminder_id_from_alert(alert_id: str) -> str:
    """
    Get the reminder's local id from an alert id of the form ``{reminder id}-{occurrence index}``. An alert id without
    an index suffix is the reminder id itself.

    :param alert_id: the alert id.

    :return: the reminder id.
    """
    head, sep, tail = alert_id.rpartition('-')
    if sep and tail.isdigit():
        return head
    return alert_id


class AlertScheduler:
    """
    Re-derives the pending alerts from the full reminder set. Every run cancels all the alerts it issued before, and only
    then issues the new set, so an old and a new alert never exist for the same occurrence.

    Snoozed alerts are kept until they fire, as long as their reminder is still open. They hold one slot of the budget
    each, and the allocator's latest alerts give way to them.
    """

    def __init__(self,
                 alert_center: AlertCenter,
                 store: ReminderStore,
                 allocator: AlertBudgetAllocator | None = None,
                 clock: Callable[[], datetime.datetime] = helpers.utc_now,
                 snooze_minutes: int = settings.SNOOZE_MINUTES):
        """
        Create a new alert scheduler.

        :param alert_center: the platform alert collaborator.
        :param store: the local store reminders are read from and saved to.
        :param allocator: the budget allocator. A default allocator is created if not given.
        :param clock: returns the current time.
        :param snooze_minutes: how long a snoozed alert waits.
        """
        self.alert_center: AlertCenter = alert_center
        self.store: ReminderStore = store
        self.allocator: AlertBudgetAllocator = allocator or AlertBudgetAllocator()
        self.clock: Callable[[], datetime.datetime] = clock
        self.snooze_minutes: int = snooze_minutes
        self.issued_ids: Set[str] = set()
        self.snoozed: Dict[str, datetime.datetime] = {}

    @staticmethod
    def payload_for(reminder: Reminder) -> AlertPayload:
        return AlertPayload(
            title=reminder.title,
            body=reminder.notes or '',
            recurring=reminder.is_recurring,
            reminder_id=reminder.uuid
        )

    async def reschedule_all(self, reminders: Iterable[Reminder] | None = None) -> List[AlertInstance]:
        """
        Cancel every alert issued so far except pending snoozes, then issue one alert per entry of the allocator's
        output. An alert the platform rejects is logged and skipped.

        :param reminders: the full reminder set. Loaded from the store if not given.

        :return: the alerts which were issued.
        """
        if reminders is None:
            reminders = self.store.load_reminders()
        reminders = list(reminders)
        now = self.clock()

        open_ids = {r.uuid for r in reminders if not r.completed}
        self.snoozed = {alert_id: firing_time for alert_id, firing_time in self.snoozed.items()
                        if firing_time > now and reminder_id_from_alert(alert_id) in open_ids}
        stale_ids = self.issued_ids - set(self.snoozed)
        if stale_ids:
            await self.alert_center.cancel(sorted(stale_ids))
        self.issued_ids = set(self.snoozed)

        instances = [i for i in self.allocator.allocate(reminders, now) if i.alert_id not in self.snoozed]
        instances = instances[:max(0, self.allocator.budget - len(self.snoozed))]

        issued = []
        for instance in instances:
            try:
                await self.alert_center.schedule(instance.alert_id, instance.occurrence_date,
                                                 AlertScheduler.payload_for(instance.reminder))
            except AlertIssuanceError as e:
                logging.warning('Failed to schedule alert {} for {}: {}'.format(
                    instance.alert_id, instance.reminder.title, e))
                continue
            self.issued_ids.add(instance.alert_id)
            issued.append(instance)

        logging.debug('Alerts scheduled: {} of {}'.format(len(issued), len(instances)))
        return issued

    async def cancel_for(self, reminder: Reminder) -> None:
        """
        Cancel the pending and delivered alerts of one reminder, e.g. when it is deleted.

        :param reminder: the reminder.
        """
        prefix = reminder.uuid + '-'
        alert_ids = {i for i in self.issued_ids | set(self.snoozed) if i.startswith(prefix)}
        alert_ids.add(prefix + '0')
        await self.alert_center.cancel(sorted(alert_ids))
        await self.alert_center.cancel_delivered(sorted(alert_ids))
        self.issued_ids.difference_update(alert_ids)
        for alert_id in alert_ids:
            self.snoozed.pop(alert_id, None)

    async def handle_action(self,
                            alert_id: str,
                            action: AlertAction | str,
                            payload: AlertPayload | None = None) -> Reminder | None:
        """
        Handle the user's action on a delivered alert.

        - ``MARK_COMPLETE`` completes a one-time reminder, or moves a recurring one on to its next occurrence. The
          reminder is saved and all alerts are rescheduled.
        - ``SNOOZE`` fires the delivered alert again later, under the same id, with the payload it was delivered with.
        - ``DEFAULT`` (the alert was opened) does nothing.

        :param alert_id: the id of the delivered alert.
        :param action: the action taken.
        :param payload: the payload of the delivered alert (needed for ``SNOOZE``).

        :return: the reminder which was changed, if any.
        """
        action = AlertAction(action)
        if action == AlertAction.MARK_COMPLETE:
            return await self._mark_complete(alert_id)
        if action == AlertAction.SNOOZE:
            await self._snooze(alert_id, payload)
        return None

    async def _mark_complete(self, alert_id: str) -> Reminder | None:
        reminder = self.store.get_reminder(reminder_id_from_alert(alert_id))
        if reminder is None:
            logging.warning('No reminder found for alert {}'.format(alert_id))
            return None

        if reminder.is_recurring:
            changed = advance_to_next_occurrence(reminder)
        else:
            changed = not reminder.completed
            reminder.completed = True
        if changed:
            reminder.touch(self.clock())
            self.store.save_reminder(reminder)
        else:
            logging.debug('Reminder {} already completed.'.format(reminder.title))

        await self.alert_center.cancel_delivered([alert_id])
        await self.reschedule_all()
        return reminder

    async def _snooze(self, alert_id: str, payload: AlertPayload | None) -> None:
        if payload is None:
            logging.warning('Cannot snooze alert {} without its payload.'.format(alert_id))
            return
        await self.alert_center.cancel_delivered([alert_id])
        firing_time = self.clock() + datetime.timedelta(minutes=self.snooze_minutes)
        try:
            await self.alert_center.schedule(alert_id, firing_time, payload)
        except AlertIssuanceError as e:
            logging.warning('Failed to snooze alert {}: {}'.format(alert_id, e))
            return
        self.issued_ids.add(alert_id)
        self.snoozed[alert_id] = firing_time
