"""
Contains the alert collaborator contract (``AlertCenter``) and ``LocalAlertCenter``, an in-process implementation built on
the `schedule <https://schedule.readthedocs.io/>`_ library.
"""

from __future__ import annotations

import abc
import datetime
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import schedule

from remindsync import helpers, settings
from remindsync.exceptions import AlertIssuanceError


@dataclass(frozen=True)
class AlertPayload:
    """
    What an alert displays. ``recurring`` and ``reminder_id`` are kept so that actions on a delivered alert (e.g. snooze)
    can be handled without reading the reminder again.
    """

    title: str
    body: str
    recurring: bool
    reminder_id: str


@dataclass(frozen=True)
class IssuedAlert:
    alert_id: str
    firing_time: datetime.datetime
    payload: AlertPayload


class AlertCenter(abc.ABC):
    """
    The platform's alert scheduler. Scheduled means the platform will attempt to fire at the firing time; nothing more
    is guaranteed. Cancelling an alert which does not exist is not an error.
    """

    @abc.abstractmethod
    async def schedule(self, alert_id: str, firing_time: datetime.datetime, payload: AlertPayload) -> None:
        """
        :raises AlertIssuanceError: if the platform rejects the request.
        """
        ...

    @abc.abstractmethod
    async def cancel(self, alert_ids: Iterable[str]) -> None:
        ...

    @abc.abstractmethod
    async def cancel_delivered(self, alert_ids: Iterable[str]) -> None:
        ...


class LocalAlertCenter(AlertCenter):
    """
    Alert center for desktop hosts. Each pending alert is a one-shot job on a private ``schedule.Scheduler``; the host
    calls ``run_pending()`` regularly (e.g. from a background thread), and due alerts are handed to ``on_deliver``.

    Like mobile platforms, it accepts a limited number of pending alerts and rejects anything beyond that.
    """

    def __init__(self,
                 limit: int = settings.ALERT_BUDGET,
                 on_deliver: Callable[[str, AlertPayload], None] | None = None,
                 clock: Callable[[], datetime.datetime] = helpers.utc_now):
        """
        Create a new local alert center.

        :param limit: maximum number of pending alerts.
        :param on_deliver: called with the alert id and payload when an alert fires.
        :param clock: returns the current time.
        """
        self.limit: int = limit
        self.on_deliver: Callable[[str, AlertPayload], None] | None = on_deliver
        self.clock: Callable[[], datetime.datetime] = clock
        self.pending: Dict[str, IssuedAlert] = {}
        self.delivered: Dict[str, IssuedAlert] = {}
        self._scheduler = schedule.Scheduler()

    async def schedule(self, alert_id: str, firing_time: datetime.datetime, payload: AlertPayload) -> None:
        delay = (firing_time - self.clock()).total_seconds()
        if delay <= 0:
            raise AlertIssuanceError('Alert {} is in the past ({})'.format(alert_id, firing_time))
        if alert_id not in self.pending and len(self.pending) >= self.limit:
            raise AlertIssuanceError('Alert limit of {} reached, cannot schedule {}'.format(self.limit, alert_id))

        # Same id replaces the pending alert
        self._scheduler.clear(alert_id)
        self._scheduler.every(max(1, int(delay))).seconds.do(self._fire, alert_id).tag(alert_id)
        self.pending[alert_id] = IssuedAlert(alert_id, firing_time, payload)

    async def cancel(self, alert_ids: Iterable[str]) -> None:
        for alert_id in alert_ids:
            self._scheduler.clear(alert_id)
            self.pending.pop(alert_id, None)

    async def cancel_delivered(self, alert_ids: Iterable[str]) -> None:
        for alert_id in alert_ids:
            self.delivered.pop(alert_id, None)

    def run_pending(self) -> None:
        """
        Fire every alert which is due.
        """
        self._scheduler.run_pending()

    def idle_seconds(self) -> float | None:
        """
        :return: seconds until the next alert is due, or None if nothing is pending.
        """
        return self._scheduler.idle_seconds

    def _fire(self, alert_id: str):
        alert = self.pending.pop(alert_id, None)
        if alert is not None:
            self.delivered[alert_id] = alert
            logging.info('Alert delivered: {} ({})'.format(alert.payload.title, alert_id))
            if self.on_deliver is not None:
                self.on_deliver(alert_id, alert.payload)
        return schedule.CancelJob
