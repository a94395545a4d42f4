from datetime import timedelta

import pytest

from fakes import NOW, FakeAlertCenter
from remindsync.alerts.budget import AlertBudgetAllocator
from remindsync.alerts.scheduler import AlertAction, AlertScheduler, reminder_id_from_alert
from remindsync.reminders.model.recurrence import RecurrenceRule
from remindsync.reminders.model.reminder import Reminder


def make_scheduler(store, alert_center, budget: int = 10, reserve: int = 4) -> AlertScheduler:
    allocator = AlertBudgetAllocator(budget=budget, one_time_reserve=reserve, candidates_per_reminder=5)
    return AlertScheduler(alert_center, store, allocator, clock=lambda: NOW, snooze_minutes=15)


class TestAlertScheduler:

    def test_reminder_id_from_alert(self):
        uuid = '0b8f4c1e-8a36-4c8d-9a4b-3f1a6c2d7e90'
        assert reminder_id_from_alert(uuid + '-0') == uuid
        assert reminder_id_from_alert(uuid + '-12') == uuid
        assert reminder_id_from_alert(uuid) == uuid

    def test_payload(self):
        reminder = Reminder('Call mum', NOW, notes='About Sunday', recurrence_rule=RecurrenceRule.daily())
        payload = AlertScheduler.payload_for(reminder)
        assert payload.title == 'Call mum'
        assert payload.body == 'About Sunday'
        assert payload.recurring is True
        assert payload.reminder_id == reminder.uuid

    @pytest.mark.asyncio
    async def test_reschedule_all(self, store, alert_center):
        single = Reminder('Single', NOW + timedelta(hours=1))
        daily = Reminder('Daily', NOW + timedelta(hours=2), recurrence_rule=RecurrenceRule.daily())
        store.save_batch([single, daily], [])
        scheduler = make_scheduler(store, alert_center)

        issued = await scheduler.reschedule_all()
        assert len(issued) == 6
        assert set(alert_center.pending) == {single.uuid + '-0'} | {daily.uuid + '-{}'.format(i) for i in range(5)}
        assert scheduler.issued_ids == set(alert_center.pending)

    @pytest.mark.asyncio
    async def test_cancel_before_schedule(self, store, alert_center):
        single = Reminder('Single', NOW + timedelta(hours=1))
        store.save_reminder(single)
        scheduler = make_scheduler(store, alert_center)
        await scheduler.reschedule_all()
        alert_center.calls.clear()

        await scheduler.reschedule_all()
        assert alert_center.calls[0] == ('cancel', [single.uuid + '-0'])
        assert alert_center.calls[1] == ('schedule', single.uuid + '-0')

    @pytest.mark.asyncio
    async def test_issuance_failure_is_skipped(self, store):
        first = Reminder('First', NOW + timedelta(hours=1))
        second = Reminder('Second', NOW + timedelta(hours=2))
        store.save_batch([first, second], [])
        alert_center = FakeAlertCenter(reject=[first.uuid + '-0'])
        scheduler = make_scheduler(store, alert_center)

        issued = await scheduler.reschedule_all()
        assert [i.reminder.title for i in issued] == ['Second']
        assert scheduler.issued_ids == {second.uuid + '-0'}

    @pytest.mark.asyncio
    async def test_completed_reminder_loses_alert(self, store, alert_center):
        single = Reminder('Single', NOW + timedelta(hours=1))
        store.save_reminder(single)
        scheduler = make_scheduler(store, alert_center)
        await scheduler.reschedule_all()

        single.completed = True
        store.save_reminder(single)
        await scheduler.reschedule_all()
        assert alert_center.pending == {}
        assert scheduler.issued_ids == set()

    @pytest.mark.asyncio
    async def test_cancel_for(self, store, alert_center):
        daily = Reminder('Daily', NOW + timedelta(hours=2), recurrence_rule=RecurrenceRule.daily())
        store.save_reminder(daily)
        scheduler = make_scheduler(store, alert_center)
        await scheduler.reschedule_all()

        await scheduler.cancel_for(daily)
        assert alert_center.pending == {}
        assert scheduler.issued_ids == set()
        assert alert_center.calls[-1][0] == 'cancel_delivered'

    @pytest.mark.asyncio
    async def test_mark_complete_one_time(self, store, alert_center):
        single = Reminder('Single', NOW + timedelta(hours=1), modified_date=NOW - timedelta(days=1))
        store.save_reminder(single)
        scheduler = make_scheduler(store, alert_center)

        result = await scheduler.handle_action(single.uuid + '-0', AlertAction.MARK_COMPLETE)
        assert result.completed is True
        assert result.modified_date == NOW
        assert store.get_reminder(single.uuid).completed is True
        assert ('cancel_delivered', [single.uuid + '-0']) in alert_center.calls
        assert alert_center.pending == {}

    @pytest.mark.asyncio
    async def test_mark_complete_recurring(self, store, alert_center):
        monday = NOW - timedelta(days=2) + timedelta(hours=-3)
        weekly = Reminder('Stand-up', monday, recurrence_rule=RecurrenceRule.weekly_on_current_day(monday))
        store.save_reminder(weekly)
        scheduler = make_scheduler(store, alert_center)

        result = await scheduler.handle_action(weekly.uuid + '-0', 'MARK_COMPLETE_ACTION')
        saved = store.get_reminder(weekly.uuid)
        assert result.completed is False
        assert saved.scheduled_date == monday + timedelta(days=7)
        assert saved.completed is False

    @pytest.mark.asyncio
    async def test_mark_complete_unknown_reminder(self, store, alert_center):
        scheduler = make_scheduler(store, alert_center)
        assert await scheduler.handle_action('missing-0', AlertAction.MARK_COMPLETE) is None

    @pytest.mark.asyncio
    async def test_snooze(self, store, alert_center):
        single = Reminder('Single', NOW - timedelta(minutes=1))
        scheduler = make_scheduler(store, alert_center)
        payload = AlertScheduler.payload_for(single)

        await scheduler.handle_action(single.uuid + '-0', AlertAction.SNOOZE, payload)
        snoozed = alert_center.pending[single.uuid + '-0']
        assert snoozed.firing_time == NOW + timedelta(minutes=15)
        assert snoozed.payload == payload
        assert alert_center.calls[0] == ('cancel_delivered', [single.uuid + '-0'])

    @pytest.mark.asyncio
    async def test_snooze_survives_reschedule(self, store, alert_center):
        single = Reminder('Single', NOW - timedelta(minutes=1))
        store.save_reminder(single)
        scheduler = make_scheduler(store, alert_center)
        alert_id = single.uuid + '-0'

        await scheduler.handle_action(alert_id, AlertAction.SNOOZE, AlertScheduler.payload_for(single))
        await scheduler.reschedule_all()

        assert alert_center.pending[alert_id].firing_time == NOW + timedelta(minutes=15)
        assert alert_id in scheduler.issued_ids
        assert not any(call == ('cancel', [alert_id]) for call in alert_center.calls)

    @pytest.mark.asyncio
    async def test_snooze_holds_a_budget_slot(self, store, alert_center):
        single = Reminder('Single', NOW - timedelta(minutes=1))
        daily = Reminder('Daily', NOW + timedelta(hours=2), recurrence_rule=RecurrenceRule.daily())
        store.save_batch([single, daily], [])
        scheduler = make_scheduler(store, alert_center, budget=2, reserve=0)

        await scheduler.handle_action(single.uuid + '-0', AlertAction.SNOOZE, AlertScheduler.payload_for(single))
        issued = await scheduler.reschedule_all()

        assert [i.alert_id for i in issued] == [daily.uuid + '-0']
        assert set(alert_center.pending) == {single.uuid + '-0', daily.uuid + '-0'}

    @pytest.mark.asyncio
    async def test_snooze_dropped_when_fired_or_completed(self, store, alert_center):
        first = Reminder('First', NOW - timedelta(minutes=1))
        second = Reminder('Second', NOW - timedelta(minutes=1))
        store.save_batch([first, second], [])
        scheduler = make_scheduler(store, alert_center)
        for reminder in (first, second):
            await scheduler.handle_action(reminder.uuid + '-0', AlertAction.SNOOZE,
                                          AlertScheduler.payload_for(reminder))

        second.completed = True
        store.save_reminder(second)
        await scheduler.reschedule_all()
        assert set(alert_center.pending) == {first.uuid + '-0'}

        scheduler.clock = lambda: NOW + timedelta(minutes=20)
        await scheduler.reschedule_all()
        assert alert_center.pending == {}
        assert scheduler.snoozed == {}

    @pytest.mark.asyncio
    async def test_default_action(self, store, alert_center):
        scheduler = make_scheduler(store, alert_center)
        assert await scheduler.handle_action('x-0', AlertAction.DEFAULT) is None
        assert alert_center.calls == []
