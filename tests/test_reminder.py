from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from fakes import NOW
from remindsync.exceptions import ValidationError
from remindsync.reminders.model.recurrence import RecurrenceRule
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.tag import Tag
from remindsync.sync.remote import RemoteReminder, RemoteTag


class TestReminder:

    @staticmethod
    def __create_remote_reminder(**fields) -> RemoteReminder:
        values = {
            'id': 'r-1',
            'title': 'Pay rent',
            'notes': 'Landlord',
            'scheduled_date': NOW + timedelta(days=1),
            'is_completed': False,
            'recurrence_rule': {'type': 'monthly', 'day': 31, 'end_date': NOW + timedelta(days=90)},
            'tag_ids': ['t-1', 't-unknown'],
            'created_at': NOW - timedelta(days=10),
            'updated_at': NOW,
        }
        values.update(fields)
        return RemoteReminder(**values)

    def test_empty_title(self):
        with pytest.raises(ValidationError):
            Reminder('   ', NOW)
        with pytest.raises(ValidationError):
            Tag('', '#000000')

    def test_naive_dates_become_utc(self):
        reminder = Reminder('Naive', NOW.replace(tzinfo=None))
        assert reminder.scheduled_date == NOW

    def test_end_date_ignored_without_recurrence(self):
        reminder = Reminder('Once', NOW, recurrence_end_date=NOW + timedelta(days=1))
        assert reminder.effective_end_date is None

    def test_tags_are_unique(self):
        work = Tag('Work', '#0000FF')
        reminder = Reminder('Report', NOW, tags=[work, work])
        assert reminder.tags == [work]
        assert reminder.remove_tag(work) is True
        assert reminder.remove_tag(work) is False

    def test_create_from_remote(self):
        home = Tag('Home', '#7BA05B', remote_id='t-1')
        reminder = Reminder.create_from_remote(TestReminder.__create_remote_reminder(), {'t-1': home})

        assert reminder.remote_id == 'r-1'
        assert reminder.title == 'Pay rent'
        assert reminder.notes == 'Landlord'
        assert reminder.recurrence_rule == RecurrenceRule.monthly(31)
        assert reminder.recurrence_end_date == NOW + timedelta(days=90)
        assert reminder.modified_date == NOW
        assert reminder.tags == [home]

    def test_apply_remote(self):
        reminder = Reminder('Old', NOW, remote_id='r-1', modified_date=NOW - timedelta(hours=1))
        assert reminder.apply_remote(TestReminder.__create_remote_reminder(), {}) is True
        assert reminder.title == 'Pay rent'
        assert reminder.tags == []

        assert reminder.apply_remote(TestReminder.__create_remote_reminder(title='Same time'), {}) is False
        assert reminder.title == 'Pay rent'

    def test_apply_remote_keeps_time_zone(self):
        try:
            new_york = ZoneInfo('America/New_York')
        except ZoneInfoNotFoundError:
            pytest.skip('Time zone data not available')
        reminder = Reminder('Old', NOW.astimezone(new_york), remote_id='r-1', modified_date=NOW - timedelta(hours=1))
        assert reminder.apply_remote(TestReminder.__create_remote_reminder(), {}) is True
        assert reminder.scheduled_date == NOW + timedelta(days=1)
        assert reminder.scheduled_date.tzinfo == new_york
        assert reminder.recurrence_end_date.tzinfo == new_york

    def test_invalid_remote_leaves_reminder_unchanged(self):
        reminder = Reminder('Old', NOW, remote_id='r-1', modified_date=NOW - timedelta(hours=1))
        with pytest.raises(ValidationError):
            reminder.apply_remote(TestReminder.__create_remote_reminder(title=' '), {})
        with pytest.raises(ValidationError):
            bad_rule = {'type': 'monthly', 'day': 40}
            reminder.apply_remote(TestReminder.__create_remote_reminder(recurrence_rule=bad_rule), {})
        assert reminder.title == 'Old'
        assert reminder.scheduled_date == NOW

    def test_to_remote_input(self):
        pushed = Tag('Home', '#7BA05B', remote_id='t-1')
        local_only = Tag('Work', '#0000FF')
        end_date = NOW + timedelta(days=30)
        reminder = Reminder('Stand-up', NOW, recurrence_rule=RecurrenceRule.weekly(2), recurrence_end_date=end_date,
                            tags=[pushed, local_only])

        data = reminder.to_remote_input()
        assert data.title == 'Stand-up'
        assert data.recurrence_rule.type == 'weekly'
        assert data.recurrence_rule.weekday == 2
        assert data.recurrence_rule.end_date == end_date
        assert data.tag_ids == ['t-1']
        assert Reminder('Once', NOW).to_remote_input().recurrence_rule is None


class TestTag:

    def test_remote_round_trip(self):
        remote = RemoteTag(id='t-1', name='Home', color_hex='#7BA05B', created_at=NOW, updated_at=NOW)
        tag = Tag.create_from_remote(remote)
        assert (tag.remote_id, tag.name, tag.color_hex, tag.modified_date) == ('t-1', 'Home', '#7BA05B', NOW)
        assert tag.to_remote_input().model_dump() == {'name': 'Home', 'color_hex': '#7BA05B'}

    def test_apply_remote(self):
        tag = Tag('Home', '#7BA05B', remote_id='t-1', modified_date=NOW)
        older = RemoteTag(id='t-1', name='Old', color_hex='#000000', created_at=NOW, updated_at=NOW - timedelta(1))
        newer = RemoteTag(id='t-1', name='House', color_hex='#FFFFFF', created_at=NOW, updated_at=NOW + timedelta(1))
        assert tag.apply_remote(older) is False
        assert tag.name == 'Home'
        assert tag.apply_remote(newer) is True
        assert (tag.name, tag.color_hex) == ('House', '#FFFFFF')

    def test_identity(self):
        tag = Tag('Home', '#7BA05B')
        same = Tag('Renamed', '#000000', uuid=tag.uuid)
        assert tag == same
        assert len({tag, same}) == 1
