import datetime
import sqlite3
from contextlib import closing
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from fakes import NOW
from remindsync.exceptions import StoreError
from remindsync.reminders.model.recurrence import RecurrenceRule, advance_to_next_occurrence
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.reminderstore import ReminderStore
from remindsync.reminders.model.tag import Tag


class TestReminderStore:

    def test_seed_is_repeatable(self, store):
        store.seed()
        assert store.load_reminders() == []
        assert store.load_tags() == []

    def test_save_and_load_reminder(self, store):
        work = Tag('Work', '#7BA05B')
        reminder = Reminder('Pay rent', NOW, notes='Before noon', recurrence_rule=RecurrenceRule.monthly(31),
                            recurrence_end_date=NOW + timedelta(days=365), remote_id='r-1', tags=[work])
        store.save_tag(work)
        store.save_reminder(reminder)

        loaded = store.get_reminder(reminder.uuid)
        assert loaded.title == 'Pay rent'
        assert loaded.notes == 'Before noon'
        assert loaded.remote_id == 'r-1'
        assert loaded.scheduled_date == NOW
        assert loaded.recurrence_rule == RecurrenceRule.monthly(31)
        assert loaded.recurrence_end_date == NOW + timedelta(days=365)
        assert loaded.completed is False
        assert [t.name for t in loaded.tags] == ['Work']
        assert loaded.modified_date == reminder.modified_date

    def test_get_missing_reminder(self, store):
        assert store.get_reminder('missing') is None

    def test_update_replaces_tags(self, store):
        work = Tag('Work', '#7BA05B')
        home = Tag('Home', '#FF0000')
        reminder = Reminder('Pay rent', NOW, tags=[work])
        store.save_batch([reminder], [work, home])

        reminder.remove_tag(work)
        reminder.add_tag(home)
        reminder.completed = True
        store.save_reminder(reminder)

        loaded = store.get_reminder(reminder.uuid)
        assert [t.name for t in loaded.tags] == ['Home']
        assert loaded.completed is True
        assert len(store.load_reminders()) == 1

    def test_load_all_shares_tags(self, store):
        work = Tag('Work', '#7BA05B')
        first = Reminder('First', NOW, tags=[work])
        second = Reminder('Second', NOW + timedelta(hours=1), tags=[work])
        store.save_batch([first, second], [work])

        reminders, tags = store.load_all()
        assert [r.title for r in reminders] == ['First', 'Second']
        assert reminders[0].tags[0] is tags[0]
        assert reminders[1].tags[0] is tags[0]

    def test_delete_tag_keeps_reminders(self, store):
        work = Tag('Work', '#7BA05B')
        reminder = Reminder('Pay rent', NOW, tags=[work])
        store.save_batch([reminder], [work])

        store.delete_tag(work.uuid)
        assert store.load_tags() == []
        loaded = store.get_reminder(reminder.uuid)
        assert loaded is not None
        assert loaded.tags == []

    def test_delete_reminder_keeps_tags(self, store):
        work = Tag('Work', '#7BA05B')
        reminder = Reminder('Pay rent', NOW, tags=[work])
        store.save_batch([reminder], [work])

        store.delete_reminder(reminder.uuid)
        assert store.get_reminder(reminder.uuid) is None
        assert [t.name for t in store.load_tags()] == ['Work']
        with closing(sqlite3.connect(store.db_path)) as connection:
            assert connection.execute("SELECT COUNT(*) FROM tb_reminder_tag").fetchone()[0] == 0

    def test_batch_is_atomic(self, store):
        kept = Reminder('Kept', NOW)
        store.save_reminder(kept)

        broken = Reminder('Broken', NOW)
        broken.title = None
        with pytest.raises(StoreError):
            store.save_batch([Reminder('New', NOW), broken], [Tag('New tag', '#000000')])

        assert [r.title for r in store.load_reminders()] == ['Kept']
        assert store.load_tags() == []

    def test_time_zone_round_trip(self, store):
        try:
            new_york = ZoneInfo('America/New_York')
        except ZoneInfoNotFoundError:
            pytest.skip('Time zone data not available')
        monday = datetime.datetime(2025, 3, 3, 9, 0, tzinfo=new_york)
        reminder = Reminder('Stand-up', monday, recurrence_rule=RecurrenceRule.weekly(2),
                            recurrence_end_date=monday + timedelta(days=60))
        store.save_reminder(reminder)

        loaded = store.get_reminder(reminder.uuid)
        assert loaded.scheduled_date == monday
        assert loaded.scheduled_date.tzinfo == new_york
        assert loaded.recurrence_end_date.tzinfo == new_york

        # Clocks go forward on 9 March
        assert advance_to_next_occurrence(loaded) is True
        assert (loaded.scheduled_date.hour, loaded.scheduled_date.minute) == (9, 0)
        assert loaded.scheduled_date.utcoffset() == timedelta(hours=-4)

    def test_fixed_offset_round_trip(self, store):
        plus_two = datetime.timezone(timedelta(hours=2))
        reminder = Reminder('Call', datetime.datetime(2025, 1, 15, 9, 0, tzinfo=plus_two))
        store.save_reminder(reminder)
        loaded = store.get_reminder(reminder.uuid)
        assert loaded.scheduled_date.utcoffset() == timedelta(hours=2)

    def test_seed_adds_time_zone_column(self, tmp_path):
        db_path = tmp_path / 'Old.db'
        with closing(sqlite3.connect(db_path)) as connection:
            with connection:
                connection.execute("""
                    CREATE TABLE tb_reminder (uuid TEXT PRIMARY KEY, remote_id TEXT, title TEXT NOT NULL, notes TEXT,
                    scheduled_date TEXT NOT NULL, completed INT NOT NULL DEFAULT 0, recurrence_rule TEXT,
                    recurrence_end_date TEXT, created_date TEXT NOT NULL, modified_date TEXT NOT NULL)""")
                connection.execute("""
                    INSERT INTO tb_reminder(uuid, title, scheduled_date, created_date, modified_date)
                    VALUES ('old-1', 'Old', '2025-01-15T12:00:00+00:00', '2025-01-15T12:00:00+00:00',
                    '2025-01-15T12:00:00+00:00')""")

        store = ReminderStore(db_path)
        store.seed()
        assert store.get_reminder('old-1').scheduled_date == NOW

    def test_cursor(self, store):
        assert store.load_cursor() == (None, None)
        store.save_cursor(NOW, None)
        assert store.load_cursor() == (NOW, None)
        store.save_cursor(NOW, 'Remote API request failed (500): boom')
        assert store.load_cursor() == (NOW, 'Remote API request failed (500): boom')

    def test_unreadable_database(self, tmp_path):
        store = ReminderStore(tmp_path / 'missing' / 'RemindSync.db')
        with pytest.raises(StoreError):
            store.seed()
