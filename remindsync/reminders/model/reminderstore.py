"""
Contains the ``ReminderStore`` class, the durable local store of reminders, tags and synchronisation state. Everything is
kept in an SQLite database in the application data folder.
"""

from __future__ import annotations

import datetime
import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict, Iterable, List

from remindsync import helpers
from remindsync.exceptions import StoreError
from remindsync.helpers import DateUtil
from remindsync.reminders.model.recurrence import RecurrenceRule
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.tag import Tag


class ReminderStore:
    """
    Local store of reminders and tags. Every write runs in a single SQLite transaction, so readers never see a partial
    write.
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Create a new store.

        :param db_path: path to the SQLite database. Defaults to ``RemindSync.db`` in the application data folder.
        """
        self.db_path: Path | str = db_path if db_path is not None else helpers.db_folder()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def seed(self) -> None:
        """
        Creates the tables used by the store, if they do not exist yet.

        :raises StoreError: if the database cannot be written.
        """
        try:
            with closing(self._connect()) as connection:
                with connection:
                    connection.executescript("""
                        CREATE TABLE IF NOT EXISTS tb_tag (
                            uuid TEXT PRIMARY KEY,
                            remote_id TEXT,
                            name TEXT NOT NULL,
                            color_hex TEXT NOT NULL,
                            created_date TEXT NOT NULL,
                            modified_date TEXT NOT NULL
                        );
                        CREATE TABLE IF NOT EXISTS tb_reminder (
                            uuid TEXT PRIMARY KEY,
                            remote_id TEXT,
                            title TEXT NOT NULL,
                            notes TEXT,
                            scheduled_date TEXT NOT NULL,
                            time_zone TEXT,
                            completed INT NOT NULL DEFAULT 0,
                            recurrence_rule TEXT,
                            recurrence_end_date TEXT,
                            created_date TEXT NOT NULL,
                            modified_date TEXT NOT NULL
                        );
                        CREATE TABLE IF NOT EXISTS tb_reminder_tag (
                            reminder_uuid TEXT NOT NULL,
                            tag_uuid TEXT NOT NULL,
                            PRIMARY KEY (reminder_uuid, tag_uuid)
                        );
                        CREATE TABLE IF NOT EXISTS tb_sync_cursor (
                            id INTEGER PRIMARY KEY CHECK (id = 1),
                            last_sync_completed_at TEXT,
                            last_sync_error TEXT
                        );
                    """)
                    columns = [row['name'] for row in connection.execute("PRAGMA table_info(tb_reminder)")]
                    if "time_zone" not in columns:
                        connection.execute("ALTER TABLE tb_reminder ADD COLUMN time_zone TEXT")
        except sqlite3.Error as e:
            raise StoreError('Unable to create tables: {}'.format(e)) from e

    def load_tags(self) -> List[Tag]:
        """
        Load all tags.

        :return: the list of tags.
        """
        try:
            with closing(self._connect()) as connection:
                rows = connection.execute("SELECT * FROM tb_tag ORDER BY created_date, uuid").fetchall()
        except sqlite3.Error as e:
            raise StoreError('Error retrieving tags from table: {}'.format(e)) from e
        return [ReminderStore._tag_from_row(row) for row in rows]

    def load_reminders(self) -> List[Reminder]:
        """
        Load all reminders, with their tags resolved.

        :return: the list of reminders, ordered by scheduled date.
        """
        reminders, _ = self.load_all()
        return reminders

    def load_all(self) -> tuple[List[Reminder], List[Tag]]:
        """
        Load all reminders and all tags. The tags attached to the reminders are the same objects as those in the list
        of tags.

        :returns:

            -reminders (:py:class:`List[Reminder]`) - the reminders, ordered by scheduled date.

            -tags (:py:class:`List[Tag]`) - the tags.

        """
        tag_list = self.load_tags()
        tags = {tag.uuid: tag for tag in tag_list}
        try:
            with closing(self._connect()) as connection:
                rows = connection.execute("SELECT * FROM tb_reminder ORDER BY scheduled_date, uuid").fetchall()
                links = connection.execute("SELECT * FROM tb_reminder_tag").fetchall()
        except sqlite3.Error as e:
            raise StoreError('Error retrieving reminders from table: {}'.format(e)) from e

        tags_by_reminder: Dict[str, List[Tag]] = {}
        for link in links:
            if link['tag_uuid'] in tags:
                tags_by_reminder.setdefault(link['reminder_uuid'], []).append(tags[link['tag_uuid']])
        reminders = [ReminderStore._reminder_from_row(row, tags_by_reminder.get(row['uuid'], [])) for row in rows]
        return reminders, tag_list

    def get_reminder(self, uuid: str) -> Reminder | None:
        """
        Load one reminder by local id.

        :param uuid: the local id of the reminder.

        :return: the reminder, or None if there is no such reminder.
        """
        return next((r for r in self.load_reminders() if r.uuid == uuid), None)

    def save_reminder(self, reminder: Reminder) -> None:
        """
        Insert or update a reminder and its tag associations. The tags themselves must already be saved.

        :param reminder: the reminder to save.
        """
        self.save_batch([reminder], [])

    def save_tag(self, tag: Tag) -> None:
        self.save_batch([], [tag])

    def save_batch(self, reminders: Iterable[Reminder], tags: Iterable[Tag]) -> None:
        """
        Insert or update several tags and reminders in one transaction. Either all of them are written, or none.

        :param reminders: the reminders to save.
        :param tags: the tags to save.

        :raises StoreError: if the batch could not be written. The database is left unchanged.
        """
        try:
            with closing(self._connect()) as connection:
                with connection:
                    for tag in tags:
                        connection.execute("""
                            INSERT OR REPLACE INTO tb_tag(uuid, remote_id, name, color_hex, created_date, modified_date)
                            VALUES (?, ?, ?, ?, ?, ?)""", (
                            tag.uuid,
                            tag.remote_id,
                            tag.name,
                            tag.color_hex,
                            DateUtil.to_iso(tag.created_date),
                            DateUtil.to_iso(tag.modified_date)
                        ))
                    for reminder in reminders:
                        connection.execute("""
                            INSERT OR REPLACE INTO tb_reminder(uuid, remote_id, title, notes, scheduled_date, time_zone,
                            completed, recurrence_rule, recurrence_end_date, created_date, modified_date)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""", (
                            reminder.uuid,
                            reminder.remote_id,
                            reminder.title,
                            reminder.notes,
                            DateUtil.to_iso(reminder.scheduled_date),
                            DateUtil.zone_key(reminder.scheduled_date),
                            1 if reminder.completed else 0,
                            ReminderStore._encode_rule(reminder.recurrence_rule),
                            DateUtil.to_iso(reminder.recurrence_end_date),
                            DateUtil.to_iso(reminder.created_date),
                            DateUtil.to_iso(reminder.modified_date)
                        ))
                        connection.execute("DELETE FROM tb_reminder_tag WHERE reminder_uuid = ?", (reminder.uuid,))
                        connection.executemany(
                            "INSERT INTO tb_reminder_tag(reminder_uuid, tag_uuid) VALUES (?, ?)",
                            [(reminder.uuid, tag.uuid) for tag in reminder.tags])
        except sqlite3.Error as e:
            raise StoreError('Unable to save batch: {}'.format(e)) from e

    def delete_reminder(self, uuid: str) -> None:
        """
        Delete a reminder and its tag associations. The tags are kept.

        :param uuid: the local id of the reminder.
        """
        try:
            with closing(self._connect()) as connection:
                with connection:
                    connection.execute("DELETE FROM tb_reminder_tag WHERE reminder_uuid = ?", (uuid,))
                    connection.execute("DELETE FROM tb_reminder WHERE uuid = ?", (uuid,))
        except sqlite3.Error as e:
            raise StoreError('Unable to delete reminder {}: {}'.format(uuid, e)) from e

    def delete_tag(self, uuid: str) -> None:
        """
        Delete a tag, removing it from every reminder. The reminders are kept.

        :param uuid: the local id of the tag.
        """
        try:
            with closing(self._connect()) as connection:
                with connection:
                    connection.execute("DELETE FROM tb_reminder_tag WHERE tag_uuid = ?", (uuid,))
                    connection.execute("DELETE FROM tb_tag WHERE uuid = ?", (uuid,))
        except sqlite3.Error as e:
            raise StoreError('Unable to delete tag {}: {}'.format(uuid, e)) from e

    def load_cursor(self) -> tuple[datetime.datetime | None, str | None]:
        """
        Load the persisted synchronisation state.

        :returns:

            -last_sync_completed_at (:py:class:`datetime` | None) - when the last successful sync completed.

            -last_sync_error (:py:class:`str` | None) - the error of the last sync, if it failed.

        """
        try:
            with closing(self._connect()) as connection:
                row = connection.execute("SELECT * FROM tb_sync_cursor WHERE id = 1").fetchone()
        except sqlite3.Error as e:
            raise StoreError('Error retrieving sync state: {}'.format(e)) from e
        if row is None:
            return None, None
        return DateUtil.from_iso(row['last_sync_completed_at']), row['last_sync_error']

    def save_cursor(self, last_sync_completed_at: datetime.datetime | None, last_sync_error: str | None) -> None:
        try:
            with closing(self._connect()) as connection:
                with connection:
                    connection.execute("""
                        INSERT OR REPLACE INTO tb_sync_cursor(id, last_sync_completed_at, last_sync_error)
                        VALUES (1, ?, ?)""", (DateUtil.to_iso(last_sync_completed_at), last_sync_error))
        except sqlite3.Error as e:
            raise StoreError('Unable to save sync state: {}'.format(e)) from e

    @staticmethod
    def _encode_rule(rule: RecurrenceRule) -> str | None:
        data = rule.to_dict()
        return json.dumps(data) if data is not None else None

    @staticmethod
    def _decode_rule(value: str | None) -> RecurrenceRule:
        return RecurrenceRule.from_dict(json.loads(value) if value else None)

    @staticmethod
    def _tag_from_row(row: sqlite3.Row) -> Tag:
        return Tag(
            uuid=row['uuid'],
            remote_id=row['remote_id'],
            name=row['name'],
            color_hex=row['color_hex'],
            created_date=DateUtil.from_iso(row['created_date']),
            modified_date=DateUtil.from_iso(row['modified_date'])
        )

    @staticmethod
    def _reminder_from_row(row: sqlite3.Row, tags: List[Tag]) -> Reminder:
        # ISO strings keep only the offset, so the zone name is stored beside them
        zone = row['time_zone']
        return Reminder(
            uuid=row['uuid'],
            remote_id=row['remote_id'],
            title=row['title'],
            notes=row['notes'],
            scheduled_date=DateUtil.in_zone(DateUtil.from_iso(row['scheduled_date']), zone),
            completed=row['completed'] == 1,
            recurrence_rule=ReminderStore._decode_rule(row['recurrence_rule']),
            recurrence_end_date=DateUtil.in_zone(DateUtil.from_iso(row['recurrence_end_date']), zone),
            created_date=DateUtil.from_iso(row['created_date']),
            modified_date=DateUtil.from_iso(row['modified_date']),
            tags=tags
        )
