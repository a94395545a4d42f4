"""
Contains the ``Reminder`` class, which represents a schedulable reminder.
"""

from __future__ import annotations

import datetime
from typing import Dict, List

from remindsync import helpers
from remindsync.exceptions import ValidationError
from remindsync.helpers import DateUtil
from remindsync.reminders.model.recurrence import RecurrenceRule
from remindsync.reminders.model.tag import Tag
from remindsync.sync.remote import ReminderInput, RemoteRecurrenceRule, RemoteReminder


class Reminder:
    """
    Represents a reminder. Reminders are created locally (with a local id and no remote id) or from a reminder fetched
    from the remote store.
    """

    def __init__(self,
                 title: str,
                 scheduled_date: datetime.datetime,
                 uuid: str | None = None,
                 remote_id: str | None = None,
                 notes: str | None = None,
                 completed: bool = False,
                 recurrence_rule: RecurrenceRule | None = None,
                 recurrence_end_date: datetime.datetime | None = None,
                 created_date: datetime.datetime | None = None,
                 modified_date: datetime.datetime | None = None,
                 tags: List[Tag] | None = None,
                 ):
        """
        Create a new reminder.

        :param title: the title of this reminder. Must not be empty.
        :param scheduled_date: the datetime of the (next) occurrence of this reminder.
        :param uuid: the local id of this reminder. A new id is generated if not given.
        :param remote_id: the id assigned by the remote store, once the reminder has been pushed.
        :param notes: optional notes.
        :param completed: True if this reminder has been completed. For a recurring reminder, this means its series has
            ended.
        :param recurrence_rule: how this reminder repeats.
        :param recurrence_end_date: the last datetime (inclusive) an occurrence may fall on. Ignored if the reminder
            does not repeat.
        :param created_date: the datetime when this reminder was created.
        :param modified_date: the datetime when this reminder was last modified. Used for last-write-wins.
        :param tags: tags attached to this reminder.
        """
        now = helpers.utc_now()
        self.uuid: str = uuid or helpers.get_uuid()
        self.remote_id: str | None = remote_id
        self.title: str = title
        self.notes: str | None = notes
        self.scheduled_date: datetime.datetime = DateUtil.ensure_aware(scheduled_date)
        self.completed: bool = completed
        self.recurrence_rule: RecurrenceRule = recurrence_rule or RecurrenceRule.none()
        self.recurrence_end_date: datetime.datetime | None = (
            DateUtil.ensure_aware(recurrence_end_date) if recurrence_end_date else None)
        self.created_date: datetime.datetime = DateUtil.ensure_aware(created_date) if created_date else now
        self.modified_date: datetime.datetime = DateUtil.ensure_aware(modified_date) if modified_date else now
        self.tags: List[Tag] = []
        for tag in tags or []:
            self.add_tag(tag)
        self.validate()

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule.is_recurring

    @property
    def effective_end_date(self) -> datetime.datetime | None:
        """The recurrence end date, or None for a reminder which does not repeat."""
        return self.recurrence_end_date if self.is_recurring else None

    def validate(self) -> None:
        """
        :raises ValidationError: if the title is empty.
        """
        Reminder._check_title(self.title)

    @staticmethod
    def _check_title(title: str | None) -> None:
        if not title or not title.strip():
            raise ValidationError('Reminder title must not be empty.')

    def touch(self, now: datetime.datetime | None = None) -> None:
        """
        Mark this reminder as modified by the user.
        """
        self.modified_date = now or helpers.utc_now()

    def add_tag(self, tag: Tag) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: Tag) -> bool:
        if tag in self.tags:
            self.tags.remove(tag)
            return True
        return False

    @staticmethod
    def create_from_remote(remote: RemoteReminder, tag_index: Dict[str, Tag]) -> Reminder:
        """
        Creates a local Reminder from a reminder fetched from the remote store.

        :param remote: the remote reminder.
        :param tag_index: local tags indexed by their remote id. Unknown tag ids are dropped.

        :return: a new local reminder linked to the remote one.
        """
        rule, end_date = Reminder._rule_from_remote(remote.recurrence_rule)
        return Reminder(
            title=remote.title,
            scheduled_date=remote.scheduled_date,
            remote_id=remote.id,
            notes=remote.notes,
            completed=remote.is_completed,
            recurrence_rule=rule,
            recurrence_end_date=end_date,
            created_date=remote.created_at,
            modified_date=remote.updated_at,
            tags=[tag_index[tag_id] for tag_id in remote.tag_ids if tag_id in tag_index],
        )

    def apply_remote(self, remote: RemoteReminder, tag_index: Dict[str, Tag]) -> bool:
        """
        Overwrite this reminder with the remote version if the remote one was modified later. When both were modified at
        the same moment, the local reminder is kept. Dates keep the local reminder's time zone.

        :param remote: the remote reminder with the same remote id.
        :param tag_index: local tags indexed by their remote id.

        :return: True if this reminder was changed.

        :raises ValidationError: if the remote reminder is invalid. The local reminder is left unchanged.
        """
        if remote.updated_at <= self.modified_date:
            return False
        Reminder._check_title(remote.title)
        rule, end_date = Reminder._rule_from_remote(remote.recurrence_rule)
        zone = DateUtil.zone_key(self.scheduled_date)
        self.title = remote.title
        self.notes = remote.notes
        self.scheduled_date = DateUtil.in_zone(DateUtil.ensure_aware(remote.scheduled_date), zone)
        self.completed = remote.is_completed
        self.recurrence_rule = rule
        self.recurrence_end_date = DateUtil.in_zone(DateUtil.ensure_aware(end_date), zone) if end_date else None
        self.modified_date = remote.updated_at
        self.tags = []
        for tag_id in remote.tag_ids:
            if tag_id in tag_index:
                self.add_tag(tag_index[tag_id])
        return True

    def to_remote_input(self) -> ReminderInput:
        """
        Build the body of a create/update request for this reminder. Only tags which already exist remotely are sent.

        :return: the request body.
        """
        remote_rule = None
        rule_data = self.recurrence_rule.to_dict()
        if rule_data is not None:
            remote_rule = RemoteRecurrenceRule(end_date=self.recurrence_end_date, **rule_data)
        return ReminderInput(
            title=self.title,
            notes=self.notes,
            scheduled_date=self.scheduled_date,
            is_completed=self.completed,
            recurrence_rule=remote_rule,
            tag_ids=[tag.remote_id for tag in self.tags if tag.remote_id],
        )

    @staticmethod
    def _rule_from_remote(remote_rule: RemoteRecurrenceRule | None) -> tuple[RecurrenceRule, datetime.datetime | None]:
        if remote_rule is None:
            return RecurrenceRule.none(), None
        rule = RecurrenceRule.from_dict(remote_rule.model_dump(exclude={'end_date'}))
        return rule, remote_rule.end_date

    def __str__(self):
        return self.title

    def __repr__(self):
        return self.title
