"""
Contains the ``Tag`` class, which represents a named, coloured label that can be attached to reminders.
"""

from __future__ import annotations

import datetime

from remindsync import helpers
from remindsync.exceptions import ValidationError
from remindsync.helpers import DateUtil
from remindsync.sync.remote import RemoteTag, TagInput


class Tag:
    """
    Represents a tag. Tags have their own identity and lifecycle; deleting a tag never deletes the reminders it is attached
    to.
    """

    def __init__(self,
                 name: str,
                 color_hex: str,
                 uuid: str | None = None,
                 remote_id: str | None = None,
                 created_date: datetime.datetime | None = None,
                 modified_date: datetime.datetime | None = None,
                 ):
        """
        Create a new tag.

        :param name: the name of the tag.
        :param color_hex: the tag's colour, as a hex string (e.g. ``#7BA05B``).
        :param uuid: the local id of this tag. A new id is generated if not given.
        :param remote_id: the id assigned by the remote store, once the tag has been pushed.
        :param created_date: the datetime when this tag was created.
        :param modified_date: the datetime when this tag was last modified.
        """
        now = helpers.utc_now()
        self.uuid: str = uuid or helpers.get_uuid()
        self.remote_id: str | None = remote_id
        self.name: str = name
        self.color_hex: str = color_hex
        self.created_date: datetime.datetime = DateUtil.ensure_aware(created_date) if created_date else now
        self.modified_date: datetime.datetime = DateUtil.ensure_aware(modified_date) if modified_date else now
        self.validate()

    def validate(self) -> None:
        Tag._check_name(self.name)

    @staticmethod
    def _check_name(name: str | None) -> None:
        if not name or not name.strip():
            raise ValidationError('Tag name must not be empty.')

    @staticmethod
    def create_from_remote(remote: RemoteTag) -> Tag:
        """
        Creates a local Tag from a tag fetched from the remote store.

        :param remote: the remote tag.

        :return: a new local tag linked to the remote one.
        """
        return Tag(
            name=remote.name,
            color_hex=remote.color_hex,
            remote_id=remote.id,
            created_date=remote.created_at,
            modified_date=remote.updated_at,
        )

    def apply_remote(self, remote: RemoteTag) -> bool:
        """
        Overwrite this tag with the remote version if the remote one was modified later. When both were modified at the
        same moment, the local tag is kept.

        :param remote: the remote tag with the same remote id.

        :return: True if this tag was changed.

        :raises ValidationError: if the remote tag has no name. The local tag is left unchanged.
        """
        if remote.updated_at <= self.modified_date:
            return False
        Tag._check_name(remote.name)
        self.name = remote.name
        self.color_hex = remote.color_hex
        self.modified_date = remote.updated_at
        return True

    def to_remote_input(self) -> TagInput:
        return TagInput(name=self.name, color_hex=self.color_hex)

    def __eq__(self, other):
        return isinstance(other, Tag) and other.uuid == self.uuid

    def __hash__(self):
        return hash(self.uuid)

    def __str__(self):
        return self.name

    def __repr__(self):
        return self.name
