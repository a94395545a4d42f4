"""
This is a helper file for scheduling and synchronisation.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from remindsync import settings


def get_uuid() -> str:
    """
    Generates a UUID.

    :return: a UUID.
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """
    Get the current time as a timezone-aware UTC datetime.

    :return: the current time.
    """
    return datetime.now(timezone.utc)


def db_folder() -> Path:
    """
    Get the location of the SQLite database file.

    :return: path to the SQLite database file.
    """
    settings.DATA_LOCATION.mkdir(parents=True, exist_ok=True)
    return settings.DATA_LOCATION / "RemindSync.db"


class DateUtil:
    """
    Utility class for converting between the date/time formats used by the local store and the remote API.
    """

    @staticmethod
    def to_iso(obj: datetime | None) -> str | None:
        """
        Convert a datetime to an ISO-8601 string. Naive datetimes are assumed to be in UTC.

        :param obj: the datetime to convert.

        :return: the ISO-8601 representation, or None if ``obj`` is None.
        """
        if obj is None:
            return None
        return DateUtil.ensure_aware(obj).isoformat()

    @staticmethod
    def from_iso(value: str | None) -> datetime | None:
        """
        Parse an ISO-8601 string into a timezone-aware datetime. A trailing ``Z`` is accepted.

        :param value: the string to parse.

        :return: the parsed datetime, or None if ``value`` is empty.
        """
        if not value:
            return None
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'
        return DateUtil.ensure_aware(datetime.fromisoformat(value))

    @staticmethod
    def ensure_aware(obj: datetime) -> datetime:
        """
        Attach UTC to a naive datetime. Aware datetimes are returned unchanged.

        :param obj: the datetime to check.

        :return: a timezone-aware datetime.
        """
        if obj.tzinfo is None:
            return obj.replace(tzinfo=timezone.utc)
        return obj


    @staticmethod
    def zone_key(obj: datetime | None) -> str | None:
        """
        Get the IANA name of a datetime's time zone, e.g. ``Europe/London``.

        :param obj: the datetime.

        :return: the zone name, or None if ``obj`` is None or only carries a fixed offset.
        """
        if obj is None or not isinstance(obj.tzinfo, ZoneInfo):
            return None
        return obj.tzinfo.key

    @staticmethod
    def in_zone(obj: datetime | None, key: str | None) -> datetime | None:
        """
        Express a datetime in the named time zone. The instant is unchanged, only the wall time and offset are.

        :param obj: the datetime to convert.
        :param key: the IANA zone name. If None, ``obj`` is returned unchanged.

        :return: the converted datetime.
        """
        if obj is None or not key:
            return obj
        try:
            zone = ZoneInfo(key)
        except (ZoneInfoNotFoundError, ValueError):
            logging.warning('Unknown time zone {}, keeping offset {}.'.format(key, obj.utcoffset()))
            return obj
        return obj.astimezone(zone)
