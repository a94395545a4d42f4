"""
This is the reminders part of RemindSync. Here, you'll find the following:

- ``model`` - reminders, tags, recurrence rules and the local store.
- ``controller.py`` - Contains the ``ReminderController`` class, which hosts call when the user changes reminders or acts
on an alert.

"""

from . import model

__all__ = ['model', ]
