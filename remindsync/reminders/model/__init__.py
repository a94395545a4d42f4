"""
This is the model of the reminders part of RemindSync. Here, you'll find the following:

- ``recurrence.py`` - Contains the ``RecurrenceRule`` class and the functions which compute occurrence dates.
- ``tag.py`` - Contains the ``Tag`` class which represents a label attached to reminders.
- ``reminder.py`` - Contains the ``Reminder`` class which represents a reminder.
- ``reminderstore.py`` - Contains the ``ReminderStore`` class, the SQLite store of reminders, tags and sync state.

"""

from . import recurrence, tag, reminder, reminderstore

__all__ = ['recurrence', 'tag', 'reminder', 'reminderstore', ]
