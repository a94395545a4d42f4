"""
This is the main package for RemindSync.

- ``reminders`` - reminders, tags, recurrence and the local store.
- ``alerts`` - alert budgeting and scheduling.
- ``sync`` - synchronisation with the remote reminder API.
- ``cli`` - the RemindSync command-line interface.
- ``helpers`` - helpers used throughout RemindSync.

"""

from . import helpers

__all__ = ['helpers', ]
