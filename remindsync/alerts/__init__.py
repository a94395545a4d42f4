"""
This is the alerts part of RemindSync. Here, you'll find the following:

- ``alertcenter.py`` - Contains the ``AlertCenter`` contract and ``LocalAlertCenter``, which fires alerts in-process.
- ``budget.py`` - Contains the ``AlertBudgetAllocator`` class, which chooses the occurrences that get an alert.
- ``scheduler.py`` - Contains the ``AlertScheduler`` class, which keeps the pending alerts in line with the reminders.

"""

from . import alertcenter

__all__ = ['alertcenter', ]
