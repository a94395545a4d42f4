"""
Settings for RemindSync. Values are read with `python-decouple <https://pypi.org/project/python-decouple/>`_, so they may
be given as environment variables, or in a ``.env`` / ``settings.ini`` file.
"""

from pathlib import Path

from decouple import config

#: Base URL of the remote reminder API.
API_URL: str = config('REMINDSYNC_API_URL', default='https://api.remindsync.app')
#: Timeout (in seconds) for requests to the remote reminder API.
API_TIMEOUT: float = config('REMINDSYNC_API_TIMEOUT', default=10.0, cast=float)

#: Maximum number of alerts the platform allows to be pending at the same time.
ALERT_BUDGET: int = config('REMINDSYNC_ALERT_BUDGET', default=64, cast=int)
#: Alert slots reserved for one-time reminders.
ONE_TIME_RESERVE: int = config('REMINDSYNC_ONE_TIME_RESERVE', default=14, cast=int)
#: Number of future occurrences generated per recurring reminder before the budget is applied.
ALERT_CANDIDATES: int = config('REMINDSYNC_ALERT_CANDIDATES', default=100, cast=int)
#: How long a snoozed alert waits before firing again.
SNOOZE_MINUTES: int = config('REMINDSYNC_SNOOZE_MINUTES', default=15, cast=int)

#: Location where application data is stored.
DATA_LOCATION: Path = config('REMINDSYNC_DATA_DIR',
                             default=str(Path.home() / "Library" / "Application Support" / "RemindSync"),
                             cast=Path)
#: Default logging level for the CLI.
LOG_LEVEL: str = config('REMINDSYNC_LOG_LEVEL', default='info')

#: Keyring service name under which the refresh credential is stored.
KEYRING_SERVICE: str = "RemindSync"
#: Keyring key of the refresh credential.
KEYRING_REFRESH_KEY: str = "REFRESH-TOKEN"
