import pytest

from fakes import FakeAlertCenter, FakeRemoteStore
from remindsync.reminders.model.reminderstore import ReminderStore


@pytest.fixture
def store(tmp_path) -> ReminderStore:
    reminder_store = ReminderStore(tmp_path / 'RemindSync.db')
    reminder_store.seed()
    return reminder_store


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def alert_center() -> FakeAlertCenter:
    return FakeAlertCenter()
