"""
Contains the ``SyncReconciler``, which merges the local reminders and tags with the remote store using last-write-wins on
the modification date, and the ``SyncCursor``, which records the state of synchronisation.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List

from remindsync import helpers
from remindsync.exceptions import AuthError, RemindSyncError, StoreError
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.reminderstore import ReminderStore
from remindsync.reminders.model.tag import Tag
from remindsync.sync.remote import RemoteStore

if TYPE_CHECKING:
    from remindsync.alerts.scheduler import AlertScheduler


@dataclass
class SyncCursor:
    """
    Process-wide synchronisation state. Only the reconciler changes it; anyone may read ``is_sync_in_flight`` to avoid
    starting an overlapping run.
    """

    last_sync_completed_at: datetime.datetime | None = None
    is_sync_in_flight: bool = False
    last_sync_error: str | None = None

    @staticmethod
    def load(store: ReminderStore) -> SyncCursor:
        completed_at, error = store.load_cursor()
        return SyncCursor(last_sync_completed_at=completed_at, last_sync_error=error)


@dataclass
class SyncResult:
    """
    Outcome of one synchronisation run. Names are recorded for every change; ``unchanged`` counts matched records where
    the local version was kept.
    """

    skipped: bool = False
    local_added: List[str] = field(default_factory=list)
    local_updated: List[str] = field(default_factory=list)
    remote_added: List[str] = field(default_factory=list)
    unchanged: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.skipped and not self.errors

    def to_dict(self) -> dict:
        return asdict(self)


class SyncReconciler:
    """
    Brings local and remote reminders and tags into agreement. Runs never overlap: a run started while another is in
    flight returns immediately as skipped.

    A failure to pull or push a single record is recorded and does not stop the others. A failure to fetch a remote
    collection or an authentication failure ends the run early; the changes made up to that point are saved in one
    transaction, so records already created remotely keep their remote ids. A failure to save leaves the local store
    unchanged.
    """

    def __init__(self,
                 store: ReminderStore,
                 remote: RemoteStore,
                 scheduler: AlertScheduler | None = None,
                 clock: Callable[[], datetime.datetime] = helpers.utc_now,
                 cursor: SyncCursor | None = None):
        """
        Create a new reconciler.

        :param store: the local store.
        :param remote: the remote store.
        :param scheduler: alert scheduler to run after each sync, since merged reminders may have new dates.
        :param clock: returns the current time.
        :param cursor: the synchronisation state. Loaded from the store if not given.
        """
        self.store: ReminderStore = store
        self.remote: RemoteStore = remote
        self.scheduler: AlertScheduler | None = scheduler
        self.clock: Callable[[], datetime.datetime] = clock
        self.cursor: SyncCursor = cursor or SyncCursor.load(store)

    async def sync(self) -> SyncResult:
        """
        Run a full synchronisation:

        1. Merge remote tags into local tags, then push local-only tags.
        2. Merge remote reminders into local reminders (re-linking their tags), then push local-only reminders.
        3. Save everything that changed in one transaction. If a step failed, what was merged or created before it is
           still saved.
        4. Update the sync cursor.
        5. Reschedule all alerts.

        :return: the result of the run.
        """
        if self.cursor.is_sync_in_flight:
            logging.info('Synchronisation already in progress, skipping.')
            return SyncResult(skipped=True)
        if not self.remote.is_enabled:
            logging.info('Not signed in, synchronisation disabled.')
            return SyncResult(skipped=True)

        self.cursor.is_sync_in_flight = True
        result = SyncResult()
        dirty_tags: Dict[str, Tag] = {}
        dirty_reminders: Dict[str, Reminder] = {}
        try:
            try:
                reminders, tags = self.store.load_all()
                await self._sync_tags(tags, dirty_tags, result)
                await self._sync_reminders(reminders, tags, dirty_reminders, result)
            except AuthError as e:
                logging.critical('Synchronisation stopped, sign-in required: {}'.format(e))
                result.errors.append(str(e))
            except (RemindSyncError, ValueError) as e:
                logging.critical('Synchronisation failed: {}'.format(e))
                result.errors.append(str(e))
            # Records created remotely before a failure keep their remote ids
            self._commit(dirty_reminders, dirty_tags, result)
        finally:
            self.cursor.is_sync_in_flight = False

        if result.errors:
            self.cursor.last_sync_error = '; '.join(result.errors)
        else:
            self.cursor.last_sync_completed_at = self.clock()
            self.cursor.last_sync_error = None
        self._persist_cursor()

        logging.debug(("Reminder synchronisation:: Local Added: {} | Local Updated: {} | Remote Added: {} | "
                       "Unchanged: {} | Errors: {}").format(
            ', '.join(result.local_added) or 'none',
            ', '.join(result.local_updated) or 'none',
            ', '.join(result.remote_added) or 'none',
            result.unchanged,
            len(result.errors)))

        if self.scheduler is not None:
            await self.scheduler.reschedule_all()
        return result

    async def _sync_tags(self, tags: List[Tag], dirty: Dict[str, Tag], result: SyncResult) -> None:
        remote_tags = await self.remote.list_tags()
        local_by_remote = {t.remote_id: t for t in tags if t.remote_id}

        for remote_tag in remote_tags:
            local_tag = local_by_remote.get(remote_tag.id)
            try:
                if local_tag is None:
                    local_tag = Tag.create_from_remote(remote_tag)
                    tags.append(local_tag)
                    local_by_remote[remote_tag.id] = local_tag
                    dirty[local_tag.uuid] = local_tag
                    result.local_added.append(local_tag.name)
                elif local_tag.apply_remote(remote_tag):
                    dirty[local_tag.uuid] = local_tag
                    result.local_updated.append(local_tag.name)
                else:
                    result.unchanged += 1
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to pull tag {}: {}'.format(remote_tag.id, e))
                result.errors.append('Tag {}: {}'.format(remote_tag.id, e))

        for tag in [t for t in tags if t.remote_id is None]:
            try:
                created = await self.remote.create_tag(tag.to_remote_input())
            except AuthError:
                raise
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to push tag {}: {}'.format(tag.name, e))
                result.errors.append('Tag {}: {}'.format(tag.name, e))
                continue
            tag.remote_id = created.id
            tag.modified_date = created.updated_at
            dirty[tag.uuid] = tag
            result.remote_added.append(tag.name)

    async def _sync_reminders(self,
                              reminders: List[Reminder],
                              tags: List[Tag],
                              dirty: Dict[str, Reminder],
                              result: SyncResult) -> None:
        remote_reminders = await self.remote.list_reminders()
        tag_index = {t.remote_id: t for t in tags if t.remote_id}
        local_by_remote = {r.remote_id: r for r in reminders if r.remote_id}

        for remote_reminder in remote_reminders:
            local_reminder = local_by_remote.get(remote_reminder.id)
            try:
                if local_reminder is None:
                    local_reminder = Reminder.create_from_remote(remote_reminder, tag_index)
                    reminders.append(local_reminder)
                    local_by_remote[remote_reminder.id] = local_reminder
                    dirty[local_reminder.uuid] = local_reminder
                    result.local_added.append(local_reminder.title)
                elif local_reminder.apply_remote(remote_reminder, tag_index):
                    dirty[local_reminder.uuid] = local_reminder
                    result.local_updated.append(local_reminder.title)
                else:
                    result.unchanged += 1
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to pull reminder {}: {}'.format(remote_reminder.id, e))
                result.errors.append('Reminder {}: {}'.format(remote_reminder.id, e))

        for reminder in [r for r in reminders if r.remote_id is None]:
            try:
                created = await self.remote.create_reminder(reminder.to_remote_input())
            except AuthError:
                raise
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to push reminder {}: {}'.format(reminder.title, e))
                result.errors.append('Reminder {}: {}'.format(reminder.title, e))
                continue
            reminder.remote_id = created.id
            reminder.modified_date = created.updated_at
            dirty[reminder.uuid] = reminder
            result.remote_added.append(reminder.title)

    def _commit(self, reminders: Dict[str, Reminder], tags: Dict[str, Tag], result: SyncResult) -> None:
        if not reminders and not tags:
            return
        try:
            self.store.save_batch(reminders.values(), tags.values())
        except StoreError as e:
            logging.critical('Failed to save synchronised changes: {}'.format(e))
            result.errors.append(str(e))

    def _persist_cursor(self) -> None:
        try:
            self.store.save_cursor(self.cursor.last_sync_completed_at, self.cursor.last_sync_error)
        except StoreError as e:
            logging.critical('Failed to save sync state: {}'.format(e))

    async def push_reminder(self, reminder: Reminder) -> bool:
        """
        Push a single reminder right after the user changed it: update it remotely if it has a remote id, otherwise
        create it. The remote modification date is written back and saved locally.

        :param reminder: the reminder to push.

        :return: True if the reminder was pushed, False if synchronisation is disabled.
        """
        if not self.remote.is_enabled:
            return False
        if reminder.remote_id:
            pushed = await self.remote.update_reminder(reminder.remote_id, reminder.to_remote_input())
        else:
            pushed = await self.remote.create_reminder(reminder.to_remote_input())
            reminder.remote_id = pushed.id
        reminder.modified_date = pushed.updated_at
        self.store.save_reminder(reminder)
        return True

    async def push_tag(self, tag: Tag) -> bool:
        """
        Push a single tag right after the user changed it.

        :param tag: the tag to push.

        :return: True if the tag was pushed, False if synchronisation is disabled.
        """
        if not self.remote.is_enabled:
            return False
        if tag.remote_id:
            pushed = await self.remote.update_tag(tag.remote_id, tag.to_remote_input())
        else:
            pushed = await self.remote.create_tag(tag.to_remote_input())
            tag.remote_id = pushed.id
        tag.modified_date = pushed.updated_at
        self.store.save_tag(tag)
        return True

    async def delete_remote_reminder(self, remote_id: str) -> bool:
        if not self.remote.is_enabled:
            return False
        await self.remote.delete_reminder(remote_id)
        return True

    async def delete_remote_tag(self, remote_id: str) -> bool:
        if not self.remote.is_enabled:
            return False
        await self.remote.delete_tag(remote_id)
        return True
