"""
This is the reminder controller. It contains the operations a host application (the CLI, or a UI) calls when the user
changes reminders or tags, when the app comes to the foreground, and when the user acts on an alert.

Every operation saves locally first. Pushing to the remote store and rescheduling alerts are best-effort: their failures
are logged but do not fail the operation.
"""
from __future__ import annotations

import logging
from typing import List

from remindsync.alerts.alertcenter import AlertPayload
from remindsync.alerts.scheduler import AlertAction, AlertScheduler
from remindsync.exceptions import AuthError, RemindSyncError, StoreError, ValidationError
from remindsync.reminders.model.recurrence import advance_to_next_occurrence
from remindsync.reminders.model.reminder import Reminder
from remindsync.reminders.model.reminderstore import ReminderStore
from remindsync.reminders.model.tag import Tag
from remindsync.sync.reconciler import SyncReconciler, SyncResult


class ReminderController:
    """
    Ties together the local store, the alert scheduler and the sync reconciler.
    """

    def __init__(self, store: ReminderStore, scheduler: AlertScheduler, reconciler: SyncReconciler):
        self.store: ReminderStore = store
        self.scheduler: AlertScheduler = scheduler
        self.reconciler: SyncReconciler = reconciler

    async def create_reminder(self, reminder: Reminder) -> tuple[bool, Reminder | str]:
        """
        Save a new reminder, push it to the remote store and reschedule alerts.

        :param reminder: the new reminder.

        :returns:

            -success (:py:class:`bool`) - true if the reminder is saved locally.

            -data (:py:class:`Reminder` | :py:class:`str`) - the saved reminder, or an error message on failure.

        """
        try:
            reminder.validate()
            self.store.save_reminder(reminder)
        except (ValidationError, StoreError) as e:
            error = 'Failed to create reminder {}: {}'.format(reminder.title, e)
            logging.critical(error)
            return False, error
        logging.debug('Created reminder {}'.format(reminder.title))
        await self._push_reminder(reminder)
        await self._reschedule()
        return True, reminder

    async def update_reminder(self, reminder: Reminder) -> tuple[bool, Reminder | str]:
        """
        Save the user's changes to a reminder, push them and reschedule alerts.

        :param reminder: the changed reminder.

        :returns:

            -success (:py:class:`bool`) - true if the reminder is saved locally.

            -data (:py:class:`Reminder` | :py:class:`str`) - the saved reminder, or an error message on failure.

        """
        try:
            reminder.validate()
            reminder.touch()
            self.store.save_reminder(reminder)
        except (ValidationError, StoreError) as e:
            error = 'Failed to update reminder {}: {}'.format(reminder.title, e)
            logging.critical(error)
            return False, error
        logging.debug('Updated reminder {}'.format(reminder.title))
        await self._push_reminder(reminder)
        await self._reschedule()
        return True, reminder

    async def complete_reminder(self, uuid: str) -> tuple[bool, Reminder | str]:
        """
        Complete a reminder. A recurring reminder moves on to its next occurrence instead, and is only completed once
        its series has ended.

        :param uuid: the local id of the reminder.

        :returns:

            -success (:py:class:`bool`) - true if the reminder is saved locally.

            -data (:py:class:`Reminder` | :py:class:`str`) - the saved reminder, or an error message on failure.

        """
        try:
            reminder = self.store.get_reminder(uuid)
            if reminder is None:
                error = 'No reminder found with id {}'.format(uuid)
                logging.critical(error)
                return False, error
            if reminder.is_recurring:
                changed = advance_to_next_occurrence(reminder)
            else:
                changed = not reminder.completed
                reminder.completed = True
            if not changed:
                logging.debug('Reminder {} already completed.'.format(reminder.title))
                return True, reminder
            reminder.touch()
            self.store.save_reminder(reminder)
        except StoreError as e:
            error = 'Failed to complete reminder {}: {}'.format(uuid, e)
            logging.critical(error)
            return False, error
        logging.debug('Completed reminder {}'.format(reminder.title))
        await self._push_reminder(reminder)
        await self._reschedule()
        return True, reminder

    async def delete_reminder(self, uuid: str) -> tuple[bool, str]:
        """
        Delete a reminder locally and remotely, and withdraw its alerts.

        :param uuid: the local id of the reminder.

        :returns:

            -success (:py:class:`bool`) - true if the reminder is deleted locally.

            -data (:py:class:`str`) - error message on failure, or success message.

        """
        try:
            reminder = self.store.get_reminder(uuid)
            if reminder is None:
                error = 'No reminder found with id {}'.format(uuid)
                logging.critical(error)
                return False, error
            self.store.delete_reminder(uuid)
        except StoreError as e:
            error = 'Failed to delete reminder {}: {}'.format(uuid, e)
            logging.critical(error)
            return False, error

        await self.scheduler.cancel_for(reminder)
        if reminder.remote_id:
            try:
                await self.reconciler.delete_remote_reminder(reminder.remote_id)
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to delete remote reminder {}: {}'.format(reminder.title, e))
        await self._reschedule()
        msg = 'Deleted reminder {}'.format(reminder.title)
        logging.debug(msg)
        return True, msg

    async def create_tag(self, tag: Tag) -> tuple[bool, Tag | str]:
        """
        Save a new tag and push it to the remote store.

        :param tag: the new tag.

        :returns:

            -success (:py:class:`bool`) - true if the tag is saved locally.

            -data (:py:class:`Tag` | :py:class:`str`) - the saved tag, or an error message on failure.

        """
        try:
            tag.validate()
            self.store.save_tag(tag)
        except (ValidationError, StoreError) as e:
            error = 'Failed to create tag {}: {}'.format(tag.name, e)
            logging.critical(error)
            return False, error
        logging.debug('Created tag {}'.format(tag.name))
        try:
            await self.reconciler.push_tag(tag)
        except (RemindSyncError, ValueError) as e:
            logging.warning('Failed to push tag {}: {}'.format(tag.name, e))
        return True, tag

    async def delete_tag(self, uuid: str) -> tuple[bool, str]:
        """
        Delete a tag locally and remotely. Reminders with the tag are kept.

        :param uuid: the local id of the tag.

        :returns:

            -success (:py:class:`bool`) - true if the tag is deleted locally.

            -data (:py:class:`str`) - error message on failure, or success message.

        """
        try:
            tag = next((t for t in self.store.load_tags() if t.uuid == uuid), None)
            if tag is None:
                error = 'No tag found with id {}'.format(uuid)
                logging.critical(error)
                return False, error
            self.store.delete_tag(uuid)
        except StoreError as e:
            error = 'Failed to delete tag {}: {}'.format(uuid, e)
            logging.critical(error)
            return False, error

        if tag.remote_id:
            try:
                await self.reconciler.delete_remote_tag(tag.remote_id)
            except (RemindSyncError, ValueError) as e:
                logging.warning('Failed to delete remote tag {}: {}'.format(tag.name, e))
        msg = 'Deleted tag {}'.format(tag.name)
        logging.debug(msg)
        return True, msg

    async def on_foreground(self) -> tuple[bool, SyncResult]:
        """
        Called when the app comes to the foreground: synchronise, then reschedule alerts. Alerts are rescheduled even
        when synchronisation is skipped, so the pending set always reflects the local store.

        :returns:

            -success (:py:class:`bool`) - true if synchronisation succeeded or was skipped.

            -data (:py:class:`SyncResult`) - the result of synchronisation.

        """
        success, result = await self.sync()
        if result.skipped:
            await self._reschedule()
        return success or result.skipped, result

    async def sync(self) -> tuple[bool, SyncResult]:
        """
        Run a full synchronisation with the remote store.

        :returns:

            -success (:py:class:`bool`) - true if synchronisation ran without errors.

            -data (:py:class:`SyncResult`) - the result of synchronisation.

        """
        result = await self.reconciler.sync()
        if result.errors:
            logging.critical('Synchronisation completed with errors: {}'.format('; '.join(result.errors)))
        elif not result.skipped:
            logging.info('Synchronisation completed successfully.')
        return result.success, result

    async def handle_alert_action(self,
                                  alert_id: str,
                                  action: AlertAction | str,
                                  payload: AlertPayload | None = None) -> tuple[bool, Reminder | str | None]:
        """
        Handle the user's action on a delivered alert. A reminder changed by the action is pushed to the remote store.

        :param alert_id: the id of the delivered alert.
        :param action: the action taken.
        :param payload: the payload the alert was delivered with.

        :returns:

            -success (:py:class:`bool`) - true if the action was handled.

            -data (:py:class:`Reminder` | :py:class:`str` | None) - the changed reminder, or an error message on
            failure.

        """
        try:
            reminder = await self.scheduler.handle_action(alert_id, action, payload)
        except (StoreError, ValueError) as e:
            error = 'Failed to handle action {} on alert {}: {}'.format(action, alert_id, e)
            logging.critical(error)
            return False, error
        if reminder is not None:
            await self._push_reminder(reminder)
        return True, reminder

    async def _push_reminder(self, reminder: Reminder) -> None:
        try:
            await self.reconciler.push_reminder(reminder)
        except AuthError as e:
            logging.warning('Not pushing reminder {}, sign-in required: {}'.format(reminder.title, e))
        except (RemindSyncError, ValueError) as e:
            logging.warning('Failed to push reminder {}: {}'.format(reminder.title, e))

    async def _reschedule(self) -> List:
        try:
            return await self.scheduler.reschedule_all()
        except StoreError as e:
            logging.warning('Failed to reschedule alerts: {}'.format(e))
            return []
