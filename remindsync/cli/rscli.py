import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from getpass import getpass
from pathlib import Path

from remindsync import settings
from remindsync.alerts.alertcenter import LocalAlertCenter
from remindsync.alerts.scheduler import AlertScheduler
from remindsync.reminders.controller import ReminderController
from remindsync.reminders.model.reminderstore import ReminderStore
from remindsync.sync.credentials import KeyringCredentialStore
from remindsync.sync.reconciler import SyncReconciler
from remindsync.sync.remote import HttpRemoteStore


class RemindSyncCli:
    """
    Defines the functionality of the RemindSync CLI.
    """

    def __init__(self, args):
        self.args = args
        self.logger = self.setup_logging()
        self.credential_store = KeyringCredentialStore()
        self.store = ReminderStore(self.args.db) if 'db' in self.args else ReminderStore()

    def run(self) -> int:
        """
        Run the sub-command given on the command line.

        :return: the exit code.
        """
        if self.args.command == 'login':
            return self.login()
        self.store.seed()
        if self.args.command == 'reschedule':
            return asyncio.run(self.reschedule())
        return asyncio.run(self.sync())

    def login(self) -> int:
        """
        Prompt for a refresh token and save it in the keyring.

        :return: the exit code.
        """
        token = getpass('Refresh Token> ').strip()
        if not token:
            logging.critical('No refresh token given.')
            return 3
        self.credential_store.set_refresh_token(token)
        logging.info('Refresh token saved.')
        return 0

    async def sync(self) -> int:
        """
        Synchronise reminders and tags with the remote store, then reschedule alerts.

        :return: the exit code.
        """
        if self.credential_store.get_refresh_token() is None:
            logging.critical('No refresh token in keyring. Use "remindsync login" to sign in.')
            return 3

        remote = HttpRemoteStore(self.credential_store, base_url=self.args.api_url)
        try:
            controller = self._controller(remote)
            logging.info('Synchronising reminders...')
            success, result = await controller.sync()
        finally:
            await remote.aclose()

        if not success:
            logging.critical('Reminder synchronisation failed.')
            return 5
        logging.info('Reminder synchronisation completed successfully.')
        logging.debug('Result: {}'.format(result.to_dict()))
        return 0

    async def reschedule(self) -> int:
        """
        Work out the alerts which should be pending and log them.

        :return: the exit code.
        """
        scheduler = AlertScheduler(LocalAlertCenter(), self.store)
        issued = await scheduler.reschedule_all()
        for instance in issued:
            logging.info('{} {} ({})'.format(
                instance.occurrence_date.isoformat(), instance.reminder.title, instance.alert_id))
        logging.info('{} alerts scheduled.'.format(len(issued)))
        return 0

    def _controller(self, remote: HttpRemoteStore) -> ReminderController:
        scheduler = AlertScheduler(LocalAlertCenter(), self.store)
        reconciler = SyncReconciler(self.store, remote, scheduler)
        return ReminderController(self.store, scheduler, reconciler)

    def setup_logging(self) -> logging.Logger:
        """
        Sets up the logging system.

        :return: the logging helper for the CLI.
        """

        if 'log_dir' in self.args:
            if os.access(self.args.log_dir, os.W_OK | os.X_OK):
                log_folder = Path(self.args.log_dir)
            else:
                print("Specified log directory {} is not accessible.".format(self.args.log_dir))
                sys.exit(1)
        else:
            log_folder = Path.home() / "Library" / "Logs" / "RemindSync"
        log_folder.mkdir(parents=True, exist_ok=True)

        log_file = datetime.now().strftime("RemindSync_%Y%m%d-%H%M%S") + '.log'
        log_levels = {
            'debug': logging.DEBUG,
            'info': logging.INFO,
            'warning': logging.WARNING,
            'critical': logging.CRITICAL
        }
        log_level = log_levels[self.args.log_level]

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s %(levelname)s: %(message)s',
        )
        logging.getLogger().addHandler(logging.FileHandler(log_folder / log_file))
        return logging.getLogger()


def main():
    """
    Defines arguments accepted by the CLI.
    """

    parser = argparse.ArgumentParser(
        prog="RemindSync CLI",
        description="Keep your reminders in sync with RemindSync, and schedule their alerts.",
    )

    parser.add_argument(
        "command",
        choices=['sync', 'reschedule', 'login'],
        help="sync with the remote store, reschedule alerts, or save a refresh token.")
    parser.add_argument(
        "--api-url",
        type=str,
        default=settings.API_URL,
        help="base URL of the remote reminder API.")
    parser.add_argument(
        "--db",
        type=str,
        default=argparse.SUPPRESS,
        help="path to the local reminder database (default: {}).".format(settings.DATA_LOCATION / "RemindSync.db"))

    # Cli-specific options
    parser.add_argument(
        "--log-level",
        type=str,
        choices=['debug', 'info', 'warning', 'critical'],
        default=settings.LOG_LEVEL,
        help="set the logging level.")
    parser.add_argument(
        "--log-dir",
        type=str,
        default=argparse.SUPPRESS,
        help="set the directory where log files are written.")

    args = parser.parse_args()
    sys.exit(RemindSyncCli(args).run())


if __name__ == '__main__':
    main()
