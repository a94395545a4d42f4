"""
This is the synchronisation part of RemindSync. Here, you'll find the following:

- ``credentials.py`` - Contains the ``CredentialStore`` contract and ``KeyringCredentialStore``.
- ``gate.py`` - Contains the ``TokenRefreshGate`` class, which serialises access-token refreshes.
- ``remote.py`` - Contains the wire records and ``HttpRemoteStore``, the client of the remote reminder API.
- ``reconciler.py`` - Contains the ``SyncReconciler`` class, which merges local and remote reminders.

"""

from . import credentials, gate, remote

__all__ = ['credentials', 'gate', 'remote', ]
