"""
Contains the ``TokenRefreshGate``, which guards credential refresh so that only one refresh round trip happens when
several concurrent requests see an expired access token at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from remindsync.exceptions import AuthError, RemindSyncError, UnauthorizedResponse
from remindsync.sync.credentials import CredentialStore

T = TypeVar('T')


class TokenPair(BaseModel):
    """Token response of the refresh endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_in: int | None = None
    token_type: str | None = None


class TokenRefreshGate:
    """
    Single-flight guard around credential refresh.

    The gate is either ``READY`` or ``REFRESHING``. The state and the access token are only read or written while holding
    one ``asyncio.Lock``; the refresh round trip itself runs outside the lock, so concurrent callers can see that a refresh
    is in progress.

    A request that gets a 401 while the gate is ``READY`` refreshes the credential and retries once. A request that gets a
    401 while another caller is refreshing fails with ``AuthError`` instead of refreshing again. A request that gets a 401
    with an access token that has since been replaced simply retries with the new token.
    """

    READY = 'ready'
    REFRESHING = 'refreshing'

    def __init__(self,
                 credential_store: CredentialStore,
                 refresher: Callable[[str], Awaitable[TokenPair]],
                 access_token: str | None = None):
        """
        Create a new gate.

        :param credential_store: where the refresh credential is kept.
        :param refresher: coroutine function exchanging a refresh credential for a new ``TokenPair``.
        :param access_token: an access token obtained at sign-in, if any.
        """
        self.credential_store: CredentialStore = credential_store
        self.refresher: Callable[[str], Awaitable[TokenPair]] = refresher
        self._access_token: str | None = access_token
        self._state: str = TokenRefreshGate.READY
        self._lock = asyncio.Lock()
        self.refresh_count: int = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self.credential_store.get_refresh_token() is not None

    async def access_token(self) -> str | None:
        async with self._lock:
            return self._access_token

    async def set_tokens(self, access_token: str, refresh_token: str) -> None:
        """
        Store a new token pair, e.g. after sign-in.

        :param access_token: the short-lived access token (kept in memory only).
        :param refresh_token: the long-lived refresh credential (kept in the credential store).
        """
        async with self._lock:
            self._access_token = access_token
        self.credential_store.set_refresh_token(refresh_token)

    async def clear_tokens(self) -> None:
        """
        Forget both tokens. The user has to sign in again.
        """
        async with self._lock:
            self._access_token = None
        self.credential_store.delete_refresh_token()

    async def authorized_request(self, fn: Callable[[str | None], Awaitable[T]]) -> T:
        """
        Run an authenticated request. ``fn`` receives the current access token and must raise ``UnauthorizedResponse``
        when the server answers 401.

        :param fn: coroutine function performing the request.

        :raises AuthError: if the credential could not be refreshed, a refresh is already in progress, or the retried
            request is still unauthorised.

        :return: the result of ``fn``.
        """
        token = await self.access_token()
        try:
            return await fn(token)
        except UnauthorizedResponse:
            logging.debug('Request unauthorised, checking credential state.')

        async with self._lock:
            if self._state == TokenRefreshGate.REFRESHING:
                raise AuthError('Unauthorized: credential refresh already in progress.')
            if self._access_token is not None and self._access_token != token:
                # Someone else refreshed after our request went out
                retry_token = self._access_token
            else:
                retry_token = None
                self._state = TokenRefreshGate.REFRESHING

        if retry_token is None:
            retry_token = await self._refresh()

        try:
            return await fn(retry_token)
        except UnauthorizedResponse as e:
            raise AuthError('Unauthorized after credential refresh.') from e

    async def _refresh(self) -> str:
        """
        Perform the refresh round trip. Must only be called by the caller which moved the gate to ``REFRESHING``.

        :return: the new access token.
        """
        try:
            refresh_token = self.credential_store.get_refresh_token()
            if refresh_token is None:
                logging.warning('No refresh credential stored, user must sign in again.')
                await self.clear_tokens()
                raise AuthError('Unauthorized: no stored refresh credential.')

            self.refresh_count += 1
            try:
                tokens = await self.refresher(refresh_token)
            except (RemindSyncError, ValueError) as e:
                logging.warning('Credential refresh failed: {}'.format(e))
                await self.clear_tokens()
                raise AuthError('Unauthorized: credential refresh failed.') from e

            async with self._lock:
                self._access_token = tokens.access_token
            self.credential_store.set_refresh_token(tokens.refresh_token)
            logging.debug('Credential refreshed.')
            return tokens.access_token
        finally:
            async with self._lock:
                self._state = TokenRefreshGate.READY
