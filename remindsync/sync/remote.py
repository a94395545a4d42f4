"""
Contains the remote store: the wire records exchanged with the remote reminder API, the ``RemoteStore`` contract used by
the reconciler, and ``HttpRemoteStore``, which implements it over HTTP with `httpx <https://www.python-httpx.org/>`_.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any, List

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from remindsync import settings
from remindsync.exceptions import RemoteError, TransportError, UnauthorizedResponse
from remindsync.helpers import DateUtil
from remindsync.sync.credentials import CredentialStore
from remindsync.sync.gate import TokenPair, TokenRefreshGate


class RemoteRecurrenceRule(BaseModel):
    """Recurrence rule as sent by the remote API. ``end_date`` carries the reminder's recurrence end date."""

    model_config = ConfigDict(extra="ignore")

    type: str
    weekday: int | None = None
    day: int | None = None
    end_date: datetime | None = None

    @field_validator("end_date")
    @classmethod
    def _aware_end_date(cls, value: datetime | None) -> datetime | None:
        return DateUtil.ensure_aware(value) if value is not None else None


class RemoteTag(BaseModel):
    """A tag as stored remotely."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str
    color_hex: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return DateUtil.ensure_aware(value)


class RemoteReminder(BaseModel):
    """A reminder as stored remotely."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    title: str
    notes: str | None = None
    scheduled_date: datetime
    is_completed: bool = False
    recurrence_rule: RemoteRecurrenceRule | None = None
    tag_ids: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("scheduled_date", "created_at", "updated_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return DateUtil.ensure_aware(value)


class TagInput(BaseModel):
    """Body of a tag create/update request."""

    name: str
    color_hex: str


class ReminderInput(BaseModel):
    """Body of a reminder create/update request."""

    title: str
    notes: str | None = None
    scheduled_date: datetime
    is_completed: bool = False
    recurrence_rule: RemoteRecurrenceRule | None = None
    tag_ids: List[str] = Field(default_factory=list)


class RemoteStore(abc.ABC):
    """
    Contract of the remote reminder store. Every record returned carries ``id``, ``created_at`` and ``updated_at``.
    Implementations raise ``TransportError`` on network failure, ``AuthError`` when the user must sign in again, and
    ``RemoteError`` for any other failed request.
    """

    @abc.abstractmethod
    async def list_reminders(self) -> List[RemoteReminder]:
        ...

    @abc.abstractmethod
    async def create_reminder(self, data: ReminderInput) -> RemoteReminder:
        ...

    @abc.abstractmethod
    async def update_reminder(self, remote_id: str, data: ReminderInput) -> RemoteReminder:
        ...

    @abc.abstractmethod
    async def delete_reminder(self, remote_id: str) -> None:
        ...

    @abc.abstractmethod
    async def list_tags(self) -> List[RemoteTag]:
        ...

    @abc.abstractmethod
    async def create_tag(self, data: TagInput) -> RemoteTag:
        ...

    @abc.abstractmethod
    async def update_tag(self, remote_id: str, data: TagInput) -> RemoteTag:
        ...

    @abc.abstractmethod
    async def delete_tag(self, remote_id: str) -> None:
        ...

    @property
    @abc.abstractmethod
    def is_enabled(self) -> bool:
        """True if the user is signed in, i.e. synchronisation can run."""
        ...


class HttpRemoteStore(RemoteStore):
    """
    Remote store backed by the JSON API. Authenticated requests go through a ``TokenRefreshGate``, which owns the
    access token and refreshes it when the API answers 401.
    """

    REFRESH_PATH = "/v1/auth/refresh"
    REMINDERS_PATH = "/v1/reminders"
    TAGS_PATH = "/v1/tags"

    def __init__(self,
                 credential_store: CredentialStore,
                 base_url: str | None = None,
                 http_client: httpx.AsyncClient | None = None,
                 timeout: float | None = None):
        """
        Create a new HTTP remote store.

        :param credential_store: where the long-lived refresh credential is kept.
        :param base_url: base URL of the API (defaults to the ``REMINDSYNC_API_URL`` setting).
        :param http_client: an existing client to use. If not given, the store creates (and owns) one.
        :param timeout: request timeout in seconds (defaults to the ``REMINDSYNC_API_TIMEOUT`` setting).
        """
        self.base_url: str = (base_url or settings.API_URL).rstrip('/')
        self._owns_http_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout or settings.API_TIMEOUT))
        )
        self.gate = TokenRefreshGate(credential_store, self.refresh_tokens)

    @property
    def is_enabled(self) -> bool:
        return self.gate.is_authenticated

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def list_reminders(self) -> List[RemoteReminder]:
        payload = await self._authorized('GET', self.REMINDERS_PATH)
        return [RemoteReminder.model_validate(item) for item in _as_list(payload)]

    async def create_reminder(self, data: ReminderInput) -> RemoteReminder:
        payload = await self._authorized('POST', self.REMINDERS_PATH, data.model_dump(mode="json"))
        return RemoteReminder.model_validate(payload)

    async def update_reminder(self, remote_id: str, data: ReminderInput) -> RemoteReminder:
        payload = await self._authorized('PUT', '{}/{}'.format(self.REMINDERS_PATH, remote_id),
                                         data.model_dump(mode="json"))
        return RemoteReminder.model_validate(payload)

    async def delete_reminder(self, remote_id: str) -> None:
        await self._authorized('DELETE', '{}/{}'.format(self.REMINDERS_PATH, remote_id))

    async def list_tags(self) -> List[RemoteTag]:
        payload = await self._authorized('GET', self.TAGS_PATH)
        return [RemoteTag.model_validate(item) for item in _as_list(payload)]

    async def create_tag(self, data: TagInput) -> RemoteTag:
        payload = await self._authorized('POST', self.TAGS_PATH, data.model_dump(mode="json"))
        return RemoteTag.model_validate(payload)

    async def update_tag(self, remote_id: str, data: TagInput) -> RemoteTag:
        payload = await self._authorized('PUT', '{}/{}'.format(self.TAGS_PATH, remote_id), data.model_dump(mode="json"))
        return RemoteTag.model_validate(payload)

    async def delete_tag(self, remote_id: str) -> None:
        await self._authorized('DELETE', '{}/{}'.format(self.TAGS_PATH, remote_id))

    async def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """
        Exchange the refresh credential for a new token pair. This call bypasses the gate.

        :param refresh_token: the stored refresh credential.

        :return: the new access and refresh tokens.
        """
        payload = await self._send('POST', self.REFRESH_PATH, {'refresh_token': refresh_token})
        return TokenPair.model_validate(payload)

    async def _authorized(self, method: str, path: str, body: dict | None = None) -> Any:
        async def call(access_token: str | None) -> Any:
            return await self._send(method, path, body, access_token)

        return await self.gate.authorized_request(call)

    async def _send(self, method: str, path: str, body: dict | None = None, access_token: str | None = None) -> Any:
        headers = {'Accept': 'application/json'}
        if access_token:
            headers['Authorization'] = 'Bearer {}'.format(access_token)
        try:
            response = await self._http_client.request(method, self.base_url + path, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError('{} {} failed: {}'.format(method, path, e)) from e

        logging.debug('{} {} -> {}'.format(method, path, response.status_code))
        if response.status_code == 401:
            raise UnauthorizedResponse(_error_detail(response).get('message', 'Unauthorized'))
        if response.status_code >= 400:
            detail = _error_detail(response)
            raise RemoteError(response.status_code,
                              detail.get('message', response.reason_phrase or 'Request failed'),
                              code=detail.get('code'),
                              field=detail.get('field'))
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(response.status_code, 'Invalid JSON payload from remote API') from e


def _error_detail(response: httpx.Response) -> dict:
    """
    Extract ``{"code", "message", "field"}`` from an error body of the form ``{"error": {...}}``, if present.
    """
    try:
        payload = response.json()
    except ValueError:
        return {}
    if isinstance(payload, dict) and isinstance(payload.get('error'), dict):
        return {k: v for k, v in payload['error'].items() if v is not None}
    return {}


def _as_list(payload: Any) -> list:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise RemoteError(200, 'Expected a JSON list from remote API')
    return payload
