#!/usr/bin/env python3
"""
HttpAuthority talks to the backend over HTTP with a shared requests.Session.

Blocking requests run in a worker thread (``asyncio.to_thread``) so callers on
the event loop stay responsive. Every transport failure becomes a
``TransportError``; every payload is normalized by ``core.adapters`` before it
leaves this module.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from gatekeep.config import REQUEST_TIMEOUT, VERIFICATION_TYPE
from gatekeep.core.adapters import to_action_response, to_exists_response, to_matches_response
from gatekeep.core.errors import TransportError
from gatekeep.core.models import ActionResponse, ExistsResponse
from gatekeep.utils import mask_phone

logger = logging.getLogger(__name__)

ENDPOINTS = {
    'phone_exists': ('POST', '/user/phone/exists'),
    'otp_request': ('POST', '/user/otp/request'),
    'otp_validate': ('POST', '/user/otp/validate'),
    'find_users': ('POST', '/users/find'),
    'block_user': ('POST', '/userblock'),
    'unblock_user': ('DELETE', '/userblock/{target_id}'),
    'report_content': ('POST', '/reportcontent'),
}


class HttpAuthority:
    """Remote authority backed by the REST API."""

    def __init__(self, base_url: str, timeout: int = REQUEST_TIMEOUT, auth_token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = max(int(timeout or REQUEST_TIMEOUT), 1)
        self.session = session or requests.Session()
        self._setup_session(auth_token)

    def _setup_session(self, auth_token: Optional[str]):
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json, text/plain, */*",
                "Accept-Encoding": "gzip, deflate, br",
                "Connection": "keep-alive",
                "User-Agent": "gatekeep/1.0",
            }
        )
        if auth_token:
            self.session.headers["Authorization"] = f"Bearer {auth_token}"

    def _url(self, endpoint: str, **params) -> str:
        _, path = ENDPOINTS[endpoint]
        return f"{self.base_url}{path.format(**params)}"

    def _request(self, endpoint: str, payload: Optional[Dict[str, Any]] = None, **params) -> Any:
        method = ENDPOINTS[endpoint][0]
        url = self._url(endpoint, **params)
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise TransportError("Request timeout")
        except requests.exceptions.ConnectionError:
            raise TransportError("Connection failed")
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed: {e}")

        logger.debug(f"{method} {endpoint}: status={resp.status_code}")
        if resp.status_code >= 500:
            raise TransportError(f"Server error {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            preview = (resp.text or "")[:200].replace("\n", " ")
            raise TransportError(f"Unreadable response from {endpoint}: {preview!r}", status_code=resp.status_code)

    async def _call(self, endpoint: str, payload: Optional[Dict[str, Any]] = None, **params) -> Any:
        return await asyncio.to_thread(self._request, endpoint, payload, **params)

    async def check_phone_exists(self, full_phone: str) -> ExistsResponse:
        logger.debug(f"Checking phone {mask_phone(full_phone)}")
        return to_exists_response(await self._call('phone_exists', {'Phone': full_phone}))

    async def send_otp(self, user_id: str, recipient: str, method: str) -> ActionResponse:
        payload = {
            'userId': user_id,
            'verificationType': VERIFICATION_TYPE,
            'recipient': recipient,
            'method': method,
        }
        return to_action_response(await self._call('otp_request', payload))

    async def validate_otp(self, user_id: str, otp: str, recipient: str) -> ActionResponse:
        payload = {
            'userId': user_id,
            'otp': otp,
            'verificationType': VERIFICATION_TYPE,
            'recipient': recipient,
        }
        return to_action_response(await self._call('otp_validate', payload))

    async def check_username_exists(self, username: str) -> ExistsResponse:
        return to_matches_response(await self._call('find_users', {'UserName': username}))

    async def block_user(self, target_id: str) -> ActionResponse:
        return to_action_response(await self._call('block_user', {'BlockedUserId': target_id}))

    async def unblock_user(self, target_id: str) -> ActionResponse:
        return to_action_response(await self._call('unblock_user', target_id=target_id))

    async def report_content(self, payload: Dict[str, Any]) -> ActionResponse:
        return to_action_response(await self._call('report_content', dict(payload)))

    def close(self):
        self.session.close()
