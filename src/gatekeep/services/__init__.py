#!/usr/bin/env python3
"""
Services Package

The remote authority boundary: what the checker, the verifier and the
moderation gate need from the backend, and the factory that builds the HTTP
implementation from settings.

Contract for any authority (the HTTP one, a test fake, a plugin):
- every method is a coroutine
- transport failures raise gatekeep.core.errors.TransportError
- answers are already normalized to ExistsResponse / ActionResponse
"""

from typing import Any, Dict, Optional, Protocol

from gatekeep.config import Settings, load_settings
from gatekeep.core.models import ActionResponse, ExistsResponse
from gatekeep.services.http_authority import ENDPOINTS, HttpAuthority


class RemoteAuthority(Protocol):
    async def check_phone_exists(self, full_phone: str) -> ExistsResponse:
        ...

    async def send_otp(self, user_id: str, recipient: str, method: str) -> ActionResponse:
        ...

    async def validate_otp(self, user_id: str, otp: str, recipient: str) -> ActionResponse:
        ...

    async def check_username_exists(self, username: str) -> ExistsResponse:
        ...

    async def block_user(self, target_id: str) -> ActionResponse:
        ...

    async def unblock_user(self, target_id: str) -> ActionResponse:
        ...

    async def report_content(self, payload: Dict[str, Any]) -> ActionResponse:
        ...


def create_authority(settings: Optional[Settings] = None) -> HttpAuthority:
    """Build the HTTP authority from settings (loaded from the environment when omitted)."""
    settings = settings or load_settings()
    return HttpAuthority(settings.api_url, timeout=settings.timeout, auth_token=settings.auth_token)


__all__ = ['ENDPOINTS', 'HttpAuthority', 'RemoteAuthority', 'create_authority']
