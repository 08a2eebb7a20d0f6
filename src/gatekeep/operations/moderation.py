#!/usr/bin/env python3
"""
Moderation Gate Module
Puts the daily quota in front of block/report calls and turns every answer
(including transport failures) into a ModerationOutcome.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from gatekeep.config import BULK_OPERATION_LIMIT, ERROR_MESSAGES, SUCCESS_MESSAGES
from gatekeep.core.errors import RateLimitExceeded, TransportError
from gatekeep.core.models import ActionResponse, RateLimitStatus
from gatekeep.core.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Error codes the backend puts in the message field
BLOCK_ERROR_CODES = {
    'SELF_BLOCK': 'SelfBlock',
    'ALREADY_BLOCKED': 'AlreadyBlocked',
    'DAILY_LIMIT_REACHED': 'DailyLimitReached',
    'USER_NOT_FOUND': 'UserNotFound',
    'BULK_LIMIT_EXCEEDED': 'BulkLimitExceeded',
    'NOT_FOUND': 'NotFound',
}

TRANSPORT_ERROR_CODE = 'TransportError'
UNKNOWN_ERROR_CODE = 'UNKNOWN_ERROR'


@dataclass(frozen=True)
class ModerationOutcome:
    success: bool
    code: Optional[str] = None
    message: str = ""
    status: Optional[RateLimitStatus] = None


def describe_error(code: Optional[str], kind: str = 'block', limit: Optional[int] = None) -> str:
    """User-facing text for a backend error code."""
    if code == BLOCK_ERROR_CODES['SELF_BLOCK']:
        return ERROR_MESSAGES['self_block']
    if code == BLOCK_ERROR_CODES['ALREADY_BLOCKED']:
        return ERROR_MESSAGES['already_blocked']
    if code == BLOCK_ERROR_CODES['DAILY_LIMIT_REACHED']:
        return ERROR_MESSAGES['daily_limit'].format(limit=limit if limit is not None else '', kind=kind)
    if code == BLOCK_ERROR_CODES['USER_NOT_FOUND']:
        return ERROR_MESSAGES['user_not_found']
    if code == BLOCK_ERROR_CODES['BULK_LIMIT_EXCEEDED']:
        return ERROR_MESSAGES['bulk_limit'].format(limit=BULK_OPERATION_LIMIT)
    if code == BLOCK_ERROR_CODES['NOT_FOUND']:
        return ERROR_MESSAGES['block_not_found']
    if code == TRANSPORT_ERROR_CODE:
        return ERROR_MESSAGES['connection_error']
    return ERROR_MESSAGES['unexpected']


class ModerationGate:
    """Block, unblock and report, with the local quota consulted first.

    The limiter only ever sees actions the server accepted; a rejection from
    the server is reported to the caller and not counted.
    """

    def __init__(self, authority, limiter: RateLimiter):
        self.authority = authority
        self.limiter = limiter

    def _known_code(self, message: Optional[str]) -> Optional[str]:
        return message if message in BLOCK_ERROR_CODES.values() else None

    async def _perform(self, kind: Optional[str], label: str, call) -> ModerationOutcome:
        status = None
        if kind is not None:
            try:
                status = self.limiter.ensure(kind)
            except RateLimitExceeded as e:
                logger.info(f"{label} skipped: local '{kind}' quota spent ({e.limit}/day)")
                return ModerationOutcome(
                    success=False,
                    code=BLOCK_ERROR_CODES['DAILY_LIMIT_REACHED'],
                    message=describe_error(BLOCK_ERROR_CODES['DAILY_LIMIT_REACHED'], kind, e.limit),
                    status=self.limiter.status(kind),
                )

        try:
            response: ActionResponse = await call()
        except TransportError as e:
            logger.warning(f"{label} failed: {e.message}")
            return ModerationOutcome(success=False, code=TRANSPORT_ERROR_CODE,
                                     message=describe_error(TRANSPORT_ERROR_CODE), status=status)
        except Exception as e:
            logger.error(f"Unexpected error during {label.lower()}: {e}")
            return ModerationOutcome(success=False, code=UNKNOWN_ERROR_CODE,
                                     message=describe_error(UNKNOWN_ERROR_CODE), status=status)

        if not response.success:
            code = self._known_code(response.message) or UNKNOWN_ERROR_CODE
            limit = self.limiter.daily_limit(kind) if kind is not None else None
            logger.warning(f"{label} rejected by server: {response.message or code}")
            return ModerationOutcome(success=False, code=code, message=describe_error(code, kind or 'block', limit),
                                     status=status)

        if kind is not None:
            status = self.limiter.record_action(kind)
        return ModerationOutcome(success=True, message=SUCCESS_MESSAGES['action_done'].format(kind=label),
                                 status=status)

    async def block_user(self, target_id: str) -> ModerationOutcome:
        return await self._perform('block', 'Block', lambda: self.authority.block_user(target_id))

    async def unblock_user(self, target_id: str) -> ModerationOutcome:
        return await self._perform(None, 'Unblock', lambda: self.authority.unblock_user(target_id))

    async def report_content(self, payload: Dict[str, Any]) -> ModerationOutcome:
        return await self._perform('report', 'Report', lambda: self.authority.report_content(payload))
