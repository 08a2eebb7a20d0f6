#!/usr/bin/env python3
"""
Phone Verification Module

State machine for proving ownership of a phone number with a one-time code:

    start -> checking -> method -> code -> (verified, session closed)
                 checking -> error

``error`` reached because the number is already registered is terminal (only
``close`` leaves it). ``error`` reached because the existence check failed is
recoverable through ``retry``. Remote calls are made once per user action and
never retried automatically, so a code is never re-sent behind the user's back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Literal, Optional

from gatekeep.config import ERROR_MESSAGES, OTP_METHODS, SUCCESS_MESSAGES
from gatekeep.core.errors import TransportError, ValidationError
from gatekeep.core.validators import sanitize_otp, validate_otp, validate_phone_for_verification
from gatekeep.utils import compose_full_phone, mask_phone

logger = logging.getLogger(__name__)

VerificationState = Literal["method", "checking", "code", "error"]
Channel = Literal["sms", "whatsapp"]


@dataclass
class VerificationSession:
    """One verification attempt; discarded when the surface closes."""
    phone: str
    national_number: str = ""
    dial_code: str = ""
    state: VerificationState = "checking"
    method: Optional[Channel] = None
    attempts_on_code: int = 0
    phone_exists: Optional[bool] = None
    otp_code: str = ""
    message: Optional[str] = None
    busy: bool = False
    alive: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.state == "error" and self.phone_exists is True

    @property
    def is_retryable(self) -> bool:
        return self.state == "error" and self.phone_exists is None


class PhoneVerifier:
    """Drives a single VerificationSession against the remote authority."""

    def __init__(self, authority, user_id: str, on_verified: Optional[Callable[[str], None]] = None):
        self.authority = authority
        self.user_id = user_id
        self.on_verified = on_verified
        self.phone_verified = False
        self.verified_phone: Optional[str] = None
        self.last_message: Optional[str] = None
        self._session: Optional[VerificationSession] = None
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    # --- Observation -------------------------------------------------------

    @property
    def session(self) -> Optional[VerificationSession]:
        return self._session

    @property
    def state(self) -> Optional[VerificationState]:
        return self._session.state if self._session else None

    def snapshot(self) -> Dict[str, Any]:
        session = self._session
        return {
            'state': session.state if session else None,
            'phone_exists': session.phone_exists if session else None,
            'method': session.method if session else None,
            'attempts_on_code': session.attempts_on_code if session else 0,
            'message': session.message if session else self.last_message,
            'busy': session.busy if session else False,
            'phone_verified': self.phone_verified,
        }

    def subscribe(self, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self):
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Verification listener failed")

    def available_actions(self) -> FrozenSet[str]:
        """Actions a caller may offer in the current state."""
        session = self._session
        if session is None:
            return frozenset({'start'})
        if session.busy:
            return frozenset({'close'})
        if session.state == "method":
            return frozenset({'send', 'close'})
        if session.state == "code":
            return frozenset({'validate', 'switch_method', 'set_otp', 'close'})
        if session.is_retryable:
            return frozenset({'retry', 'close'})
        return frozenset({'close'})

    # --- Helpers -----------------------------------------------------------

    def _accepts(self, action: str) -> bool:
        if action in self.available_actions():
            return True
        logger.warning(f"Ignoring '{action}' in state {self.state!r}")
        return False

    def _still_current(self, session: VerificationSession) -> bool:
        if session.alive and self._session is session:
            return True
        logger.debug(f"Dropping late response for closed session {mask_phone(session.phone)}")
        return False

    # --- Transitions -------------------------------------------------------

    async def start(self, phone: str, dial_code: str = "") -> bool:
        """Open a session and check whether the number is already registered.

        Returns True when the session reaches ``method``.
        """
        if self._session is not None and not (self._session.is_retryable and not self._session.busy):
            logger.warning(f"Ignoring 'start' in state {self.state!r}; close the session first")
            return False
        try:
            national = validate_phone_for_verification(phone)
        except ValidationError as e:
            self.last_message = e.message
            self._notify()
            return False

        self.last_message = None
        if self._session is not None:
            self._session.alive = False
        full_phone = compose_full_phone(dial_code, national)
        session = VerificationSession(phone=full_phone, national_number=national, dial_code=dial_code,
                                      state="checking", busy=True)
        self._session = session
        self._notify()
        logger.info(f"Checking whether {mask_phone(full_phone)} is registered")

        try:
            response = await self.authority.check_phone_exists(full_phone)
            failure = None if response.success else (response.message or ERROR_MESSAGES['phone_check_failed'])
        except TransportError as e:
            response, failure = None, e.message
        except Exception as e:
            logger.error(f"Unexpected error checking {mask_phone(full_phone)}: {e}")
            response, failure = None, str(e)

        if not self._still_current(session):
            return False
        session.busy = False

        if failure is not None:
            logger.warning(f"Phone existence check failed for {mask_phone(full_phone)}: {failure}")
            session.phone_exists = None
            session.state = "error"
            session.message = ERROR_MESSAGES['phone_check_failed']
        elif response.exists:
            session.phone_exists = True
            session.state = "error"
            session.message = ERROR_MESSAGES['phone_registered']
        else:
            session.phone_exists = False
            session.state = "method"
            session.message = None

        self._notify()
        return session.state == "method"

    async def retry(self) -> bool:
        """Re-run the existence check after a failed (not a 'registered') check."""
        session = self._session
        if session is None or not self._accepts('retry'):
            return False
        return await self.start(session.national_number, session.dial_code)

    async def send(self, method: str) -> bool:
        """Ask the server to deliver a code over ``method``; True moves to ``code``."""
        session = self._session
        if session is None or not self._accepts('send'):
            return False
        if method not in OTP_METHODS:
            session.message = ERROR_MESSAGES['unknown_method'].format(method=method)
            self._notify()
            return False

        session.busy = True
        session.method = method
        session.message = None
        self._notify()
        logger.info(f"Requesting {method} code for {mask_phone(session.phone)}")

        try:
            response = await self.authority.send_otp(self.user_id, session.phone, method)
            failure = None if response.success else (response.message or ERROR_MESSAGES['otp_send_failed'])
        except TransportError as e:
            failure = e.message or ERROR_MESSAGES['connection_error']
        except Exception as e:
            logger.error(f"Unexpected error sending code to {mask_phone(session.phone)}: {e}")
            failure = ERROR_MESSAGES['otp_send_failed']

        if not self._still_current(session):
            return False
        session.busy = False

        if failure is not None:
            logger.warning(f"Sending {method} code failed: {failure}")
            session.message = failure
            self._notify()
            return False

        session.state = "code"
        session.otp_code = ""
        session.message = SUCCESS_MESSAGES['otp_sent'].format(method='WhatsApp' if method == 'whatsapp' else 'SMS')
        self._notify()
        return True

    def set_otp(self, text: str) -> str:
        """Update the code input; only digits are kept."""
        session = self._session
        if session is None or session.state != "code":
            return ""
        session.otp_code = sanitize_otp(text)
        return session.otp_code

    async def validate(self, code: Optional[str] = None) -> bool:
        """Submit the code. True means the phone is verified and the session is closed."""
        session = self._session
        if session is None or not self._accepts('validate'):
            return False
        if code is not None:
            session.otp_code = sanitize_otp(code)

        try:
            otp = validate_otp(session.otp_code)
        except ValidationError as e:
            session.message = e.message
            self._notify()
            return False

        session.busy = True
        session.message = None
        self._notify()

        try:
            response = await self.authority.validate_otp(self.user_id, otp, session.phone)
            accepted = response.success and response.data is not False
            failure = None if accepted else (response.message or ERROR_MESSAGES['otp_invalid'])
        except TransportError as e:
            failure = e.message or ERROR_MESSAGES['connection_error']
        except Exception as e:
            logger.error(f"Unexpected error validating code for {mask_phone(session.phone)}: {e}")
            failure = ERROR_MESSAGES['unexpected']

        if not self._still_current(session):
            return False
        session.busy = False

        if failure is not None:
            session.attempts_on_code += 1
            session.message = failure
            logger.warning(f"Code rejected for {mask_phone(session.phone)} (attempt {session.attempts_on_code})")
            self._notify()
            return False

        self.phone_verified = True
        self.verified_phone = session.phone
        logger.info(f"Phone {mask_phone(session.phone)} verified")
        self._close_session()
        self.last_message = SUCCESS_MESSAGES['phone_verified']
        if self.on_verified is not None:
            self.on_verified(session.phone)
        self._notify()
        return True

    def switch_method(self) -> bool:
        """Go back to channel selection, clearing the typed code."""
        session = self._session
        if session is None or not self._accepts('switch_method'):
            return False
        session.state = "method"
        session.otp_code = ""
        session.message = None
        self._notify()
        return True

    def _close_session(self):
        if self._session is not None:
            self._session.alive = False
            self._session = None

    def close(self):
        """Discard the session from any state; pending responses become inert."""
        self._close_session()
        self.last_message = None
        self._notify()

