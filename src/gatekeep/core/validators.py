#!/usr/bin/env python3
"""
Local input validation. Nothing here touches the network.
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict

from gatekeep.config import ERROR_MESSAGES, OTP_LENGTH, PHONE_RULES, USERNAME_RULES
from gatekeep.core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRules:
    name: str
    min_length: int
    max_length: int
    pattern: str
    charset_message: str = ERROR_MESSAGES['charset']

    @classmethod
    def from_config(cls, name: str, rules: Dict[str, Any], charset_message: str = ERROR_MESSAGES['charset']) -> "FieldRules":
        return cls(
            name=name,
            min_length=int(rules['min_length']),
            max_length=int(rules['max_length']),
            pattern=rules['pattern'],
            charset_message=charset_message,
        )


USERNAME = FieldRules.from_config("username", USERNAME_RULES)
PHONE = FieldRules.from_config("phone", PHONE_RULES, ERROR_MESSAGES['phone_charset'])


def has_allowed_charset(value: str, rules: FieldRules = USERNAME) -> bool:
    """Letters, digits and the allowed symbols only; whitespace is always rejected."""
    if any(ch.isspace() for ch in value):
        return False
    return re.fullmatch(rules.pattern, value) is not None


def validate_candidate(value: str, rules: FieldRules = USERNAME) -> str:
    """
    Validate a value before asking the server whether it is taken.

    Args:
        value: Raw input
        rules: Field rules to apply

    Returns:
        str: The value, unchanged

    Raises:
        ValidationError: reason is one of 'empty', 'min_length', 'charset', 'max_length'
    """
    if not value or not value.strip():
        raise ValidationError(ERROR_MESSAGES['empty'], reason='empty')

    if len(value) < rules.min_length:
        raise ValidationError(
            ERROR_MESSAGES['min_length'].format(field=rules.name.capitalize(), min=rules.min_length),
            reason='min_length',
        )

    if not has_allowed_charset(value, rules):
        raise ValidationError(rules.charset_message, reason='charset')

    if len(value) > rules.max_length:
        raise ValidationError(
            ERROR_MESSAGES['max_length'].format(field=rules.name.capitalize(), max=rules.max_length),
            reason='max_length',
        )
    return value


def validate_phone_for_verification(national_number: str) -> str:
    """Preconditions for starting a phone verification; returns the stripped number."""
    phone = (national_number or "").strip()
    if not phone:
        raise ValidationError(ERROR_MESSAGES['phone_required'], reason='empty')
    if len(phone) < PHONE.min_length:
        raise ValidationError(ERROR_MESSAGES['phone_too_short'].format(min=PHONE.min_length), reason='min_length')
    return phone


def sanitize_otp(text: str) -> str:
    """Keep digits only, at most OTP_LENGTH of them."""
    return re.sub(r'[^0-9]', '', text or '')[:OTP_LENGTH]


def validate_otp(code: str) -> str:
    otp = (code or "").strip()
    if not otp:
        raise ValidationError(ERROR_MESSAGES['otp_required'], reason='empty')
    return otp
