#!/usr/bin/env python3
"""
Gatekeep Configuration Module
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import yaml

# Application Information
APP_NAME = "Gatekeep"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Gate user actions on remote uniqueness checks, OTP verification and daily quotas"

# Default Settings
DEFAULT_API_URL = "http://localhost:7071/api"
DEFAULT_DEBOUNCE_MS = 750
DEFAULT_CACHE_TTL = 300  # seconds
DEFAULT_STATE_FILE = os.path.join("~", ".gatekeep", "rate_limits.json")

# Request Settings
REQUEST_TIMEOUT = 12

# Field rules
USERNAME_RULES = {
    'min_length': 3,
    'max_length': 30,
    # letters, digits and printable symbols; no whitespace
    'pattern': r'^[a-zA-Z0-9!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>/?]*$',
}

PHONE_RULES = {
    'min_length': 7,
    'max_length': 16,  # '+' and up to 15 digits
    'pattern': r'^\+?[0-9]*$',
}

OTP_LENGTH = 6
VERIFICATION_TYPE = "Phone"
OTP_METHODS = ('sms', 'whatsapp')

# Daily quotas per action kind
DAILY_ACTION_LIMITS = {
    'block': 20,
    'report': 10,
}

BULK_OPERATION_LIMIT = 50

# Status messages
STATUS_MESSAGES = {
    'idle': '·',
    'checking': '🔍',
    'available': '✅',
    'taken': '❌',
    'invalid': '⚠️',
}

# Error messages
ERROR_MESSAGES = {
    'empty': "Please enter a value first.",
    'min_length': "{field} must be at least {min} characters long.",
    'max_length': "{field} must be at most {max} characters long.",
    'charset': "Only letters, numbers and symbols are allowed. Spaces are not allowed.",
    'phone_charset': "Phone number may only contain digits.",
    'taken': "This {field} is already in use.",
    'connection_error': "Could not reach the server. Check your connection and try again.",
    'check_failed': "Could not verify the {field}. Please try again.",
    'phone_required': "Please enter a phone number first.",
    'phone_too_short': "The phone number must have at least {min} digits.",
    'phone_registered': "This number is already registered, try another one.",
    'phone_check_failed': "Could not check the phone number. Please try again.",
    'otp_required': "Please enter the verification code.",
    'otp_send_failed': "Could not send the verification code.",
    'otp_invalid': "Incorrect code.",
    'unknown_method': "Unknown verification method '{method}'.",
    'daily_limit': "You have reached the daily limit of {limit} {kind} actions.",
    'self_block': "You cannot block yourself.",
    'already_blocked': "This user is already blocked.",
    'user_not_found': "User not found or inactive.",
    'bulk_limit': "At most {limit} users per operation.",
    'block_not_found': "Block not found.",
    'unexpected': "An unexpected error occurred.",
}

# Success messages
SUCCESS_MESSAGES = {
    'available': "This {field} is available.",
    'otp_sent': "Code sent via {method}.",
    'phone_verified': "Phone verified successfully!",
    'action_done': "{kind} completed.",
}

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Runtime settings; defaults come from the constants above."""
    api_url: str = DEFAULT_API_URL
    timeout: int = REQUEST_TIMEOUT
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    cache_ttl: int = DEFAULT_CACHE_TTL
    state_file: str = DEFAULT_STATE_FILE
    auth_token: Optional[str] = None
    daily_limits: Dict[str, int] = field(default_factory=lambda: dict(DAILY_ACTION_LIMITS))

    @property
    def state_path(self) -> str:
        return os.path.expanduser(self.state_file)


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            if path.endswith(('.yaml', '.yml')):
                data = yaml.safe_load(fh)
            else:
                data = json.load(fh)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Invalid config file '{os.path.basename(path)}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file is not a mapping: {os.path.basename(path)}")
    return data


def _parse_limits(value: Any, path: str) -> Dict[str, int]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'daily_limits' must be a mapping of action kind to count in {os.path.basename(path)}")
    try:
        return {str(k): int(v) for k, v in value.items()}
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid 'daily_limits' in {os.path.basename(path)}: {e}") from e


def load_settings(path: Optional[str] = None) -> Settings:
    """Build settings from defaults, an optional JSON/YAML file and the environment.

    The file is taken from ``path`` or ``GATEKEEP_CONFIG``. Environment
    variables ``GATEKEEP_API_URL``, ``GATEKEEP_STATE_FILE`` and
    ``GATEKEEP_TIMEOUT`` win over the file.
    """
    settings = Settings()
    config_path = path or os.environ.get('GATEKEEP_CONFIG')

    if config_path:
        data = _read_config_file(config_path)
        known = {f.name for f in fields(Settings)}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' in {os.path.basename(config_path)}")
                continue
            if key == 'daily_limits':
                settings.daily_limits.update(_parse_limits(value, config_path))
            else:
                setattr(settings, key, value)
        logger.debug(f"Loaded settings from {config_path}")

    api_url = os.environ.get('GATEKEEP_API_URL')
    if api_url:
        settings.api_url = api_url
    state_file = os.environ.get('GATEKEEP_STATE_FILE')
    if state_file:
        settings.state_file = state_file
    timeout = os.environ.get('GATEKEEP_TIMEOUT')
    if timeout:
        try:
            settings.timeout = int(timeout)
        except ValueError:
            raise ValueError(f"GATEKEEP_TIMEOUT must be an integer, got {timeout!r}")

    settings.timeout = max(int(settings.timeout), 1)
    settings.debounce_ms = max(int(settings.debounce_ms), 0)
    settings.cache_ttl = max(int(settings.cache_ttl), 1)
    return settings
