import unittest

from gatekeep.core.errors import ValidationError
from gatekeep.core.validators import (
    PHONE, USERNAME, has_allowed_charset, sanitize_otp, validate_candidate, validate_otp,
    validate_phone_for_verification,
)


class TestValidators(unittest.TestCase):
    def assertReason(self, value, reason, rules=USERNAME):
        with self.assertRaises(ValidationError) as ctx:
            validate_candidate(value, rules)
        self.assertEqual(ctx.exception.reason, reason)

    def test_charset(self):
        self.assertTrue(has_allowed_charset("john_doe1"))
        self.assertTrue(has_allowed_charset("a.b-c!@#"))
        self.assertFalse(has_allowed_charset("john doe"))
        self.assertFalse(has_allowed_charset("tab\there"))
        self.assertFalse(has_allowed_charset("jöhn"))

    def test_username_rules(self):
        self.assertEqual(validate_candidate("john_doe1"), "john_doe1")
        self.assertReason("", "empty")
        self.assertReason("ab", "min_length")
        self.assertReason("john doe", "charset")
        self.assertReason("x" * 31, "max_length")
        self.assertReason("   ", "empty")

    def test_phone_rules(self):
        self.assertEqual(validate_candidate("+573001234567", PHONE), "+573001234567")
        self.assertReason("+57300", "min_length", PHONE)
        self.assertReason("300-123-4567", "charset", PHONE)
        self.assertReason("+" + "1" * 16, "max_length", PHONE)

    def test_phone_for_verification(self):
        self.assertEqual(validate_phone_for_verification(" 3001234567 "), "3001234567")
        with self.assertRaises(ValidationError):
            validate_phone_for_verification("")
        with self.assertRaises(ValidationError):
            validate_phone_for_verification("123456")

    def test_otp(self):
        self.assertEqual(sanitize_otp("12 34-5678"), "123456")
        self.assertEqual(sanitize_otp(None), "")
        self.assertEqual(validate_otp("123456"), "123456")
        with self.assertRaises(ValidationError):
            validate_otp("  ")


if __name__ == '__main__':
    unittest.main()
