import asyncio
import unittest

from gatekeep.config import ERROR_MESSAGES, SUCCESS_MESSAGES
from gatekeep.core.models import ActionResponse
from gatekeep.core.verification import PhoneVerifier

from fakes import FakeAuthority

PHONE = "3001234567"
DIAL = "+57"
FULL = "+573001234567"


class TestPhoneVerifier(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.authority = FakeAuthority()
        self.verified = []
        self.verifier = PhoneVerifier(self.authority, "user-1", on_verified=self.verified.append)

    async def test_happy_path_verifies_and_closes(self):
        self.assertTrue(await self.verifier.start(PHONE, DIAL))
        self.assertEqual(self.verifier.state, "method")
        self.assertEqual(self.authority.calls_to('check_phone_exists'), [(FULL,)])

        self.assertTrue(await self.verifier.send("whatsapp"))
        self.assertEqual(self.verifier.state, "code")
        self.assertEqual(self.authority.calls_to('send_otp'), [("user-1", FULL, "whatsapp")])
        self.assertEqual(self.verifier.session.message, SUCCESS_MESSAGES['otp_sent'].format(method="WhatsApp"))

        self.assertTrue(await self.verifier.validate("123456"))
        self.assertIsNone(self.verifier.session)
        self.assertTrue(self.verifier.phone_verified)
        self.assertEqual(self.verifier.verified_phone, FULL)
        self.assertEqual(self.verified, [FULL])
        self.assertEqual(self.verifier.snapshot()['message'], SUCCESS_MESSAGES['phone_verified'])
        self.assertEqual(self.authority.calls_to('validate_otp'), [("user-1", "123456", FULL)])

    async def test_registered_number_is_terminal(self):
        self.authority.registered_phones.add(FULL)

        self.assertFalse(await self.verifier.start(PHONE, DIAL))
        self.assertEqual(self.verifier.state, "error")
        self.assertIs(self.verifier.session.phone_exists, True)
        self.assertEqual(self.verifier.session.message, ERROR_MESSAGES['phone_registered'])
        self.assertEqual(self.verifier.available_actions(), frozenset({'close'}))

        self.assertFalse(await self.verifier.send("sms"))
        self.assertFalse(await self.verifier.validate("123456"))
        self.assertFalse(await self.verifier.retry())
        self.assertFalse(await self.verifier.start(PHONE, DIAL))
        self.assertEqual(self.authority.calls_to('send_otp'), [])
        self.assertEqual(self.authority.calls_to('validate_otp'), [])
        self.assertEqual(len(self.authority.calls_to('check_phone_exists')), 1)

        self.verifier.close()
        self.assertIsNone(self.verifier.state)
        self.assertEqual(self.verifier.available_actions(), frozenset({'start'}))

    async def test_failed_check_is_recoverable_with_retry(self):
        self.authority.fail.add('check_phone_exists')

        self.assertFalse(await self.verifier.start(PHONE, DIAL))
        self.assertEqual(self.verifier.state, "error")
        self.assertIsNone(self.verifier.session.phone_exists)
        self.assertIn('retry', self.verifier.available_actions())

        self.authority.fail.clear()
        self.assertTrue(await self.verifier.retry())
        self.assertEqual(self.verifier.state, "method")

    async def test_unsuccessful_check_response_is_not_registered(self):
        from gatekeep.core.models import ExistsResponse
        self.authority.responses['check_phone_exists'] = ExistsResponse(success=False, exists=True)

        await self.verifier.start(PHONE, DIAL)

        self.assertEqual(self.verifier.state, "error")
        self.assertIsNone(self.verifier.session.phone_exists)

    async def test_short_number_never_reaches_network(self):
        self.assertFalse(await self.verifier.start("12345", DIAL))
        self.assertIsNone(self.verifier.state)
        self.assertEqual(self.verifier.snapshot()['message'], ERROR_MESSAGES['phone_too_short'].format(min=7))
        self.assertEqual(self.authority.calls, [])

    async def test_send_failure_stays_in_method(self):
        await self.verifier.start(PHONE, DIAL)
        self.authority.responses['send_otp'] = ActionResponse(success=False, message="Provider down")

        self.assertFalse(await self.verifier.send("sms"))
        self.assertEqual(self.verifier.state, "method")
        self.assertEqual(self.verifier.session.message, "Provider down")

        del self.authority.responses['send_otp']
        self.assertTrue(await self.verifier.send("sms"))
        self.assertEqual(len(self.authority.calls_to('send_otp')), 2)

    async def test_unknown_method_is_rejected_locally(self):
        await self.verifier.start(PHONE, DIAL)
        self.assertFalse(await self.verifier.send("pigeon"))
        self.assertEqual(self.verifier.state, "method")
        self.assertEqual(self.authority.calls_to('send_otp'), [])

    async def test_empty_code_is_rejected_without_remote_call(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")

        self.assertFalse(await self.verifier.validate(""))
        self.assertFalse(await self.verifier.validate("abc"))
        self.assertEqual(self.verifier.session.message, ERROR_MESSAGES['otp_required'])
        self.assertEqual(self.verifier.session.attempts_on_code, 0)
        self.assertEqual(self.authority.calls_to('validate_otp'), [])

    async def test_wrong_code_counts_attempt_and_stays_in_code(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")

        self.assertFalse(await self.verifier.validate("000000"))
        self.assertFalse(await self.verifier.validate("111111"))

        self.assertEqual(self.verifier.state, "code")
        self.assertEqual(self.verifier.session.attempts_on_code, 2)
        self.assertFalse(self.verifier.phone_verified)
        self.assertEqual(self.verified, [])

    async def test_validate_rejects_success_with_false_data(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")
        self.authority.responses['validate_otp'] = ActionResponse(success=True, data=False)

        self.assertFalse(await self.verifier.validate("123456"))
        self.assertEqual(self.verifier.session.message, ERROR_MESSAGES['otp_invalid'])

    async def test_set_otp_keeps_digits_only(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")

        self.assertEqual(self.verifier.set_otp("12a3-45 678"), "123456")
        self.assertTrue(await self.verifier.validate())

    async def test_switch_method_clears_code(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")
        self.verifier.set_otp("123")

        self.assertTrue(self.verifier.switch_method())
        self.assertEqual(self.verifier.state, "method")
        self.assertEqual(self.verifier.session.otp_code, "")
        self.assertTrue(await self.verifier.send("whatsapp"))

    async def test_busy_session_accepts_only_close(self):
        await self.verifier.start(PHONE, DIAL)
        gate = self.authority.hold('send_otp')
        task = asyncio.ensure_future(self.verifier.send("sms"))
        await asyncio.sleep(0)

        self.assertEqual(self.verifier.available_actions(), frozenset({'close'}))
        self.assertFalse(await self.verifier.send("whatsapp"))

        gate.set()
        self.assertTrue(await task)
        self.assertEqual(len(self.authority.calls_to('send_otp')), 1)

    async def test_close_during_check_makes_response_inert(self):
        gate = self.authority.hold('check_phone_exists')
        snapshots = []
        self.verifier.subscribe(snapshots.append)
        task = asyncio.ensure_future(self.verifier.start(PHONE, DIAL))
        await asyncio.sleep(0)

        self.verifier.close()
        count = len(snapshots)
        gate.set()

        self.assertFalse(await task)
        self.assertIsNone(self.verifier.state)
        self.assertEqual(len(snapshots), count)

    async def test_close_during_validate_does_not_verify(self):
        await self.verifier.start(PHONE, DIAL)
        await self.verifier.send("sms")
        gate = self.authority.hold('validate_otp')
        task = asyncio.ensure_future(self.verifier.validate("123456"))
        await asyncio.sleep(0)

        self.verifier.close()
        gate.set()

        self.assertFalse(await task)
        self.assertFalse(self.verifier.phone_verified)
        self.assertEqual(self.verified, [])


if __name__ == '__main__':
    unittest.main()
