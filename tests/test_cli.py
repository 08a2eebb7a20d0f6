import json
import os
import tempfile
import unittest
from unittest.mock import patch

from gatekeep import gatekeep_cli

from fakes import FakeAuthority

CLEAN_ENV = {k: v for k, v in os.environ.items() if not k.startswith("GATEKEEP_")}


@patch.dict(os.environ, CLEAN_ENV, clear=True)
class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.state_file = os.path.join(self.tmpdir.name, "limits.json")

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_nothing_to_do(self):
        self.assertEqual(gatekeep_cli.main(["--no-banner"]), 1)

    def test_verify_phone_requires_user_id(self):
        self.assertEqual(gatekeep_cli.main(["--no-banner", "--verify-phone", "3001234567"]), 1)

    def test_record_action_writes_state_file(self):
        code = gatekeep_cli.main(["--no-banner", "--state-file", self.state_file, "--record-action", "block"])

        self.assertEqual(code, 0)
        with open(self.state_file, 'r', encoding='utf-8') as f:
            self.assertEqual(json.load(f)["block"]["count"], 1)

    def test_unknown_action_kind(self):
        code = gatekeep_cli.main(["--no-banner", "--state-file", self.state_file, "--record-action", "follow"])
        self.assertEqual(code, 1)

    def test_check_username_exit_codes(self):
        authority = FakeAuthority(taken_usernames={"taken_name"})
        with patch.object(gatekeep_cli, "create_authority", return_value=authority):
            self.assertEqual(gatekeep_cli.main(["--no-banner", "--check-username", "john_doe1"]), 0)
            self.assertEqual(gatekeep_cli.main(["--no-banner", "--check-username", "taken_name"]), 1)
            self.assertEqual(gatekeep_cli.main(["--no-banner", "--check-username", "john doe"]), 1)
        self.assertTrue(authority.closed)

    def test_check_phone_composes_dial_code(self):
        authority = FakeAuthority()
        with patch.object(gatekeep_cli, "create_authority", return_value=authority):
            code = gatekeep_cli.main(["--no-banner", "--check-phone", "300 1234567", "--dial-code", "+57"])

        self.assertEqual(code, 0)
        self.assertEqual(authority.calls_to('check_phone_exists'), [("+573001234567",)])


if __name__ == '__main__':
    unittest.main()
