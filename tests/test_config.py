import os
import unittest
from unittest import mock

from kartarkiv_invoices.config import EmailSettings, SmtpSettings, env_int, resolve_account_number


class EnvIntTests(unittest.TestCase):
    def test_reads_whole_numbers(self) -> None:
        with mock.patch.dict(os.environ, {"INVOICE_TEST_INT": " 42 "}):
            self.assertEqual(env_int("INVOICE_TEST_INT", 7), 42)

    def test_malformed_or_small_values_keep_default(self) -> None:
        for raw in ("", "abc", "4.5", "+-3", "0", "-2"):
            with self.subTest(raw=raw):
                with mock.patch.dict(os.environ, {"INVOICE_TEST_INT": raw}):
                    self.assertEqual(env_int("INVOICE_TEST_INT", 7), 7)

    def test_unset_keeps_default(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(env_int("INVOICE_TEST_INT", 7), 7)


class SettingsTests(unittest.TestCase):
    def test_account_number_fallback_chain(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_account_number(), "00000000000")
        with mock.patch.dict(os.environ, {"SB1_ACCOUNT_NUMBER": "22222222222"}, clear=True):
            self.assertEqual(resolve_account_number(), "22222222222")
        with mock.patch.dict(
            os.environ,
            {"SB1_ACCOUNT_NUMBER": "22222222222", "INVOICE_ACCOUNT_NUMBER": "11111111111"},
            clear=True,
        ):
            self.assertEqual(resolve_account_number(), "11111111111")
            self.assertEqual(resolve_account_number(" 33333333333 "), "33333333333")

    def test_smtp_requires_all_credentials(self) -> None:
        env = {"SMTP_HOST": "smtp.example.no", "SMTP_PORT": "465", "SMTP_USER": "user"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertIsNone(SmtpSettings.from_env())
        with mock.patch.dict(os.environ, {**env, "SMTP_PASS": "secret"}, clear=True):
            settings = SmtpSettings.from_env()
        self.assertTrue(settings.implicit_tls)

    def test_email_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = EmailSettings.from_env()
        self.assertEqual(settings.max_attempts, 3)
        self.assertEqual(settings.overall_timeout_ms, 25000)
        self.assertIsNone(settings.smtp)
        self.assertIsNone(settings.resend_api_key)


if __name__ == "__main__":
    unittest.main()
