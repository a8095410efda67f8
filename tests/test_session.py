import tempfile
import unittest
from pathlib import Path

from expense_tracker.errors import AccountCreationError, AuthenticationError
from expense_tracker.session import INVALID_CREDENTIALS, SessionManager
from expense_tracker.state import AppState
from expense_tracker.vault import SessionVault
from tests.fakes import FakeAuthService


class TestSessionManager(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.vault = SessionVault("s3cret", "browser-a", directory=Path(self.tmp.name))
        self.auth = FakeAuthService()
        self.uid = self.auth.add_account("user@example.com", "secret123", "Ann")
        self.state = AppState()
        self.sessions = SessionManager(self.auth, self.state, self.vault)

    def tearDown(self):
        self.tmp.cleanup()

    def test_login_with_valid_credentials(self):
        user = self.sessions.login("user@example.com", "secret123")
        self.assertEqual(user.id, self.uid)
        self.assertIs(self.state.user, user)
        self.assertTrue(self.state.authenticated)
        self.assertEqual(self.vault.load(), f"refresh:{self.uid}")

    def test_login_with_invalid_credentials(self):
        with self.assertRaises(AuthenticationError) as ctx:
            self.sessions.login("user@example.com", "wrong")
        self.assertEqual(str(ctx.exception), INVALID_CREDENTIALS)
        self.assertIsNone(self.state.user)
        self.assertIsNone(self.vault.load())

    def test_login_without_remember_does_not_persist(self):
        self.sessions.login("user@example.com", "secret123", remember=False)
        self.assertIsNone(self.vault.load())

    def test_register_then_logged_in(self):
        user = self.sessions.register("new@example.com", "hunter22", "Bob")
        self.assertEqual(user.email, "new@example.com")
        self.assertEqual(user.name, "Bob")
        self.assertIs(self.state.user, user)

    def test_register_duplicate_email(self):
        with self.assertRaises(AccountCreationError) as ctx:
            self.sessions.register("user@example.com", "secret123", "Ann")
        self.assertIn("already exists", str(ctx.exception))
        self.assertIsNone(self.state.user)

    def test_register_weak_password(self):
        with self.assertRaises(AccountCreationError) as ctx:
            self.sessions.register("weak@example.com", "123", "Weak")
        self.assertEqual(str(ctx.exception), "Password should be at least 6 characters")

    def test_restore_without_session(self):
        self.assertIsNone(self.sessions.restore_session())
        self.assertIsNone(self.state.user)

    def test_restore_from_remember_me_file(self):
        self.sessions.login("user@example.com", "secret123")
        # fresh tab: empty state, same vault
        state = AppState()
        user = SessionManager(self.auth, state, self.vault).restore_session()
        self.assertEqual(user.id, self.uid)
        self.assertEqual(state.id_token, f"id:{self.uid}")

    def test_other_browser_is_not_logged_in(self):
        self.sessions.login("user@example.com", "secret123")
        # another visitor on the same server gets its own browser id
        visitor = SessionVault("s3cret", "browser-b", directory=Path(self.tmp.name))
        state = AppState()
        self.assertIsNone(SessionManager(self.auth, state, visitor).restore_session())
        self.assertIsNone(state.user)
        self.assertEqual(self.vault.load(), f"refresh:{self.uid}")

    def test_restore_with_revoked_token_clears_vault(self):
        self.sessions.login("user@example.com", "secret123")
        self.auth.revoked.append(self.uid)
        state = AppState()
        self.assertIsNone(SessionManager(self.auth, state, self.vault).restore_session())
        self.assertIsNone(state.user)
        self.assertFalse(self.vault.path.exists())

    def test_restore_falls_back_to_refresh_token(self):
        self.sessions.login("user@example.com", "secret123")
        self.state.id_token = "id:stale"
        user = self.sessions.restore_session()
        self.assertEqual(user.id, self.uid)
        self.assertEqual(self.state.id_token, f"id:{self.uid}")

    def test_logout(self):
        self.sessions.login("user@example.com", "secret123")
        self.sessions.logout()
        self.assertIsNone(self.state.user)
        self.assertIsNone(self.state.refresh_token)
        self.assertEqual(self.auth.revoked, [self.uid])
        self.assertIsNone(self.vault.load())
        self.assertIsNone(self.sessions.restore_session())

    def test_logout_remote_failure_is_only_logged(self):
        self.sessions.login("user@example.com", "secret123")
        self.auth.fail_logout = True
        with self.assertLogs("expense_tracker.session", level="ERROR"):
            self.sessions.logout()
        self.assertIsNone(self.state.user)


if __name__ == "__main__":
    unittest.main()
