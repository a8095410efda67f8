import tempfile
import unittest
from pathlib import Path

from expense_tracker.vault import BROWSER_PARAM, SessionVault, decrypt_session, encrypt_session, ensure_browser_id


class TestSessionCrypto(unittest.TestCase):
    def test_round_trip_and_wrong_secret(self):
        token = encrypt_session({"uid": "u1", "refresh_token": "rt"}, "correct horse")
        self.assertEqual(decrypt_session(token, "correct horse"), {"uid": "u1", "refresh_token": "rt"})
        self.assertIsNone(decrypt_session(token, "battery staple"))
        self.assertIsNone(decrypt_session(b"not a token", "correct horse"))


class TestBrowserId(unittest.TestCase):
    def test_new_browser_gets_an_id_in_the_url(self):
        params = {}
        browser_id = ensure_browser_id(params)
        self.assertTrue(browser_id)
        self.assertEqual(params[BROWSER_PARAM], browser_id)
        self.assertEqual(ensure_browser_id(params), browser_id)

    def test_two_browsers_get_different_ids(self):
        self.assertNotEqual(ensure_browser_id({}), ensure_browser_id({}))


class TestSessionVault(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_load_clear(self):
        vault = SessionVault("s3cret", "browser-a", directory=self.dir)
        self.assertIsNone(vault.load())
        self.assertTrue(vault.save("u1", "rt-1"))
        self.assertNotIn(b"rt-1", vault.path.read_bytes())
        self.assertNotIn("browser-a", vault.path.name)
        self.assertEqual(vault.load(), "rt-1")
        vault.clear()
        self.assertFalse(vault.path.exists())
        vault.clear()  # clearing twice is fine

    def test_other_secret_cannot_read(self):
        SessionVault("s3cret", "browser-a", directory=self.dir).save("u1", "rt-1")
        self.assertIsNone(SessionVault("different", "browser-a", directory=self.dir).load())

    def test_other_browser_cannot_read(self):
        alice = SessionVault("s3cret", "browser-a", directory=self.dir)
        alice.save("alice", "rt-alice")
        other = SessionVault("s3cret", "browser-b", directory=self.dir)
        self.assertNotEqual(other.path, alice.path)
        self.assertIsNone(other.load())
        other.save("bob", "rt-bob")
        self.assertEqual(alice.load(), "rt-alice")
        self.assertEqual(other.load(), "rt-bob")

    def test_disabled_without_secret(self):
        vault = SessionVault(None, "browser-a", directory=self.dir)
        self.assertFalse(vault.enabled)
        self.assertFalse(vault.save("u1", "rt-1"))
        self.assertFalse(vault.path.exists())
        self.assertIsNone(vault.load())

    def test_disabled_without_browser_id(self):
        vault = SessionVault("s3cret", "", directory=self.dir)
        self.assertFalse(vault.enabled)
        self.assertFalse(vault.save("u1", "rt-1"))
        self.assertEqual(list(self.dir.iterdir()), [])
        self.assertIsNone(vault.load())
        vault.clear()


if __name__ == "__main__":
    unittest.main()
