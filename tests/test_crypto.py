import os
import sys
import hashlib
import unittest
from unittest import mock

# Ensure the repo root is importable when running tests from a checkout
THIS_DIR = os.path.dirname(__file__)
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from envelope import crypto  # noqa: E402
from envelope.crypto import (  # noqa: E402
    aead_decrypt, aead_encrypt, decimal_salt, derive_key, from_hex, new_iv,
    random_salt, scoped_key, to_hex,
)
from envelope.errors import AuthenticationError, FormatError, PrimitiveFailure  # noqa: E402


class KeyDerivationTests(unittest.TestCase):
    def test_matches_hashlib_pbkdf2(self):
        salt = b"4821973"
        dk = derive_key("k1", salt, iterations=1000)
        self.assertEqual(dk, hashlib.pbkdf2_hmac("sha256", b"k1", salt, 1000, dklen=32))
        self.assertEqual(len(dk), 32)

    def test_default_iterations(self):
        self.assertEqual(crypto.ITERATIONS, 100_000)
        dk = derive_key("secret", b"123")
        self.assertEqual(dk, hashlib.pbkdf2_hmac("sha256", b"secret", b"123", 100_000, dklen=32))

    def test_deterministic_and_salt_sensitive(self):
        self.assertEqual(derive_key("s", b"1", 500), derive_key("s", b"1", 500))
        self.assertNotEqual(derive_key("s", b"1", 500), derive_key("s", b"2", 500))
        self.assertNotEqual(derive_key("s", b"1", 500), derive_key("t", b"1", 500))

    def test_rejects_bad_secret(self):
        with self.assertRaises(ValueError):
            derive_key("", b"1", 500)
        with self.assertRaises(TypeError):
            derive_key(b"bytes", b"1", 500)
        with self.assertRaises(ValueError):
            derive_key("\ud800", b"1", 500)

    def test_scoped_key_is_wiped_on_exit(self):
        with scoped_key("s", b"1", 500) as key:
            self.assertEqual(bytes(key), derive_key("s", b"1", 500))
            held = key
        self.assertEqual(held, bytearray(32))

    def test_scoped_key_is_wiped_on_error(self):
        with self.assertRaises(AuthenticationError):
            with scoped_key("s", b"1", 500) as key:
                held = key
                raise AuthenticationError()
        self.assertEqual(held, bytearray(32))


class SaltAndIvTests(unittest.TestCase):
    def test_decimal_salt_is_ascii_digits(self):
        salt = decimal_salt()
        self.assertTrue(salt.isdigit())
        self.assertLess(int(salt), crypto.SALT_BOUND)

    def test_decimal_salt_uses_injected_source(self):
        self.assertEqual(decimal_salt(lambda n: b"\x00" * n), b"0")
        self.assertEqual(decimal_salt(lambda n: b"\x00" * (n - 1) + b"\x2a"), b"42")

    def test_random_salt_length(self):
        self.assertEqual(len(random_salt()), crypto.RANDOM_SALT_LENGTH)

    def test_iv_is_twelve_fresh_bytes(self):
        a, b = new_iv(), new_iv()
        self.assertEqual(len(a), 12)
        self.assertNotEqual(a, b)

    def test_short_iv_from_source_fails(self):
        with self.assertRaises(PrimitiveFailure):
            new_iv(lambda n: b"\x00" * (n - 1))


class AeadTests(unittest.TestCase):
    def setUp(self):
        self.key = derive_key("k1", b"7", 500)
        self.iv = bytes(range(12))

    def test_split_lengths(self):
        ct, tag = aead_encrypt(self.key, self.iv, b"hello world")
        self.assertEqual(len(ct), len(b"hello world"))
        self.assertEqual(len(tag), 16)
        self.assertEqual(aead_decrypt(self.key, self.iv, ct, tag), b"hello world")

    def test_tampered_tag_is_rejected(self):
        ct, tag = aead_encrypt(self.key, self.iv, b"hello")
        bad = bytes([tag[0] ^ 1]) + tag[1:]
        with self.assertRaises(AuthenticationError) as cm:
            aead_decrypt(self.key, self.iv, ct, bad)
        self.assertEqual(str(cm.exception), "authentication failed")
        self.assertIsNone(cm.exception.__cause__)

    def test_wrong_key_is_rejected(self):
        ct, tag = aead_encrypt(self.key, self.iv, b"hello")
        with self.assertRaises(AuthenticationError):
            aead_decrypt(derive_key("k2", b"7", 500), self.iv, ct, tag)

    def test_cipher_failure_is_primitive_failure(self):
        with mock.patch.object(crypto, "AESGCM") as m:
            m.return_value.encrypt.side_effect = RuntimeError("boom")
            with self.assertRaises(PrimitiveFailure) as cm:
                aead_encrypt(self.key, self.iv, b"x")
        self.assertIsInstance(cm.exception.__cause__, RuntimeError)

    def test_kdf_failure_is_primitive_failure(self):
        with mock.patch.object(crypto, "PBKDF2HMAC") as m:
            m.return_value.derive.side_effect = MemoryError()
            with self.assertRaises(PrimitiveFailure):
                derive_key("k1", b"1", 500)


class HexTests(unittest.TestCase):
    def test_lowercase_roundtrip(self):
        self.assertEqual(to_hex(b"\x00\xab\xff"), "00abff")
        self.assertEqual(from_hex("00abff"), b"\x00\xab\xff")
        self.assertEqual(from_hex(""), b"")

    def test_rejects_non_hex(self):
        for bad in ("zz", "abc", "AB", " ab", "ab\n", "0x12"):
            with self.subTest(bad=bad):
                with self.assertRaises(FormatError):
                    from_hex(bad)


if __name__ == "__main__":
    unittest.main(verbosity=2)
