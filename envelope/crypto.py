import logging, os, re
from contextlib import contextmanager
from typing import Callable, Iterator, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import AuthenticationError, FormatError, PrimitiveFailure

logger = logging.getLogger(__name__)

ITERATIONS = 100_000      # PBKDF2 rounds, fixed for every envelope
KEY_LENGTH = 32           # AES-256
IV_LENGTH = 12            # 96-bit GCM nonce
TAG_LENGTH = 16           # GCM auth tag
SALT_BOUND = 10 ** 16     # decimal salts are drawn from [0, SALT_BOUND)
RANDOM_SALT_LENGTH = 16   # widened salt scheme

_HEX = re.compile(r"[0-9a-f]*")

RandomSource = Callable[[int], bytes]


def random_bytes(n: int) -> bytes:
    ''' This function returns n bytes from the operating system CSPRNG '''
    return os.urandom(n)


def decimal_salt(random_source: RandomSource = random_bytes) -> bytes:
    '''
    The function builds a salt the way stored envelopes expect it: a random integer
    below SALT_BOUND rendered as decimal text, then UTF-8 encoded.
        Input: random_source - callable returning n random bytes
        Output: salt bytes (ASCII digits)
    '''
    # 8 random bytes reduced modulo the bound
    n = int.from_bytes(random_source(8), "big") % SALT_BOUND
    return str(n).encode("utf-8")


def random_salt(random_source: RandomSource = random_bytes) -> bytes:
    ''' This function returns a full-entropy salt of RANDOM_SALT_LENGTH raw bytes '''
    return random_source(RANDOM_SALT_LENGTH)


def check_secret(secret: str) -> None:
    if not isinstance(secret, str):
        raise TypeError("secret must be str")
    if not secret:
        raise ValueError("secret must not be empty")
    try:
        secret.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("secret is not encodable as UTF-8") from None


def derive_key(secret: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    '''
    This function derives a 256-bit key with PBKDF2-HMAC-SHA256.
    Input:
        - secret: shared secret text (non-empty)
        - salt: salt bytes, any length
        - iterations: PBKDF2 rounds (default ITERATIONS)
    Output: 32-byte key; identical inputs always give the identical key
    '''
    check_secret(secret)
    logger.debug("deriving key: salt_len=%d iterations=%d", len(salt), iterations)
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=bytes(salt), iterations=iterations)
    material = secret.encode("utf-8")
    try:
        return kdf.derive(material)
    except Exception as e:
        raise PrimitiveFailure(f"key derivation failed: {type(e).__name__}") from e


@contextmanager
def scoped_key(secret: str, salt: bytes, iterations: int = ITERATIONS) -> Iterator[bytearray]:
    '''
    Context manager yielding the derived key in a mutable buffer.
    The buffer is overwritten with zeros on every exit path.
    '''
    key = bytearray(derive_key(secret, salt, iterations))
    try:
        yield key
    finally:
        for i in range(len(key)):
            key[i] = 0


def aead_encrypt(key: bytes, iv: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
    '''
    This function encrypts plaintext using AES-256-GCM without associated data.
    Input:
        - key: 32-byte key
        - iv: 12-byte nonce
        - plaintext: data to encrypt in bytes
    Output: tuple (ciphertext, tag); ciphertext is as long as plaintext
    '''
    try:
        ct = AESGCM(key).encrypt(iv, plaintext, None)  # returns ct||tag
    except Exception as e:
        raise PrimitiveFailure(f"encryption failed: {type(e).__name__}") from e
    return ct[:-TAG_LENGTH], ct[-TAG_LENGTH:]


def aead_decrypt(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    '''
    This function verifies the tag and decrypts ciphertext using AES-256-GCM.
    Input:
        - key: 32-byte key
        - iv: 12-byte nonce
        - ciphertext, tag: the two halves produced by aead_encrypt
    Output: plaintext bytes
    Raises AuthenticationError when the tag does not verify.
    '''
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        # same message for every cause, no detail about what was wrong
        raise AuthenticationError() from None
    except Exception as e:
        raise PrimitiveFailure(f"decryption failed: {type(e).__name__}") from e


def to_hex(data: bytes) -> str:
    ''' This function encodes bytes to lowercase hex text '''
    return bytes(data).hex()


def from_hex(text: str, field: str = "field") -> bytes:
    '''
    This function decodes strict lowercase hex text to bytes.
    Whitespace, uppercase digits and odd lengths are rejected with FormatError.
    '''
    if len(text) % 2 or not _HEX.fullmatch(text):
        raise FormatError(f"{field} is not valid hex")
    return bytes.fromhex(text)


def new_iv(random_source: RandomSource = random_bytes) -> bytes:
    ''' This function returns a fresh random 96-bit nonce '''
    iv = random_source(IV_LENGTH)
    if len(iv) != IV_LENGTH:
        raise PrimitiveFailure("random source returned a short iv")
    return iv
