"""
Password-derived envelopes.

encode() turns any JSON-compatible value into `saltHex:ivHex:ciphertextHex:tagHex`
under a key stretched from a shared secret; decode() reverses it or raises one of
the errors from envelope.errors. Both calls are stateless and safe to run from
many threads at once.
"""
import logging
from typing import Any, Callable, Optional

from . import crypto
from .errors import EnvelopeError
from .crypto import RandomSource, aead_decrypt, aead_encrypt, new_iv, scoped_key
from .messages import Envelope
from .protocol import dump_value, load_value

logger = logging.getLogger(__name__)

SALT_SCHEMES = {
    "decimal": crypto.decimal_salt,   # readable by every existing envelope consumer
    "random": crypto.random_salt,
}


class EnvelopeCodec:
    ''' Encoder/decoder pair sharing one random source, salt scheme and iteration count '''

    def __init__(self, random_source: Optional[RandomSource] = None,
                 salt_scheme: str = "decimal",
                 iterations: int = crypto.ITERATIONS):
        if salt_scheme not in SALT_SCHEMES:
            raise ValueError(f"unknown salt scheme: {salt_scheme!r}")
        if iterations <= 0:
            raise ValueError("iterations must be positive")
        self.random_source: RandomSource = random_source or crypto.random_bytes
        self.salt_scheme = salt_scheme
        self.iterations = iterations
        self._make_salt: Callable[[RandomSource], bytes] = SALT_SCHEMES[salt_scheme]

    def seal(self, value: Any, secret: str) -> Envelope:
        '''
        The function encrypts a value and returns the envelope as bytes fields.
        Input:
            - value: any JSON-compatible value
            - secret: shared secret text
        Output: Envelope with a fresh salt and iv
        '''
        crypto.check_secret(secret)
        plaintext = dump_value(value)
        salt = self._make_salt(self.random_source)
        iv = new_iv(self.random_source)
        with scoped_key(secret, salt, self.iterations) as key:
            ciphertext, tag = aead_encrypt(key, iv, plaintext)
        logger.debug("sealed envelope: scheme=%s salt_len=%d payload_len=%d",
                     self.salt_scheme, len(salt), len(ciphertext))
        return Envelope(salt=salt, iv=iv, ciphertext=ciphertext, tag=tag)

    def open(self, env: Envelope, secret: str) -> Any:
        '''
        The function verifies and decrypts an Envelope, then parses the JSON payload.
        Raises AuthenticationError on a wrong secret or any altered field,
        EncodingError if the plaintext is not UTF-8 JSON.
        '''
        crypto.check_secret(secret)
        with scoped_key(secret, env.salt, self.iterations) as key:
            plaintext = aead_decrypt(key, env.iv, env.ciphertext, env.tag)
        return load_value(plaintext)

    def encode(self, value: Any, secret: str) -> str:
        ''' Encrypt value under secret, return the envelope text '''
        return self.seal(value, secret).to_wire()

    def decode(self, envelope: str, secret: str) -> Any:
        ''' Parse envelope text, then verify and decrypt it under secret '''
        env = Envelope.from_wire(envelope)
        try:
            return self.open(env, secret)
        except EnvelopeError as e:
            logger.debug("envelope rejected: %s", type(e).__name__)
            raise


_default = EnvelopeCodec()


def encrypt_data(value: Any, secret: str) -> str:
    ''' encode() with the default codec (os.urandom, decimal salt, 100k iterations) '''
    return _default.encode(value, secret)


def decrypt_data(envelope: str, secret: str) -> Any:
    ''' decode() with the default codec '''
    return _default.decode(envelope, secret)
