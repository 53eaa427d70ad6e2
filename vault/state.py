from dataclasses import dataclass, field
from typing import Dict, Optional, Union, Any
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
import logging, secrets, string, time

from envelope.codec import EnvelopeCodec

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 20
TOKEN_ALPHABET = string.ascii_letters + string.digits


class DuplicateCredentialError(Exception):
    """Raised when a credential for the same email is already stored."""
    pass


def new_token(length: int = TOKEN_LENGTH) -> str:
    ''' This function returns a random alphanumeric access token '''
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


@dataclass   # decorator to automatically generate init, repr, etc.
class Credential:   # outbound-mail account; the password is only kept as an envelope
    email: str
    host: str
    encrypted_password: str = field(repr=False)
    first_name: str = ""
    last_name: str = ""
    token: str = field(default_factory=new_token, repr=False)
    created_at: int = field(default_factory=lambda: int(time.time()))


class CredentialVault:
    # This class keeps credential records and seals/unseals their passwords
    def __init__(self, secret: str, codec: Optional[EnvelopeCodec] = None, max_workers: int = 4):
        self._secret = secret
        self.codec = codec or EnvelopeCodec()
        self.lock = Lock()  # guards the records dictionary
        self.credentials: Dict[str, Credential] = {}   # email -> Credential
        # bounded pool for the CPU-heavy KDF work
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="vault")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        ''' This function shuts the worker pool down, waiting for running jobs '''
        self._pool.shutdown(wait=True)

    def add(self, email: str, password: str, host: str, first_name: str = "", last_name: str = "") -> Credential:
        '''
        This function encrypts the password and stores a new credential.
        Raises DuplicateCredentialError if the email is already present.
        '''
        with self.lock:
            if email in self.credentials:
                raise DuplicateCredentialError(email)
        # encrypt outside the lock; the KDF is slow
        sealed = self.codec.encode(password, self._secret)
        cred = Credential(email=email, host=host, encrypted_password=sealed,
                          first_name=first_name, last_name=last_name)
        with self.lock:
            if email in self.credentials:
                raise DuplicateCredentialError(email)
            self.credentials[email] = cred
        logger.info("stored credential for %s", email)
        return cred

    def remove(self, email: str):
        ''' This function removes a credential by email '''
        with self.lock:
            self.credentials.pop(email, None)

    def get(self, email: str) -> Optional[Credential]:
        ''' This function retrieves a credential by email '''
        with self.lock:
            return self.credentials.get(email)

    def find_by_token(self, token: str) -> Optional[Credential]:
        ''' This function retrieves the credential whose access token matches '''
        if not isinstance(token, str):
            return None
        wanted = token.encode("utf-8", "surrogatepass")
        with self.lock:
            for c in self.credentials.values():
                if secrets.compare_digest(c.token.encode("utf-8"), wanted):
                    return c
            return None

    def emails(self):
        ''' This function retrieves a list of all stored emails '''
        with self.lock:
            return list(self.credentials.keys())

    def reveal(self, who: Union[str, Credential]) -> str:
        '''
        This function decrypts the stored password.
        Input:
            - who: email address or Credential
        Output: plaintext password
        Raises KeyError for an unknown email; envelope errors propagate unchanged.
        '''
        cred = who if isinstance(who, Credential) else self.get(who)
        if cred is None:
            raise KeyError(who)
        return self.codec.decode(cred.encrypted_password, self._secret)

    def submit_reveal(self, who: Union[str, Credential]) -> "Future[str]":
        ''' This function runs reveal() on the worker pool '''
        return self._pool.submit(self.reveal, who)

    def submit_encrypt(self, value: Any) -> "Future[str]":
        ''' This function runs codec.encode() on the worker pool with the vault secret '''
        return self._pool.submit(self.codec.encode, value, self._secret)
