from dataclasses import dataclass

from .crypto import IV_LENGTH, TAG_LENGTH, from_hex, to_hex
from .errors import FormatError

DELIM = ":"   # field separator on the wire
FIELDS = ("salt", "iv", "ciphertext", "tag")


# Raw bytes of one sealed value. Text form is saltHex:ivHex:ciphertextHex:tagHex.
@dataclass(frozen=True)
class Envelope:
    salt: bytes          # KDF salt, not secret
    iv: bytes            # 12-byte GCM nonce
    ciphertext: bytes    # same length as the plaintext
    tag: bytes           # 16-byte GCM auth tag

    def __post_init__(self):
        if len(self.iv) != IV_LENGTH:
            raise FormatError(f"iv must be {IV_LENGTH} bytes, got {len(self.iv)}")
        if len(self.tag) != TAG_LENGTH:
            raise FormatError(f"tag must be {TAG_LENGTH} bytes, got {len(self.tag)}")

    def to_wire(self) -> str:
        ''' This function joins the four hex-encoded fields with ":" in fixed order '''
        return DELIM.join(to_hex(getattr(self, f)) for f in FIELDS)

    @classmethod
    def from_wire(cls, text: str) -> "Envelope":
        '''
        The function parses envelope text. No cryptographic work happens here.
        Input:
            - text: saltHex:ivHex:ciphertextHex:tagHex
        Output: Envelope
        Raises FormatError on a wrong field count, bad hex, or a wrong iv/tag length.
        '''
        if not isinstance(text, str):
            raise FormatError("envelope must be text")
        parts = text.split(DELIM)
        if len(parts) != len(FIELDS):
            raise FormatError(f"envelope must have {len(FIELDS)} fields, got {len(parts)}")
        values = [from_hex(p, field=name) for name, p in zip(FIELDS, parts)]
        return cls(*values)