import json
from typing import Any

from .errors import EncodingError

ENC = "utf-8"               # encoding for JSON text
SEPARATORS = (",", ":")     # compact, same bytes as JSON.stringify


def dump_value(obj: Any) -> bytes:
    '''
    The function serializes a JSON-compatible value to the bytes that get encrypted.
    Output is compact and keeps non-ASCII characters as UTF-8, so envelopes written
    by JavaScript clients (JSON.stringify) and by this module carry the same plaintext.
    Inputs:
        - obj: dict, list, str, int, float, bool or None
    Output: UTF-8 bytes
    Serialization errors (cycles, unsupported types, NaN) propagate unchanged.
    '''
    return json.dumps(obj, ensure_ascii=False, separators=SEPARATORS, allow_nan=False).encode(ENC)


def load_value(data: bytes) -> Any:
    '''
    The function parses decrypted bytes back into the original value.
    Input:
        - data: UTF-8 encoded JSON text
    Output: the decoded value (JSON arrays come back as lists)
    Raises EncodingError when the bytes are not UTF-8 or not JSON.
    '''
    try:
        text = data.decode(ENC)
    except UnicodeDecodeError:
        raise EncodingError("decrypted payload is not valid UTF-8") from None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise EncodingError(f"decrypted payload is not valid JSON (line {e.lineno}, column {e.colno})") from None
