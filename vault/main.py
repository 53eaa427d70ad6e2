"""
Command-line entry point for sealing and opening envelopes.

    ENCRYPTION_KEY=... python -m vault.main encrypt --value '{"a": 1}'
    ENCRYPTION_KEY=... python -m vault.main decrypt --envelope <saltHex:ivHex:ctHex:tagHex>
"""
import argparse, json, logging, os, sys
from typing import List, Optional

from envelope.codec import EnvelopeCodec, SALT_SCHEMES
from envelope.errors import EnvelopeError

ENV_KEY = "ENCRYPTION_KEY"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Password-derived AES-GCM envelopes")
    ap.add_argument("op", choices=["encrypt", "decrypt"])
    ap.add_argument("--value", help="JSON value to encrypt")
    ap.add_argument("--text", action="store_true", help="Treat --value as a plain string")
    ap.add_argument("--envelope", help="Envelope text to decrypt")
    ap.add_argument("--key", help=f"Shared secret (default: ${ENV_KEY})")
    ap.add_argument("--salt-scheme", choices=sorted(SALT_SCHEMES), default="decimal")
    ap.add_argument("--json", action="store_true", help="Output JSON to stdout")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    return ap


def _reject_constant(name: str):
    raise ValueError(f"{name} is not allowed")


def _fail(msg: str, as_json: bool, code: int) -> int:
    print(json.dumps({"error": msg}) if as_json else f"Error: {msg}", flush=True)
    return code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    secret = args.key if args.key is not None else os.environ.get(ENV_KEY)
    if not secret:
        return _fail(f"no secret: pass --key or set {ENV_KEY}", args.json, 2)
    codec = EnvelopeCodec(salt_scheme=args.salt_scheme)

    if args.op == "encrypt":
        if args.value is None:
            return _fail("--value is required for encrypt", args.json, 2)
        if args.text:
            value = args.value
        else:
            try:
                value = json.loads(args.value, parse_constant=_reject_constant)
            except ValueError as e:   # JSONDecodeError included
                return _fail(f"--value is not JSON: {getattr(e, 'msg', e)}", args.json, 2)
        try:
            sealed = codec.encode(value, secret)
        except (ValueError, TypeError) as e:
            return _fail(f"cannot encrypt value: {e}", args.json, 2)
        except EnvelopeError as e:
            logger.debug("encrypt failed: %s", type(e).__name__)
            return _fail(f"{type(e).__name__}: {e}", args.json, 1)
        if args.json:
            print(json.dumps({"op": "encrypt", "envelope": sealed}))
        else:
            print(sealed)
        return 0

    if args.envelope is None:
        return _fail("--envelope is required for decrypt", args.json, 2)
    try:
        value = codec.decode(args.envelope.strip(), secret)
    except EnvelopeError as e:
        logger.debug("decrypt failed: %s", type(e).__name__)
        return _fail(f"{type(e).__name__}: {e}", args.json, 1)
    if args.json:
        print(json.dumps({"op": "decrypt", "value": value}, ensure_ascii=False))
    elif isinstance(value, str):
        print(value)
    else:
        print(json.dumps(value, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
