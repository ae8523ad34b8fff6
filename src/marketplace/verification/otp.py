"""One-time delivery codes. Only a salted hash of a code is ever stored."""

import hashlib
import hmac
import secrets

from marketplace import config


def generate_otp(length: int = config.OTP_LENGTH) -> str:
    return str(secrets.randbelow(10**length)).zfill(length)


def new_salt() -> str:
    return secrets.token_hex(16)


def hash_otp(otp: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{otp}".encode()).hexdigest()


def otp_matches(submitted: str, salt: str | None, expected_hash: str | None) -> bool:
    if not submitted or not salt or not expected_hash:
        return False
    return hmac.compare_digest(hash_otp(submitted.strip(), salt), expected_hash)
