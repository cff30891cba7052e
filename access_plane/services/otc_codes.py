from __future__ import annotations

import hashlib
import hmac
import re
import secrets

OTC_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
OTC_CODE_LENGTH = 8

_OTC_NORMALIZE_PATTERN = re.compile(r"[\s-]+")


def generate_otc_code(length: int = OTC_CODE_LENGTH) -> str:
    return "".join(secrets.choice(OTC_CODE_ALPHABET) for _ in range(length))


def normalize_otc_code(raw_code: str) -> str:
    normalized = raw_code.strip().upper()
    return _OTC_NORMALIZE_PATTERN.sub("", normalized)


def hash_otc_code(*, normalized_code: str, pepper: str) -> str:
    digest = hmac.new(
        pepper.encode("utf-8"),
        normalized_code.encode("utf-8"),
        hashlib.sha256,
    )
    return digest.hexdigest()
