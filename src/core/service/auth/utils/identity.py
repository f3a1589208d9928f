"""
Mapping from external Telegram identities to internal integer keys.

Numeric ids map to themselves. Any other string (anonymous or guest ids such as
"anon_42") maps into a reserved range starting at NON_NUMERIC_KEY_OFFSET:

    key = NON_NUMERIC_KEY_OFFSET + (blake2b_64(id) mod 2**62)

Real Telegram ids are far below 2**62, so a non-numeric id can never land on a
numeric one. Two different non-numeric ids can collide; with n such ids the
probability is roughly n**2 / 2**63. That is an accepted limitation: callers
that need strict uniqueness for non-numeric ids must store the original string
alongside the key.
"""

import hashlib
import re

NON_NUMERIC_KEY_OFFSET = 2 ** 62
_NON_NUMERIC_KEY_SPACE = 2 ** 62
_NUMERIC_ID = re.compile(r"[0-9]+")


def telegram_id_to_key(external_id: str) -> int:
    if not external_id:
        raise ValueError("External id must be a non-empty string")

    if _NUMERIC_ID.fullmatch(external_id):
        key = int(external_id)
        if key >= NON_NUMERIC_KEY_OFFSET:
            raise ValueError("Numeric id exceeds the supported key range")
        return key

    digest = hashlib.blake2b(external_id.encode("utf-8"), digest_size=8).digest()
    return NON_NUMERIC_KEY_OFFSET + int.from_bytes(digest, "big") % _NON_NUMERIC_KEY_SPACE
