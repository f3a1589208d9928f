"""
Custodial wallet identity assigned to a user on first interaction.

Addresses are derived from the Telegram handle (or first name) and are not
guaranteed unique; the user id travels alongside the address in every claim
authorization.
"""

import re
from datetime import datetime
from typing import Tuple

from src.core.service.auth.models.principal import Principal

WALLET_SUFFIX = ".hot.tg"
MAX_WALLET_NAME_LENGTH = 15


def clean_wallet_name(name: str) -> str:
    cleaned = re.sub(r"[^a-z0-9_]", "", name.lower())
    cleaned = re.sub(r"_{2,}", "_", cleaned).strip("_")
    return cleaned[:MAX_WALLET_NAME_LENGTH] or "user"


def generate_wallet(principal: Principal, now: datetime) -> Tuple[str, str]:
    """Return (wallet_address, public_key) for a principal without a linked wallet"""
    base_name = principal.username or principal.first_name or f"user{principal.id}"
    wallet_address = f"{clean_wallet_name(base_name)}{WALLET_SUFFIX}"
    public_key = f"pk_{principal.id}_{int(now.timestamp() * 1000)}"
    return wallet_address, public_key
