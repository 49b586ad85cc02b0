"""Referral code generation.

Codes are URL-safe alphanumerics generated with a cryptographic random
source, unique across players.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.db.models import Player

REFERRAL_CHARSET = string.ascii_letters + string.digits
REFERRAL_LENGTH = 10


def generate_referral_code(length: int = REFERRAL_LENGTH) -> str:
    """Generate a cryptographically random referral code."""
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(length))


async def generate_unique_referral_code(db: AsyncSession, length: int = REFERRAL_LENGTH) -> str:
    """Generate a referral code no other player holds."""
    for _ in range(10):
        code = generate_referral_code(length)
        existing = await db.execute(
            select(Player.wallet_address).where(Player.referral_code == code)
        )
        if existing.scalar_one_or_none() is None:
            return code
    raise RuntimeError("Failed to generate unique referral code after 10 attempts")
