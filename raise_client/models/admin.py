"""Global admin configuration record"""
from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class AdminConfig:
    admin: Pubkey
    pending_admin: Optional[Pubkey] = None
    bump: int = 0
