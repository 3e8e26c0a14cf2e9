"""
Native asset transfer primitive

The governance core never holds custody of the native asset itself; it asks
the surrounding ledger to move funds. `InMemoryLedger` is the reference
implementation used by tests and the replay CLI.
"""

import logging
from collections import defaultdict
from typing import Dict, Protocol

from .errors import InsufficientFunds, ZeroAmount

logger = logging.getLogger(__name__)

ARBITRATION_POOL = "__arbitration_pool__"


class NativeLedger(Protocol):
    """Balance custody provided by the execution environment"""
    
    def balance_of(self, account: str) -> int:
        ...
    
    def transfer(self, amount: int, source: str, destination: str) -> None:
        """Move funds or raise InsufficientFunds without side effects"""
        ...


class InMemoryLedger:
    """Dictionary-backed native balances"""
    
    def __init__(self, balances: Dict[str, int] = None):
        self._balances: Dict[str, int] = defaultdict(int)
        for account, amount in (balances or {}).items():
            self.credit(account, amount)
    
    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)
    
    def credit(self, account: str, amount: int) -> int:
        """Issue native funds (environment genesis / faucet)"""
        if amount <= 0:
            raise ZeroAmount(f"Credit amount must be positive (got {amount})")
        self._balances[account] += amount
        return self._balances[account]
    
    def transfer(self, amount: int, source: str, destination: str) -> None:
        if amount <= 0:
            raise ZeroAmount(f"Transfer amount must be positive (got {amount})")
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientFunds(
                f"Insufficient funds for {source}: {available} < {amount}",
                details={"account": source, "available": available, "required": amount}
            )
        self._balances[source] -= amount
        self._balances[destination] += amount
        logger.debug(f"Native transfer {amount} {source} -> {destination}")
    
    def to_dict(self) -> Dict[str, int]:
        return {k: v for k, v in sorted(self._balances.items()) if v}
