"""
Delegation Ledger

Each delegator has at most one active delegate. Delegations carry a
time-lock during which they cannot be replaced or revoked and the
delegator's shares cannot be transferred. The ledger keeps the voting power
table: an account's own shares count for itself unless delegated, in which
case they count for the delegate.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from .accounts import AccountRegistry
from .audit import AuditLog
from .config import GovernanceConfig
from .errors import (
    DelegateSuspended,
    DelegationLocked,
    DelegationNotFound,
    InvalidLockDuration,
    SelfDelegation,
)
from .models import AuditAction, Delegation
from .reputation import ReputationTracker

logger = logging.getLogger(__name__)


class DelegationLedger:
    """Delegations, their locks and the derived voting power table"""

    def __init__(
        self,
        registry: AccountRegistry,
        reputation: ReputationTracker,
        audit: AuditLog,
        config: Optional[GovernanceConfig] = None
    ):
        self.config = config or GovernanceConfig.default()
        self._registry = registry
        self._reputation = reputation
        self._audit = audit
        self._delegations: Dict[str, Delegation] = {}       # delegator -> latest delegation
        self._delegators: Dict[str, Set[str]] = defaultdict(set)  # delegate -> active delegators
        self._power: Dict[str, int] = defaultdict(int)
        registry.bind_delegation(self)
        logger.info(f"DelegationLedger initialized (min_lock={self.config.MIN_LOCK_DURATION})")

    # ===== Reads =====

    def get_delegation(self, delegator: str) -> Optional[Delegation]:
        return self._delegations.get(delegator)

    def active_delegate(self, delegator: str) -> Optional[str]:
        delegation = self._delegations.get(delegator)
        if delegation is not None and delegation.active:
            return delegation.delegate
        return None

    def is_locked(self, delegator: str, now: int) -> bool:
        delegation = self._delegations.get(delegator)
        return delegation is not None and delegation.is_locked(now)

    def lock_until(self, delegator: str) -> Optional[int]:
        delegation = self._delegations.get(delegator)
        return delegation.lock_until if delegation is not None else None

    def voting_power(self, account: str) -> int:
        return self._power.get(account, 0)

    def delegators_of(self, delegate: str) -> List[str]:
        return sorted(self._delegators.get(delegate, ()))

    def power_table(self) -> Dict[str, int]:
        return {k: v for k, v in sorted(self._power.items()) if v}

    def list_delegations(self, active_only: bool = True) -> List[Delegation]:
        delegations = list(self._delegations.values())
        if active_only:
            delegations = [d for d in delegations if d.active]
        return delegations

    # ===== Balance propagation =====

    def apply_balance_delta(self, account: str, delta: int) -> None:
        """Mirror a share balance change into whoever holds the account's power"""
        holder = self.active_delegate(account) or account
        self._power[holder] += delta

    def _move_power(self, source: str, destination: str, amount: int) -> None:
        if amount:
            self._power[source] -= amount
            self._power[destination] += amount

    # ===== Transitions =====

    def delegate(self, caller: str, delegate: str, lock_duration: int, seq: int) -> Delegation:
        """
        Delegate the caller's voting power for at least lock_duration steps

        Raises:
            InvalidLockDuration: duration outside MIN/MAX_LOCK_DURATION
            NotVerified: caller is not verified
            SelfDelegation: caller delegates to itself
            DelegateSuspended: target delegate is suspended
            DelegationLocked: an existing delegation is still locked
        """
        if (not isinstance(lock_duration, int) or isinstance(lock_duration, bool)
                or not self.config.MIN_LOCK_DURATION <= lock_duration <= self.config.MAX_LOCK_DURATION):
            raise InvalidLockDuration(
                f"Lock duration must be between {self.config.MIN_LOCK_DURATION} and "
                f"{self.config.MAX_LOCK_DURATION} (got {lock_duration!r})",
                details={"lock_duration": lock_duration}
            )
        delegator = self._registry.require_verified(caller)
        if delegate == caller:
            raise SelfDelegation(f"{caller} cannot delegate to itself")
        self._registry.require_active(delegate)
        if self._reputation.is_suspended(delegate):
            raise DelegateSuspended(f"Delegate {delegate} is suspended", details={"delegate": delegate})

        previous = self._delegations.get(caller)
        if previous is not None and previous.is_locked(seq):
            raise DelegationLocked(
                f"Delegation of {caller} is locked until {previous.lock_until}",
                details={"delegator": caller, "lock_until": previous.lock_until}
            )

        source = caller
        if previous is not None and previous.active:
            source = previous.delegate
            previous.active = False
            previous.revoked_at = seq
            self._delegators[previous.delegate].discard(caller)

        self._move_power(source, delegate, delegator.shares)
        delegation = Delegation(
            delegator=caller,
            delegate=delegate,
            lock_until=seq + lock_duration,
            created_at=seq
        )
        self._delegations[caller] = delegation
        self._delegators[delegate].add(caller)
        self._audit.append(
            AuditAction.DELEGATED, caller, seq, target=delegate,
            detail=f"shares={delegator.shares} lock_until={delegation.lock_until}"
        )
        logger.info(
            f"{caller} delegated {delegator.shares} shares to {delegate} "
            f"until seq {delegation.lock_until}"
        )
        return delegation

    def revoke(self, caller: str, seq: int) -> Delegation:
        """End an unlocked delegation and return the power to the delegator"""
        self._registry.require_active(caller)
        delegation = self._delegations.get(caller)
        if delegation is None or not delegation.active:
            raise DelegationNotFound(caller)
        if delegation.is_locked(seq):
            raise DelegationLocked(
                f"Delegation of {caller} is locked until {delegation.lock_until}",
                details={"delegator": caller, "lock_until": delegation.lock_until}
            )

        shares = self._registry.shares_of(caller)
        self._move_power(delegation.delegate, caller, shares)
        delegation.active = False
        delegation.revoked_at = seq
        self._delegators[delegation.delegate].discard(caller)
        self._audit.append(
            AuditAction.DELEGATION_REVOKED, caller, seq, target=delegation.delegate,
            detail=f"shares={shares}"
        )
        logger.info(f"{caller} revoked delegation to {delegation.delegate}")
        return delegation
