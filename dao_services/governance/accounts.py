"""
Account Registry

Identity verification with anti-Sybil dedup, and the single source of truth
for share balances.
"""

import logging
from typing import Dict, List, Optional, Union, TYPE_CHECKING

from .audit import AuditLog
from .config import GovernanceConfig
from .errors import (
    AccountInactive,
    AccountNotFound,
    AlreadyRegistered,
    AlreadyVerified,
    InsufficientFunds,
    InvalidInputError,
    NotVerified,
    StakeLocked,
    ZeroAmount,
)
from .models import Account, AuditAction, Role, to_bytes32
from .roles import AccessControl

if TYPE_CHECKING:
    from .delegation import DelegationLedger
    from .voting import VotingEngine

logger = logging.getLogger(__name__)


def check_amount(amount: int) -> None:
    """Reject non-integer, zero and negative share amounts"""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidInputError(f"Amount must be an integer (got {amount!r})")
    if amount == 0:
        raise ZeroAmount("Amount must be greater than zero")
    if amount < 0:
        raise InvalidInputError(f"Amount must not be negative (got {amount})")


class AccountRegistry:
    """
    Registers accounts, binds verified identities and owns share balances

    Every identity hash bound by a successful verification is recorded in a
    reverse index, which is the only lookup path for duplicate detection.
    """

    def __init__(
        self,
        access: AccessControl,
        audit: AuditLog,
        config: Optional[GovernanceConfig] = None
    ):
        self.config = config or GovernanceConfig.default()
        self._access = access
        self._audit = audit
        self._accounts: Dict[str, Account] = {}
        self._identity_index: Dict[bytes, str] = {}  # identity hash -> account
        self._total_shares = 0
        self._delegation: Optional["DelegationLedger"] = None
        self._voting: Optional["VotingEngine"] = None
        logger.info("AccountRegistry initialized")

    def bind_delegation(self, ledger: "DelegationLedger") -> None:
        """Attach the ledger that mirrors balance changes into voting power"""
        self._delegation = ledger

    def bind_voting(self, voting: "VotingEngine") -> None:
        """Attach the voting engine whose counted shares follow transfers"""
        self._voting = voting

    # ===== Reads =====

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def require_account(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def require_active(self, account_id: str) -> Account:
        account = self.require_account(account_id)
        if not account.active:
            raise AccountInactive(f"Account {account_id} is deactivated", details={"account": account_id})
        return account

    def require_verified(self, account_id: str) -> Account:
        account = self.require_active(account_id)
        if not account.verified:
            raise NotVerified(f"Account {account_id} is not verified", details={"account": account_id})
        return account

    def shares_of(self, account_id: str) -> int:
        account = self._accounts.get(account_id)
        return account.shares if account else 0

    def account_for_identity(self, identity_hash: Union[bytes, str]) -> Optional[str]:
        return self._identity_index.get(to_bytes32(identity_hash, "identity_hash"))

    @property
    def total_shares(self) -> int:
        return self._total_shares

    def list_accounts(self, verified_only: bool = False) -> List[Account]:
        accounts = list(self._accounts.values())
        if verified_only:
            accounts = [a for a in accounts if a.verified]
        return accounts

    # ===== Transitions =====

    def register(self, caller: str, seq: int) -> Account:
        """Create an unverified account for the caller"""
        if not caller:
            raise InvalidInputError("Caller identity is required")
        if caller in self._accounts:
            raise AlreadyRegistered(f"Account {caller} is already registered", details={"account": caller})

        account = Account(account_id=caller, registered_at=seq)
        self._accounts[caller] = account
        self._audit.append(AuditAction.ACCOUNT_REGISTERED, caller, seq, target=caller)
        logger.info(f"Registered account {caller} at seq {seq}")
        return account

    def verify_identity(
        self,
        caller: str,
        account_id: str,
        identity_hash: Union[bytes, str],
        seq: int
    ) -> Account:
        """
        Bind an identity hash to an account

        Raises:
            UnauthorizedError: caller is not an admin
            AlreadyVerified: account already verified, or hash bound elsewhere
        """
        self._access.require_role(caller, Role.ADMIN, "verify identities")
        digest = to_bytes32(identity_hash, "identity_hash")
        account = self.require_active(account_id)

        if account.verified:
            raise AlreadyVerified(f"Account {account_id} is already verified", details={"account": account_id})
        holder = self._identity_index.get(digest)
        if holder is not None:
            raise AlreadyVerified(
                "Identity already bound to another verified account",
                details={"account": account_id, "holder": holder}
            )

        account.verified = True
        account.identity_hash = digest
        account.verified_at = seq
        self._identity_index[digest] = account_id
        self._audit.append(
            AuditAction.IDENTITY_VERIFIED, caller, seq,
            target=account_id, detail="0x" + digest.hex()
        )
        logger.info(f"Verified identity for {account_id} (by {caller})")
        return account

    def mint_shares(self, caller: str, account_id: str, amount: int, seq: int) -> int:
        """Issue new shares to a verified account, returns new balance"""
        self._access.require_role(caller, Role.ADMIN, "mint shares")
        check_amount(amount)
        account = self.require_verified(account_id)

        account.shares += amount
        self._total_shares += amount
        if self._delegation is not None:
            self._delegation.apply_balance_delta(account_id, amount)
        self._audit.append(
            AuditAction.SHARES_MINTED, caller, seq,
            target=account_id, detail=f"amount={amount} balance={account.shares}"
        )
        logger.info(f"Minted {amount} shares to {account_id} (balance={account.shares})")
        return account.shares

    def transfer_shares(self, caller: str, recipient: str, amount: int, seq: int) -> int:
        """
        Move shares between verified accounts, returns sender's new balance

        Raises:
            StakeLocked: sender's shares are pledged to a delegation still locked
            InsufficientFunds: sender holds fewer shares than amount
        """
        check_amount(amount)
        sender = self.require_verified(caller)
        receiver = self.require_verified(recipient)
        if caller == recipient:
            raise InvalidInputError("Cannot transfer shares to self")
        if self._delegation is not None and self._delegation.is_locked(caller, seq):
            raise StakeLocked(
                f"Shares of {caller} are pledged to a locked delegation",
                details={"account": caller, "lock_until": self._delegation.lock_until(caller)}
            )
        if sender.shares < amount:
            raise InsufficientFunds(
                f"Insufficient shares for {caller}: {sender.shares} < {amount}",
                details={"account": caller, "available": sender.shares, "required": amount}
            )

        sender.shares -= amount
        receiver.shares += amount
        if self._delegation is not None:
            self._delegation.apply_balance_delta(caller, -amount)
            self._delegation.apply_balance_delta(recipient, amount)
        if self._voting is not None:
            self._voting.move_counted(caller, recipient, amount)
        self._audit.append(
            AuditAction.SHARES_TRANSFERRED, caller, seq,
            target=recipient, detail=f"amount={amount}"
        )
        logger.info(f"Transferred {amount} shares {caller} -> {recipient}")
        return sender.shares

    def deactivate(self, caller: str, account_id: str, seq: int) -> Account:
        """Soft-delete an account; its record and identity binding are kept"""
        self._access.require_role(caller, Role.ADMIN, "deactivate accounts")
        account = self.require_active(account_id)

        account.active = False
        account.deactivated_at = seq
        self._audit.append(AuditAction.ACCOUNT_DEACTIVATED, caller, seq, target=account_id)
        logger.info(f"Deactivated account {account_id} (by {caller})")
        return account
