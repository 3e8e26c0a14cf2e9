"""
Governance Engine - Main Integration Module

Wires the registry, delegation ledger, proposals, voting, reputation and
disputes around one audit log and one role map, and exposes them as a single
transition surface. Every transition takes the caller identity and the
current logical sequence explicitly; the engine never reads a clock.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .accounts import AccountRegistry, check_amount
from .audit import AuditLog
from .config import GovernanceConfig
from .delegation import DelegationLedger
from .disputes import DisputeArbitrator
from .errors import GovernanceError, InvalidInputError, SequenceRegression
from .escrow import InMemoryLedger, NativeLedger
from .models import (
    Account,
    AuditAction,
    AuditEntry,
    Delegation,
    Dispute,
    Evidence,
    PenaltyRecord,
    Proposal,
    ProposalStatus,
    ReputationEntry,
    Role,
    VoteChoice,
    VoteRecord,
)
from .proposal import ProposalStore
from .reputation import ReputationTracker
from .roles import AccessControl
from .transactions import Receipt, Transaction, dispatch
from .voting import VotingEngine

logger = logging.getLogger(__name__)


def parse_role(role: Union[Role, str]) -> Role:
    if isinstance(role, Role):
        return role
    if isinstance(role, str):
        try:
            return Role(role.strip().lower())
        except ValueError:
            pass
    raise InvalidInputError(f"Unknown role: {role!r}", details={"role": repr(role)})


class GovernanceEngine:
    """
    Shareholder governance core

    Features:
    - Anti-Sybil identity verification and share issuance
    - Time-locked single-delegate voting power
    - Proposal lifecycle with snapshotted weighted votes
    - Escalating delegate penalties and stake-escrowed disputes
    - Append-only audit trail for every committed transition
    """

    def __init__(
        self,
        owner: str,
        config: Optional[GovernanceConfig] = None,
        ledger: Optional[NativeLedger] = None,
        arbitrator: Optional[str] = None
    ):
        self.config = (config or GovernanceConfig.default()).validate()
        self.ledger = ledger if ledger is not None else InMemoryLedger()

        # Sub-components
        self.access = AccessControl(owner)
        self.audit = AuditLog()
        self.accounts = AccountRegistry(self.access, self.audit, self.config)
        self.reputation = ReputationTracker(
            self.access, self.audit, self.config, account_check=self.accounts.require_account
        )
        self.delegation = DelegationLedger(self.accounts, self.reputation, self.audit, self.config)
        self.proposals = ProposalStore(
            self.access,
            self.audit,
            power_lookup=self.delegation.voting_power,
            supply_lookup=lambda: self.accounts.total_shares,
            config=self.config
        )
        self.voting = VotingEngine(
            self.accounts, self.delegation, self.proposals, self.reputation, self.audit, self.config
        )
        self.disputes = DisputeArbitrator(
            self.access,
            self.accounts,
            self.proposals,
            self.reputation,
            self.ledger,
            self.audit,
            config=self.config,
            arbitrator=arbitrator
        )

        self.last_seq: Optional[int] = None
        logger.info(f"GovernanceEngine initialized (owner={owner})")

    @property
    def owner(self) -> str:
        return self.access.owner

    @contextmanager
    def _transition(self, caller: str, seq: int) -> Iterator[None]:
        """Commit seq as the latest logical time only if the body succeeds"""
        if not caller or not isinstance(caller, str):
            raise InvalidInputError("Caller identity is required")
        if not isinstance(seq, int) or isinstance(seq, bool) or seq < 0:
            raise InvalidInputError(f"Sequence must be a non-negative integer (got {seq!r})")
        if self.last_seq is not None and seq < self.last_seq:
            raise SequenceRegression(
                f"Sequence {seq} is behind the last committed sequence {self.last_seq}",
                details={"seq": seq, "last_seq": self.last_seq}
            )
        yield
        self.last_seq = seq

    # ===== Accounts =====

    def register(self, caller: str, seq: int) -> Account:
        with self._transition(caller, seq):
            return self.accounts.register(caller, seq)

    def verify_identity(self, caller: str, account_id: str, identity_hash: Union[bytes, str], seq: int) -> Account:
        with self._transition(caller, seq):
            return self.accounts.verify_identity(caller, account_id, identity_hash, seq)

    def mint_shares(self, caller: str, account_id: str, amount: int, seq: int) -> int:
        with self._transition(caller, seq):
            return self.accounts.mint_shares(caller, account_id, amount, seq)

    def transfer_shares(self, caller: str, recipient: str, amount: int, seq: int) -> int:
        with self._transition(caller, seq):
            return self.accounts.transfer_shares(caller, recipient, amount, seq)

    def deactivate_account(self, caller: str, account_id: str, seq: int) -> Account:
        with self._transition(caller, seq):
            return self.accounts.deactivate(caller, account_id, seq)

    # ===== Roles =====

    def grant_role(self, caller: str, role: Union[Role, str], account: str, seq: int) -> bool:
        """Add account to a role (owner only); False when already a member"""
        with self._transition(caller, seq):
            role = parse_role(role)
            self.access.check_grant(caller, account)
            granted = self.access.grant(role, account)
            if granted:
                self.audit.append(AuditAction.ROLE_GRANTED, caller, seq, target=account, detail=role.value)
            return granted

    def revoke_role(self, caller: str, role: Union[Role, str], account: str, seq: int) -> bool:
        with self._transition(caller, seq):
            role = parse_role(role)
            self.access.require_owner(caller, "revoke roles")
            revoked = self.access.revoke(role, account)
            if revoked:
                self.audit.append(AuditAction.ROLE_REVOKED, caller, seq, target=account, detail=role.value)
            return revoked

    def has_role(self, account: str, role: Union[Role, str]) -> bool:
        return self.access.has_role(account, parse_role(role))

    # ===== Delegation =====

    def delegate(self, caller: str, delegate: str, lock_duration: int, seq: int) -> Delegation:
        with self._transition(caller, seq):
            return self.delegation.delegate(caller, delegate, lock_duration, seq)

    def revoke_delegation(self, caller: str, seq: int) -> Delegation:
        with self._transition(caller, seq):
            return self.delegation.revoke(caller, seq)

    # ===== Proposal Lifecycle =====

    def create_proposal(
        self,
        caller: str,
        title: str,
        start_seq: int,
        end_seq: int,
        seq: int,
        description: str = ""
    ) -> Proposal:
        with self._transition(caller, seq):
            return self.proposals.create(caller, title, description, start_seq, end_seq, seq)

    def activate_proposal(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        with self._transition(caller, seq):
            return self.proposals.activate(caller, proposal_id, seq)

    def close_proposal(self, caller: str, proposal_id: int, seq: int, reason: str = "") -> Proposal:
        with self._transition(caller, seq):
            return self.proposals.close(caller, proposal_id, reason, seq)

    def finalize_proposal(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        with self._transition(caller, seq):
            return self.proposals.finalize(caller, proposal_id, seq)

    def execute_proposal(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        with self._transition(caller, seq):
            return self.proposals.execute(caller, proposal_id, seq)

    def vote(self, caller: str, proposal_id: int, choice: Union[VoteChoice, str, bool], seq: int) -> VoteRecord:
        with self._transition(caller, seq):
            return self.voting.vote(caller, proposal_id, choice, seq)

    # ===== Reputation and Disputes =====

    def penalize(self, caller: str, target: str, severity: int, seq: int) -> PenaltyRecord:
        with self._transition(caller, seq):
            return self.reputation.penalize(caller, target, severity, seq)

    def report_dispute(
        self,
        caller: str,
        target: str,
        proposal_id: int,
        stake: int,
        seq: int,
        description: str = ""
    ) -> Dispute:
        with self._transition(caller, seq):
            return self.disputes.report_dispute(caller, target, proposal_id, description, stake, seq)

    def add_evidence(
        self,
        caller: str,
        dispute_id: int,
        evidence_hash: Union[bytes, str],
        evidence_type: str,
        seq: int
    ) -> Evidence:
        with self._transition(caller, seq):
            return self.disputes.add_evidence(caller, dispute_id, evidence_hash, evidence_type, seq)

    def resolve_dispute(self, caller: str, dispute_id: int, is_valid: bool, seq: int, reason: str = "") -> Dispute:
        with self._transition(caller, seq):
            return self.disputes.resolve_dispute(caller, dispute_id, is_valid, reason, seq)

    def set_arbitrator(self, caller: str, new_arbitrator: str, seq: int) -> str:
        with self._transition(caller, seq):
            return self.disputes.set_arbitrator(caller, new_arbitrator, seq)

    def fund_reward_pool(self, caller: str, amount: int, seq: int) -> int:
        with self._transition(caller, seq):
            return self.disputes.fund_reward_pool(caller, amount, seq)

    def credit_native(self, caller: str, account: str, amount: int, seq: int) -> int:
        """
        Issue native funds on an in-memory ledger (owner only)

        Stands in for the execution environment's genesis allocation when
        replaying transaction files; ledgers without `credit` reject it.
        """
        with self._transition(caller, seq):
            self.access.require_owner(caller, "credit native funds")
            check_amount(amount)
            credit = getattr(self.ledger, "credit", None)
            if credit is None:
                raise InvalidInputError("Native ledger does not support crediting")
            balance = credit(account, amount)
            self.audit.append(
                AuditAction.NATIVE_CREDITED, caller, seq,
                target=account, detail=f"amount={amount} balance={balance}"
            )
            logger.info(f"Credited {amount} native funds to {account}")
            return balance

    # ===== Read surface =====

    def get_account(self, account_id: str) -> Optional[Account]:
        return self.accounts.get_account(account_id)

    def get_delegation(self, delegator: str) -> Optional[Delegation]:
        return self.delegation.get_delegation(delegator)

    def voting_power(self, account: str) -> int:
        return self.delegation.voting_power(account)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self.proposals.get_proposal(proposal_id)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self.voting.get_vote(proposal_id, voter)

    def get_reputation(self, account: str) -> ReputationEntry:
        return self.reputation.get_reputation(account)

    def get_dispute(self, dispute_id: int) -> Optional[Dispute]:
        return self.disputes.get_dispute(dispute_id)

    def get_evidence(self, dispute_id: int, index: int) -> Evidence:
        return self.disputes.get_evidence(dispute_id, index)

    def get_audit_entry(self, entry_id: int) -> AuditEntry:
        return self.audit.get(entry_id)

    @property
    def proposal_count(self) -> int:
        return self.proposals.proposal_count

    @property
    def dispute_count(self) -> int:
        return self.disputes.dispute_count

    @property
    def audit_count(self) -> int:
        return self.audit.count

    # ===== Transactions =====

    def submit(self, tx: Union[Transaction, Dict[str, Any]]) -> Receipt:
        """
        Apply one transaction and report its outcome

        Governance failures become failed receipts carrying the error code
        unmodified; any other exception propagates.
        """
        if isinstance(tx, Transaction):
            op, seq = tx.op, tx.seq
        elif isinstance(tx, dict):
            op, seq = tx.get("op"), tx.get("seq")
        else:
            op = seq = None
        try:
            if not isinstance(tx, Transaction):
                tx = Transaction.from_dict(tx)
            result = dispatch(self, tx)
        except GovernanceError as e:
            logger.warning(f"Rejected {op} at seq {seq}: {e.error_code} {e.message}")
            return Receipt.failure(op, seq, e)
        return Receipt.success(tx.op, tx.seq, result)

    def replay(self, transactions: Iterable[Union[Transaction, Dict[str, Any]]]) -> List[Receipt]:
        receipts = [self.submit(tx) for tx in transactions]
        failed = sum(1 for r in receipts if not r.ok)
        logger.info(f"Replayed {len(receipts)} transactions ({failed} rejected)")
        return receipts

    # ===== Statistics =====

    def get_statistics(self) -> Dict[str, Any]:
        """Get governance system statistics"""
        proposals = self.proposals.list_proposals()
        disputes = self.disputes.list_disputes()
        accounts = self.accounts.list_accounts()

        return {
            "last_seq": self.last_seq,
            "accounts": len(accounts),
            "verified_accounts": len([a for a in accounts if a.verified]),
            "total_shares": self.accounts.total_shares,
            "active_delegations": len(self.delegation.list_delegations()),
            "total_proposals": self.proposal_count,
            "proposals_by_status": {
                status.value: len([p for p in proposals if p.status == status])
                for status in ProposalStatus
            },
            "total_disputes": self.dispute_count,
            "open_disputes": len([d for d in disputes if d.is_open]),
            "suspended_delegates": len(self.reputation.suspended_accounts()),
            "escrowed": self.disputes.escrowed_total,
            "pending_treasury": self.disputes.pending_treasury,
            "reward_reserve": self.disputes.reward_reserve(),
            "audit_entries": self.audit_count,
            "audit_by_action": self.audit.counts_by_action()
        }

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable view of the whole governance state"""
        ledger_view = self.ledger.to_dict() if hasattr(self.ledger, "to_dict") else None
        return {
            "config": self.config.to_dict(),
            "last_seq": self.last_seq,
            "roles": self.access.to_dict(),
            "arbitrator": self.disputes.arbitrator,
            "accounts": [a.to_dict() for a in self.accounts.list_accounts()],
            "delegations": [d.to_dict() for d in self.delegation.list_delegations(active_only=False)],
            "voting_power": self.delegation.power_table(),
            "proposals": [p.to_dict() for p in self.proposals.list_proposals()],
            "votes": [
                v.to_dict()
                for p in self.proposals.list_proposals()
                for v in self.voting.get_proposal_votes(p.id)
            ],
            "reputation": [e.to_dict() for e in self.reputation.list_entries()],
            "disputes": [
                dict(d.to_dict(), evidence=[e.to_dict() for e in d.evidence])
                for d in self.disputes.list_disputes()
            ],
            "treasury": {
                "pool_account": self.disputes.pool_account,
                "pool_balance": self.disputes.pool_balance(),
                "escrowed": self.disputes.escrowed_total,
                "pending_treasury": self.disputes.pending_treasury,
                "reward_reserve": self.disputes.reward_reserve()
            },
            "native_balances": ledger_view,
            "audit": [e.to_dict() for e in self.audit.entries()]
        }
