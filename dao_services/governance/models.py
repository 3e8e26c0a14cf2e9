"""
Data models for the governance core
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple, Union

from .errors import InvalidHash


HASH_LENGTH = 32


class Role(Enum):
    """Capabilities held in the role map"""
    ADMIN = "admin"             # identity verification, minting, deactivation
    GOVERNANCE = "governance"   # penalties
    ARBITRATOR = "arbitrator"   # dispute resolution
    EXECUTOR = "executor"       # proposal execution


class VoteChoice(Enum):
    """Vote options"""
    FOR = "for"
    AGAINST = "against"


class ProposalStatus(Enum):
    """Proposal lifecycle statuses

    PENDING -> ACTIVE -> CLOSED
                      -> APPROVED -> EXECUTED
                      -> REJECTED
    """
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"


class DisputeStatus(Enum):
    PENDING = "pending"
    RESOLVED_VALID = "resolved_valid"
    RESOLVED_INVALID = "resolved_invalid"


class StakeDisposition(Enum):
    """Where a dispute stake currently sits"""
    ESCROWED = "escrowed"
    RETURNED = "returned"                   # paid back to reporter with reward
    PENDING_TREASURY = "pending_treasury"   # forfeited, awaiting a treasury destination


class AuditAction(Enum):
    ACCOUNT_REGISTERED = "account_registered"
    IDENTITY_VERIFIED = "identity_verified"
    SHARES_MINTED = "shares_minted"
    SHARES_TRANSFERRED = "shares_transferred"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ROLE_GRANTED = "role_granted"
    ROLE_REVOKED = "role_revoked"
    DELEGATED = "delegated"
    DELEGATION_REVOKED = "delegation_revoked"
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_ACTIVATED = "proposal_activated"
    PROPOSAL_CLOSED = "proposal_closed"
    PROPOSAL_FINALIZED = "proposal_finalized"
    PROPOSAL_EXECUTED = "proposal_executed"
    VOTE_CAST = "vote_cast"
    PENALTY_APPLIED = "penalty_applied"
    DELEGATE_SUSPENDED = "delegate_suspended"
    DISPUTE_REPORTED = "dispute_reported"
    EVIDENCE_ADDED = "evidence_added"
    DISPUTE_RESOLVED = "dispute_resolved"
    ARBITRATOR_CHANGED = "arbitrator_changed"
    REWARD_POOL_FUNDED = "reward_pool_funded"
    NATIVE_CREDITED = "native_credited"


def to_bytes32(value: Union[bytes, str], label: str = "hash") -> bytes:
    """Normalize a 32-byte digest given as bytes or a (0x-prefixed) hex string"""
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise InvalidHash(f"{label} is not valid hex") from None
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_LENGTH:
        raise InvalidHash(
            f"{label} must be exactly {HASH_LENGTH} bytes",
            details={"length": len(value) if isinstance(value, (bytes, bytearray)) else None}
        )
    return bytes(value)


def identity_hash(*parts: str) -> bytes:
    """Derive an identity digest from off-chain identity attributes"""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.strip().lower().encode("utf-8"))
        digest.update(b"\x00")
    return digest.digest()


def _hex(value: Optional[bytes]) -> Optional[str]:
    return "0x" + value.hex() if value is not None else None


class SequenceGenerator:
    """Monotonic id source owned by a single component"""

    def __init__(self, start: int = 1):
        self._next = start

    def next(self) -> int:
        value = self._next
        self._next += 1
        return value

    @property
    def issued(self) -> int:
        """Number of ids handed out so far"""
        return self._next - 1


@dataclass
class Account:
    """Registered participant"""
    account_id: str
    registered_at: int
    verified: bool = False
    identity_hash: Optional[bytes] = None
    shares: int = 0
    active: bool = True
    verified_at: Optional[int] = None
    deactivated_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "registered_at": self.registered_at,
            "verified": self.verified,
            "identity_hash": _hex(self.identity_hash),
            "shares": self.shares,
            "active": self.active,
            "verified_at": self.verified_at,
            "deactivated_at": self.deactivated_at
        }


@dataclass
class Delegation:
    """Single-delegate relationship held by a delegator"""
    delegator: str
    delegate: str
    lock_until: int
    created_at: int
    active: bool = True
    revoked_at: Optional[int] = None

    def is_locked(self, now: int) -> bool:
        return self.active and now < self.lock_until

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator": self.delegator,
            "delegate": self.delegate,
            "lock_until": self.lock_until,
            "created_at": self.created_at,
            "active": self.active,
            "revoked_at": self.revoked_at
        }


@dataclass
class Proposal:
    """Governance proposal"""
    id: int
    proposer: str
    title: str
    description: str
    start_seq: int
    end_seq: int
    created_at: int
    status: ProposalStatus = ProposalStatus.PENDING
    votes_for: int = 0
    votes_against: int = 0
    approved: bool = False
    executed: bool = False
    activated_at: Optional[int] = None
    finalized_at: Optional[int] = None
    executed_at: Optional[int] = None
    close_reason: Optional[str] = None

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    @property
    def is_finalized(self) -> bool:
        return self.status in (
            ProposalStatus.APPROVED,
            ProposalStatus.REJECTED,
            ProposalStatus.EXECUTED
        )

    def in_window(self, now: int) -> bool:
        return self.start_seq <= now <= self.end_seq

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "start_seq": self.start_seq,
            "end_seq": self.end_seq,
            "created_at": self.created_at,
            "status": self.status.value,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "total_votes": self.total_votes,
            "approved": self.approved,
            "executed": self.executed,
            "activated_at": self.activated_at,
            "finalized_at": self.finalized_at,
            "executed_at": self.executed_at,
            "close_reason": self.close_reason
        }


@dataclass(frozen=True)
class VoteRecord:
    """Vote with its weight fixed at cast time"""
    proposal_id: int
    voter: str
    choice: VoteChoice
    weight: int
    sequence: int
    contributors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice.value,
            "weight": self.weight,
            "sequence": self.sequence,
            "contributors": list(self.contributors)
        }


@dataclass(frozen=True)
class PenaltyRecord:
    target: str
    severity: int
    amount: int
    penalty_number: int
    sequence: int
    issued_by: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "severity": self.severity,
            "amount": self.amount,
            "penalty_number": self.penalty_number,
            "sequence": self.sequence,
            "issued_by": self.issued_by
        }


@dataclass
class ReputationEntry:
    """Penalty and dispute standing of a delegate"""
    account: str
    total_penalties: int = 0
    penalty_count: int = 0
    suspended: bool = False
    last_penalty_seq: Optional[int] = None
    suspended_at: Optional[int] = None
    total_disputes: int = 0
    valid_disputes: int = 0
    score: int = 1000
    penalties: List[PenaltyRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "total_penalties": self.total_penalties,
            "penalty_count": self.penalty_count,
            "suspended": self.suspended,
            "last_penalty_seq": self.last_penalty_seq,
            "suspended_at": self.suspended_at,
            "total_disputes": self.total_disputes,
            "valid_disputes": self.valid_disputes,
            "score": self.score,
            "penalties": [p.to_dict() for p in self.penalties]
        }


@dataclass(frozen=True)
class Evidence:
    dispute_id: int
    index: int
    submitter: str
    evidence_hash: bytes
    evidence_type: str
    sequence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dispute_id": self.dispute_id,
            "index": self.index,
            "submitter": self.submitter,
            "evidence_hash": _hex(self.evidence_hash),
            "evidence_type": self.evidence_type,
            "sequence": self.sequence
        }


@dataclass
class Dispute:
    """Stake-backed report against a delegate"""
    id: int
    reporter: str
    target: str
    proposal_id: int
    description: str
    stake: int
    created_at: int
    status: DisputeStatus = DisputeStatus.PENDING
    disposition: StakeDisposition = StakeDisposition.ESCROWED
    resolved_by: Optional[str] = None
    resolved_at: Optional[int] = None
    resolution_reason: Optional[str] = None
    payout: int = 0
    evidence: List[Evidence] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status == DisputeStatus.PENDING

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.reporter, self.target, self.proposal_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reporter": self.reporter,
            "target": self.target,
            "proposal_id": self.proposal_id,
            "description": self.description,
            "stake": self.stake,
            "created_at": self.created_at,
            "status": self.status.value,
            "disposition": self.disposition.value,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at,
            "resolution_reason": self.resolution_reason,
            "payout": self.payout,
            "evidence_count": len(self.evidence)
        }


@dataclass(frozen=True)
class AuditEntry:
    """Append-only log line"""
    id: int
    action: AuditAction
    actor: str
    target: Optional[str]
    sequence: int
    proposal_id: Optional[int] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action.value,
            "actor": self.actor,
            "target": self.target,
            "proposal_id": self.proposal_id,
            "sequence": self.sequence,
            "detail": self.detail
        }
