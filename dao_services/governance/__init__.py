"""
Shareholder Governance Core

Deterministic governance state machine for a shareholder DAO:
- Anti-Sybil identity verification and share issuance
- Time-locked vote delegation
- Proposal lifecycle and token-weighted voting
- Delegate penalties, reputation and stake-escrowed disputes
- Append-only audit log
"""

from .models import (
    Account,
    AuditAction,
    AuditEntry,
    Delegation,
    Dispute,
    DisputeStatus,
    Evidence,
    PenaltyRecord,
    Proposal,
    ProposalStatus,
    ReputationEntry,
    Role,
    StakeDisposition,
    VoteChoice,
    VoteRecord,
    identity_hash,
)
from .config import GovernanceConfig
from .errors import GovernanceError
from .escrow import ARBITRATION_POOL, InMemoryLedger, NativeLedger
from .accounts import AccountRegistry
from .delegation import DelegationLedger
from .proposal import ProposalStore
from .voting import VotingEngine
from .reputation import ReputationTracker
from .disputes import DisputeArbitrator
from .audit import AuditLog
from .roles import AccessControl
from .transactions import Receipt, Transaction
from .engine import GovernanceEngine

__all__ = [
    'Account',
    'AuditAction',
    'AuditEntry',
    'Delegation',
    'Dispute',
    'DisputeStatus',
    'Evidence',
    'PenaltyRecord',
    'Proposal',
    'ProposalStatus',
    'ReputationEntry',
    'Role',
    'StakeDisposition',
    'VoteChoice',
    'VoteRecord',
    'identity_hash',
    'GovernanceConfig',
    'GovernanceError',
    'ARBITRATION_POOL',
    'InMemoryLedger',
    'NativeLedger',
    'AccountRegistry',
    'DelegationLedger',
    'ProposalStore',
    'VotingEngine',
    'ReputationTracker',
    'DisputeArbitrator',
    'AuditLog',
    'AccessControl',
    'Receipt',
    'Transaction',
    'GovernanceEngine'
]
