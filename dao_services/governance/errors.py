"""
Typed errors for the governance core

Every failure carries a stable error code so the transaction surface can
report it unmodified. Components raise these only while validating, before
any state is written.
"""

from typing import Optional


class GovernanceError(Exception):
    """Base exception for governance errors"""

    category = "GOVERNANCE_ERROR"
    default_code = "GOVERNANCE_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "category": self.category,
            "message": self.message,
            "details": self.details
        }


# ===== Categories =====

class UnauthorizedError(GovernanceError):
    category = "UNAUTHORIZED"
    default_code = "UNAUTHORIZED"


class NotFoundError(GovernanceError):
    category = "NOT_FOUND"
    default_code = "NOT_FOUND"


class AlreadyExistsError(GovernanceError):
    category = "ALREADY_EXISTS"
    default_code = "ALREADY_EXISTS"


class InvalidInputError(GovernanceError):
    category = "INVALID_INPUT"
    default_code = "INVALID_INPUT"


class StateConflictError(GovernanceError):
    category = "STATE_CONFLICT"
    default_code = "STATE_CONFLICT"


class InsufficientFundsError(GovernanceError):
    category = "INSUFFICIENT_FUNDS"
    default_code = "INSUFFICIENT_FUNDS"


class InvalidConfigError(InvalidInputError):
    default_code = "INVALID_CONFIG"


# ===== Not found =====

class AccountNotFound(NotFoundError):
    default_code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account: str):
        super().__init__(f"Account not found: {account}", details={"account": account})


class ProposalNotFound(NotFoundError):
    default_code = "PROPOSAL_NOT_FOUND"

    def __init__(self, proposal_id: int):
        super().__init__(f"Proposal not found: {proposal_id}", details={"proposal_id": proposal_id})


class DisputeNotFound(NotFoundError):
    default_code = "DISPUTE_NOT_FOUND"

    def __init__(self, dispute_id: int):
        super().__init__(f"Dispute not found: {dispute_id}", details={"dispute_id": dispute_id})


class DelegationNotFound(NotFoundError):
    default_code = "DELEGATION_NOT_FOUND"

    def __init__(self, delegator: str):
        super().__init__(f"No active delegation for {delegator}", details={"delegator": delegator})


class EvidenceNotFound(NotFoundError):
    default_code = "EVIDENCE_NOT_FOUND"

    def __init__(self, dispute_id: int, index: int):
        super().__init__(
            f"Evidence {index} not found for dispute {dispute_id}",
            details={"dispute_id": dispute_id, "index": index}
        )


class AuditEntryNotFound(NotFoundError):
    default_code = "AUDIT_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        super().__init__(f"Audit entry not found: {entry_id}", details={"entry_id": entry_id})


# ===== Already exists =====

class AlreadyRegistered(AlreadyExistsError):
    default_code = "ALREADY_REGISTERED"


class AlreadyVerified(AlreadyExistsError):
    default_code = "ALREADY_VERIFIED"


class AlreadyVoted(AlreadyExistsError):
    default_code = "ALREADY_VOTED"


class AlreadyReported(AlreadyExistsError):
    default_code = "ALREADY_REPORTED"


class DelegationLocked(AlreadyExistsError):
    default_code = "DELEGATION_LOCKED"


# ===== Invalid input =====

class ZeroAmount(InvalidInputError):
    default_code = "ZERO_AMOUNT"


class InvalidHash(InvalidInputError):
    default_code = "INVALID_HASH"


class InvalidLockDuration(InvalidInputError):
    default_code = "INVALID_LOCK_DURATION"


class SelfDelegation(InvalidInputError):
    default_code = "SELF_DELEGATION"


class InvalidWindow(InvalidInputError):
    default_code = "INVALID_WINDOW"


class InsufficientPower(InvalidInputError):
    default_code = "INSUFFICIENT_POWER"


class InvalidChoice(InvalidInputError):
    default_code = "INVALID_CHOICE"


class InvalidSeverity(InvalidInputError):
    default_code = "INVALID_SEVERITY"


class InsufficientStake(InvalidInputError):
    default_code = "INSUFFICIENT_STAKE"


class SelfReport(InvalidInputError):
    default_code = "SELF_REPORT"


class InvalidTransaction(InvalidInputError):
    default_code = "INVALID_TRANSACTION"


class SequenceRegression(InvalidInputError):
    default_code = "SEQUENCE_REGRESSION"


# ===== State conflicts =====

class NotVerified(StateConflictError):
    default_code = "NOT_VERIFIED"


class AccountInactive(StateConflictError):
    default_code = "ACCOUNT_INACTIVE"


class StakeLocked(StateConflictError):
    default_code = "STAKE_LOCKED"


class DelegateSuspended(StateConflictError):
    default_code = "DELEGATE_SUSPENDED"


class ProposalExpired(StateConflictError):
    default_code = "PROPOSAL_EXPIRED"


class ProposalNotActive(StateConflictError):
    default_code = "PROPOSAL_NOT_ACTIVE"


class VotingInProgress(StateConflictError):
    default_code = "VOTING_IN_PROGRESS"


class AlreadyFinalized(StateConflictError):
    default_code = "ALREADY_FINALIZED"


class ProposalNotApproved(StateConflictError):
    default_code = "PROPOSAL_NOT_APPROVED"


class AlreadyExecuted(StateConflictError):
    default_code = "ALREADY_EXECUTED"


class DisputeAlreadyResolved(StateConflictError):
    default_code = "DISPUTE_ALREADY_RESOLVED"


# ===== Funds =====

class InsufficientFunds(InsufficientFundsError):
    default_code = "INSUFFICIENT_FUNDS"
