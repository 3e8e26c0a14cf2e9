"""
Proposal Store

Proposal lifecycle as an explicit state machine:
PENDING -> ACTIVE -> CLOSED | APPROVED -> EXECUTED | REJECTED
"""

import logging
from typing import Callable, Dict, List, Optional

from .audit import AuditLog
from .config import GovernanceConfig
from .errors import (
    AlreadyExecuted,
    AlreadyFinalized,
    InsufficientPower,
    InvalidInputError,
    InvalidWindow,
    ProposalExpired,
    ProposalNotActive,
    ProposalNotApproved,
    ProposalNotFound,
    UnauthorizedError,
    VotingInProgress,
)
from .models import AuditAction, Proposal, ProposalStatus, Role, SequenceGenerator, VoteChoice
from .roles import AccessControl

logger = logging.getLogger(__name__)

OPEN_STATUSES = (ProposalStatus.PENDING, ProposalStatus.ACTIVE)


class ProposalStore:
    """Manages governance proposals lifecycle"""

    def __init__(
        self,
        access: AccessControl,
        audit: AuditLog,
        power_lookup: Callable[[str], int],
        supply_lookup: Callable[[], int],
        config: Optional[GovernanceConfig] = None
    ):
        self.config = config or GovernanceConfig.default()
        self._access = access
        self._audit = audit
        self._power_lookup = power_lookup
        self._supply_lookup = supply_lookup
        self._proposals: Dict[int, Proposal] = {}
        self._ids = SequenceGenerator(start=1)
        logger.info("ProposalStore initialized")

    # ===== Reads =====

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def require_proposal(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(proposal_id)
        return proposal

    @property
    def proposal_count(self) -> int:
        return self._ids.issued

    def list_proposals(self, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        proposals = list(self._proposals.values())
        if status:
            proposals = [p for p in proposals if p.status == status]
        return proposals

    def is_approved(self, proposal: Proposal) -> bool:
        """
        Approval rule in basis points

        Requirements:
        1. At least one vote, and strictly more for than against
        2. votes_for / total >= APPROVAL_THRESHOLD_BPS
        3. total >= QUORUM_BPS of share supply (when enabled)
        """
        total = proposal.total_votes
        if total == 0 or proposal.votes_for <= proposal.votes_against:
            return False
        bps = self.config.BPS_DENOMINATOR
        if proposal.votes_for * bps < self.config.APPROVAL_THRESHOLD_BPS * total:
            return False
        if self.config.QUORUM_BPS and total * bps < self.config.QUORUM_BPS * self._supply_lookup():
            return False
        return True

    # ===== Transitions =====

    def create(
        self,
        caller: str,
        title: str,
        description: str,
        start_seq: int,
        end_seq: int,
        seq: int
    ) -> Proposal:
        """
        Create a new proposal

        Raises:
            InvalidWindow: end_seq <= start_seq or start_seq in the past
            InsufficientPower: proposer below MIN_PROPOSAL_POWER
        """
        for name, value in (("start_seq", start_seq), ("end_seq", end_seq)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidWindow(f"{name} must be an integer (got {value!r})")
        if end_seq <= start_seq or start_seq < seq:
            raise InvalidWindow(
                f"Invalid voting window [{start_seq}, {end_seq}] at seq {seq}",
                details={"start_seq": start_seq, "end_seq": end_seq, "now": seq}
            )
        if not title:
            raise InvalidInputError("Proposal title is required")
        power = self._power_lookup(caller)
        if power < self.config.MIN_PROPOSAL_POWER:
            raise InsufficientPower(
                f"Proposer must hold at least {self.config.MIN_PROPOSAL_POWER} "
                f"voting power (has {power})",
                details={"power": power, "required": self.config.MIN_PROPOSAL_POWER}
            )

        proposal = Proposal(
            id=self._ids.next(),
            proposer=caller,
            title=title,
            description=description or "",
            start_seq=start_seq,
            end_seq=end_seq,
            created_at=seq
        )
        self._proposals[proposal.id] = proposal
        self._audit.append(
            AuditAction.PROPOSAL_CREATED, caller, seq, proposal_id=proposal.id,
            detail=f"window=[{start_seq},{end_seq}]"
        )
        logger.info(f"Created proposal {proposal.id} by {caller} (window {start_seq}-{end_seq})")
        return proposal

    def _open_in_window(self, proposal: Proposal, seq: int) -> None:
        if proposal.status not in OPEN_STATUSES:
            raise ProposalNotActive(
                f"Proposal {proposal.id} is {proposal.status.value}",
                details={"proposal_id": proposal.id, "status": proposal.status.value}
            )
        if not proposal.in_window(seq):
            raise ProposalExpired(
                f"Proposal {proposal.id} accepts votes only in [{proposal.start_seq}, {proposal.end_seq}]",
                details={"proposal_id": proposal.id, "now": seq}
            )

    def check_votable(self, proposal_id: int, seq: int) -> Proposal:
        """Validate that votes may be recorded on the proposal now"""
        proposal = self.require_proposal(proposal_id)
        self._open_in_window(proposal, seq)
        return proposal

    def _activate(self, proposal: Proposal, caller: str, seq: int) -> None:
        proposal.status = ProposalStatus.ACTIVE
        proposal.activated_at = seq
        self._audit.append(AuditAction.PROPOSAL_ACTIVATED, caller, seq, proposal_id=proposal.id)
        logger.info(f"Proposal {proposal.id} is now ACTIVE")

    def activate(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        """Open a pending proposal for voting once its window has started"""
        proposal = self.require_proposal(proposal_id)
        if proposal.status != ProposalStatus.PENDING:
            raise ProposalNotActive(
                f"Proposal {proposal_id} is {proposal.status.value}, not pending",
                details={"proposal_id": proposal_id, "status": proposal.status.value}
            )
        self._open_in_window(proposal, seq)
        self._activate(proposal, caller, seq)
        return proposal

    def apply_vote(self, proposal: Proposal, choice: VoteChoice, weight: int, voter: str, seq: int) -> None:
        """Add a validated vote to the tallies (VotingEngine only)"""
        if proposal.status == ProposalStatus.PENDING:
            self._activate(proposal, voter, seq)
        if choice == VoteChoice.FOR:
            proposal.votes_for += weight
        else:
            proposal.votes_against += weight

    def close(self, caller: str, proposal_id: int, reason: str, seq: int) -> Proposal:
        """Withdraw an open proposal (proposer or admin)"""
        proposal = self.require_proposal(proposal_id)
        if caller != proposal.proposer and not self._access.has_role(caller, Role.ADMIN):
            raise UnauthorizedError(
                f"{caller} may not close proposal {proposal_id}",
                details={"caller": caller, "proposal_id": proposal_id}
            )
        if proposal.is_finalized:
            raise AlreadyFinalized(f"Proposal {proposal_id} is already {proposal.status.value}")
        if proposal.status not in OPEN_STATUSES:
            raise ProposalNotActive(f"Proposal {proposal_id} is already {proposal.status.value}")

        proposal.status = ProposalStatus.CLOSED
        proposal.close_reason = reason or ""
        self._audit.append(
            AuditAction.PROPOSAL_CLOSED, caller, seq, proposal_id=proposal_id, detail=reason or ""
        )
        logger.info(f"Closed proposal {proposal_id}: {reason}")
        return proposal

    def finalize(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        """
        Decide the outcome strictly after the voting window

        Raises:
            AlreadyFinalized: outcome was already decided
            VotingInProgress: seq <= end_seq
        """
        proposal = self.require_proposal(proposal_id)
        if proposal.is_finalized:
            raise AlreadyFinalized(
                f"Proposal {proposal_id} is already {proposal.status.value}",
                details={"proposal_id": proposal_id, "status": proposal.status.value}
            )
        if proposal.status not in OPEN_STATUSES:
            raise ProposalNotActive(f"Proposal {proposal_id} is {proposal.status.value}")
        if seq <= proposal.end_seq:
            raise VotingInProgress(
                f"Voting on proposal {proposal_id} ends at {proposal.end_seq}",
                details={"proposal_id": proposal_id, "end_seq": proposal.end_seq, "now": seq}
            )

        proposal.approved = self.is_approved(proposal)
        proposal.status = ProposalStatus.APPROVED if proposal.approved else ProposalStatus.REJECTED
        proposal.finalized_at = seq
        self._audit.append(
            AuditAction.PROPOSAL_FINALIZED, caller, seq, proposal_id=proposal_id,
            detail=f"{proposal.status.value} for={proposal.votes_for} against={proposal.votes_against}"
        )
        logger.info(
            f"Proposal {proposal_id} {proposal.status.value.upper()} "
            f"(for={proposal.votes_for}, against={proposal.votes_against})"
        )
        return proposal

    def execute(self, caller: str, proposal_id: int, seq: int) -> Proposal:
        """Mark an approved proposal executed (proposer or executor role)"""
        proposal = self.require_proposal(proposal_id)
        if caller != proposal.proposer and not self._access.has_role(caller, Role.EXECUTOR):
            raise UnauthorizedError(
                f"{caller} may not execute proposal {proposal_id}",
                details={"caller": caller, "proposal_id": proposal_id}
            )
        if proposal.executed:
            raise AlreadyExecuted(f"Proposal {proposal_id} was already executed")
        if not proposal.approved:
            raise ProposalNotApproved(
                f"Proposal {proposal_id} is {proposal.status.value}, not approved",
                details={"proposal_id": proposal_id, "status": proposal.status.value}
            )

        proposal.executed = True
        proposal.executed_at = seq
        proposal.status = ProposalStatus.EXECUTED
        self._audit.append(AuditAction.PROPOSAL_EXECUTED, caller, seq, proposal_id=proposal_id)
        logger.info(f"Executed proposal {proposal_id} (by {caller})")
        return proposal
