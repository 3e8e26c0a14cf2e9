"""
Dispute Arbitrator

Stake-escrowed reports against delegates.

    PENDING -> RESOLVED_VALID    stake + reward paid back to the reporter
            -> RESOLVED_INVALID  stake kept in the pool as pending treasury

Rewards come only from the pool's free reserve, never from stakes still
escrowed for open disputes or from pending treasury.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from .accounts import AccountRegistry, check_amount
from .audit import AuditLog
from .config import GovernanceConfig
from .errors import (
    AlreadyReported,
    DisputeAlreadyResolved,
    DisputeNotFound,
    EvidenceNotFound,
    InsufficientFunds,
    InsufficientStake,
    InvalidInputError,
    SelfReport,
    UnauthorizedError,
)
from .escrow import ARBITRATION_POOL, NativeLedger
from .models import (
    AuditAction,
    Dispute,
    DisputeStatus,
    Evidence,
    Role,
    SequenceGenerator,
    StakeDisposition,
    to_bytes32,
)
from .proposal import ProposalStore
from .reputation import ReputationTracker
from .roles import AccessControl

logger = logging.getLogger(__name__)


class DisputeArbitrator:
    """Escrows dispute stakes and settles them on resolution"""

    def __init__(
        self,
        access: AccessControl,
        registry: AccountRegistry,
        proposals: ProposalStore,
        reputation: ReputationTracker,
        ledger: NativeLedger,
        audit: AuditLog,
        config: Optional[GovernanceConfig] = None,
        arbitrator: Optional[str] = None,
        pool_account: str = ARBITRATION_POOL
    ):
        self.config = config or GovernanceConfig.default()
        self._access = access
        self._registry = registry
        self._proposals = proposals
        self._reputation = reputation
        self._ledger = ledger
        self._audit = audit
        self.arbitrator = arbitrator or access.owner
        self.pool_account = pool_account
        self._disputes: Dict[int, Dispute] = {}
        self._open: Dict[Tuple[str, str, int], int] = {}  # (reporter, target, proposal) -> dispute id
        self._ids = SequenceGenerator(start=1)
        self.escrowed_total = 0
        self.pending_treasury = 0
        logger.info(
            f"DisputeArbitrator initialized (arbitrator={self.arbitrator}, "
            f"min_stake={self.config.MIN_STAKE}, reward_bps={self.config.REWARD_BPS})"
        )

    # ===== Reads =====

    def get_dispute(self, dispute_id: int) -> Optional[Dispute]:
        return self._disputes.get(dispute_id)

    def require_dispute(self, dispute_id: int) -> Dispute:
        dispute = self._disputes.get(dispute_id)
        if dispute is None:
            raise DisputeNotFound(dispute_id)
        return dispute

    def open_dispute_for(self, reporter: str, target: str, proposal_id: int) -> Optional[Dispute]:
        dispute_id = self._open.get((reporter, target, proposal_id))
        return self._disputes.get(dispute_id) if dispute_id is not None else None

    def list_disputes(self, status: Optional[DisputeStatus] = None) -> List[Dispute]:
        disputes = list(self._disputes.values())
        if status:
            disputes = [d for d in disputes if d.status == status]
        return disputes

    @property
    def dispute_count(self) -> int:
        return self._ids.issued

    def get_evidence(self, dispute_id: int, index: int) -> Evidence:
        dispute = self.require_dispute(dispute_id)
        if not isinstance(index, int) or not 0 <= index < len(dispute.evidence):
            raise EvidenceNotFound(dispute_id, index)
        return dispute.evidence[index]

    def evidence_count(self, dispute_id: int) -> int:
        return len(self.require_dispute(dispute_id).evidence)

    def pool_balance(self) -> int:
        return self._ledger.balance_of(self.pool_account)

    def reward_reserve(self) -> int:
        """Pool funds not backing open stakes or pending treasury"""
        return self.pool_balance() - self.escrowed_total - self.pending_treasury

    def reward_for(self, stake: int) -> int:
        return stake * self.config.REWARD_BPS // self.config.BPS_DENOMINATOR

    # ===== Transitions =====

    def report_dispute(
        self,
        caller: str,
        target: str,
        proposal_id: int,
        description: str,
        stake: int,
        seq: int
    ) -> Dispute:
        """
        Report a delegate, escrowing stake from the reporter's native balance

        Raises:
            InsufficientStake: stake below MIN_STAKE
            SelfReport: reporter and target are the same account
            AlreadyReported: an open dispute exists for (reporter, target, proposal)
            InsufficientFunds: reporter cannot cover the stake
        """
        if not isinstance(stake, int) or isinstance(stake, bool) or stake < self.config.MIN_STAKE:
            raise InsufficientStake(
                f"Stake must be at least {self.config.MIN_STAKE} (got {stake!r})",
                details={"stake": stake, "required": self.config.MIN_STAKE}
            )
        if caller == target:
            raise SelfReport(f"{caller} cannot report itself")
        self._registry.require_active(caller)
        self._registry.require_account(target)
        self._proposals.require_proposal(proposal_id)
        existing = self.open_dispute_for(caller, target, proposal_id)
        if existing is not None:
            raise AlreadyReported(
                f"Dispute {existing.id} is already open for this report",
                details={"dispute_id": existing.id}
            )

        # raises InsufficientFunds without moving anything
        self._ledger.transfer(stake, caller, self.pool_account)

        dispute = Dispute(
            id=self._ids.next(),
            reporter=caller,
            target=target,
            proposal_id=proposal_id,
            description=description or "",
            stake=stake,
            created_at=seq
        )
        self._disputes[dispute.id] = dispute
        self._open[dispute.key] = dispute.id
        self.escrowed_total += stake
        self._audit.append(
            AuditAction.DISPUTE_REPORTED, caller, seq, target=target,
            proposal_id=proposal_id, detail=f"dispute={dispute.id} stake={stake}"
        )
        logger.info(f"Dispute {dispute.id} reported by {caller} against {target} (stake={stake})")
        return dispute

    def add_evidence(
        self,
        caller: str,
        dispute_id: int,
        evidence_hash: Union[bytes, str],
        evidence_type: str,
        seq: int
    ) -> Evidence:
        """Append evidence to a pending dispute (parties or arbitrators)"""
        dispute = self.require_dispute(dispute_id)
        if not dispute.is_open:
            raise DisputeAlreadyResolved(
                f"Dispute {dispute_id} is {dispute.status.value}",
                details={"dispute_id": dispute_id, "status": dispute.status.value}
            )
        if caller not in (dispute.reporter, dispute.target) and not self._is_arbitrator(caller):
            raise UnauthorizedError(
                f"{caller} is not a party to dispute {dispute_id}",
                details={"caller": caller, "dispute_id": dispute_id}
            )
        digest = to_bytes32(evidence_hash, "evidence_hash")
        if not evidence_type or not isinstance(evidence_type, str):
            raise InvalidInputError("Evidence type is required")

        evidence = Evidence(
            dispute_id=dispute_id,
            index=len(dispute.evidence),
            submitter=caller,
            evidence_hash=digest,
            evidence_type=evidence_type,
            sequence=seq
        )
        dispute.evidence.append(evidence)
        self._audit.append(
            AuditAction.EVIDENCE_ADDED, caller, seq, target=dispute.target,
            proposal_id=dispute.proposal_id, detail=f"dispute={dispute_id} index={evidence.index}"
        )
        logger.info(f"Evidence #{evidence.index} ({evidence_type}) added to dispute {dispute_id}")
        return evidence

    def _is_arbitrator(self, account: str) -> bool:
        return account == self.arbitrator or self._access.has_role(account, Role.ARBITRATOR)

    def resolve_dispute(
        self,
        caller: str,
        dispute_id: int,
        is_valid: bool,
        reason: str,
        seq: int
    ) -> Dispute:
        """
        Settle a pending dispute

        Raises:
            UnauthorizedError: caller is not an arbitrator, or is a party
            DisputeAlreadyResolved: dispute is no longer pending
            InsufficientFunds: reward reserve cannot cover the reward
        """
        if not self._is_arbitrator(caller):
            raise UnauthorizedError(
                f"{caller} is not an arbitrator",
                details={"caller": caller}
            )
        if not isinstance(is_valid, bool):
            raise InvalidInputError(f"is_valid must be a boolean (got {is_valid!r})")
        dispute = self.require_dispute(dispute_id)
        if not dispute.is_open:
            raise DisputeAlreadyResolved(
                f"Dispute {dispute_id} is {dispute.status.value}",
                details={"dispute_id": dispute_id, "status": dispute.status.value}
            )
        if caller in (dispute.reporter, dispute.target):
            raise UnauthorizedError(
                f"{caller} is a party to dispute {dispute_id} and cannot resolve it",
                details={"caller": caller, "dispute_id": dispute_id}
            )

        if is_valid:
            reward = self.reward_for(dispute.stake)
            reserve = self.reward_reserve()
            if reserve < reward:
                raise InsufficientFunds(
                    f"Reward reserve {reserve} cannot cover reward {reward}",
                    details={"reserve": reserve, "reward": reward, "dispute_id": dispute_id}
                )
            payout = dispute.stake + reward
            self._ledger.transfer(payout, self.pool_account, dispute.reporter)
            dispute.payout = payout
            dispute.status = DisputeStatus.RESOLVED_VALID
            dispute.disposition = StakeDisposition.RETURNED
            self.escrowed_total -= dispute.stake
        else:
            dispute.status = DisputeStatus.RESOLVED_INVALID
            dispute.disposition = StakeDisposition.PENDING_TREASURY
            self.escrowed_total -= dispute.stake
            self.pending_treasury += dispute.stake

        dispute.resolved_by = caller
        dispute.resolved_at = seq
        dispute.resolution_reason = reason or ""
        del self._open[dispute.key]
        self._reputation.record_dispute_outcome(dispute.target, is_valid)
        self._audit.append(
            AuditAction.DISPUTE_RESOLVED, caller, seq, target=dispute.target,
            proposal_id=dispute.proposal_id,
            detail=f"dispute={dispute_id} {dispute.status.value} payout={dispute.payout}"
        )
        logger.info(
            f"Dispute {dispute_id} resolved {dispute.status.value} by {caller} "
            f"(payout={dispute.payout})"
        )
        return dispute

    def set_arbitrator(self, caller: str, new_arbitrator: str, seq: int) -> str:
        """Replace the designated arbitrator (owner only)"""
        self._access.require_owner(caller, "set the arbitrator")
        if not new_arbitrator:
            raise InvalidInputError("Arbitrator identity is required")

        previous = self.arbitrator
        self.arbitrator = new_arbitrator
        self._audit.append(
            AuditAction.ARBITRATOR_CHANGED, caller, seq, target=new_arbitrator,
            detail=f"previous={previous}"
        )
        logger.info(f"Arbitrator changed {previous} -> {new_arbitrator}")
        return new_arbitrator

    def fund_reward_pool(self, caller: str, amount: int, seq: int) -> int:
        """Move native funds into the pool's reward reserve"""
        check_amount(amount)
        self._ledger.transfer(amount, caller, self.pool_account)
        self._audit.append(
            AuditAction.REWARD_POOL_FUNDED, caller, seq, target=self.pool_account,
            detail=f"amount={amount}"
        )
        logger.info(f"{caller} funded reward reserve with {amount}")
        return self.reward_reserve()
