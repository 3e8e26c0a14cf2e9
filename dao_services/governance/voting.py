"""
Voting Engine

Records token-weighted votes. The weight is snapshotted into the vote record
at cast time, and the tally update happens in the same transition as the
record insert.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple, Union

from .accounts import AccountRegistry
from .audit import AuditLog
from .config import GovernanceConfig
from .delegation import DelegationLedger
from .errors import AlreadyVoted, DelegateSuspended, InsufficientPower, InvalidChoice
from .models import AuditAction, VoteChoice, VoteRecord
from .proposal import OPEN_STATUSES, ProposalStore
from .reputation import ReputationTracker

logger = logging.getLogger(__name__)


def parse_choice(choice: Union[VoteChoice, str, bool]) -> VoteChoice:
    """Accept VoteChoice, 'for'/'against' or a support boolean"""
    if isinstance(choice, VoteChoice):
        return choice
    if isinstance(choice, bool):
        return VoteChoice.FOR if choice else VoteChoice.AGAINST
    if isinstance(choice, str):
        try:
            return VoteChoice(choice.strip().lower())
        except ValueError:
            pass
    raise InvalidChoice(f"Invalid vote choice: {choice!r}", details={"choice": repr(choice)})


class VotingEngine:
    """
    Casts votes against proposals

    Features:
    - One vote record per (proposal, voter)
    - Weight = own undelegated shares plus shares delegated to the voter
    - Shares already counted on a proposal are not counted again when they
      reach another voter through a later delegation change or a transfer
    """

    def __init__(
        self,
        registry: AccountRegistry,
        delegation: DelegationLedger,
        proposals: ProposalStore,
        reputation: ReputationTracker,
        audit: AuditLog,
        config: Optional[GovernanceConfig] = None
    ):
        self.config = config or GovernanceConfig.default()
        self._registry = registry
        self._delegation = delegation
        self._proposals = proposals
        self._reputation = reputation
        self._audit = audit
        self._records: Dict[Tuple[int, str], VoteRecord] = {}
        self._by_proposal: Dict[int, List[VoteRecord]] = defaultdict(list)
        self._counted: Dict[int, Dict[str, int]] = defaultdict(dict)  # proposal -> account -> shares voted
        registry.bind_voting(self)
        logger.info("VotingEngine initialized")

    # ===== Reads =====

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._records.get((proposal_id, voter))

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return (proposal_id, voter) in self._records

    def get_proposal_votes(self, proposal_id: int) -> List[VoteRecord]:
        return list(self._by_proposal.get(proposal_id, ()))

    def get_voter_history(self, voter: str) -> List[VoteRecord]:
        votes = [v for (_, who), v in self._records.items() if who == voter]
        return sorted(votes, key=lambda v: (v.sequence, v.proposal_id))

    def recount(self, proposal_id: int) -> Tuple[int, int]:
        """Recompute (for, against) from the stored records"""
        votes_for = votes_against = 0
        for record in self._by_proposal.get(proposal_id, ()):
            if record.choice == VoteChoice.FOR:
                votes_for += record.weight
            else:
                votes_against += record.weight
        return votes_for, votes_against

    def _contributors(self, voter: str) -> List[str]:
        contributors = [] if self._delegation.active_delegate(voter) else [voter]
        contributors.extend(self._delegation.delegators_of(voter))
        return contributors

    def counted_shares(self, proposal_id: int, account: str) -> int:
        """Shares of account already counted on the proposal"""
        return self._counted.get(proposal_id, {}).get(account, 0)

    def available_weight(self, proposal_id: int, voter: str) -> Tuple[int, Dict[str, int]]:
        """Weight the voter could cast now, keyed by the account it comes from"""
        fresh: Dict[str, int] = {}
        for account in self._contributors(voter):
            amount = max(self._registry.shares_of(account) - self.counted_shares(proposal_id, account), 0)
            if amount or account == voter:
                fresh[account] = amount
        return sum(fresh.values()), fresh

    def move_counted(self, sender: str, recipient: str, amount: int) -> None:
        """
        Carry already-voted shares along with a share transfer

        Counted shares leave the sender first, so the recipient cannot vote
        them again on any proposal that is still open.
        """
        for proposal_id, counted in self._counted.items():
            moved = min(counted.get(sender, 0), amount)
            if not moved:
                continue
            proposal = self._proposals.get_proposal(proposal_id)
            if proposal is None or proposal.status not in OPEN_STATUSES:
                continue
            counted[sender] -= moved
            counted[recipient] = counted.get(recipient, 0) + moved
            logger.debug(f"Moved {moved} counted shares {sender} -> {recipient} on proposal {proposal_id}")

    # ===== Transitions =====

    def vote(
        self,
        caller: str,
        proposal_id: int,
        choice: Union[VoteChoice, str, bool],
        seq: int
    ) -> VoteRecord:
        """
        Cast a vote on a proposal

        Raises:
            ProposalNotFound: unknown proposal
            ProposalExpired: seq outside [start_seq, end_seq]
            AlreadyVoted: a record exists for (proposal, caller)
            DelegateSuspended: caller is a suspended delegate
            InsufficientPower: weight below MIN_VOTING_POWER
        """
        vote_choice = parse_choice(choice)
        proposal = self._proposals.check_votable(proposal_id, seq)
        if (proposal_id, caller) in self._records:
            raise AlreadyVoted(
                f"{caller} has already voted on proposal {proposal_id}",
                details={"voter": caller, "proposal_id": proposal_id}
            )
        self._registry.require_active(caller)
        if self._reputation.is_suspended(caller):
            raise DelegateSuspended(f"Suspended delegate {caller} cannot vote", details={"voter": caller})

        weight, contributors = self.available_weight(proposal_id, caller)
        if weight < self.config.MIN_VOTING_POWER:
            raise InsufficientPower(
                f"Voting power {weight} below minimum {self.config.MIN_VOTING_POWER}",
                details={"voter": caller, "power": weight, "required": self.config.MIN_VOTING_POWER}
            )

        record = VoteRecord(
            proposal_id=proposal_id,
            voter=caller,
            choice=vote_choice,
            weight=weight,
            sequence=seq,
            contributors=tuple(contributors)
        )
        self._records[(proposal_id, caller)] = record
        self._by_proposal[proposal_id].append(record)
        counted = self._counted[proposal_id]
        for account, amount in contributors.items():
            if amount:
                counted[account] = counted.get(account, 0) + amount
        self._proposals.apply_vote(proposal, vote_choice, weight, caller, seq)
        self._audit.append(
            AuditAction.VOTE_CAST, caller, seq, proposal_id=proposal_id,
            detail=f"{vote_choice.value} weight={weight}"
        )
        logger.info(f"Vote cast: {caller} voted {vote_choice.value} on {proposal_id} with weight {weight}")
        return record
