"""
Reputation Tracker - delegate penalty and dispute scoring

Penalties escalate with every repeat offense and suspend a delegate once the
suspension threshold is reached. Suspension is sticky: there is no
reinstatement path. The dispute score is recomputed from the valid/total
dispute counters only.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .audit import AuditLog
from .config import GovernanceConfig
from .errors import InvalidSeverity
from .models import AuditAction, PenaltyRecord, ReputationEntry, Role
from .roles import AccessControl

logger = logging.getLogger(__name__)


class ReputationTracker:
    """Per-delegate penalty counters, suspension flag and dispute score"""

    def __init__(
        self,
        access: AccessControl,
        audit: AuditLog,
        config: Optional[GovernanceConfig] = None,
        account_check: Optional[Callable[[str], Any]] = None
    ):
        self.config = config or GovernanceConfig.default()
        self._access = access
        self._audit = audit
        self._account_check = account_check  # raises for unknown penalty targets
        self._entries: Dict[str, ReputationEntry] = {}
        logger.info(
            f"ReputationTracker initialized (base_penalty={self.config.BASE_PENALTY}, "
            f"suspension_threshold={self.config.SUSPENSION_THRESHOLD})"
        )

    def _entry(self, account: str) -> ReputationEntry:
        entry = self._entries.get(account)
        if entry is None:
            entry = ReputationEntry(account=account, score=self.config.MAX_SCORE)
            self._entries[account] = entry
        return entry

    # ===== Reads =====

    def get_reputation(self, account: str) -> ReputationEntry:
        """Current entry; untouched accounts report a fresh perfect score"""
        entry = self._entries.get(account)
        if entry is None:
            return ReputationEntry(account=account, score=self.config.MAX_SCORE)
        return entry

    def is_suspended(self, account: str) -> bool:
        entry = self._entries.get(account)
        return entry is not None and entry.suspended

    def suspended_accounts(self) -> List[str]:
        return sorted(a for a, e in self._entries.items() if e.suspended)

    def list_entries(self) -> List[ReputationEntry]:
        return [self._entries[a] for a in sorted(self._entries)]

    def penalty_amount(self, severity: int, prior_count: int) -> int:
        """base x severity x (1 + prior penalties)"""
        return self.config.BASE_PENALTY * severity * (1 + prior_count)

    def compute_score(self, valid_disputes: int, total_disputes: int) -> int:
        if total_disputes <= 0:
            return self.config.MAX_SCORE
        return self.config.MAX_SCORE - (valid_disputes * self.config.MAX_SCORE // total_disputes)

    # ===== Transitions =====

    def penalize(self, caller: str, target: str, severity: int, seq: int) -> PenaltyRecord:
        """
        Apply an escalating penalty to a delegate

        Args:
            caller: Governance role holder
            target: Penalized delegate
            severity: MIN_SEVERITY..MAX_SEVERITY
            seq: Current logical sequence

        Returns:
            The recorded penalty

        Raises:
            UnauthorizedError: caller lacks the governance role
            InvalidSeverity: severity out of range
            AccountNotFound: target is not a registered account
        """
        self._access.require_role(caller, Role.GOVERNANCE, "penalize delegates")
        if (not isinstance(severity, int) or isinstance(severity, bool)
                or not self.config.MIN_SEVERITY <= severity <= self.config.MAX_SEVERITY):
            raise InvalidSeverity(
                f"Severity must be between {self.config.MIN_SEVERITY} and "
                f"{self.config.MAX_SEVERITY} (got {severity!r})",
                details={"severity": severity}
            )
        if self._account_check is not None:
            self._account_check(target)

        entry = self._entry(target)
        amount = self.penalty_amount(severity, entry.penalty_count)
        entry.penalty_count += 1
        entry.total_penalties += amount
        entry.last_penalty_seq = seq
        record = PenaltyRecord(
            target=target,
            severity=severity,
            amount=amount,
            penalty_number=entry.penalty_count,
            sequence=seq,
            issued_by=caller
        )
        entry.penalties.append(record)
        self._audit.append(
            AuditAction.PENALTY_APPLIED, caller, seq, target=target,
            detail=f"severity={severity} amount={amount} count={entry.penalty_count}"
        )

        if not entry.suspended and entry.penalty_count >= self.config.SUSPENSION_THRESHOLD:
            entry.suspended = True
            entry.suspended_at = seq
            self._audit.append(
                AuditAction.DELEGATE_SUSPENDED, caller, seq, target=target,
                detail=f"penalty_count={entry.penalty_count}"
            )
            logger.warning(f"Delegate {target} suspended after {entry.penalty_count} penalties")

        logger.info(
            f"Penalized {target}: severity={severity} amount={amount} "
            f"(#{entry.penalty_count}, by {caller})"
        )
        return record

    def record_dispute_outcome(self, target: str, was_valid: bool) -> ReputationEntry:
        """Count a resolved dispute against target and recompute its score"""
        entry = self._entry(target)
        entry.total_disputes += 1
        if was_valid:
            entry.valid_disputes += 1
        entry.score = self.compute_score(entry.valid_disputes, entry.total_disputes)
        logger.info(
            f"Dispute outcome for {target}: valid={was_valid} "
            f"score={entry.score} ({entry.valid_disputes}/{entry.total_disputes})"
        )
        return entry
