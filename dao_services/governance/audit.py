"""
Append-only audit log shared by all components
"""

import logging
from typing import Dict, List, Optional

from .errors import AuditEntryNotFound
from .models import AuditEntry, AuditAction, SequenceGenerator

logger = logging.getLogger(__name__)


class AuditLog:
    """Immutable event ledger; entries are only ever appended"""
    
    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._ids = SequenceGenerator(start=1)
    
    def append(
        self,
        action: AuditAction,
        actor: str,
        sequence: int,
        target: Optional[str] = None,
        proposal_id: Optional[int] = None,
        detail: str = ""
    ) -> AuditEntry:
        entry = AuditEntry(
            id=self._ids.next(),
            action=action,
            actor=actor,
            target=target,
            sequence=sequence,
            proposal_id=proposal_id,
            detail=detail
        )
        self._entries.append(entry)
        logger.debug(f"Audit #{entry.id} {action.value} actor={actor} target={target}")
        return entry
    
    def get(self, entry_id: int) -> AuditEntry:
        # ids start at 1 and are dense, so the arena index is id - 1
        if not isinstance(entry_id, int) or not 1 <= entry_id <= len(self._entries):
            raise AuditEntryNotFound(entry_id)
        return self._entries[entry_id - 1]
    
    @property
    def count(self) -> int:
        return self._ids.issued
    
    def entries(
        self,
        action: Optional[AuditAction] = None,
        actor: Optional[str] = None,
        proposal_id: Optional[int] = None,
        since_id: int = 0
    ) -> List[AuditEntry]:
        """Filtered view, oldest first"""
        result = self._entries[since_id:] if since_id > 0 else list(self._entries)
        if action is not None:
            result = [e for e in result if e.action == action]
        if actor is not None:
            result = [e for e in result if e.actor == actor]
        if proposal_id is not None:
            result = [e for e in result if e.proposal_id == proposal_id]
        return result
    
    def counts_by_action(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self._entries:
            counts[entry.action.value] = counts.get(entry.action.value, 0) + 1
        return counts
