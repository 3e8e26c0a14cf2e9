"""
Role map for administrative authorization

Capabilities are explicit sets of account ids per role. The owner holds
every role implicitly and is the only principal that may grant or revoke.
"""

import logging
from typing import Dict, Set, List

from .errors import UnauthorizedError
from .models import Role

logger = logging.getLogger(__name__)


class AccessControl:
    """Owner plus per-role capability sets"""
    
    def __init__(self, owner: str):
        if not owner:
            raise ValueError("owner is required")
        self.owner = owner
        self._roles: Dict[Role, Set[str]] = {role: set() for role in Role}
        logger.info(f"AccessControl initialized (owner={owner})")
    
    def is_owner(self, account: str) -> bool:
        return account == self.owner
    
    def has_role(self, account: str, role: Role) -> bool:
        return self.is_owner(account) or account in self._roles[role]
    
    def require_owner(self, caller: str, action: str) -> None:
        if not self.is_owner(caller):
            raise UnauthorizedError(
                f"{caller} is not the owner and cannot {action}",
                details={"caller": caller, "action": action}
            )
    
    def require_role(self, caller: str, role: Role, action: str) -> None:
        if not self.has_role(caller, role):
            raise UnauthorizedError(
                f"{caller} lacks role {role.value} required to {action}",
                details={"caller": caller, "role": role.value, "action": action}
            )
    
    def check_grant(self, caller: str, account: str) -> None:
        self.require_owner(caller, "grant roles")
        if not account:
            raise UnauthorizedError("Cannot grant a role to an empty principal")
    
    def grant(self, role: Role, account: str) -> bool:
        """Add account to role; returns False when it already held it"""
        members = self._roles[role]
        if account in members:
            return False
        members.add(account)
        logger.info(f"Granted role {role.value} to {account}")
        return True
    
    def revoke(self, role: Role, account: str) -> bool:
        members = self._roles[role]
        if account not in members:
            return False
        members.discard(account)
        logger.info(f"Revoked role {role.value} from {account}")
        return True
    
    def members(self, role: Role) -> List[str]:
        return sorted(self._roles[role])
    
    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "roles": {role.value: sorted(members) for role, members in self._roles.items()}
        }
