"""
Transaction surface

JSON-shaped transactions dispatched to the engine, and the receipts that
report their outcome. A failed receipt carries the governance error code
unmodified.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Optional, Tuple, TYPE_CHECKING

from .errors import GovernanceError, InvalidTransaction
from .models import Role, VoteChoice

if TYPE_CHECKING:
    from .engine import GovernanceEngine


class Operation(NamedTuple):
    method: str
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()


OPERATIONS: Dict[str, Operation] = {
    "register": Operation("register"),
    "verify_identity": Operation("verify_identity", ("account_id", "identity_hash")),
    "mint_shares": Operation("mint_shares", ("account_id", "amount")),
    "transfer_shares": Operation("transfer_shares", ("recipient", "amount")),
    "deactivate_account": Operation("deactivate_account", ("account_id",)),
    "grant_role": Operation("grant_role", ("role", "account")),
    "revoke_role": Operation("revoke_role", ("role", "account")),
    "delegate": Operation("delegate", ("delegate", "lock_duration")),
    "revoke_delegation": Operation("revoke_delegation"),
    "create_proposal": Operation("create_proposal", ("title", "start_seq", "end_seq"), ("description",)),
    "activate_proposal": Operation("activate_proposal", ("proposal_id",)),
    "close_proposal": Operation("close_proposal", ("proposal_id",), ("reason",)),
    "finalize_proposal": Operation("finalize_proposal", ("proposal_id",)),
    "execute_proposal": Operation("execute_proposal", ("proposal_id",)),
    "vote": Operation("vote", ("proposal_id", "choice")),
    "penalize": Operation("penalize", ("target", "severity")),
    "report_dispute": Operation("report_dispute", ("target", "proposal_id", "stake"), ("description",)),
    "add_evidence": Operation("add_evidence", ("dispute_id", "evidence_hash", "evidence_type")),
    "resolve_dispute": Operation("resolve_dispute", ("dispute_id", "is_valid"), ("reason",)),
    "set_arbitrator": Operation("set_arbitrator", ("new_arbitrator",)),
    "fund_reward_pool": Operation("fund_reward_pool", ("amount",)),
    "credit_native": Operation("credit_native", ("account", "amount")),
}


_IDENTIFIER = (str,)
_INTEGER = (int,)

# accepted Python types per argument name; bool is never an integer here
ARGUMENT_TYPES: Dict[str, Tuple[type, ...]] = {
    "account_id": _IDENTIFIER,
    "account": _IDENTIFIER,
    "recipient": _IDENTIFIER,
    "delegate": _IDENTIFIER,
    "target": _IDENTIFIER,
    "new_arbitrator": _IDENTIFIER,
    "role": (str, Role),
    "title": (str,),
    "description": (str,),
    "reason": (str,),
    "evidence_type": (str,),
    "identity_hash": (str, bytes),
    "evidence_hash": (str, bytes),
    "choice": (str, bool, VoteChoice),
    "is_valid": (bool,),
    "amount": _INTEGER,
    "stake": _INTEGER,
    "severity": _INTEGER,
    "lock_duration": _INTEGER,
    "start_seq": _INTEGER,
    "end_seq": _INTEGER,
    "proposal_id": _INTEGER,
    "dispute_id": _INTEGER,
}


def _type_errors(args: Dict[str, Any]) -> Dict[str, str]:
    errors = {}
    for name, value in args.items():
        expected = ARGUMENT_TYPES.get(name)
        if expected is None:
            continue
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            errors[name] = type(value).__name__
    return errors


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


@dataclass(frozen=True)
class Transaction:
    """One externally sequenced state transition request"""
    op: str
    caller: str
    seq: int
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        if not isinstance(data, dict):
            raise InvalidTransaction(f"Transaction must be an object (got {type(data).__name__})")
        missing = [k for k in ("op", "caller", "seq") if k not in data]
        if missing:
            raise InvalidTransaction(f"Transaction is missing {', '.join(missing)}", details={"missing": missing})
        if not isinstance(data["op"], str) or not isinstance(data["caller"], str):
            raise InvalidTransaction("Transaction op and caller must be strings")
        args = data.get("args") or {}
        if not isinstance(args, dict):
            raise InvalidTransaction("Transaction args must be an object")
        if not isinstance(data["seq"], int) or isinstance(data["seq"], bool):
            raise InvalidTransaction(f"Transaction seq must be an integer (got {data['seq']!r})")
        return cls(op=data["op"], caller=data["caller"], seq=data["seq"], args=dict(args))

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op, "caller": self.caller, "seq": self.seq, "args": dict(self.args)}


@dataclass(frozen=True)
class Receipt:
    """Outcome of a submitted transaction"""
    ok: bool
    op: Optional[str]
    seq: Optional[int]
    result: Any = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, op: str, seq: int, result: Any) -> "Receipt":
        return cls(ok=True, op=op, seq=seq, result=_jsonable(result))

    @classmethod
    def failure(cls, op: Optional[str], seq: Optional[int], error: GovernanceError) -> "Receipt":
        return cls(
            ok=False,
            op=op,
            seq=seq,
            error_code=error.error_code,
            message=error.message,
            details=error.details
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"ok": self.ok, "op": self.op, "seq": self.seq}
        if self.ok:
            data["result"] = self.result
        else:
            data.update(error=self.error_code, message=self.message, details=self.details)
        return data


def dispatch(engine: "GovernanceEngine", tx: Transaction) -> Any:
    """Validate the argument shape of tx and call the matching engine method"""
    operation = OPERATIONS.get(tx.op) if isinstance(tx.op, str) else None
    if operation is None:
        raise InvalidTransaction(f"Unknown operation: {tx.op!r}", details={"op": tx.op})

    missing = [name for name in operation.required if name not in tx.args]
    unexpected = sorted(set(tx.args) - set(operation.required) - set(operation.optional))
    if missing or unexpected:
        raise InvalidTransaction(
            f"Bad arguments for {tx.op}",
            details={"missing": missing, "unexpected": unexpected}
        )
    wrong_types = _type_errors(tx.args)
    if wrong_types:
        raise InvalidTransaction(f"Bad argument types for {tx.op}", details={"wrong_types": wrong_types})
    return getattr(engine, operation.method)(tx.caller, seq=tx.seq, **tx.args)
