#!/usr/bin/env python3
"""
Delegation Ledger tests
"""

import unittest

from dao_services.governance import GovernanceEngine, Role, identity_hash
from dao_services.governance.errors import (
    AccountNotFound,
    DelegateSuspended,
    DelegationLocked,
    DelegationNotFound,
    InvalidLockDuration,
    NotVerified,
    SelfDelegation,
)


class TestDelegationLedger(unittest.TestCase):

    def setUp(self) -> None:
        self.engine = GovernanceEngine(owner="admin")
        self.seq = 0
        for name, shares in (("alice", 1000), ("bob", 250)):
            self.engine.register(name, self.tick())
            self.engine.verify_identity("admin", name, identity_hash(name), self.tick())
            self.engine.mint_shares("admin", name, shares, self.tick())
        self.engine.register("carol", self.tick())
        self.engine.register("dave", self.tick())

    def tick(self) -> int:
        self.seq += 1
        return self.seq

    def test_delegate_moves_voting_power(self) -> None:
        delegation = self.engine.delegate("alice", "carol", 200, self.tick())

        self.assertEqual(delegation.delegate, "carol")
        self.assertEqual(delegation.lock_until, self.seq + 200)
        self.assertTrue(delegation.active)
        self.assertEqual(self.engine.voting_power("carol"), 1000)
        self.assertEqual(self.engine.voting_power("alice"), 0)
        self.assertEqual(self.engine.delegation.delegators_of("carol"), ["alice"])
        # own shares stay with the delegator
        self.assertEqual(self.engine.get_account("alice").shares, 1000)

    def test_power_accumulates_from_several_delegators(self) -> None:
        self.engine.delegate("alice", "carol", 50, self.tick())
        self.engine.delegate("bob", "carol", 50, self.tick())

        self.assertEqual(self.engine.voting_power("carol"), 1250)
        self.assertEqual(self.engine.delegation.delegators_of("carol"), ["alice", "bob"])

    def test_unverified_delegator_rejected(self) -> None:
        with self.assertRaises(NotVerified):
            self.engine.delegate("carol", "alice", 50, self.tick())

    def test_lock_duration_bounds(self) -> None:
        config = self.engine.config
        for duration in (0, config.MIN_LOCK_DURATION - 1, config.MAX_LOCK_DURATION + 1):
            with self.assertRaises(InvalidLockDuration):
                self.engine.delegate("alice", "carol", duration, self.tick())
        self.assertIsNone(self.engine.get_delegation("alice"))

    def test_self_delegation_rejected(self) -> None:
        with self.assertRaises(SelfDelegation):
            self.engine.delegate("alice", "alice", 50, self.tick())

    def test_unknown_delegate_rejected(self) -> None:
        with self.assertRaises(AccountNotFound):
            self.engine.delegate("alice", "nobody", 50, self.tick())

    def test_redelegation_locked_until_lock_expires(self) -> None:
        first = self.engine.delegate("alice", "carol", 30, self.tick())

        with self.assertRaises(DelegationLocked):
            self.engine.delegate("alice", "dave", 30, first.lock_until - 1)
        self.assertEqual(self.engine.voting_power("carol"), 1000)
        self.assertEqual(self.engine.get_delegation("alice").delegate, "carol")

        second = self.engine.delegate("alice", "dave", 30, first.lock_until)
        self.assertEqual(second.delegate, "dave")
        self.assertFalse(first.active)
        self.assertEqual(self.engine.voting_power("carol"), 0)
        self.assertEqual(self.engine.voting_power("dave"), 1000)
        self.assertEqual(self.engine.delegation.delegators_of("carol"), [])

    def test_minting_flows_to_active_delegate(self) -> None:
        self.engine.delegate("alice", "carol", 50, self.tick())
        self.engine.mint_shares("admin", "alice", 500, self.tick())

        self.assertEqual(self.engine.voting_power("carol"), 1500)
        self.assertEqual(self.engine.voting_power("alice"), 0)

    def test_revoke_only_after_lock(self) -> None:
        delegation = self.engine.delegate("alice", "carol", 40, self.tick())

        with self.assertRaises(DelegationLocked):
            self.engine.revoke_delegation("alice", delegation.lock_until - 1)

        revoked = self.engine.revoke_delegation("alice", delegation.lock_until)
        self.assertFalse(revoked.active)
        self.assertEqual(revoked.revoked_at, delegation.lock_until)
        self.assertEqual(self.engine.voting_power("alice"), 1000)
        self.assertEqual(self.engine.voting_power("carol"), 0)

    def test_revoke_without_delegation(self) -> None:
        with self.assertRaises(DelegationNotFound):
            self.engine.revoke_delegation("alice", self.tick())

    def test_suspended_delegate_cannot_receive_delegation(self) -> None:
        for _ in range(self.engine.config.SUSPENSION_THRESHOLD):
            self.engine.penalize("admin", "carol", 1, self.tick())

        with self.assertRaises(DelegateSuspended):
            self.engine.delegate("alice", "carol", 50, self.tick())

    def test_governance_role_holder_penalty_blocks_delegation(self) -> None:
        self.engine.grant_role("admin", Role.GOVERNANCE, "council", self.tick())
        for _ in range(3):
            self.engine.penalize("council", "dave", 2, self.tick())

        self.assertTrue(self.engine.get_reputation("dave").suspended)
        with self.assertRaises(DelegateSuspended):
            self.engine.delegate("bob", "dave", 50, self.tick())


if __name__ == "__main__":
    unittest.main()
