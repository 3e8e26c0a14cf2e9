#!/usr/bin/env python3
"""
Reputation Tracker tests
"""

import unittest

from dao_services.governance import AuditAction, GovernanceConfig, GovernanceEngine, ReputationTracker, Role
from dao_services.governance.audit import AuditLog
from dao_services.governance.errors import AccountNotFound, InvalidSeverity, UnauthorizedError
from dao_services.governance.roles import AccessControl


class TestReputationTracker(unittest.TestCase):

    def setUp(self):
        self.access = AccessControl("owner")
        self.audit = AuditLog()
        self.tracker = ReputationTracker(self.access, self.audit, GovernanceConfig.default())

    def test_untouched_account_has_perfect_score(self):
        entry = self.tracker.get_reputation("delegate-1")
        self.assertEqual(entry.score, 1000)
        self.assertEqual(entry.penalty_count, 0)
        self.assertFalse(entry.suspended)
        self.assertFalse(self.tracker.is_suspended("delegate-1"))

    def test_penalize_requires_governance_role(self):
        with self.assertRaises(UnauthorizedError):
            self.tracker.penalize("stranger", "delegate-1", 1, 1)

        self.access.grant(Role.GOVERNANCE, "council")
        record = self.tracker.penalize("council", "delegate-1", 1, 2)
        self.assertEqual(record.issued_by, "council")

    def test_severity_bounds(self):
        for severity in (0, 6, -1, True, "3"):
            with self.assertRaises(InvalidSeverity):
                self.tracker.penalize("owner", "delegate-1", severity, 1)
        self.assertEqual(self.tracker.get_reputation("delegate-1").penalty_count, 0)

    def test_penalty_multiplier_escalates(self):
        amounts = [self.tracker.penalize("owner", "delegate-1", 2, seq).amount for seq in (1, 2, 3, 4)]

        # base 100 x severity 2 x (1 + prior)
        self.assertEqual(amounts, [200, 400, 600, 800])
        entry = self.tracker.get_reputation("delegate-1")
        self.assertEqual(entry.total_penalties, 2000)
        self.assertEqual(entry.last_penalty_seq, 4)
        self.assertEqual([p.penalty_number for p in entry.penalties], [1, 2, 3, 4])

    def test_third_penalty_suspends_permanently(self):
        self.tracker.penalize("owner", "delegate-1", 1, 1)
        self.tracker.penalize("owner", "delegate-1", 1, 2)
        self.assertFalse(self.tracker.is_suspended("delegate-1"))

        self.tracker.penalize("owner", "delegate-1", 1, 3)
        self.assertTrue(self.tracker.is_suspended("delegate-1"))
        self.assertEqual(self.tracker.get_reputation("delegate-1").suspended_at, 3)

        self.tracker.record_dispute_outcome("delegate-1", False)
        self.tracker.penalize("owner", "delegate-1", 1, 4)
        self.assertTrue(self.tracker.is_suspended("delegate-1"))
        self.assertEqual(self.tracker.suspended_accounts(), ["delegate-1"])
        self.assertEqual(len(self.audit.entries(action=AuditAction.DELEGATE_SUSPENDED)), 1)

    def test_dispute_score(self):
        self.assertEqual(self.tracker.compute_score(0, 0), 1000)
        self.assertEqual(self.tracker.compute_score(1, 4), 750)
        self.assertEqual(self.tracker.compute_score(1, 3), 667)
        self.assertEqual(self.tracker.compute_score(3, 3), 0)

    def test_record_dispute_outcome_degrades_score(self):
        scores = []
        for valid in (False, True, True, False):
            scores.append(self.tracker.record_dispute_outcome("delegate-1", valid).score)

        self.assertEqual(scores, [1000, 500, 334, 500])
        entry = self.tracker.get_reputation("delegate-1")
        self.assertEqual((entry.valid_disputes, entry.total_disputes), (2, 4))

    def test_penalties_are_audited(self):
        self.tracker.penalize("owner", "delegate-1", 3, 7)

        entries = self.audit.entries(action=AuditAction.PENALTY_APPLIED)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].target, "delegate-1")
        self.assertEqual(entries[0].sequence, 7)


class TestPenaltyTargets(unittest.TestCase):

    def setUp(self):
        self.engine = GovernanceEngine(owner="owner")
        self.engine.register("delegate-1", 1)

    def test_unregistered_target_rejected(self):
        with self.assertRaises(AccountNotFound):
            self.engine.penalize("owner", "ghost", 2, 2)

        self.assertEqual(self.engine.reputation.list_entries(), [])
        self.assertEqual(self.engine.audit.entries(action=AuditAction.PENALTY_APPLIED), [])
        self.assertEqual(self.engine.last_seq, 1)

    def test_registered_target_penalized(self):
        record = self.engine.penalize("owner", "delegate-1", 2, 2)
        self.assertEqual(record.amount, 200)
        self.assertEqual([e.account for e in self.engine.reputation.list_entries()], ["delegate-1"])


if __name__ == "__main__":
    unittest.main()
