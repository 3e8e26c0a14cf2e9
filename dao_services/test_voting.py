#!/usr/bin/env python3
"""
Voting Engine tests
"""

import unittest

from dao_services.governance import GovernanceEngine, ProposalStatus, VoteChoice, identity_hash
from dao_services.governance.errors import (
    AccountInactive,
    AlreadyVoted,
    DelegateSuspended,
    InsufficientPower,
    InvalidChoice,
    ProposalExpired,
    ProposalNotFound,
)
from dao_services.governance.voting import parse_choice


class TestParseChoice(unittest.TestCase):

    def test_accepted_forms(self):
        self.assertEqual(parse_choice(VoteChoice.AGAINST), VoteChoice.AGAINST)
        self.assertEqual(parse_choice("FOR"), VoteChoice.FOR)
        self.assertEqual(parse_choice(" against "), VoteChoice.AGAINST)
        self.assertEqual(parse_choice(True), VoteChoice.FOR)
        self.assertEqual(parse_choice(False), VoteChoice.AGAINST)

    def test_rejected_forms(self):
        for bad in ("abstain", "", 1, None):
            with self.assertRaises(InvalidChoice):
                parse_choice(bad)


class TestVotingEngine(unittest.TestCase):

    def setUp(self) -> None:
        self.engine = GovernanceEngine(owner="admin")
        self.seq = 0
        for name, shares in (("alice", 1000), ("bob", 400), ("dave", 300)):
            self.engine.register(name, self.tick())
            self.engine.verify_identity("admin", name, identity_hash(name), self.tick())
            self.engine.mint_shares("admin", name, shares, self.tick())
        self.engine.register("carol", self.tick())
        start = self.tick()
        self.proposal = self.engine.create_proposal("alice", "Buyback", start, start + 100, start)

    def tick(self) -> int:
        self.seq += 1
        return self.seq

    def assert_tally_matches_records(self) -> None:
        records = self.engine.voting.get_proposal_votes(self.proposal.id)
        total = sum(r.weight for r in records)
        self.assertEqual(self.proposal.total_votes, total)
        self.assertEqual(
            self.engine.voting.recount(self.proposal.id),
            (self.proposal.votes_for, self.proposal.votes_against)
        )

    def test_vote_records_weight_and_tallies(self) -> None:
        record = self.engine.vote("bob", self.proposal.id, "against", self.tick())

        self.assertEqual(record.weight, 400)
        self.assertEqual(record.choice, VoteChoice.AGAINST)
        self.assertEqual(record.sequence, self.seq)
        self.assertEqual(self.proposal.votes_against, 400)
        self.assertEqual(self.proposal.votes_for, 0)
        self.assertTrue(self.engine.voting.has_voted(self.proposal.id, "bob"))
        self.assert_tally_matches_records()

    def test_first_vote_activates_pending_proposal(self) -> None:
        self.assertEqual(self.proposal.status, ProposalStatus.PENDING)
        self.engine.vote("bob", self.proposal.id, "for", self.tick())
        self.assertEqual(self.proposal.status, ProposalStatus.ACTIVE)

    def test_second_vote_fails_without_changing_tallies(self) -> None:
        self.engine.vote("alice", self.proposal.id, "for", self.tick())
        with self.assertRaises(AlreadyVoted):
            self.engine.vote("alice", self.proposal.id, "against", self.tick())

        self.assertEqual((self.proposal.votes_for, self.proposal.votes_against), (1000, 0))
        self.assertEqual(len(self.engine.voting.get_proposal_votes(self.proposal.id)), 1)

    def test_vote_outside_window(self) -> None:
        with self.assertRaises(ProposalExpired):
            self.engine.vote("bob", self.proposal.id, "for", self.proposal.end_seq + 1)
        self.assertEqual(self.proposal.total_votes, 0)

    def test_vote_before_window(self) -> None:
        now = self.tick()
        later = self.engine.create_proposal("alice", "Later", now + 10, now + 20, now)
        with self.assertRaises(ProposalExpired):
            self.engine.vote("bob", later.id, "for", now + 9)
        self.assertEqual(self.engine.vote("bob", later.id, "for", now + 10).weight, 400)

    def test_vote_unknown_proposal(self) -> None:
        with self.assertRaises(ProposalNotFound):
            self.engine.vote("bob", 42, "for", self.tick())

    def test_zero_power_voter_rejected(self) -> None:
        with self.assertRaises(InsufficientPower):
            self.engine.vote("carol", self.proposal.id, "for", self.tick())
        self.assertFalse(self.engine.voting.has_voted(self.proposal.id, "carol"))

    def test_invalid_choice_rejected(self) -> None:
        with self.assertRaises(InvalidChoice):
            self.engine.vote("bob", self.proposal.id, "maybe", self.tick())

    def test_weight_is_snapshotted(self) -> None:
        record = self.engine.vote("bob", self.proposal.id, "for", self.tick())
        self.engine.mint_shares("admin", "bob", 5000, self.tick())
        self.engine.transfer_shares("bob", "dave", 100, self.tick())

        self.assertEqual(self.engine.get_vote(self.proposal.id, "bob").weight, 400)
        self.assertEqual(record.weight, 400)
        self.assertEqual(self.proposal.votes_for, 400)

    def test_delegate_votes_with_delegated_shares(self) -> None:
        self.engine.delegate("alice", "carol", 200, self.tick())
        record = self.engine.vote("carol", self.proposal.id, "for", self.tick())

        self.assertEqual(record.weight, 1000)
        self.assertEqual(record.contributors, ("carol", "alice"))
        # the delegator's shares are already spoken for
        with self.assertRaises(InsufficientPower):
            self.engine.vote("alice", self.proposal.id, "for", self.tick())

    def test_shares_not_counted_twice_after_redelegation(self) -> None:
        delegation = self.engine.delegate("alice", "carol", 10, self.tick())
        self.engine.vote("carol", self.proposal.id, "for", self.tick())

        # lock expires inside the voting window and alice moves to dave
        self.engine.delegate("alice", "dave", 10, delegation.lock_until)
        self.assertEqual(self.engine.voting_power("dave"), 1300)

        record = self.engine.vote("dave", self.proposal.id, "against", delegation.lock_until + 1)
        self.assertEqual(record.weight, 300)
        self.assertEqual((self.proposal.votes_for, self.proposal.votes_against), (1000, 300))
        self.assert_tally_matches_records()

    def test_transferred_shares_not_counted_twice(self) -> None:
        self.engine.vote("alice", self.proposal.id, "for", self.tick())
        self.engine.transfer_shares("alice", "bob", 1000, self.tick())
        self.assertEqual(self.engine.voting.counted_shares(self.proposal.id, "bob"), 1000)

        record = self.engine.vote("bob", self.proposal.id, "for", self.tick())
        self.assertEqual(record.weight, 400)
        self.assertEqual(self.proposal.votes_for, 1400)
        self.assertLessEqual(self.proposal.total_votes, self.engine.accounts.total_shares)
        self.assert_tally_matches_records()

    def test_partial_transfer_moves_counted_shares_first(self) -> None:
        self.engine.vote("bob", self.proposal.id, "against", self.tick())
        self.engine.transfer_shares("bob", "dave", 150, self.tick())

        self.assertEqual(self.engine.voting.counted_shares(self.proposal.id, "bob"), 250)
        self.assertEqual(self.engine.voting.counted_shares(self.proposal.id, "dave"), 150)
        self.assertEqual(self.engine.vote("dave", self.proposal.id, "for", self.tick()).weight, 300)
        self.assertEqual((self.proposal.votes_for, self.proposal.votes_against), (300, 400))

    def test_counted_shares_released_after_finalize(self) -> None:
        self.engine.vote("alice", self.proposal.id, "for", self.tick())
        self.engine.finalize_proposal("alice", self.proposal.id, self.proposal.end_seq + 1)
        self.engine.transfer_shares("alice", "bob", 500, self.proposal.end_seq + 1)

        self.assertEqual(self.engine.voting.counted_shares(self.proposal.id, "alice"), 1000)
        self.assertEqual(self.engine.voting.counted_shares(self.proposal.id, "bob"), 0)

    def test_voter_history(self) -> None:
        self.engine.vote("bob", self.proposal.id, "for", self.tick())
        now = self.tick()
        second = self.engine.create_proposal("alice", "Second", now, now + 10, now)
        self.engine.vote("bob", second.id, "against", self.tick())

        history = self.engine.voting.get_voter_history("bob")
        self.assertEqual([v.proposal_id for v in history], [self.proposal.id, second.id])

    def test_suspended_delegate_cannot_vote(self) -> None:
        for _ in range(3):
            self.engine.penalize("admin", "bob", 1, self.tick())
        with self.assertRaises(DelegateSuspended):
            self.engine.vote("bob", self.proposal.id, "for", self.tick())

    def test_inactive_account_cannot_vote(self) -> None:
        self.engine.deactivate_account("admin", "dave", self.tick())
        with self.assertRaises(AccountInactive):
            self.engine.vote("dave", self.proposal.id, "for", self.tick())


if __name__ == "__main__":
    unittest.main()
