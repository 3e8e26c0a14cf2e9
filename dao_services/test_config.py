#!/usr/bin/env python3
"""
Governance configuration tests
"""

import os
import tempfile
import unittest
from unittest import mock

from dao_services.governance import GovernanceConfig
from dao_services.governance.config import ENV_PREFIX
from dao_services.governance.errors import InvalidConfigError


class TestGovernanceConfig(unittest.TestCase):

    def test_defaults(self):
        config = GovernanceConfig.default()
        self.assertEqual(config.MIN_STAKE, 100)
        self.assertEqual(config.REWARD_BPS, 1000)
        self.assertEqual(config.SUSPENSION_THRESHOLD, 3)
        self.assertEqual(config.APPROVAL_THRESHOLD_BPS, 5000)
        self.assertEqual(config.BPS_DENOMINATOR, 10000)
        self.assertIs(config.validate(), config)

    def test_validate_rejects_inconsistent_policy(self):
        bad = [
            {"APPROVAL_THRESHOLD_BPS": 10001},
            {"QUORUM_BPS": 20000},
            {"MIN_LOCK_DURATION": 0},
            {"MIN_LOCK_DURATION": 50, "MAX_LOCK_DURATION": 10},
            {"MIN_SEVERITY": 4, "MAX_SEVERITY": 2},
            {"MIN_STAKE": -1},
            {"BPS_DENOMINATOR": 0},
            {"REWARD_BPS": 1.5},
        ]
        for overrides in bad:
            with self.assertRaises(InvalidConfigError, msg=str(overrides)):
                GovernanceConfig(**overrides).validate()

    def test_to_dict(self):
        data = GovernanceConfig(MIN_STAKE=250).to_dict()
        self.assertEqual(data["MIN_STAKE"], 250)
        self.assertIn("QUORUM_BPS", data)

    def test_from_env_overrides(self):
        env = {ENV_PREFIX + "MIN_STAKE": "250", ENV_PREFIX + "MAX_LOCK_DURATION": "2_000"}
        with mock.patch.dict(os.environ, env), mock.patch("dao_services.governance.config.find_dotenv", return_value=""):
            config = GovernanceConfig.from_env()

        self.assertEqual(config.MIN_STAKE, 250)
        self.assertEqual(config.MAX_LOCK_DURATION, 2000)
        self.assertEqual(config.REWARD_BPS, 1000)

    def test_from_env_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, ".env")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("DAO_REWARD_BPS=2500\nDAO_QUORUM_BPS=1000\n")
            with mock.patch.dict(os.environ, {}, clear=False):
                os.environ.pop("DAO_REWARD_BPS", None)
                os.environ.pop("DAO_QUORUM_BPS", None)
                config = GovernanceConfig.from_env(path)

        self.assertEqual(config.REWARD_BPS, 2500)
        self.assertEqual(config.QUORUM_BPS, 1000)

    def test_from_env_rejects_garbage(self):
        with mock.patch.dict(os.environ, {ENV_PREFIX + "MIN_STAKE": "lots"}), \
                mock.patch("dao_services.governance.config.find_dotenv", return_value=""):
            with self.assertRaises(InvalidConfigError):
                GovernanceConfig.from_env()

    def test_from_env_validates(self):
        with mock.patch.dict(os.environ, {ENV_PREFIX + "APPROVAL_THRESHOLD_BPS": "12000"}), \
                mock.patch("dao_services.governance.config.find_dotenv", return_value=""):
            with self.assertRaises(InvalidConfigError):
                GovernanceConfig.from_env()


if __name__ == "__main__":
    unittest.main()
