"""
Governance System Configuration
"""

import os
import logging
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv, find_dotenv

from .errors import InvalidConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "DAO_"


@dataclass
class GovernanceConfig:
    """Policy constants for the governance engine

    All durations are measured in logical sequence steps (block heights),
    all ratios in basis points out of BPS_DENOMINATOR.
    """
    
    # Delegation locks
    MIN_LOCK_DURATION: int = 10
    MAX_LOCK_DURATION: int = 1_000_000
    
    # Voting power requirements
    MIN_PROPOSAL_POWER: int = 100
    MIN_VOTING_POWER: int = 1
    
    # Voting thresholds
    APPROVAL_THRESHOLD_BPS: int = 5000      # 50%, ties still reject
    QUORUM_BPS: int = 0                     # share of total supply, 0 disables
    
    # Penalties
    BASE_PENALTY: int = 100
    MIN_SEVERITY: int = 1
    MAX_SEVERITY: int = 5
    SUSPENSION_THRESHOLD: int = 3
    
    # Disputes
    MIN_STAKE: int = 100
    REWARD_BPS: int = 1000                  # 10% of stake
    MAX_SCORE: int = 1000
    
    BPS_DENOMINATOR: int = 10000
    
    def validate(self) -> "GovernanceConfig":
        """Reject inconsistent policy values"""
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidConfigError(f"{f.name} must be an integer (got {value!r})")
            if value < 0:
                raise InvalidConfigError(f"{f.name} must not be negative (got {value})")
        
        if self.BPS_DENOMINATOR <= 0:
            raise InvalidConfigError("BPS_DENOMINATOR must be positive")
        if self.MIN_LOCK_DURATION < 1:
            raise InvalidConfigError("MIN_LOCK_DURATION must be at least 1")
        if self.MAX_LOCK_DURATION < self.MIN_LOCK_DURATION:
            raise InvalidConfigError("MAX_LOCK_DURATION must not be below MIN_LOCK_DURATION")
        for name in ("APPROVAL_THRESHOLD_BPS", "QUORUM_BPS"):
            if getattr(self, name) > self.BPS_DENOMINATOR:
                raise InvalidConfigError(f"{name} must not exceed {self.BPS_DENOMINATOR}")
        if not 1 <= self.MIN_SEVERITY <= self.MAX_SEVERITY:
            raise InvalidConfigError("Severity range must satisfy 1 <= MIN_SEVERITY <= MAX_SEVERITY")
        if self.SUSPENSION_THRESHOLD < 1:
            raise InvalidConfigError("SUSPENSION_THRESHOLD must be at least 1")
        if self.MIN_STAKE < 1:
            raise InvalidConfigError("MIN_STAKE must be at least 1")
        if self.MAX_SCORE < 1:
            raise InvalidConfigError("MAX_SCORE must be at least 1")
        return self
    
    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
    
    @classmethod
    def default(cls) -> 'GovernanceConfig':
        """Get default configuration"""
        return cls()
    
    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'GovernanceConfig':
        """
        Build configuration from DAO_* environment variables
        
        Args:
            env_file: Explicit .env path. When omitted the nearest .env
                found from the working directory is loaded, if any.
        """
        env_path = env_file or find_dotenv(usecwd=True)
        if env_path:
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
        
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(ENV_PREFIX + f.name)
            if raw is None:
                continue
            try:
                overrides[f.name] = int(raw.replace("_", ""))
            except ValueError:
                raise InvalidConfigError(
                    f"{ENV_PREFIX}{f.name} must be an integer (got {raw!r})",
                    details={"variable": ENV_PREFIX + f.name}
                ) from None
        
        config = cls(**overrides).validate()
        if overrides:
            logger.info(f"Configuration overrides from environment: {sorted(overrides)}")
        return config
