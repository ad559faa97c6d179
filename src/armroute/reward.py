from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Protocol

import numpy as np

from .errors import InvalidConfig, check_arm


class RewardSource(Protocol):
    """Produces a binary outcome (1 = success) for a chosen arm."""

    def reward(self, arm: int) -> int:
        ...


class BernoulliRewardSource:
    """Simulated outcomes: arm i succeeds with hidden probability true_rates[i]."""

    def __init__(self, true_rates: Sequence[float], seed: int | None = None):
        rates = [float(r) for r in true_rates]
        if not rates:
            raise InvalidConfig("BernoulliRewardSource: true_rates must not be empty")
        bad = [r for r in rates if not 0.0 <= r <= 1.0]
        if bad:
            raise InvalidConfig(f"BernoulliRewardSource: rates must be in [0, 1], got {bad}")
        self.true_rates = rates
        self.rng = np.random.default_rng(seed)
        # numpy Generators are not safe to share across threads
        self._lock = threading.Lock()

    @property
    def num_arms(self) -> int:
        return len(self.true_rates)

    @property
    def best_arm(self) -> int:
        return int(np.argmax(self.true_rates))

    def reward(self, arm: int) -> int:
        arm = check_arm(arm, self.num_arms)
        with self._lock:
            u = float(self.rng.random())
        return 1 if u < self.true_rates[arm] else 0
