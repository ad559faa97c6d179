from __future__ import annotations

import logging
import threading

import numpy as np

from ..errors import InvalidConfig, InvalidReward, check_arm
from ..types import Belief

logger = logging.getLogger(__name__)


class ThompsonBandit:
    """Beta-Bernoulli Thompson sampling over integer arms.

    Each arm keeps a Beta(a, b) posterior starting at the uniform prior (1, 1).
    Selection draws one sample per arm and takes the argmax, so arms with wide
    posteriors still get picked now and then while well-evidenced arms dominate
    over time.

    Safe to share between threads: the belief table sits behind one lock and
    sampling works on a copy taken under that lock.
    """

    def __init__(self, num_arms: int, *, seed: int | None = None, rng: np.random.Generator | None = None):
        if int(num_arms) < 1:
            raise InvalidConfig(f"ThompsonBandit: num_arms must be >= 1, got {num_arms}")
        self.num_arms = int(num_arms)
        self._a = [1.0] * self.num_arms
        self._b = [1.0] * self.num_arms
        self._lock = threading.Lock()
        # Guards self.rng; never held together with _lock
        self._rng_lock = threading.Lock()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def set_seed(self, seed: int) -> None:
        """Reset the sampling RNG; learned beliefs are untouched."""
        with self._rng_lock:
            self.rng = np.random.default_rng(int(seed))

    def _check_arm(self, arm: int) -> int:
        return check_arm(arm, self.num_arms)

    def select_arm(self) -> int:
        with self._lock:
            a = list(self._a)
            b = list(self._b)
        # Exact Beta draws (Gamma ratio under the hood), not a mean+noise surrogate
        with self._rng_lock:
            samples = [float(self.rng.beta(a[arm], b[arm])) for arm in range(self.num_arms)]
        best_arm = 0
        best_v = -1.0
        for arm, v in enumerate(samples):
            if v > best_v:
                best_v = v
                best_arm = arm
        return best_arm

    def update(self, arm: int, reward: int) -> None:
        arm = self._check_arm(arm)
        if isinstance(reward, str) or reward not in (0, 1):
            raise InvalidReward(reward)
        with self._lock:
            if reward == 1:
                self._a[arm] += 1.0
            else:
                self._b[arm] += 1.0
            a, b = self._a[arm], self._b[arm]
        logger.debug("bandit arm %d reward=%d -> a=%.1f b=%.1f", arm, int(reward), a, b)

    def estimate(self, arm: int) -> float:
        arm = self._check_arm(arm)
        with self._lock:
            a, b = self._a[arm], self._b[arm]
        return float(a / (a + b))

    def estimates(self) -> list[float]:
        return [b.mean for b in self.beliefs()]

    def beliefs(self) -> list[Belief]:
        with self._lock:
            return [Belief(a, b) for a, b in zip(self._a, self._b)]

    def belief(self, arm: int) -> Belief:
        arm = self._check_arm(arm)
        with self._lock:
            return Belief(self._a[arm], self._b[arm])

    def pulls(self, arm: int) -> int:
        bel = self.belief(arm)
        return int(round(bel.success_weight + bel.failure_weight - 2.0))

    def best_arm(self) -> int:
        """Arm with the highest posterior mean (lowest index on ties)."""
        means = self.estimates()
        best = 0
        for arm, m in enumerate(means):
            if m > means[best]:
                best = arm
        return best
