from __future__ import annotations

import numbers


class ArmrouteError(Exception):
    """Base class for all routing/dispatch errors."""


class InvalidConfig(ArmrouteError, ValueError):
    """A component was constructed with unusable settings (e.g. zero arms or zero workers)."""


class InvalidArm(ArmrouteError, IndexError):
    def __init__(self, arm: object, num_arms: int):
        super().__init__(f"arm {arm!r} out of range [0, {num_arms})")
        self.arm = arm
        self.num_arms = num_arms


class InvalidReward(ArmrouteError, ValueError):
    def __init__(self, reward: object):
        super().__init__(f"reward must be 0 or 1, got {reward!r}")
        self.reward = reward


class QueueClosed(ArmrouteError, RuntimeError):
    """Raised when work is submitted to a pool that is not accepting it."""


class PoolStateError(ArmrouteError, RuntimeError):
    """Raised when a pool lifecycle call happens out of order."""


class ShutdownTimeout(ArmrouteError, TimeoutError):
    """Workers did not drain within the allotted time.

    Workers are never killed; the pool stays in DRAINING and
    await_shutdown() may be called again.
    """

    def __init__(self, timeout_s: float, alive: list[str]):
        super().__init__(f"{len(alive)} worker(s) still running after {timeout_s:.3f}s: {', '.join(alive)}")
        self.timeout_s = timeout_s
        self.alive = alive


def check_arm(arm: object, num_arms: int) -> int:
    """Return ``arm`` as an int, or raise InvalidArm. Bools and non-integers are rejected."""
    if isinstance(arm, bool) or not isinstance(arm, numbers.Integral) or not 0 <= int(arm) < num_arms:
        raise InvalidArm(arm, num_arms)
    return int(arm)
