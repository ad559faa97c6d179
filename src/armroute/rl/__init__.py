"""Online arm selection.

ThompsonBandit learns, from binary outcomes only, which routing arm
(model variant, backend, worker class) succeeds most often.
"""

from .bandit import ThompsonBandit

__all__ = ["ThompsonBandit"]
