"""armroute: Thompson-sampling request routing over a fixed worker pool."""

from .dispatch.pool import WorkerPool, start_pool
from .errors import ArmrouteError, InvalidArm, InvalidConfig, InvalidReward, PoolStateError, QueueClosed, ShutdownTimeout
from .orchestrator import OrchestratorConfig, RoutingOrchestrator, RunResult
from .reward import BernoulliRewardSource, RewardSource
from .rl.bandit import ThompsonBandit
from .types import Belief, ItemFailure, PoolState, Request, ShutdownReport, WorkItem

__all__ = [
    "ArmrouteError",
    "BernoulliRewardSource",
    "Belief",
    "InvalidArm",
    "InvalidConfig",
    "InvalidReward",
    "ItemFailure",
    "OrchestratorConfig",
    "PoolState",
    "PoolStateError",
    "QueueClosed",
    "Request",
    "RewardSource",
    "RoutingOrchestrator",
    "RunResult",
    "ShutdownReport",
    "ShutdownTimeout",
    "ThompsonBandit",
    "WorkItem",
    "WorkerPool",
    "start_pool",
]
