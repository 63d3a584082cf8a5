"""Health package: slot-lag probing and periodic refresh."""

from rpc_manager.health.prober import HealthProber, is_within_delay
from rpc_manager.health.scheduler import HealthRefreshScheduler

__all__ = ["HealthProber", "HealthRefreshScheduler", "is_within_delay"]
