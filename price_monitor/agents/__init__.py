from .monitoring_orchestrator import MonitoringOrchestrator, MonitoringState
from .scheduler import PriceMonitorScheduler

__all__ = ["MonitoringOrchestrator", "MonitoringState", "PriceMonitorScheduler"]
