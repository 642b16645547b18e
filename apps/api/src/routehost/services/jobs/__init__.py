from routehost.services.jobs.orchestrator import JobOrchestrator
from routehost.services.jobs.store import JobStore

__all__ = ["JobOrchestrator", "JobStore"]
