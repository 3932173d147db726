"""API dependencies for dependency injection."""

from stackhub.config import StackHubConfig, get_config
from stackhub.core.orchestrator import ProvisioningOrchestrator

# Singleton orchestrator instance
_orchestrator: ProvisioningOrchestrator | None = None


async def init_orchestrator(config: StackHubConfig | None = None) -> ProvisioningOrchestrator:
    """Initialize orchestrator singleton.

    Creates the ProvisioningOrchestrator and its instance store.
    Must be called during app startup.
    """
    global _orchestrator
    _orchestrator = ProvisioningOrchestrator(config or get_config())
    await _orchestrator.init()
    return _orchestrator


async def close_orchestrator() -> None:
    """Cancel background work and release resources."""
    global _orchestrator
    if _orchestrator:
        await _orchestrator.close()
        _orchestrator = None


def get_orchestrator() -> ProvisioningOrchestrator:
    """Get orchestrator singleton.

    Returns:
        ProvisioningOrchestrator shared across all API endpoints.

    Raises:
        RuntimeError: If called before init_orchestrator().
    """
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not initialized. Call init_orchestrator() first.")
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset orchestrator singleton (for testing)."""
    global _orchestrator
    _orchestrator = None
