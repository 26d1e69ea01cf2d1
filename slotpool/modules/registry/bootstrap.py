import logging
from typing import Optional

from slotpool.modules.errors import ConflictError
from slotpool.modules.models import Backend

logger = logging.getLogger("slotpool.registry")


async def ensure_default_backend(registry, config) -> Optional[Backend]:
    """
    Register the configured seed backend if it is missing.

    Safe to call on every startup. Does nothing when no seed backend is
    configured.

    Args:
        registry: BackendRegistry
        config: ConfigModule

    Returns:
        The backend if it was created by this call, None otherwise
    """
    backend_id = config.get("seed_backend_id")
    credential = config.get("seed_backend_credential")
    if not backend_id or not credential:
        logger.debug("No seed backend configured")
        return None

    if await registry.exists(backend_id):
        logger.info(f"Seed backend {backend_id} already registered")
        return None

    try:
        backend = await registry.add(
            backend_id,
            credential,
            config.get("seed_backend_target_id") or backend_id,
            config.get("seed_backend_capacity"),
        )
    except ConflictError:
        # Another instance registered it between exists() and add()
        logger.info(f"Seed backend {backend_id} already registered")
        return None

    logger.info(f"Seed backend {backend_id} registered")
    return backend
