"""Core utilities and configuration."""

from product_optimizer.core.config import Settings, get_settings
from product_optimizer.core.database import (
    Base,
    db_manager,
    get_session_factory,
)
from product_optimizer.core.logging import (
    db_logger,
    generation_logger,
    get_logger,
    setup_logging,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session_factory",
    # Logging
    "db_logger",
    "generation_logger",
    "get_logger",
    "setup_logging",
]
