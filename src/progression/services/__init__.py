"""Service layer wiring for the progression engine"""

from progression.services.container import (
    ServiceContainer,
    build_container,
    get_container,
    init_container,
    reset_container,
)

__all__ = [
    "ServiceContainer",
    "build_container",
    "get_container",
    "init_container",
    "reset_container",
]
