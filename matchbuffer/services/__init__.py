"""
MatchBuffer services.

Construction and lifecycle of the selection service graph.
"""

from matchbuffer.services.container import (
    Services,
    build_services,
    close_services,
    start_services,
)

__all__ = [
    "Services",
    "build_services",
    "close_services",
    "start_services",
]
