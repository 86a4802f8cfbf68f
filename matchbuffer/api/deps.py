"""
Dependencies shared by the API routers.
"""

from typing import Annotated

from fastapi import Depends, Request

from matchbuffer.models.failure import FailureKind, KnownError
from matchbuffer.services.container import Services


def get_services(request: Request) -> Services:
    """
    The process-wide service container.

    Raises KnownError (503) while the application is still starting up.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise KnownError(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="The selection service is not ready yet.",
            suggestion="Retry in a few seconds.",
            status_code=503,
        )
    return services


ServicesDep = Annotated[Services, Depends(get_services)]
