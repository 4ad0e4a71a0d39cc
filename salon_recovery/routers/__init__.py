"""HTTP routers for the Salon Recovery API."""

from fastapi import Request

from salon_recovery.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """Services built for this app instance (see ``create_app``)."""
    return request.app.state.container
