"""FastAPI dependency injection for the service container."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from reelscript.services.container import Services


def get_services(request: Request) -> Services:
    """Return the Services built by create_app for this application."""
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]
