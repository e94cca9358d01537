"""FastAPI dependencies."""

from fastapi import Request

from blogagent.services import Services


def get_services(request: Request) -> Services:
    """The Services container built in the app lifespan."""
    return request.app.state.services
