"""FastAPI dependencies for application-wide collaborators.

``create_app`` stores the collaborators on ``app.state``; tests replace
them through ``app.dependency_overrides``.
"""

from fastapi import Request

from libs.common.events import EventBus


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.events
