from fastapi import Request
from services.payments_service.services.orchestrator import PaymentOrchestrator


def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return request.app.state.orchestrator
