from fastapi import Request

from checkout.services.attempts import AttemptRegistry
from checkout.services.store import PaymentStore


def get_registry(request: Request) -> AttemptRegistry:
    return request.app.state.registry


def get_store(request: Request) -> PaymentStore:
    return request.app.state.store
