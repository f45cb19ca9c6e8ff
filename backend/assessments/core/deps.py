from __future__ import annotations

from fastapi import Request

from assessments.services.generation import StructuredGenerationGateway
from assessments.services.sessions import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> StructuredGenerationGateway:
    return request.app.state.gateway
