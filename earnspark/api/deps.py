"""Request-scoped access to the objects built once in `create_app`."""

from typing import Optional

from fastapi import Request

from earnspark.config import Settings
from earnspark.providers.base import PaymentGateway
from earnspark.store import PaymentStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> Optional[PaymentGateway]:
    return request.app.state.gateway


def get_store(request: Request) -> Optional[PaymentStore]:
    return request.app.state.store
