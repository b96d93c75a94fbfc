"""
FastAPI dependencies.

Services are built once in the application lifespan and stored on
app.state.services; routes receive them through Depends().
"""
from fastapi import Request

from ..bootstrap import AppServices
from ..config import Settings
from ..services.order_service import OrderService
from ..services.payment_service import PaymentService
from ..services.user_service import UserService


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.services.settings


def get_user_service(request: Request) -> UserService:
    return request.app.state.services.user_service


def get_order_service(request: Request) -> OrderService:
    return request.app.state.services.order_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.services.payment_service
