from typing import Optional

from fastapi import Depends, Header, Request

from linkstation.services import Services
from linkstation.services.admin_service import AdminService
from linkstation.services.game_service import GameService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_game_service(services: Services = Depends(get_services)) -> GameService:
    return services.game


def get_admin_service(services: Services = Depends(get_services)) -> AdminService:
    return services.admin


def admin_token_header(x_admin_token: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_admin_token


def resolve_admin_token(header_token: Optional[str], body_token: Optional[str] = None) -> Optional[str]:
    """The X-Admin-Token header wins over a token in the request body."""
    return header_token or body_token
