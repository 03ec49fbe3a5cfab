"""
FastAPI dependencies wiring the storage gateway into the services
"""
from fastapi import Depends, Request

from app.config import Settings, TableConfig, get_settings
from app.dynamo import StorageGateway
from app.services.completion_service import CompletionService
from app.services.habit_service import HabitService
from app.services.user_progress_service import UserProgressService


def build_gateway(settings: Settings) -> StorageGateway:
    """
    Build the process-wide gateway from validated configuration

    Raises:
        ConfigurationError: If a table name is missing
    """
    return StorageGateway(TableConfig.from_settings(settings), settings)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, falling back to the environment"""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_gateway(request: Request, settings: Settings = Depends(get_app_settings)) -> StorageGateway:
    """Gateway created at startup, or on first use when startup did not run"""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        gateway = build_gateway(settings)
        request.app.state.gateway = gateway
    return gateway


def get_completion_service(
    gateway: StorageGateway = Depends(get_gateway),
    settings: Settings = Depends(get_app_settings),
) -> CompletionService:
    return CompletionService(gateway, default_xp_reward=settings.DEFAULT_XP_REWARD)


def get_habit_service(gateway: StorageGateway = Depends(get_gateway)) -> HabitService:
    return HabitService(gateway)


def get_user_progress_service(gateway: StorageGateway = Depends(get_gateway)) -> UserProgressService:
    return UserProgressService(gateway)
