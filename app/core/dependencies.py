from fastapi import Request

from app.core.config import Settings
from app.shared.storage import ImageStorage


def get_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_storage(request: Request) -> ImageStorage:
    return request.app.state.storage
