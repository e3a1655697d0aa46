"""
Providers API endpoints.
"""
from fastapi import APIRouter

from chatrelay.core.config import settings
from chatrelay.services.catalog import list_providers

router = APIRouter()


@router.get("")
async def get_providers():
    """
    Get available providers and models with their capabilities.
    """
    return {
        "providers": [provider.to_dict() for provider in list_providers()],
        "defaultProvider": settings.DEFAULT_PROVIDER,
        "defaultModel": settings.DEFAULT_MODEL,
    }
