# Routers package
from . import whatsapp_router

__all__ = [
    "whatsapp_router",
]
