from notesauth.web.routers.auth import router as auth_router
from notesauth.web.routers.csrf import router as csrf_router

__all__ = [
    "auth_router",
    "csrf_router",
]
