from linkstation.routers.game import router as game_router
from linkstation.routers.admin import router as admin_router

__all__ = ["game_router", "admin_router"]
