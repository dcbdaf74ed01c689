from fastapi import APIRouter

from kaiflake.api.auth import router as auth_router
from kaiflake.api.chats import router as chats_router
from kaiflake.api.config import router as config_router
from kaiflake.api.messages import router as messages_router
from kaiflake.api.users import router as users_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(config_router)
router.include_router(users_router)
router.include_router(chats_router)
router.include_router(messages_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Kaif Lake API"}
