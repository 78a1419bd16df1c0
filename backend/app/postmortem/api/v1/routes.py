from fastapi import APIRouter

from postmortem.api.v1.routes_compile import router as compile_router

# v1 统一入口：所有 v1 API 都从 /api/v1 开始
router = APIRouter(prefix="/api/v1")

router.include_router(compile_router)
