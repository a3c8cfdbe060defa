"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性。
         profile=llm 时额外对当前 Provider 发起 validate。
"""

import structlog
from coursepilot.provider import ProviderError
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置文件：core（默认）仅核心检查；llm/full 包含 Provider 凭据验证",
    ),
):
    """Readiness 检查 -- 验证核心依赖可用性

    profile 参数:
        - None / "core": 仅核心检查，provider="skipped"
        - "llm": 核心检查 + 当前 Provider validate()
        - "full": 等同于 "llm"

    检查项：
    1. sqlite: 数据库连通性
    2. provider: 根据 profile 决定是否探测
    """
    effective_profile = profile or "core"

    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        kv_store = request.app.state.kv_store
        cursor = await kv_store.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. Provider 凭据验证
    if effective_profile in ("llm", "full"):
        try:
            provider = await request.app.state.provider_resolver()
            if await provider.validate():
                checks["provider"] = "ok"
            else:
                checks["provider"] = "unreachable"
                all_ok = False
        except ProviderError as e:
            log.warning("ready_provider_unconfigured", error=str(e))
            checks["provider"] = "unconfigured"
            all_ok = False
        except Exception as e:
            log.warning("ready_provider_check_failed", error=str(e))
            checks["provider"] = f"error: {str(e)}"
            all_ok = False
    else:
        checks["provider"] = "skipped"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "profile": effective_profile,
            "checks": checks,
        },
    )
