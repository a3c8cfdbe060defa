"""TraceMiddleware -- 为导出操作绑定 trace_id

/api/export/{course_id} 及其子路由的日志统一携带 trace_id=export-<course_id>，
贯穿整条导出流水线。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 不是课程 ID 的 /api/export/ 子路由
_RESERVED_EXPORT_SEGMENTS = frozenset({"status", "validate"})


def extract_course_id(path: str) -> str | None:
    """从 /api/export/{course_id} 路径中提取课程 ID"""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "export":
        course_id = parts[2]
        if course_id not in _RESERVED_EXPORT_SEGMENTS:
            return course_id
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """导出级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        course_id = extract_course_id(request.url.path)
        if course_id:
            structlog.contextvars.bind_contextvars(trace_id=f"export-{course_id}")

        return await call_next(request)
