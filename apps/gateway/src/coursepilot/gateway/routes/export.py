"""导出路由

POST /api/export/validate: 验证两套文档服务凭据
GET  /api/export/status: 当前导出状态
GET  /api/export/status/stream: 导出状态变化 SSE
POST /api/export/{course_id}: 执行导出，返回 PDF
PUT  /api/courses/{course_id}/portfolio: 写入课程的证书 / 报告数据
"""

import asyncio
import json

import structlog
from coursepilot.core.config import SSE_HEARTBEAT_INTERVAL
from coursepilot.core.models import CertificateData, ExportStatus, StudyReportData
from coursepilot.export import ExportPipelineError, KeyValuePortfolioDataSource
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from ..deps import get_export_service, get_kv_store, get_status_hub
from ..services.export_service import ExportAlreadyRunningError

log = structlog.get_logger()

router = APIRouter()


class PortfolioDataRequest(BaseModel):
    """课程导出数据"""

    certificate: CertificateData
    report: StudyReportData


def _status_to_sse(status: ExportStatus) -> dict:
    return {
        "event": "export_status",
        "data": json.dumps(status.model_dump(mode="json"), ensure_ascii=False),
    }


@router.post("/api/export/validate")
async def validate_export_credentials(export_service=Depends(get_export_service)):
    """分别验证文档生成服务与 PDF 服务凭据"""
    return await export_service.validate_credentials()


@router.get("/api/export/status")
async def get_export_status(status_hub=Depends(get_status_hub)):
    status = await status_hub.get()
    return status.model_dump(mode="json")


@router.get("/api/export/status/stream")
async def stream_export_status(status_hub=Depends(get_status_hub)):
    """导出状态 SSE

    1. 先推送当前状态
    2. 实时推送后续每次状态变化
    3. 心跳保活
    """

    async def event_generator():
        queue = await status_hub.subscribe()
        try:
            yield _status_to_sse(await status_hub.get())
            while True:
                try:
                    status = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                    yield _status_to_sse(status)
                except TimeoutError:
                    # 心跳保活
                    yield {"comment": "heartbeat"}
        finally:
            await status_hub.unsubscribe(queue)

    return EventSourceResponse(event_generator())


@router.post("/api/export/{course_id}")
async def export_portfolio(course_id: str, export_service=Depends(get_export_service)):
    """执行导出流水线

    - 成功: 200 + application/pdf
    - 流水线失败: 502 + EXPORT_FAILED（携带失败阶段）
    - 该课程已有进行中的导出: 409
    """
    try:
        result = await export_service.export(course_id)
    except ExportAlreadyRunningError as e:
        return JSONResponse(
            status_code=409,
            content={"error": {"code": "EXPORT_IN_PROGRESS", "message": str(e)}},
        )
    except ExportPipelineError as e:
        return JSONResponse(
            status_code=502,
            content={
                "error": {
                    "code": "EXPORT_FAILED",
                    "stage": e.stage.value,
                    "message": str(e),
                }
            },
        )

    return Response(
        content=result.pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{result.file_name}"'},
    )


@router.put("/api/courses/{course_id}/portfolio", status_code=204)
async def save_portfolio_data(
    course_id: str,
    body: PortfolioDataRequest,
    kv_store=Depends(get_kv_store),
):
    """保存课程的导出数据，供后续导出读取"""
    data_source = KeyValuePortfolioDataSource(kv_store)
    await data_source.save(course_id, body.certificate, body.report)
    log.info("portfolio_data_saved", course_id=course_id)
    return Response(status_code=204)
