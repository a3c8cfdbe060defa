"""Export Orchestrator -- 学习档案导出流水线

collecting -> generating-certificate -> generating-report -> combining
-> compressing -> downloading -> complete

每次阶段变化都写入状态槽；任一阶段失败写入 error 状态并抛出
ExportPipelineError。不做部分重试，也不回滚已创建的远端文档。
"""

import asyncio
import re
import time
from collections.abc import Awaitable
from typing import Any, Protocol

import structlog
from coursepilot.core.models import (
    CertificateData,
    ExportStage,
    ExportStatus,
    PortfolioExport,
    RemoteTask,
    StudyReportData,
    validate_stage_transition,
)
from coursepilot.core.store import ExportStatusSlot

from .exceptions import ExportPipelineError
from .poller import RetryPolicy, poll_until_terminal

log = structlog.get_logger()

CERTIFICATE_TEMPLATE = "certificate-template.docx"
REPORT_TEMPLATE = "study-report-template.docx"
CERTIFICATE_UPLOAD_NAME = "certificate.pdf"
REPORT_UPLOAD_NAME = "report.pdf"
FILE_NAME_SUFFIX = "-learning-portfolio.pdf"

_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9\-_ ]")
_WHITESPACE = re.compile(r"\s+")


class PortfolioDataSource(Protocol):
    """课程学习数据来源"""

    async def certificate_data(self, course_id: str) -> CertificateData: ...

    async def study_report_data(self, course_id: str) -> StudyReportData: ...


class TemplateLoader(Protocol):
    """模板来源"""

    async def load(self, name: str) -> bytes: ...


class DocumentGenerator(Protocol):
    async def generate(self, template_bytes: bytes, values: dict) -> bytes: ...


class PdfOperations(Protocol):
    async def upload(self, pdf_bytes: bytes, filename: str) -> str: ...

    async def combine(self, document_ids: list[str]) -> str: ...

    async def compress(self, document_id: str, level: str = "medium") -> str: ...

    async def poll_task(self, task_id: str) -> RemoteTask: ...

    async def download(self, document_id: str) -> bytes: ...


def portfolio_file_name(course_name: str) -> str:
    """课程名 -> 下载文件名

    去除 [A-Za-z0-9-_ ] 以外的字符，空白替换为 -，转小写；为空时使用 course。
    """
    safe = _UNSAFE_FILE_CHARS.sub("", course_name or "")
    safe = _WHITESPACE.sub("-", safe.strip()).lower()
    return f"{safe or 'course'}{FILE_NAME_SUFFIX}"


async def _run_together(*coros: Awaitable[Any]) -> list[Any]:
    """并发执行，任一失败时取消其余任务并抛出首个异常

    Returns:
        按参数顺序排列的结果
    """
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


class ExportOrchestrator:
    """导出流水线编排器

    一个实例可以顺序执行多次导出；同一课程的并发导出由调用方负责互斥。
    """

    def __init__(
        self,
        doc_gen: DocumentGenerator,
        pdf_services: PdfOperations,
        data_source: PortfolioDataSource,
        template_loader: TemplateLoader,
        status_slot: ExportStatusSlot,
        retry_policy: RetryPolicy | None = None,
        compression_level: str = "medium",
    ) -> None:
        self._doc_gen = doc_gen
        self._pdf = pdf_services
        self._data_source = data_source
        self._templates = template_loader
        self._status_slot = status_slot
        self._retry_policy = retry_policy or RetryPolicy()
        self._compression_level = compression_level
        self._stage = ExportStage.IDLE

    async def _enter(self, stage: ExportStage) -> None:
        """写入新阶段状态"""
        if not validate_stage_transition(self._stage, stage):
            log.warning(
                "export_stage_transition_unexpected",
                from_stage=self._stage.value,
                to_stage=stage.value,
            )
        self._stage = stage
        await self._status_slot.set(ExportStatus(step=stage))
        log.info("export_stage_changed", stage=stage.value)

    async def _poll(self, task_id: str) -> str:
        return await poll_until_terminal(self._pdf.poll_task, task_id, self._retry_policy)

    async def export_portfolio(self, course_id: str) -> PortfolioExport:
        """执行一次完整导出

        Args:
            course_id: 课程 ID

        Returns:
            PortfolioExport（压缩后的 PDF + 建议文件名）

        Raises:
            ExportPipelineError: 任一阶段失败；状态槽已写入 error
            asyncio.CancelledError: 运行被取消；状态槽已写入 error 后原样抛出
        """
        start_time = time.monotonic()
        self._stage = (await self._status_slot.get()).step

        with structlog.contextvars.bound_contextvars(course_id=course_id):
            try:
                result = await self._run(course_id)
            except asyncio.CancelledError:
                cancelled_stage = self._stage
                self._stage = ExportStage.ERROR
                # 取消时同样落盘 error，否则持久化的状态永远停在运行中
                await asyncio.shield(
                    self._status_slot.set(
                        ExportStatus.error(f"{cancelled_stage.value} cancelled")
                    )
                )
                log.warning("export_cancelled", stage=cancelled_stage.value)
                raise
            except Exception as e:
                failed_stage = self._stage
                reason = str(e) or type(e).__name__
                error = ExportPipelineError(failed_stage, reason)
                self._stage = ExportStage.ERROR
                await self._status_slot.set(ExportStatus.error(str(error)))
                log.warning(
                    "export_failed",
                    stage=failed_stage.value,
                    error_type=type(e).__name__,
                    error=reason,
                )
                raise error from e

            log.info(
                "export_completed",
                file_name=result.file_name,
                size=len(result.pdf_bytes),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )
            return result

    async def _run(self, course_id: str) -> PortfolioExport:
        await self._enter(ExportStage.COLLECTING)
        cert_data, report_data, cert_template, report_template = await _run_together(
            self._data_source.certificate_data(course_id),
            self._data_source.study_report_data(course_id),
            self._templates.load(CERTIFICATE_TEMPLATE),
            self._templates.load(REPORT_TEMPLATE),
        )

        await self._enter(ExportStage.GENERATING_CERTIFICATE)
        cert_pdf = await self._doc_gen.generate(cert_template, cert_data.to_document_values())

        await self._enter(ExportStage.GENERATING_REPORT)
        report_pdf = await self._doc_gen.generate(
            report_template, report_data.to_document_values()
        )

        await self._enter(ExportStage.COMBINING)
        cert_doc_id, report_doc_id = await _run_together(
            self._pdf.upload(cert_pdf, CERTIFICATE_UPLOAD_NAME),
            self._pdf.upload(report_pdf, REPORT_UPLOAD_NAME),
        )
        combine_task_id = await self._pdf.combine([cert_doc_id, report_doc_id])
        combined_doc_id = await self._poll(combine_task_id)

        await self._enter(ExportStage.COMPRESSING)
        compress_task_id = await self._pdf.compress(combined_doc_id, self._compression_level)
        compressed_doc_id = await self._poll(compress_task_id)

        await self._enter(ExportStage.DOWNLOADING)
        pdf_bytes = await self._pdf.download(compressed_doc_id)

        file_name = portfolio_file_name(cert_data.course_name)
        await self._enter(ExportStage.COMPLETE)
        return PortfolioExport(pdf_bytes=pdf_bytes, file_name=file_name)
