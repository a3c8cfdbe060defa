"""ExportService -- 为每次导出组装 ExportOrchestrator

凭据可能在两次导出之间被修改，因此每次运行都重新解析凭据并创建客户端。
同一课程同时只允许一次导出。
"""

import httpx
import structlog
from coursepilot.core.exceptions import CoursePilotError
from coursepilot.core.models import ExportStage, ExportStatus, PortfolioExport
from coursepilot.export import (
    DocGenClient,
    ExportConfig,
    ExportOrchestrator,
    ExportPipelineError,
    HttpTemplateLoader,
    PdfServicesClient,
    PortfolioDataSource,
    TemplateLoader,
)

from .settings import SettingsService
from .status_hub import StatusHub

log = structlog.get_logger()


class ExportAlreadyRunningError(CoursePilotError):
    """该课程已有进行中的导出"""

    def __init__(self, course_id: str) -> None:
        super().__init__(f"Export for course {course_id!r} is already running", recoverable=True)
        self.course_id = course_id


class ExportService:
    """导出服务"""

    def __init__(
        self,
        config: ExportConfig,
        settings: SettingsService,
        status_hub: StatusHub,
        data_source: PortfolioDataSource,
        template_loader: TemplateLoader | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self._status_hub = status_hub
        self._data_source = data_source
        self._http_client = http_client
        self._template_loader = template_loader or HttpTemplateLoader(
            config.templates_url, http_client=http_client
        )
        self._running: set[str] = set()

    def is_running(self, course_id: str) -> bool:
        return course_id in self._running

    async def _clients(self) -> tuple[DocGenClient, PdfServicesClient]:
        credentials = await self._settings.resolve_document_credentials(self._config.credentials)
        return (
            DocGenClient(credentials.doc_gen, self._config.base_url, self._http_client),
            PdfServicesClient(credentials.pdf_services, self._config.base_url, self._http_client),
        )

    async def build_orchestrator(self) -> ExportOrchestrator:
        doc_gen, pdf_services = await self._clients()
        return ExportOrchestrator(
            doc_gen=doc_gen,
            pdf_services=pdf_services,
            data_source=self._data_source,
            template_loader=self._template_loader,
            status_slot=self._status_hub,
            retry_policy=self._config.retry_policy,
            compression_level=self._config.compression_level,
        )

    async def export(self, course_id: str) -> PortfolioExport:
        """执行导出

        Raises:
            ExportAlreadyRunningError: 该课程已有进行中的导出
            ExportPipelineError: 流水线失败
        """
        if course_id in self._running:
            raise ExportAlreadyRunningError(course_id)

        self._running.add(course_id)
        try:
            orchestrator = await self._prepare(course_id)
            return await orchestrator.export_portfolio(course_id)
        finally:
            self._running.discard(course_id)

    async def _prepare(self, course_id: str) -> ExportOrchestrator:
        """组装编排器；凭据读取失败同样写入 error 状态（记在 collecting 阶段）"""
        try:
            return await self.build_orchestrator()
        except Exception as e:
            reason = str(e) or type(e).__name__
            error = ExportPipelineError(ExportStage.COLLECTING, reason)
            await self._status_hub.set(ExportStatus.error(str(error)))
            log.warning(
                "export_prepare_failed",
                course_id=course_id,
                error_type=type(e).__name__,
                error=reason,
            )
            raise error from e

    async def validate_credentials(self) -> dict[str, bool]:
        """分别验证两套凭据"""
        doc_gen, pdf_services = await self._clients()
        return {
            "doc_gen": await doc_gen.validate(),
            "pdf_services": await pdf_services.validate(),
        }
