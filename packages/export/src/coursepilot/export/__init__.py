"""CoursePilot Export -- 学习档案 PDF 导出流水线

packages/export 的公开接口导出。
"""

# 远端客户端
from .clients import DEFAULT_BASE_URL, DocGenClient, PdfServicesClient

# 配置
from .config import ExportConfig, load_export_config
from .data_source import KeyValuePortfolioDataSource, PortfolioDataMissingError

# 异常
from .exceptions import (
    ExportError,
    ExportPipelineError,
    PollTimeoutError,
    RemoteTaskFailedError,
    TemplateLoadError,
)

# 编排
from .orchestrator import (
    ExportOrchestrator,
    PortfolioDataSource,
    TemplateLoader,
    portfolio_file_name,
)
from .poller import RetryPolicy, poll_until_terminal
from .templates import HttpTemplateLoader

__all__ = [
    "DEFAULT_BASE_URL",
    "DocGenClient",
    "PdfServicesClient",
    "ExportConfig",
    "load_export_config",
    "KeyValuePortfolioDataSource",
    "PortfolioDataMissingError",
    "ExportError",
    "ExportPipelineError",
    "PollTimeoutError",
    "RemoteTaskFailedError",
    "TemplateLoadError",
    "ExportOrchestrator",
    "PortfolioDataSource",
    "TemplateLoader",
    "portfolio_file_name",
    "RetryPolicy",
    "poll_until_terminal",
    "HttpTemplateLoader",
]
