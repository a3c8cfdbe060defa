"""导出流水线数据模型 -- ExportStatus / RemoteTask / 凭据 / 模板数据

每次导出运行只有一个存活的 ExportStatus，仅由 ExportOrchestrator 写入，
观察者数量不限。
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from .enums import ExportStage

# 远端任务状态取值（其余取值一律视为 pending）
REMOTE_TASK_SUCCESS_STATUSES: frozenset[str] = frozenset({"completed", "success"})
REMOTE_TASK_FAILURE_STATUSES: frozenset[str] = frozenset({"failed", "error"})


class ExportStatus(BaseModel):
    """导出进度状态 -- error 阶段必须携带 message"""

    model_config = ConfigDict(frozen=True)

    step: ExportStage = Field(default=ExportStage.IDLE, description="当前阶段")
    message: str | None = Field(default=None, description="错误描述，仅 error 阶段")

    @model_validator(mode="after")
    def _error_requires_message(self) -> "ExportStatus":
        if self.step == ExportStage.ERROR and not self.message:
            raise ValueError("error status requires a message")
        return self

    @classmethod
    def error(cls, message: str) -> "ExportStatus":
        return cls(step=ExportStage.ERROR, message=message)

    @property
    def is_running(self) -> bool:
        return self.step not in (ExportStage.IDLE, ExportStage.COMPLETE, ExportStage.ERROR)


class RemoteTask(BaseModel):
    """远端异步任务 -- 由 combine / compress 创建，轮询至终态后即丢弃"""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", description="远端任务 ID")
    status: str = Field(default="pending", description="远端任务状态原始取值")
    result_document_id: str | None = Field(
        default=None,
        alias="resultDocumentId",
        description="成功时的结果文档 ID",
    )
    error: str | None = Field(default=None, description="失败时的服务端错误描述")

    @property
    def is_succeeded(self) -> bool:
        return self.status.lower() in REMOTE_TASK_SUCCESS_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status.lower() in REMOTE_TASK_FAILURE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.is_succeeded or self.is_failed


class ServiceCredentials(BaseModel):
    """单个远端服务的 client_id / client_secret"""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="client_id 请求头")
    client_secret: SecretStr = Field(default=SecretStr(""), description="client_secret 请求头")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret.get_secret_value())

    def headers(self) -> dict[str, str]:
        """生成鉴权请求头"""
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret.get_secret_value(),
        }


class DocumentServiceCredentials(BaseModel):
    """两套独立凭据：文档生成服务 + PDF 服务"""

    model_config = ConfigDict(frozen=True)

    doc_gen: ServiceCredentials = Field(default_factory=ServiceCredentials)
    pdf_services: ServiceCredentials = Field(default_factory=ServiceCredentials)


class CertificateData(BaseModel):
    """证书模板数据 -- 扁平 key/value，与模板中的 {{ token }} 一一对应"""

    model_config = ConfigDict(populate_by_name=True)

    course_name: str = Field(alias="courseName")
    overall_mastery: str = Field(alias="overallMastery", description="如 87%")
    completion_date: str = Field(alias="completionDate", description="如 February 20, 2026")
    bloom_levels_achieved: str = Field(alias="bloomLevelsAchieved")
    total_pages_studied: str = Field(alias="totalPagesStudied")
    total_quizzes_taken: str = Field(alias="totalQuizzesTaken")
    mastery_threshold: str = Field(alias="masteryThreshold", description="如 80%")

    def to_document_values(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PageRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_title: str = Field(alias="pageTitle")
    mastery_score: str = Field(alias="masteryScore")
    status: str = Field(description="Mastered / In Progress / Not Started")


class BloomPerformanceRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: str
    questions_attempted: str = Field(alias="questionsAttempted")
    correct_rate: str = Field(alias="correctRate")


class MissedQuestionRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    bloom_level: str = Field(alias="bloomLevel")
    correct_answer: str = Field(alias="correctAnswer")


class ChatTopicRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str
    message_count: str = Field(alias="messageCount")


# 报告中"待复习问题"表的最大行数
MAX_MISSED_QUESTIONS: int = 20


class StudyReportData(BaseModel):
    """学习报告模板数据 -- 概览字段 + 四张循环表"""

    model_config = ConfigDict(populate_by_name=True)

    course_name: str = Field(alias="courseName")
    overall_mastery: str = Field(alias="overallMastery")
    total_pages: str = Field(alias="totalPages")
    pages_mastered: str = Field(alias="pagesMastered")
    completion_date: str = Field(alias="completionDate")

    pages: list[PageRow] = Field(default_factory=list)
    bloom_performance: list[BloomPerformanceRow] = Field(
        default_factory=list, alias="bloomPerformance"
    )
    missed_questions: list[MissedQuestionRow] = Field(
        default_factory=list,
        alias="missedQuestions",
        max_length=MAX_MISSED_QUESTIONS,
    )
    chat_topics: list[ChatTopicRow] = Field(default_factory=list, alias="chatTopics")

    def to_document_values(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PortfolioExport(BaseModel):
    """一次导出的最终产物"""

    pdf_bytes: bytes = Field(description="压缩后的最终 PDF")
    file_name: str = Field(description="建议的下载文件名")
