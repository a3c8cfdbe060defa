"""KeyValuePortfolioDataSource -- 从 key-value store 读取已汇总的课程数据

调用方（前端）汇总好证书与报告数据后写入 portfolio:<course_id>，
导出时按课程读取。
"""

from typing import Any

from coursepilot.core.models import CertificateData, StudyReportData
from coursepilot.core.store import KeyValueStore

from .exceptions import ExportError

PORTFOLIO_KEY_PREFIX = "portfolio:"


def portfolio_key(course_id: str) -> str:
    return f"{PORTFOLIO_KEY_PREFIX}{course_id}"


class PortfolioDataMissingError(ExportError):
    """课程尚无可导出的学习数据"""

    def __init__(self, course_id: str) -> None:
        self.course_id = course_id
        super().__init__(f"No portfolio data stored for course {course_id!r}")


class KeyValuePortfolioDataSource:
    """基于 KeyValueStore 的 PortfolioDataSource 实现"""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def save(
        self,
        course_id: str,
        certificate: CertificateData,
        report: StudyReportData,
    ) -> None:
        await self._store.set(
            portfolio_key(course_id),
            {
                "certificate": certificate.model_dump(mode="json", by_alias=True),
                "report": report.model_dump(mode="json", by_alias=True),
            },
        )

    async def _payload(self, course_id: str) -> dict[str, Any]:
        payload = await self._store.get(portfolio_key(course_id))
        if not payload:
            raise PortfolioDataMissingError(course_id)
        return payload

    async def certificate_data(self, course_id: str) -> CertificateData:
        payload = await self._payload(course_id)
        return CertificateData.model_validate(payload["certificate"])

    async def study_report_data(self, course_id: str) -> StudyReportData:
        payload = await self._payload(course_id)
        return StudyReportData.model_validate(payload["report"])
