"""packages/export 测试 fixtures"""

import pytest
from coursepilot.core.models import (
    BloomPerformanceRow,
    CertificateData,
    PageRow,
    RemoteTask,
    StudyReportData,
)


class FakeClock:
    """可控单调时钟：sleep 推进时间而不真正等待"""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay

class ScriptedTaskStatus:
    """按脚本返回任务状态；脚本耗尽后重复最后一个"""

    def __init__(self, *statuses: RemoteTask) -> None:
        self._statuses = list(statuses)
        self.calls: list[str] = []

    async def __call__(self, task_id: str) -> RemoteTask:
        self.calls.append(task_id)
        if len(self._statuses) > 1:
            return self._statuses.pop(0)
        return self._statuses[0]

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def scripted_status():
    return ScriptedTaskStatus

@pytest.fixture
def certificate_data() -> CertificateData:
    return CertificateData(
        course_name="Intro to Python: Basics!",
        overall_mastery="87%",
        completion_date="February 20, 2026",
        bloom_levels_achieved="Remember, Understand, Apply",
        total_pages_studied="12",
        total_quizzes_taken="8",
        mastery_threshold="80%",
    )

@pytest.fixture
def report_data() -> StudyReportData:
    return StudyReportData(
        course_name="Intro to Python: Basics!",
        overall_mastery="87%",
        total_pages="12",
        pages_mastered="10",
        completion_date="February 20, 2026",
        pages=[PageRow(page_title="Variables", mastery_score="92%", status="Mastered")],
        bloom_performance=[
            BloomPerformanceRow(level="Remember", questions_attempted="10", correct_rate="90%")
        ],
    )
