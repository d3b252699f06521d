"""
tests/test_import_orchestrator_service.py

Pytest unit tests for import job dispatch and the background job lifecycle:
completion, cancellation and failure persistence. A fake session stands in
for the database, so the repository's ORM-level transitions run for real.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import pytest

from app.domain.keyword_import import ImportSummary, ImportType, empty_intent_summary
from app.errors import AppError, ImportCancelledError, InvalidJobTransitionError
from app.services.import_orchestrator_service import ImportOrchestratorService
from app.services.keyword_import_service import ImportRequest
from db.models.import_job import ImportJob, ImportJobStatus, ImportStep
from db.repositories.import_job_repository import ImportJobRepository
from monitoring.error_tracking import RecordingErrorTracker


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSession:
    """Identity map plus commit/rollback counters."""

    def __init__(self) -> None:
        self.jobs: dict[uuid.UUID, ImportJob] = {}
        self.commits = 0
        self.rollbacks = 0

    def __enter__(self) -> FakeSession:
        return self

    def __exit__(self, *exc_info: Any) -> bool:
        return False

    @contextmanager
    def begin(self) -> Iterator[FakeSession]:
        try:
            yield self
        except Exception:
            self.rollbacks += 1
            raise
        self.commits += 1

    def add(self, job: ImportJob) -> None:
        if job.id is None:
            job.id = uuid.uuid4()
        self.jobs[job.id] = job

    def flush(self) -> None:
        pass

    def refresh(self, job: ImportJob) -> None:
        pass

    def get(self, model: type, job_id: uuid.UUID) -> ImportJob | None:
        return self.jobs.get(job_id)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class InMemoryJobRepository(ImportJobRepository):
    """Replaces the statement-level reads and writes; transitions stay real."""

    def get_status(self, job_id: uuid.UUID) -> str | None:
        job = self.get_job(job_id)
        return job.status if job is not None else None

    def update_step(self, *, job_id: uuid.UUID, current_step: str, total_rows: int | None = None) -> bool:
        job = self.get_job(job_id)
        if job is None or job.status != ImportJobStatus.PROCESSING:
            return False
        job.current_step = current_step
        if total_rows is not None:
            job.total_rows = total_rows
        return True

    def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        success_count: int,
        error_count: int,
        current_step: str,
        errors: Any = (),
        total_rows: int | None = None,
    ) -> bool:
        job = self.get_job(job_id)
        if job is None or job.status != ImportJobStatus.PROCESSING:
            return False
        job.success_count = success_count
        job.error_count = error_count
        job.processed_rows = success_count + error_count
        job.current_step = current_step
        job.errors = list(errors)
        return True


class StubImportService:
    """Runs a scripted body in place of the real pipeline."""

    def __init__(self, body: Callable[[Any], ImportSummary]) -> None:
        self._body = body
        self.calls = 0

    def run(self, request: ImportRequest, *, datastore: Any, reporter: Any = None) -> ImportSummary:
        self.calls += 1
        return self._body(reporter)


class RecordingExecutor:
    def __init__(self, *, fail: bool = False) -> None:
        self.tasks: list[tuple[Callable[..., None], tuple[Any, ...]]] = []
        self._fail = fail

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        if self._fail:
            raise RuntimeError("executor unavailable")
        self.tasks.append((task, args))

    def run_all(self) -> None:
        for task, args in self.tasks:
            task(*args)


def _summary(success: int = 3, errors: int = 1) -> ImportSummary:
    return ImportSummary(
        success_count=success,
        error_count=errors,
        total_keywords=success + errors,
        intent_summary=empty_intent_summary(),
    )


REQUEST = ImportRequest(content=b"keyword\nfoo\n", import_type=ImportType.KEYWORDS, file_name="kw.csv")


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def tracker() -> RecordingErrorTracker:
    return RecordingErrorTracker()


def _orchestrator(
    session: FakeSession,
    service: StubImportService,
    tracker: RecordingErrorTracker,
) -> ImportOrchestratorService:
    return ImportOrchestratorService(
        import_service=service,
        session_factory=lambda: session,
        datastore_factory=lambda db: object(),
        job_repository_factory=InMemoryJobRepository,
        error_tracker=tracker,
    )


def _submit_and_run(orchestrator: ImportOrchestratorService, session: FakeSession) -> ImportJob:
    executor = RecordingExecutor()
    job = orchestrator.trigger_import(db=session, executor=executor, request=REQUEST)
    assert job.status == ImportJobStatus.PENDING
    executor.run_all()
    return job


# ---------------------------------------------------------------------------
# Background job lifecycle
# ---------------------------------------------------------------------------


class TestRunImportJob:
    def test_completed_job_counts_add_up(self, session: FakeSession, tracker: RecordingErrorTracker) -> None:
        def body(reporter: Any) -> ImportSummary:
            reporter.step(ImportStep.CLASSIFY, total_rows=4)
            reporter.progress(step=ImportStep.UPSERT, success_count=2, error_count=1, errors=["Line 6: bad"])
            return _summary(success=3, errors=1)

        job = _submit_and_run(_orchestrator(session, StubImportService(body), tracker), session)

        assert job.status == ImportJobStatus.COMPLETED
        assert job.success_count == 3
        assert job.error_count == 1
        assert job.processed_rows == job.success_count + job.error_count
        assert job.processed_rows <= job.total_rows == 4
        assert job.current_step is None
        assert job.started_at is not None
        assert job.completed_at is not None
        assert job.result_payload == _summary(success=3, errors=1).to_payload()
        assert session.rollbacks == 0
        assert tracker.reports == []

    def test_cancellation_mid_run_rolls_back_and_never_completes(
        self,
        session: FakeSession,
        tracker: RecordingErrorTracker,
    ) -> None:
        def body(reporter: Any) -> ImportSummary:
            next(iter(session.jobs.values())).status = ImportJobStatus.CANCELLED
            raise ImportCancelledError("Import cancelled before chunk 2/3 of keywords.")

        job = _submit_and_run(_orchestrator(session, StubImportService(body), tracker), session)

        assert job.status == ImportJobStatus.CANCELLED
        assert job.result_payload is None
        assert job.success_count == 0
        assert session.rollbacks == 1
        assert tracker.reports == []

    def test_cancellation_during_finalize_discards_summary(
        self,
        session: FakeSession,
        tracker: RecordingErrorTracker,
    ) -> None:
        def body(reporter: Any) -> ImportSummary:
            next(iter(session.jobs.values())).status = ImportJobStatus.CANCELLED
            return _summary()

        job = _submit_and_run(_orchestrator(session, StubImportService(body), tracker), session)

        assert job.status == ImportJobStatus.CANCELLED
        assert job.result_payload is None
        assert session.rollbacks == 1

    def test_job_cancelled_before_start_is_skipped(self, session: FakeSession, tracker: RecordingErrorTracker) -> None:
        service = StubImportService(lambda reporter: _summary())
        orchestrator = _orchestrator(session, service, tracker)
        executor = RecordingExecutor()
        job = orchestrator.trigger_import(db=session, executor=executor, request=REQUEST)
        orchestrator.cancel_job(db=session, job_id=job.id)

        executor.run_all()

        assert service.calls == 0
        assert job.status == ImportJobStatus.CANCELLED

    def test_server_failure_is_persisted_and_tracked(self, session: FakeSession, tracker: RecordingErrorTracker) -> None:
        def body(reporter: Any) -> ImportSummary:
            raise RuntimeError("connection reset by peer")

        job = _submit_and_run(_orchestrator(session, StubImportService(body), tracker), session)

        assert job.status == ImportJobStatus.FAILED
        assert job.error_message.startswith("[E-SYS-001] ")
        assert job.errors[-1] == job.error_message
        assert job.completed_at is not None
        assert len(tracker.reports) == 1
        assert tracker.reports[0].tags == {"error_code": "E-SYS-001"}

    def test_client_failure_is_persisted_but_not_tracked(
        self,
        session: FakeSession,
        tracker: RecordingErrorTracker,
    ) -> None:
        def body(reporter: Any) -> ImportSummary:
            raise AppError("E-DATA-001", details={"media_id": "missing"})

        job = _submit_and_run(_orchestrator(session, StubImportService(body), tracker), session)

        assert job.status == ImportJobStatus.FAILED
        assert job.error_message.startswith("[E-DATA-001] ")
        assert tracker.reports == []

    def test_scheduling_failure_marks_job_failed(self, session: FakeSession, tracker: RecordingErrorTracker) -> None:
        orchestrator = _orchestrator(session, StubImportService(lambda reporter: _summary()), tracker)

        with pytest.raises(RuntimeError, match="executor unavailable"):
            orchestrator.trigger_import(db=session, executor=RecordingExecutor(fail=True), request=REQUEST)

        job = next(iter(session.jobs.values()))
        assert job.status == ImportJobStatus.FAILED
        assert job.error_message == "Failed to schedule import job."


# ---------------------------------------------------------------------------
# Repository transition guards
# ---------------------------------------------------------------------------


class TestImportJobRepositoryTransitions:
    def _job(self, session: FakeSession, status: str) -> ImportJob:
        job = ImportJobRepository(session).create_job(import_type=ImportType.KEYWORDS)
        job.status = status
        return job

    def test_mark_completed_on_cancelled_job_is_rejected(self, session: FakeSession) -> None:
        job = self._job(session, ImportJobStatus.CANCELLED)

        with pytest.raises(InvalidJobTransitionError):
            ImportJobRepository(session).mark_completed(job_id=job.id, success_count=1, error_count=0)
        assert job.status == ImportJobStatus.CANCELLED

    def test_mark_failed_leaves_cancelled_job_alone(self, session: FakeSession) -> None:
        job = self._job(session, ImportJobStatus.CANCELLED)

        result = ImportJobRepository(session).mark_failed(job_id=job.id, error_message="late failure")

        assert result is job
        assert job.status == ImportJobStatus.CANCELLED
        assert job.error_message is None

    def test_mark_completed_derives_processed_rows(self, session: FakeSession) -> None:
        job = self._job(session, ImportJobStatus.PROCESSING)
        job.total_rows = 2

        ImportJobRepository(session).mark_completed(
            job_id=job.id,
            success_count=4,
            error_count=1,
            errors=[f"error {index}" for index in range(30)],
        )

        assert job.processed_rows == 5
        assert job.total_rows == 5
        assert job.errors == [f"error {index}" for index in range(5)]
