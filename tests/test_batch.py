"""Tests for batch processing."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import fast_config
from dossier.core.events import StatusChange
from dossier.core.models import Decision, Record, RecordStatus
from dossier.orchestrator.batch import BatchRunner, BatchSummary
from dossier.orchestrator.service import AutomationService


@pytest.fixture
def make_runner(events, session):
    async def factory(**overrides):
        service = AutomationService(events=events, session=session)
        await service.initialise(fast_config(**overrides))
        await service.login()
        return BatchRunner(service)
    return factory


class TestDecisionBatch:
    """Test accept/reject batches."""

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, make_runner, page, session, recorder):
        """A record with no matching reason fails; its neighbours still succeed."""
        page.options_by_identifier["R2"] = ["Please select", "1. Qualifications"]
        records = [
            Record("R1", "ML", Decision.ACCEPT),
            Record("R2", "ML", Decision.REJECT),
            Record("R3", "ML", Decision.ACCEPT),
        ]
        runner = await make_runner()

        result = await runner.run_decisions(records)

        assert [r.identifier for r in result.records] == ["R1", "R2", "R3"]
        assert [r.status for r in records] == [
            RecordStatus.SUCCESS,
            RecordStatus.FAILED,
            RecordStatus.SUCCESS,
        ]
        assert "reject reason" in records[1].error_message
        assert recorder.lines[-1] == "Complete: 2 successful, 1 failed"
        assert result.summary.success == 2
        # R1 and R3 return to search; R2 recovers
        assert session.navigations == 3

    @pytest.mark.asyncio
    async def test_page_error_isolated_to_record(self, make_runner, page):
        page.fail_search_for.add("R1")
        records = [Record("R1", "ML", Decision.ACCEPT), Record("R2", "ML", Decision.ACCEPT)]
        runner = await make_runner()

        await runner.run_decisions(records)

        assert records[0].status == RecordStatus.FAILED
        assert records[0].error_message == "Search box vanished for R1"
        assert records[1].status == RecordStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_unknown_and_filtered_decisions_are_skipped(self, make_runner, recorder):
        records = [
            Record("R1", "ML", Decision.UNKNOWN),
            Record("R2", "ML", Decision.REJECT),
            Record("R3", "ML", Decision.ACCEPT),
        ]
        runner = await make_runner()

        result = await runner.run_decisions(records, process_rejects=False)

        assert [r.status for r in records] == [
            RecordStatus.SKIPPED,
            RecordStatus.SKIPPED,
            RecordStatus.SUCCESS,
        ]
        assert "Skipped R1 (Decision: unknown)" in recorder.lines
        assert result.summary.describe() == "Complete: 1 successful, 0 failed, 2 skipped"

    @pytest.mark.asyncio
    async def test_debug_runs_first_record_only(self, make_runner, page, recorder):
        records = [Record("R1", "ML", Decision.ACCEPT), Record("R2", "ML", Decision.ACCEPT)]
        runner = await make_runner(debug=True)

        result = await runner.run_decisions(records)

        assert records[0].status == RecordStatus.PAUSED_FOR_REVIEW
        assert records[1].status == RecordStatus.PENDING
        assert not page.clicked("input[value='Process']")
        assert "DEBUG MODE: Processing only FIRST record" in recorder.lines
        assert result.summary.paused == 1

    @pytest.mark.asyncio
    async def test_cancel_between_records(self, make_runner, events, recorder):
        """Cancel lets the in-flight record finish and leaves the rest pending."""
        records = [
            Record("R1", "ML", Decision.ACCEPT),
            Record("R2", "ML", Decision.ACCEPT),
            Record("R3", "ML", Decision.ACCEPT),
        ]
        runner = await make_runner()

        def cancel_after_first(event):
            if isinstance(event, StatusChange) and event.status == RecordStatus.SUCCESS:
                runner.cancel()

        events.subscribe(cancel_after_first)

        result = await runner.run_decisions(records)

        assert [r.status for r in records] == [
            RecordStatus.SUCCESS,
            RecordStatus.PENDING,
            RecordStatus.PENDING,
        ]
        assert result.summary.cancelled is True
        assert "Processing cancelled by user." in recorder.lines
        assert recorder.lines[-1] == "Complete: 1 successful, 0 failed (cancelled, 2 not started)"

    @pytest.mark.asyncio
    async def test_finished_records_are_not_reprocessed(self, make_runner, page, recorder):
        done = Record("R1", "ML", Decision.ACCEPT, status=RecordStatus.SUCCESS)
        runner = await make_runner()

        await runner.run_decisions([done])

        assert done.status == RecordStatus.SUCCESS
        assert page.click_count() == 0
        assert "Not processing R1: already success" in recorder.lines


class TestMergeBatch:
    """Test merge batches."""

    @pytest.mark.asyncio
    async def test_existing_output_is_skipped(self, make_runner, page, tmp_path, recorder):
        (tmp_path / "12345-01-01-OVERVIEW.PDF").write_bytes(b"%PDF")
        records = [Record("12345", "ML"), Record("67890", "ML")]
        runner = await make_runner()

        result = await runner.run_merge(records, tmp_path)

        assert records[0].status == RecordStatus.SKIPPED
        assert records[1].status == RecordStatus.SUCCESS
        assert ("fill", "role=textbox", "12345") not in page.calls
        assert (tmp_path / "67890-01-01-OVERVIEW.PDF").exists()
        assert result.summary.describe() == "Complete: 1 successful, 0 failed, 1 skipped"
        assert any(line.startswith("SKIPPED 12345:") for line in recorder.lines)

    @pytest.mark.asyncio
    async def test_downloads_from_this_run_do_not_skip(self, make_runner, tmp_path):
        """Output folder is scanned once, before the first record."""
        records = [Record("1234", "ML"), Record("234", "ML")]
        runner = await make_runner()

        result = await runner.run_merge(records, tmp_path)

        assert [r.status for r in records] == [RecordStatus.SUCCESS, RecordStatus.SUCCESS]
        assert (tmp_path / "234-01-01-OVERVIEW.PDF").exists()
        assert result.summary.skipped == 0

    @pytest.mark.asyncio
    async def test_non_pdf_files_ignored(self, make_runner, tmp_path):
        (tmp_path / "12345-notes.txt").write_text("")
        record = Record("12345", "ML")
        runner = await make_runner()

        await runner.run_merge([record], tmp_path)

        assert record.status == RecordStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_output_dir_created(self, make_runner, tmp_path):
        output = tmp_path / "overviews"
        runner = await make_runner()

        await runner.run_merge([Record("12345", "ML")], output)

        assert (output / "12345-01-01-OVERVIEW.PDF").exists()


class TestBatchSummary:
    """Test summary text."""

    def test_counts_by_status(self):
        records = [
            Record("1", status=RecordStatus.SUCCESS),
            Record("2", status=RecordStatus.FAILED),
            Record("3", status=RecordStatus.SUCCESS),
            Record("4"),
        ]
        summary = BatchSummary.from_records(records)

        assert (summary.success, summary.failed, summary.pending) == (2, 1, 1)
        assert summary.describe() == "Complete: 2 successful, 1 failed"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
