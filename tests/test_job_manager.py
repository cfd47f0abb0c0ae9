"""Tests for JobManager: submission outcomes, listings and state transitions."""

import pytest

from print_gateway.errors import (
    CommandFailed, CommandTimeout, InvalidTransition, NotFoundError,
    SubmissionError, SubmissionOutcomeUnknown, ValidationError
)
from print_gateway.job_manager import JobManager, validate_job_id
from print_gateway.models import PrintJobStatus, PrintOptions

from conftest import JOB_LISTING

ACK = "request id is Office_Printer-42 (1 file(s))\n"


@pytest.fixture
def manager(executor, config):
    return JobManager(executor, config)


@pytest.fixture
def document(tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4 test")
    return str(path)


@pytest.fixture
def queue(executor):
    executor.on("lpstat", "-W", "all", "-o", stdout=JOB_LISTING)
    return executor


class TestSubmit:
    """Tests for JobManager.submit."""

    def test_returns_job_id(self, manager, executor, config, document):
        """A successful lp run yields the id from its acknowledgement."""
        executor.on("lp", "-d", stdout=ACK)
        assert manager.submit("Office_Printer", document, PrintOptions()) == "Office_Printer-42"
        call = executor.calls[0]
        assert call.command == "lp"
        assert call.args[-1] == document
        assert call.timeout == config.submit_timeout

    def test_missing_document(self, manager, executor, tmp_path):
        """A vanished file is reported before lp runs."""
        with pytest.raises(NotFoundError):
            manager.submit("Office_Printer", str(tmp_path / "gone.pdf"), PrintOptions())
        assert executor.calls == []

    @pytest.mark.parametrize("name", ["bad;name", "x y", ""])
    def test_invalid_printer(self, manager, executor, document, name):
        """An unsafe printer name never reaches lp."""
        with pytest.raises(ValidationError):
            manager.submit(name, document, PrintOptions())
        assert executor.calls == []

    def test_timeout_is_unknown_outcome(self, manager, executor, document):
        """A timed-out lp is reported as an unknown outcome, not a failure."""
        executor.on("lp", "-d", error=CommandTimeout("timed out", command="lp", timeout=30))
        with pytest.raises(SubmissionOutcomeUnknown) as exc_info:
            manager.submit("Office_Printer", document, PrintOptions())
        assert not isinstance(exc_info.value, CommandFailed)
        assert exc_info.value.printer_name == "Office_Printer"
        assert exc_info.value.status_code == 504

    def test_non_zero_exit(self, manager, executor, document):
        """A rejected submission propagates as CommandFailed."""
        executor.on("lp", "-d", error=CommandFailed(
            "lp failed", command="lp", stderr="lp: The printer or class does not exist.", exit_code=1))
        with pytest.raises(CommandFailed):
            manager.submit("Office_Printer", document, PrintOptions())

    def test_missing_acknowledgement(self, manager, executor, document):
        """lp output without a job id is a submission error."""
        executor.on("lp", "-d", stdout="")
        with pytest.raises(SubmissionError):
            manager.submit("Office_Printer", document, PrintOptions())


class TestValidateJobId:
    """Tests for validate_job_id."""

    @pytest.mark.parametrize("job_id", ["Office_Printer-42", "Lab-2-17", "P-1"])
    def test_accepts(self, job_id):
        assert validate_job_id(job_id) == job_id

    @pytest.mark.parametrize("job_id", ["42", "Office_Printer", "P-1;rm", "P-x", "P-1\n", None])
    def test_rejects(self, job_id):
        with pytest.raises(ValidationError):
            validate_job_id(job_id)


class TestListings:
    """Tests for list_jobs, list_active, list_history and get_status."""

    def test_list_jobs_with_printer_filter(self, manager, executor):
        """The printer name is passed to lpstat -o."""
        executor.on("lpstat", "-o", stdout=JOB_LISTING.splitlines()[2] + "\n")
        jobs = manager.list_jobs("Office_Printer")
        assert executor.calls[0].args == ["-o", "Office_Printer"]
        assert [job.job_id for job in jobs] == ["Office_Printer-42"]

    def test_list_jobs_rejects_bad_filter(self, manager, executor):
        with pytest.raises(ValidationError):
            manager.list_jobs("a b")
        assert executor.calls == []

    def test_active_excludes_terminal(self, manager, queue):
        """Active jobs are the non-terminal ones."""
        assert [job.job_id for job in manager.list_active()] == [
            "Office_Printer-42", "Office_Printer-43", "Lab-2-17"
        ]
        assert [job.job_id for job in manager.list_active("Lab-2")] == ["Lab-2-17"]

    def test_history_newest_first(self, manager, queue):
        """History holds terminal jobs only, most recent first."""
        history = manager.list_history(50)
        assert [job.job_id for job in history] == ["Lab-2-18", "Office_Printer-41", "Office_Printer-40"]
        assert all(job.status.is_terminal for job in history)

    def test_history_limit(self, manager, queue):
        assert [job.job_id for job in manager.list_history(1)] == ["Lab-2-18"]

    @pytest.mark.parametrize("limit", [0, -1, 501, "10", True])
    def test_history_invalid_limit(self, manager, queue, limit):
        with pytest.raises(ValidationError):
            manager.list_history(limit)

    def test_get_status(self, manager, queue):
        """A known job is returned, an unknown one is None."""
        job = manager.get_status("Office_Printer-43")
        assert job.status == PrintJobStatus.HELD
        assert manager.get_status("Office_Printer-99") is None


class TestTransitions:
    """Tests for cancel, hold and release."""

    def test_cancel_pending(self, manager, queue):
        """Cancelling a live job runs cancel with the id."""
        queue.on("cancel", "Office_Printer-42")
        manager.cancel("Office_Printer-42")
        assert queue.calls[-1].command == "cancel"
        assert queue.calls[-1].args == ["Office_Printer-42"]

    @pytest.mark.parametrize("job_id", ["Office_Printer-40", "Office_Printer-41", "Lab-2-18"])
    def test_cancel_terminal(self, manager, queue, job_id):
        """A finished job cannot be cancelled and no command runs."""
        with pytest.raises(InvalidTransition):
            manager.cancel(job_id)
        assert "cancel" not in queue.commands()

    def test_cancel_unknown(self, manager, queue):
        with pytest.raises(NotFoundError):
            manager.cancel("Office_Printer-99")

    def test_cancel_vanished_during_command(self, manager, queue):
        """cancel reporting a missing job maps to not found."""
        queue.on("cancel", error=CommandFailed(
            "cancel failed", command="cancel",
            stderr="cancel: Job #42 does not exist.", exit_code=1))
        with pytest.raises(NotFoundError):
            manager.cancel("Office_Printer-42")

    def test_hold(self, manager, queue):
        queue.on("lp", "-i")
        manager.hold("Office_Printer-42")
        assert queue.calls[-1].args == ["-i", "Office_Printer-42", "-H", "hold"]

    @pytest.mark.parametrize("job_id", ["Office_Printer-43", "Office_Printer-40"])
    def test_hold_rejected(self, manager, queue, job_id):
        """Held or finished jobs cannot be held."""
        with pytest.raises(InvalidTransition):
            manager.hold(job_id)
        assert "lp" not in queue.commands()

    def test_release(self, manager, queue):
        queue.on("lp", "-i")
        manager.release("Office_Printer-43")
        assert queue.calls[-1].args == ["-i", "Office_Printer-43", "-H", "resume"]

    def test_release_not_held(self, manager, queue):
        with pytest.raises(InvalidTransition) as exc_info:
            manager.release("Office_Printer-42")
        assert exc_info.value.status_code == 409

    def test_mutation_failure_propagates(self, manager, queue):
        """Other command failures are not retried."""
        queue.on("lp", "-i", error=CommandFailed("lp failed", command="lp", stderr="busy", exit_code=1))
        with pytest.raises(CommandFailed):
            manager.hold("Office_Printer-42")
        assert queue.commands().count("lp") == 1
