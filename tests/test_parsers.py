"""Tests for the lpstat / lpoptions / lp output parsers."""

import pytest

from print_gateway import parsers
from print_gateway.errors import ParseError, SubmissionError
from print_gateway.models import PrinterStatus, PrintJobStatus

from conftest import PRINTER_LIST, JOB_LISTING


class TestPrinterList:
    """Tests for parse_printer_list."""

    def test_parses_idle_printer(self):
        """The canonical lpstat -p line yields name and idle status."""
        printers = parsers.parse_printer_list("printer Office_Printer is idle.  enabled since ...")
        assert len(printers) == 1
        assert printers[0].name == "Office_Printer"
        assert printers[0].status == PrinterStatus.IDLE

    def test_now_printing_and_disabled(self):
        """'now printing' maps to printing and 'disabled' to stopped."""
        text = PRINTER_LIST + "printer Broken disabled since Mon 01 Jan 2024 -\n\treason unknown\n"
        printers = parsers.parse_printer_list(text)
        assert [(p.name, p.status) for p in printers] == [
            ("Office_Printer", PrinterStatus.IDLE),
            ("Lab-2", PrinterStatus.PRINTING),
            ("Broken", PrinterStatus.STOPPED),
        ]

    def test_unknown_status_and_garbage_lines(self):
        """Unmatched lines are skipped and unrecognised states become unknown."""
        text = "lpstat: something odd\nprinter Odd is warming-up.\n\n\n"
        printers = parsers.parse_printer_list(text)
        assert len(printers) == 1
        assert printers[0].status == PrinterStatus.UNKNOWN

    def test_empty_output(self):
        """No output means no printers."""
        assert parsers.parse_printer_list("") == []


class TestDefaultPrinter:
    """Tests for parse_default_printer and apply_default."""

    def test_default_sets_exactly_one(self):
        """Only the printer named by the default line is flagged."""
        printers = parsers.parse_printer_list(PRINTER_LIST)
        default = parsers.parse_default_printer("system default destination: Office_Printer\n")
        parsers.apply_default(printers, default)
        assert [p.name for p in printers if p.is_default] == ["Office_Printer"]

    def test_no_default_line(self):
        """Absence of the default line leaves all printers non-default."""
        printers = parsers.parse_printer_list(PRINTER_LIST)
        default = parsers.parse_default_printer("no system default destination\n")
        assert default is None
        parsers.apply_default(printers, default)
        assert not any(p.is_default for p in printers)


class TestCapabilities:
    """Tests for parse_capabilities."""

    LPOPTIONS = (
        "PageSize/Media Size: Letter *A4 Legal A3 A4\n"
        "ColorModel/Color Mode: *Gray RGB\n"
        "Duplex/2-Sided Printing: *None DuplexNoTumble DuplexTumble\n"
        "Collate/Collate: True *False\n"
        "MediaType/Media Type: *Plain Glossy\n"
    )

    def test_parses_options_without_selected_tokens(self):
        """Selected '*' tokens are dropped and duplicates removed."""
        caps = parsers.parse_capabilities(self.LPOPTIONS)
        assert caps.paper_sizes == ["Letter", "Legal", "A3", "A4"]
        assert caps.color_modes == ["RGB"]
        assert caps.duplex_modes == ["DuplexNoTumble", "DuplexTumble"]
        assert caps.collate_supported is True
        assert caps.qualities == ["Draft", "Normal", "High"]

    def test_fallback_when_nothing_recognised(self):
        """Empty output yields the fixed fallback set, never empty lists."""
        caps = parsers.parse_capabilities("\n\n")
        assert caps.paper_sizes == ["A4", "Letter", "Legal", "A3"]
        assert caps.color_modes == ["Color", "Gray"]
        assert caps.duplex_modes == ["None"]
        assert caps.collate_supported is False

    def test_color_duplex_line_lands_in_one_bucket(self):
        """An option named ColorDuplex is classified as duplex only."""
        caps = parsers.parse_capabilities("ColorDuplex/Color Duplex: *Off On\n")
        assert caps.duplex_modes == ["On"]
        assert caps.color_modes == ["Color", "Gray"]

    def test_media_used_when_no_page_size(self):
        """A Media line supplies paper sizes when there is no PageSize line."""
        caps = parsers.parse_capabilities("media/Media: *A4 Letter Tabloid\n")
        assert caps.paper_sizes == ["Letter", "Tabloid"]

    def test_to_dict_keys(self):
        """Serialised capabilities use the API field names."""
        data = parsers.parse_capabilities(self.LPOPTIONS).to_dict()
        assert set(data) == {"paperSizes", "colorModes", "duplexModes", "qualities", "collateSupported"}


class TestPrinterDetails:
    """Tests for parse_printer_details and lpoptions parsing."""

    LPSTAT_LONG = (
        "printer Office_Printer is idle.  enabled since Mon 01 Jan 2024 10:00:00 AM UTC\n"
        "\tForm mounted:\n"
        "\tDescription: Second floor laser\n"
        "\tAlerts: none\n"
        "\tLocation: Room 101\n"
        "\tConnection: direct\n"
    )

    def test_parses_block(self):
        """Description and location are read from the indented block."""
        details = parsers.parse_printer_details(self.LPSTAT_LONG, "Office_Printer")
        assert details.status == PrinterStatus.IDLE
        assert details.description == "Second floor laser"
        assert details.location == "Room 101"
        assert details.state_message is None

    def test_state_message(self):
        """The first indented line without a colon is the state message."""
        text = "printer P1 disabled since Mon -\n\tPaused by admin\n\tLocation: Lab\n"
        details = parsers.parse_printer_details(text, "P1")
        assert details.status == PrinterStatus.STOPPED
        assert details.state_message == "Paused by admin"

    def test_full_lpstat_block_has_no_state_message(self):
        """List items and flag lines further down the block are not state messages."""
        text = (
            "printer Office_Printer is idle.  enabled since Mon 01 Jan 2024 10:00:00 AM UTC\n"
            "\tForm mounted:\n"
            "\tContent types: any\n"
            "\tPrinter types: unknown\n"
            "\tDescription: Second floor laser\n"
            "\tAlerts: none\n"
            "\tLocation: Room 101\n"
            "\tConnection: direct\n"
            "\tInterface: /etc/cups/ppd/Office_Printer.ppd\n"
            "\tOn fault: no alert\n"
            "\tAfter fault: continue\n"
            "\tUsers allowed:\n"
            "\t\t(all)\n"
            "\tForms allowed:\n"
            "\t\t(none)\n"
            "\tBanner required\n"
            "\tCharset sets:\n"
            "\t\t(none)\n"
            "\tDefault pitch:\n"
        )
        details = parsers.parse_printer_details(text, "Office_Printer")
        assert details.state_message is None
        assert details.description == "Second floor laser"
        assert details.location == "Room 101"

    def test_state_message_before_attributes_only(self):
        """The reason line right after the header is kept, later lines are not."""
        text = "printer P1 disabled since Mon -\n\tPaused by admin\n\tUsers allowed:\n\t\t(all)\n"
        assert parsers.parse_printer_details(text, "P1").state_message == "Paused by admin"

    def test_missing_printer(self):
        """A block for another printer is not returned."""
        assert parsers.parse_printer_details(self.LPSTAT_LONG, "Other") is None

    def test_lpoptions_quoted_values(self):
        """Quoted key=value pairs from lpoptions -p are unquoted."""
        options = parsers.parse_lpoptions(
            "copies=1 device-uri=ipp://10.0.0.5/ipp/print "
            "printer-info='Office Printer' printer-is-accepting-jobs=true "
            "printer-make-and-model='HP LaserJet 400 M401'"
        )
        assert options["printer-make-and-model"] == "HP LaserJet 400 M401"
        assert options["printer-info"] == "Office Printer"
        assert options["device-uri"] == "ipp://10.0.0.5/ipp/print"

    def test_lpoptions_unbalanced_quotes(self):
        """Unbalanced quotes fall back to whitespace splitting."""
        options = parsers.parse_lpoptions("copies=1 printer-info='Broken")
        assert options["copies"] == "1"


class TestJobList:
    """Tests for parse_job_list and derive_printer_name."""

    def test_statuses(self):
        """Missing suffix means pending; suffixes map onto job states."""
        jobs = {job.job_id: job for job in parsers.parse_job_list(JOB_LISTING)}
        assert jobs["Office_Printer-42"].status == PrintJobStatus.PENDING
        assert jobs["Office_Printer-43"].status == PrintJobStatus.HELD
        assert jobs["Office_Printer-40"].status == PrintJobStatus.COMPLETED
        assert jobs["Office_Printer-41"].status == PrintJobStatus.CANCELLED
        assert jobs["Lab-2-18"].status == PrintJobStatus.ABORTED

    def test_fields(self):
        """Username, size and the opaque timestamp are kept as given."""
        job = parsers.parse_job_list(JOB_LISTING)[2]
        assert job.printer_name == "Office_Printer"
        assert job.username == "alice"
        assert job.size_bytes == 4096
        assert job.submitted_at == "Mon 01 Jan 2024 10:00:00 AM UTC"

    def test_printer_name_with_numeric_suffix(self):
        """The last -digits component is the sequence number."""
        assert parsers.derive_printer_name("Lab-2-17") == "Lab-2"
        assert parsers.derive_printer_name("Office_Printer") is None

    def test_skips_malformed_lines(self):
        """Lines that do not fit the grammar are ignored."""
        text = "lpstat: error\n\tStatus: waiting\nOffice_Printer-44 dave big Mon\n" + JOB_LISTING
        assert len(parsers.parse_job_list(text)) == 6

    def test_unknown_status_word(self):
        """An unrecognised status suffix becomes unknown."""
        job = parsers.parse_job_line("P-1 u 10 Mon 01 Jan - stalled")
        assert job.status == PrintJobStatus.UNKNOWN


class TestSubmission:
    """Tests for parse_submission and parse_scheduler_running."""

    def test_extracts_job_id(self):
        """The request id line yields the job id."""
        assert parsers.parse_submission("request id is Office_Printer-42 (1 file(s))\n") == "Office_Printer-42"

    @pytest.mark.parametrize("output", ["", "lp: printed\n", "request id is Office_Printer (1 file(s))"])
    def test_missing_job_id_is_fatal(self, output):
        """No usable job id raises SubmissionError."""
        with pytest.raises(SubmissionError):
            parsers.parse_submission(output)

    def test_submission_error_is_parse_error(self):
        """SubmissionError belongs to the parse error family."""
        assert issubclass(SubmissionError, ParseError)

    def test_scheduler_running(self):
        """Only 'scheduler is running' counts as online."""
        assert parsers.parse_scheduler_running("scheduler is running\n") is True
        assert parsers.parse_scheduler_running("scheduler is not running\n") is False
        assert parsers.parse_scheduler_running("") is False
