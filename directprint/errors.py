"""Error types raised by the DirectPrint job pipeline."""


class AgentError(Exception):
    """Base class for agent errors.

    Attributes:
        code: Machine-readable error category.
    """

    code = "AGENT_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConversionError(AgentError):
    """Converting a document or image to PDF failed.

    Attributes:
        kind: Conversion path ('document' or 'image').
        reason: One of UNSUPPORTED_FORMAT, TOOL_MISSING, TOOL_FAILED, OUTPUT_MISSING.
        detail: Diagnostic text, usually from the external tool.
    """

    code = "CONVERSION_ERROR"

    UNSUPPORTED_FORMAT = "unsupported-format"
    TOOL_MISSING = "tool-missing"
    TOOL_FAILED = "tool-failed"
    OUTPUT_MISSING = "output-missing"

    def __init__(self, kind: str, reason: str, detail: str):
        super().__init__(f"{kind.capitalize()} conversion failed: {detail}")
        self.kind = kind
        self.reason = reason
        self.detail = detail


class PrinterError(AgentError):
    """Error resolving a printer or submitting to the spooler.

    Attributes:
        reason: One of NO_PRINTER, SPOOLER_UNAVAILABLE, SUBMIT_FAILED.
        detail: Diagnostic text from the spooler tools.
        printer_name: Printer involved, if known.
    """

    code = "PRINTER_ERROR"

    NO_PRINTER = "no-printer"
    SPOOLER_UNAVAILABLE = "spooler-unavailable"
    SUBMIT_FAILED = "submit-failed"

    def __init__(self, reason: str, detail: str, printer_name: str | None = None):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
        self.printer_name = printer_name


class JobError(AgentError):
    """A job cannot be processed (unsupported type, undecodable payload)."""

    code = "JOB_ERROR"

    UNSUPPORTED_TYPE = "unsupported-type"
    BAD_PAYLOAD = "bad-payload"

    def __init__(self, message: str, job_id: str, reason: str = UNSUPPORTED_TYPE):
        super().__init__(message)
        self.job_id = job_id
        self.reason = reason


class NetworkError(AgentError):
    """Talking to the cloud hub failed."""

    code = "NETWORK_ERROR"
