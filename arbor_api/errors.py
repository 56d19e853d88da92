"""Error types for the Arbor API client.

Every failure surfaced by the REST, web services and SOAP clients is an
``ArborApiError`` subclass carrying an ``ArborErrorClass`` so callers can
branch on the kind of failure without string matching.
"""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class ArborErrorClass(str, Enum):
    """Classification of client errors.

    - TRANSPORT: Network or connection failure
    - DECODING: Response body could not be decoded
    - HTTP_STATUS: Remote returned a status code >= 300
    - NO_DATA: Successful response with an empty body
    - PAGING: Pagination metadata present but unparsable
    - QUERY: Legacy XML query rejected with error lines
    - SOAP_FAULT: SOAP endpoint returned a fault
    - GRAPH: Graph response was neither an image nor an error report
    - UNSUPPORTED: Operation not offered by the selected protocol
    - CANCELLED: Fetch abandoned before all pages completed
    """

    TRANSPORT = "TRANSPORT"
    DECODING = "DECODING"
    HTTP_STATUS = "HTTP_STATUS"
    NO_DATA = "NO_DATA"
    PAGING = "PAGING"
    QUERY = "QUERY"
    SOAP_FAULT = "SOAP_FAULT"
    GRAPH = "GRAPH"
    UNSUPPORTED = "UNSUPPORTED"
    CANCELLED = "CANCELLED"


ErrorDetails = dict[str, str | int | bool | None]


class ArborApiError(Exception):
    """Base exception for Arbor API errors.

    Provides structured error information for logging and reporting.
    """

    error_class: ArborErrorClass = ArborErrorClass.TRANSPORT

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: ErrorDetails | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            url: Request URL (credentials redacted) if known.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.message = message
        self.url = url
        self.details = details or {}

    @property
    def messages(self) -> list[str]:
        """Get all error messages for this failure."""
        return [self.message]

    def to_dict(self) -> dict[str, str | list[str] | ErrorDetails | None]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "messages": self.messages,
            "url": self.url,
            "details": self.details,
        }


class TransportError(ArborApiError):
    """Network or connection failure. Never retried by the client."""

    error_class = ArborErrorClass.TRANSPORT


class DecodingError(ArborApiError):
    """Response body was not valid JSON or XML."""

    error_class = ArborErrorClass.DECODING


class NoDataError(ArborApiError):
    """Server answered successfully but returned no data."""

    error_class = ArborErrorClass.NO_DATA

    def __init__(self, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            url: Request URL if known.
        """
        super().__init__("Server returned no data.", url=url)


class HttpStatusError(ArborApiError):
    """Remote rejected the request with a status code >= 300.

    ``messages`` holds the values extracted from the ``errors`` array of the
    response envelope, or a single status line when there is none.
    """

    error_class = ArborErrorClass.HTTP_STATUS

    def __init__(
        self,
        code: int,
        messages: list[str] | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize the status error.

        Args:
            code: HTTP status code.
            messages: Messages extracted from the error envelope.
            url: Request URL if known.
        """
        self.code = code
        self._messages = list(messages) if messages else [status_message(code)]
        super().__init__(
            "; ".join(self._messages),
            url=url,
            details={"status_code": code},
        )

    @property
    def messages(self) -> list[str]:
        """Get the extracted error messages."""
        return list(self._messages)


class PagingError(ArborApiError):
    """Pagination metadata was present but could not be parsed."""

    error_class = ArborErrorClass.PAGING

    def __init__(self, message: str, last_link: object = None) -> None:
        """Initialize the paging error.

        Args:
            message: Human-readable error message.
            last_link: The offending ``links.last`` value.
        """
        super().__init__(message, details={"last_link": repr(last_link)})
        self.last_link = last_link


class QueryError(ArborApiError):
    """Traffic query rejected; the response carried ``error-line`` entries."""

    error_class = ArborErrorClass.QUERY

    def __init__(self, messages: list[str], url: str | None = None) -> None:
        """Initialize the query error.

        Args:
            messages: Text of each error line.
            url: Request URL if known.
        """
        self._messages = list(messages)
        super().__init__("\n".join(self._messages), url=url)

    @property
    def messages(self) -> list[str]:
        """Get the error lines."""
        return list(self._messages)


class SoapFaultError(ArborApiError):
    """SOAP endpoint answered with a fault."""

    error_class = ArborErrorClass.SOAP_FAULT

    def __init__(
        self,
        message: str,
        operation: str,
        fault_code: str | None = None,
        fault_reason: str | None = None,
    ) -> None:
        """Initialize the fault error.

        Args:
            message: Human-readable error message.
            operation: SOAP operation that faulted.
            fault_code: Fault code value, if present.
            fault_reason: Fault reason text, if present.
        """
        super().__init__(
            message,
            details={
                "operation": operation,
                "fault_code": fault_code,
                "fault_reason": fault_reason,
            },
        )
        self.operation = operation
        self.fault_code = fault_code
        self.fault_reason = fault_reason


class GraphError(ArborApiError):
    """Graph request returned neither a PNG image nor error lines."""

    error_class = ArborErrorClass.GRAPH


class UnsupportedOperationError(ArborApiError):
    """Operation not offered by the selected traffic protocol."""

    error_class = ArborErrorClass.UNSUPPORTED


class FetchCancelledError(ArborApiError):
    """Paginated fetch abandoned before all pages completed."""

    error_class = ArborErrorClass.CANCELLED


def status_message(code: int) -> str:
    """Build the generic message for a failed status code."""
    return f"Arbor Leader returned status code: {code}"


class ErrorRecord(BaseModel):
    """Serializable error record attached to partial results."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: ArborErrorClass = Field(description="Error classification")
    message: Annotated[str, Field(min_length=1, description="Error message")]
    messages: list[str] = Field(default_factory=list, description="All messages")
    page: int | None = Field(default=None, ge=1, description="Failed page number")
    status_code: int | None = Field(default=None, description="HTTP status code")

    @classmethod
    def from_exception(cls, error: ArborApiError, page: int | None = None) -> "ErrorRecord":
        """Create an ErrorRecord from an ArborApiError.

        Args:
            error: The exception to convert.
            page: Page number the error belongs to.

        Returns:
            ErrorRecord instance.
        """
        status_code = error.code if isinstance(error, HttpStatusError) else None
        return cls(
            error_class=error.error_class,
            message=error.message or error.error_class.value,
            messages=error.messages,
            page=page,
            status_code=status_code,
        )
