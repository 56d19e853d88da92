"""Unit tests for client error types."""

import pytest
from pydantic import ValidationError

from arbor_api.errors import (
    ArborApiError,
    ArborErrorClass,
    DecodingError,
    ErrorRecord,
    FetchCancelledError,
    GraphError,
    HttpStatusError,
    NoDataError,
    PagingError,
    QueryError,
    SoapFaultError,
    TransportError,
    UnsupportedOperationError,
)


class TestErrorClasses:
    """Tests for the classification of each error type."""

    @pytest.mark.parametrize(
        ("error", "error_class"),
        [
            (TransportError("down"), ArborErrorClass.TRANSPORT),
            (DecodingError("bad json"), ArborErrorClass.DECODING),
            (NoDataError(), ArborErrorClass.NO_DATA),
            (HttpStatusError(404), ArborErrorClass.HTTP_STATUS),
            (PagingError("bad last", "x"), ArborErrorClass.PAGING),
            (QueryError(["bad"]), ArborErrorClass.QUERY),
            (SoapFaultError("fault", "runXmlQuery"), ArborErrorClass.SOAP_FAULT),
            (GraphError("no image"), ArborErrorClass.GRAPH),
            (UnsupportedOperationError("no"), ArborErrorClass.UNSUPPORTED),
            (FetchCancelledError("late"), ArborErrorClass.CANCELLED),
        ],
    )
    def test_error_class(self, error: ArborApiError, error_class: ArborErrorClass) -> None:
        """Every error type carries its classification."""
        assert isinstance(error, ArborApiError)
        assert error.error_class == error_class


class TestHttpStatusError:
    """Tests for HttpStatusError."""

    def test_default_message_names_status(self) -> None:
        """Without messages the status line is used."""
        error = HttpStatusError(503)

        assert error.messages == ["Arbor Leader returned status code: 503"]
        assert error.details == {"status_code": 503}

    def test_messages_are_joined(self) -> None:
        """Extracted messages are kept and joined into the message."""
        error = HttpStatusError(422, ["a", "b"], url="https://leader/api/sp/x/")

        assert error.messages == ["a", "b"]
        assert error.message == "a; b"
        assert str(error) == "a; b"

    def test_messages_are_copied(self) -> None:
        """The messages list cannot be changed from outside."""
        error = HttpStatusError(400, ["a"])

        error.messages.append("b")

        assert error.messages == ["a"]


class TestToDict:
    """Tests for structured error output."""

    def test_to_dict(self) -> None:
        """to_dict includes class, messages, url and details."""
        error = QueryError(["line 1", "line 2"], url="https://leader/arborws/traffic/")

        assert error.to_dict() == {
            "error_class": "QUERY",
            "message": "line 1\nline 2",
            "messages": ["line 1", "line 2"],
            "url": "https://leader/arborws/traffic/",
            "details": {},
        }

    def test_paging_error_records_last_link(self) -> None:
        """The offending links.last is kept for logging."""
        error = PagingError("bad", last_link=42)

        assert error.last_link == 42
        assert error.to_dict()["details"] == {"last_link": "42"}

    def test_soap_fault_details(self) -> None:
        """SOAP faults keep the operation, code and reason."""
        error = SoapFaultError("fault", "runXmlQuery", fault_code="env:Sender", fault_reason="x")

        assert error.details == {
            "operation": "runXmlQuery",
            "fault_code": "env:Sender",
            "fault_reason": "x",
        }


class TestErrorRecord:
    """Tests for ErrorRecord."""

    def test_from_status_error(self) -> None:
        """Status errors keep their code and page."""
        record = ErrorRecord.from_exception(HttpStatusError(500), page=3)

        assert record.error_class == ArborErrorClass.HTTP_STATUS
        assert record.status_code == 500
        assert record.page == 3
        assert record.messages == ["Arbor Leader returned status code: 500"]

    def test_from_other_error(self) -> None:
        """Other errors have no status code."""
        record = ErrorRecord.from_exception(TransportError("reset by peer"))

        assert record.status_code is None
        assert record.message == "reset by peer"

    def test_is_frozen(self) -> None:
        """Records cannot be modified."""
        record = ErrorRecord.from_exception(NoDataError())

        with pytest.raises(ValidationError):
            record.page = 2  # type: ignore[misc]
