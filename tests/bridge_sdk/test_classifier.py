"""Tests for response classification and warning tagging."""

import logging

import httpx
import pytest

from BridgeSDK.errors import (
    AuthenticationFailed,
    BridgeHTTPError,
    Conflict,
    ConsentRequired,
    Forbidden,
    NotFound,
    ServerError,
    TransportError,
    UnsupportedVersion,
    ValidationFailed,
)
from BridgeSDK.rest.classifier import (
    WARNINGS_EXTENSION,
    classify_response,
    create_classifier_stage,
    create_warning_stage,
    response_warnings,
)


def _response(status, **kwargs):
    return httpx.Response(status, request=httpx.Request("GET", "https://bridge.test/v3/x"), **kwargs)


class TestClassifyResponse:
    """Test status code to error mapping."""

    @pytest.mark.parametrize("status", [200, 201, 204, 302])
    def test_success_passes_through(self, status):
        response = _response(status)
        assert classify_response(response) is response

    @pytest.mark.parametrize(
        "status, error_type",
        [
            (401, AuthenticationFailed),
            (403, Forbidden),
            (404, NotFound),
            (409, Conflict),
            (410, UnsupportedVersion),
            (418, BridgeHTTPError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_mapping(self, status, error_type):
        with pytest.raises(error_type) as excinfo:
            classify_response(_response(status, json={"message": "nope"}))
        assert type(excinfo.value) is error_type
        assert excinfo.value.status_code == status
        assert excinfo.value.args[0] == "nope"

    def test_validation_errors_are_collected(self):
        body = {
            "message": "Participant is invalid",
            "errors": {"email": ["email is required"], "phone": "phone is invalid"},
        }
        with pytest.raises(ValidationFailed) as excinfo:
            classify_response(_response(400, json=body))

        error = excinfo.value
        assert error.errors == {"email": ["email is required"], "phone": ["phone is invalid"]}
        assert error.body == body
        assert str(error) == "Participant is invalid (HTTP 400)"

    def test_non_json_body_falls_back_to_reason_phrase(self):
        with pytest.raises(NotFound) as excinfo:
            classify_response(_response(404, content=b"<html>gone</html>"))
        assert excinfo.value.args[0] == "Not Found"
        assert excinfo.value.body == {}

    def test_consent_required_carries_session(self):
        body = {"sessionToken": "abc", "email": "a@b.org", "consented": False}
        with pytest.raises(ConsentRequired) as excinfo:
            classify_response(_response(412, json=body))

        session = excinfo.value.session
        assert session is not None
        assert session.session_token == "abc"
        assert session.consented is False

    def test_consent_required_without_session(self):
        with pytest.raises(ConsentRequired) as excinfo:
            classify_response(_response(412, json={"message": "consent"}))
        assert excinfo.value.session is None

    def test_server_error_keeps_headers(self):
        with pytest.raises(ServerError) as excinfo:
            classify_response(_response(503, headers={"Retry-After": "7"}))
        assert excinfo.value.headers["retry-after"] == "7"
        assert excinfo.value.retryable is True


class TestClassifierStage:
    """Test the stage wrapper."""

    def test_transport_failure_becomes_transport_error(self):
        stage = create_classifier_stage()
        request = httpx.Request("GET", "https://bridge.test/v3/x?token=secret")

        def fail(_):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(TransportError) as excinfo:
            stage(request, fail)

        assert isinstance(excinfo.value.__cause__, httpx.ConnectTimeout)
        assert "secret" not in str(excinfo.value)
        assert excinfo.value.retryable is True

    def test_typed_error_raised_from_stage(self):
        stage = create_classifier_stage()
        request = httpx.Request("GET", "https://bridge.test/v3/x")

        with pytest.raises(AuthenticationFailed):
            stage(request, lambda r: httpx.Response(401, request=r))


class TestWarningStage:
    """Test deprecation and Warning header tagging."""

    def test_deprecated_header_tagged(self):
        response = _response(200, headers={"Bridge-Api-Status": "Deprecated"})
        assert response_warnings(response) == ["this endpoint is deprecated and may be removed"]

    def test_warning_headers_collected(self):
        response = _response(200, headers=[("Warning", "299 - first"), ("Warning", "299 - second")])
        assert response_warnings(response) == ["299 - first", "299 - second"]

    def test_no_warnings(self):
        assert response_warnings(_response(200)) == []

    def test_stage_tags_extension_and_logs_once(self, caplog):
        stage = create_warning_stage()
        request = httpx.Request("GET", "https://bridge.test/v3/old")

        def call_next(r):
            return httpx.Response(200, headers={"Bridge-Api-Status": "deprecated"}, request=r)

        with caplog.at_level(logging.WARNING, logger="BridgeSDK.rest.classifier"):
            first = stage(request, call_next)
            second = stage(request, call_next)

        assert first.extensions[WARNINGS_EXTENSION] == [
            "this endpoint is deprecated and may be removed"
        ]
        assert WARNINGS_EXTENSION in second.extensions
        records = [r for r in caplog.records if "deprecated" in r.getMessage()]
        assert len(records) == 1
