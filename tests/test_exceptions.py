"""Tests for exception handling."""

from intake_core.exceptions import (
    APIException,
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)


def test_api_exception():
    """Test base APIException."""
    exc = APIException("Test error", status_code=400, code="TEST_ERROR")
    assert exc.message == "Test error"
    assert exc.status_code == 400
    assert exc.code == "TEST_ERROR"
    assert exc.to_dict()["error"]["message"] == "Test error"
    assert exc.headers is None


def test_authentication_error():
    """Test AuthenticationError."""
    exc = AuthenticationError("Invalid credentials")
    assert exc.status_code == 401
    assert exc.code == "AUTHENTICATION_ERROR"
    assert exc.headers == {"WWW-Authenticate": "Bearer"}


def test_authorization_error():
    """Test AuthorizationError."""
    exc = AuthorizationError("Access denied")
    assert exc.status_code == 403
    assert exc.code == "AUTHORIZATION_ERROR"


def test_validation_error():
    """Test ValidationError."""
    errors = {"law_firm_id": ["required"]}
    exc = ValidationError("Validation failed", errors=errors)
    assert exc.status_code == 422
    assert exc.code == "VALIDATION_ERROR"
    assert exc.details["validation_errors"] == errors


def test_not_found_error():
    """Test NotFoundError."""
    exc = NotFoundError("Lead", resource_id="123")
    assert exc.status_code == 404
    assert exc.code == "NOT_FOUND"
    assert "Lead not found with id: 123" in exc.message


def test_database_error():
    exc = DatabaseError("Connection failed")
    assert exc.status_code == 500
    assert exc.code == "DATABASE_ERROR"


def test_external_service_error():
    """Test ExternalServiceError."""
    exc = ExternalServiceError("tavus", "Service unavailable")
    assert exc.status_code == 502
    assert exc.code == "EXTERNAL_SERVICE_ERROR"
    assert exc.details["service"] == "tavus"


def test_rate_limit_error():
    """Rate limit errors use the flat body the intake front end reads."""
    exc = RateLimitError(retry_after=42, headers={"Retry-After": "42"})
    assert exc.status_code == 429
    assert exc.code == "RATE_LIMIT_EXCEEDED"
    assert exc.details["retry_after"] == 42
    assert exc.headers["Retry-After"] == "42"
    assert exc.to_dict() == {
        "error": "Too many requests",
        "message": "Rate limit exceeded. Please try again later.",
        "retryAfter": 42,
    }
