"""Tests for mycoq.core.errors module."""

import pytest

from mycoq.core.errors import (
    ArtifactNotFound,
    ConfigError,
    EntryPointError,
    EntryPointMissing,
    EntryPointNotPublic,
    EntryPointNotStatic,
    EntryPointWrongReturnType,
    ErrorCategory,
    ErrorContext,
    ExecutionFailure,
    InvalidTransitionError,
    LoaderError,
    ManifestInvalid,
    ManifestNotFound,
    MycoqError,
    StopTimeout,
    categorize_error,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context(self):
        ctx = ErrorContext()
        assert ctx.service is None
        assert ctx.to_dict() == {}

    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(service="payment-service", path="/ws/build", metadata={"attempt": 2})
        assert ctx.to_dict() == {"service": "payment-service", "path": "/ws/build", "attempt": 2}


class TestMycoqError:
    """Test the base error class."""

    def test_defaults(self):
        error = MycoqError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_with_context_sets_known_fields_and_metadata(self):
        error = MycoqError("Load failed").with_context(service="user-service", attempt=3)
        assert error.context.service == "user-service"
        assert error.context.metadata == {"attempt": 3}

    def test_cause_is_chained(self):
        cause = OSError("disk gone")
        error = MycoqError("wrapped", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk gone"

    def test_to_dict(self):
        error = LoaderError("bad zip").with_context(service="payment-service")
        data = error.to_dict()
        assert data["error_type"] == "LoaderError"
        assert data["category"] == "LOADER"
        assert data["context"] == {"service": "payment-service"}


class TestTaxonomy:
    """Each failure kind is its own class with its own category."""

    def test_manifest_not_found(self):
        error = ManifestNotFound("payment-service", "/ws/manifests/payment-service.yaml")
        assert error.category == ErrorCategory.MANIFEST
        assert "payment-service" in str(error)
        assert "/ws/manifests/payment-service.yaml" in str(error)

    def test_manifest_invalid_is_config(self):
        assert ManifestInvalid("bad").category == ErrorCategory.CONFIG

    def test_artifact_not_found_tells_caller_to_build(self):
        error = ArtifactNotFound("payment-service", "/ws/build/payment-service/payment-service.pyz")
        assert error.category == ErrorCategory.ARTIFACT
        assert "Please build the service first: mycoq build payment-service" in str(error)
        assert error.context.path.endswith("payment-service.pyz")

    @pytest.mark.parametrize(
        "cls",
        [EntryPointMissing, EntryPointNotPublic, EntryPointNotStatic, EntryPointWrongReturnType],
    )
    def test_entry_point_kinds_are_distinct(self, cls):
        error = cls("nope", service="payment-service", symbol="payment.PaymentApp")
        assert isinstance(error, EntryPointError)
        assert error.category == ErrorCategory.ENTRY_POINT
        assert error.context.symbol == "payment.PaymentApp"
        others = {EntryPointMissing, EntryPointNotPublic, EntryPointNotStatic, EntryPointWrongReturnType} - {cls}
        assert not any(isinstance(error, other) for other in others)

    def test_execution_failure_carries_message(self):
        cause = RuntimeError("card processor unreachable")
        error = ExecutionFailure("payment-service", cause)
        assert error.message == "card processor unreachable"
        assert error.cause is cause
        assert error.context.metadata["exception"] == "RuntimeError"

    def test_execution_failure_without_message_uses_class_name(self):
        assert ExecutionFailure("payment-service", KeyError()).message == "KeyError"

    def test_stop_timeout(self):
        error = StopTimeout("payment-service", 5.0)
        assert "did not stop gracefully" in str(error)
        assert error.context.metadata["timeout_seconds"] == 5.0

    def test_invalid_transition_is_value_error(self):
        error = InvalidTransitionError("STOPPED", "RUNNING", service="payment-service")
        assert isinstance(error, ValueError)
        assert "STOPPED → RUNNING" in str(error)


class TestCategorizeError:
    def test_mycoq_error(self):
        assert categorize_error(ConfigError("x")) == ErrorCategory.CONFIG

    def test_import_error(self):
        assert categorize_error(ModuleNotFoundError("x")) == ErrorCategory.LOADER

    def test_file_not_found(self):
        assert categorize_error(FileNotFoundError("x")) == ErrorCategory.ARTIFACT

    def test_unknown(self):
        assert categorize_error(RuntimeError("x")) == ErrorCategory.UNKNOWN
