import pytest

from appserver_https._exceptions import (
    AlreadyConnected,
    CommandFailure,
    CommandSyntaxError,
    ConnectorConfigurationError,
    HostAlreadyConfigured,
    HttpsConvergeError,
    InternalError,
    LoginError,
    LoginTimeout,
    ManagementConnectionError,
    NotConnected,
    SessionError,
    StillConnected,
    UnsafeImplementationSwap,
    ValidationError,
    XmlStructureError,
    format_error,
)


class TestBaseExceptions:
    """Tests for base exceptions."""

    def test_https_converge_error(self):
        message = "base error"
        with pytest.raises(HttpsConvergeError) as exc_info:
            raise HttpsConvergeError(message)
        assert str(exc_info.value) == message
        assert exc_info.value.code == "HTTPS-ERROR-0001"

    def test_internal_error_inheritance(self):
        """InternalError can be caught as HttpsConvergeError and as RuntimeError."""
        with pytest.raises(HttpsConvergeError):
            raise InternalError("bug")
        with pytest.raises(RuntimeError):
            raise InternalError("bug")

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError) as exc_info:
            raise ValidationError("bad option")
        assert isinstance(exc_info.value, HttpsConvergeError)

    def test_code_override_is_per_instance(self):
        error = CommandFailure("failed", code="WILDFLY-HTTPS-ERROR-0009")
        assert error.code == "WILDFLY-HTTPS-ERROR-0009"
        assert CommandFailure.code == "WILDFLY-DEPLOY-ERROR-0019"
        assert CommandFailure("other").code == "WILDFLY-DEPLOY-ERROR-0019"


class TestExceptionParameterized:
    """Parameterized tests for the hierarchy."""

    @pytest.mark.parametrize(
        "exception_class,parent_classes",
        [
            (CommandSyntaxError, [ValidationError, ValueError, HttpsConvergeError]),
            (SessionError, [HttpsConvergeError]),
            (LoginTimeout, [SessionError]),
            (LoginError, [SessionError]),
            (AlreadyConnected, [SessionError]),
            (NotConnected, [SessionError]),
            (StillConnected, [SessionError]),
            (ManagementConnectionError, [HttpsConvergeError]),
            (CommandFailure, [HttpsConvergeError]),
            (ConnectorConfigurationError, [HttpsConvergeError]),
            (HostAlreadyConfigured, [ConnectorConfigurationError]),
            (UnsafeImplementationSwap, [ConnectorConfigurationError]),
            (XmlStructureError, [ConnectorConfigurationError]),
        ],
    )
    def test_inheritance(self, exception_class, parent_classes):
        error = exception_class("message")
        for parent in parent_classes:
            assert isinstance(error, parent)
        assert str(error) == "message"

    def test_codes_are_unique(self):
        classes = [
            HttpsConvergeError,
            InternalError,
            ValidationError,
            CommandSyntaxError,
            SessionError,
            LoginTimeout,
            LoginError,
            AlreadyConnected,
            NotConnected,
            StillConnected,
            ManagementConnectionError,
            CommandFailure,
            ConnectorConfigurationError,
            HostAlreadyConfigured,
            UnsafeImplementationSwap,
            XmlStructureError,
        ]
        codes = [cls.code for cls in classes]
        assert len(codes) == len(set(codes))


def test_command_failure_details():
    error = CommandFailure(
        "could not add",
        command="/subsystem=elytron/key-store=ks:add()",
        failure_description="WFLYCTL0212",
    )
    assert error.command == "/subsystem=elytron/key-store=ks:add()"
    assert error.failure_description == "WFLYCTL0212"


def test_format_error():
    assert format_error("TOMCAT-HTTPS-ERROR-0004", "unsafe") == "TOMCAT-HTTPS-ERROR-0004: unsafe"
