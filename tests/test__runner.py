import logging

from appserver_https._exceptions import CommandFailure, ValidationError
from appserver_https._runner import EXIT_SUCCESS, EXIT_WILDFLY_HTTPS, run_flow


def test_success_returns_zero(caplog):
    caplog.set_level(logging.INFO)
    calls = []

    async def flow():
        calls.append("ran")

    assert run_flow(flow, name="test flow", exit_code=7) == EXIT_SUCCESS
    assert calls == ["ran"]
    assert "test flow completed successfully" in caplog.text


def test_known_error_is_logged_with_its_code(caplog):
    async def flow():
        raise CommandFailure(
            "There was an error reloading", command="reload", code="WILDFLY-HTTPS-ERROR-0008"
        )

    assert run_flow(flow, name="reload", exit_code=EXIT_WILDFLY_HTTPS) == EXIT_WILDFLY_HTTPS
    assert "WILDFLY-HTTPS-ERROR-0008: There was an error reloading" in caplog.text


def test_class_level_code_is_used(caplog):
    async def flow():
        raise ValidationError("bad options")

    assert run_flow(flow, name="validate", exit_code=2) == 2
    assert "HTTPS-ERROR-0003: bad options" in caplog.text


def test_unexpected_error_is_internal(caplog):
    async def flow():
        raise KeyError("boom")

    assert run_flow(flow, name="broken", exit_code=4) == 4
    assert "HTTPS-ERROR-0002: Unexpected failure in broken" in caplog.text
