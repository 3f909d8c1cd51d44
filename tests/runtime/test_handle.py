"""Tests for cancellation tokens and the service-side handle."""

import threading

import pytest

from mycoq.core.errors import MycoqError
from mycoq.runtime import handle as handle_mod
from mycoq.runtime.handle import (
    CancellationToken,
    ServiceCancelled,
    ServiceHandle,
    bind_handle,
    current_handle,
    reset_handle,
)


class TestCancellationToken:
    def test_initially_not_cancelled(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.wait(0.01) is False
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        assert token.wait(0) is True
        with pytest.raises(ServiceCancelled):
            token.raise_if_cancelled()

    def test_cancel_wakes_waiter(self):
        token = CancellationToken()
        woke = []
        waiter = threading.Thread(target=lambda: woke.append(token.wait(5)))
        waiter.start()
        token.cancel()
        waiter.join(5)
        assert woke == [True]


class TestServiceHandle:
    def test_report_port_calls_back(self):
        ports = []
        handle = ServiceHandle("payment-service", CancellationToken(), on_port=ports.append)
        handle.report_port("8081")
        assert ports == [8081]

    def test_config_is_read_only(self):
        handle = ServiceHandle("payment-service", CancellationToken(), config={"region": "eu"})
        with pytest.raises(TypeError):
            handle.config["region"] = "us"


class TestCurrentHandle:
    def test_outside_a_service(self):
        with pytest.raises(MycoqError):
            current_handle()

    def test_bind_and_reset(self):
        token = CancellationToken()
        handle = ServiceHandle("payment-service", token)
        reset_token = bind_handle(handle)
        try:
            assert current_handle() is handle
            assert handle_mod.cancelled() is False
            token.cancel()
            assert handle_mod.wait(0) is True
            with pytest.raises(ServiceCancelled):
                handle_mod.raise_if_cancelled()
        finally:
            reset_handle(reset_token)
        with pytest.raises(MycoqError):
            current_handle()
