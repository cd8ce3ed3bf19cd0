"""Tests for monitoring infrastructure"""
import logging
from unittest.mock import MagicMock, patch

from progression.exceptions import CapacityExceeded, StorageError
from progression.observability import metrics
from progression.observability.metrics_middleware import _route_template
from progression.observability.sentry_config import _before_send, init_sentry


class TestSentryIntegration:
    """Test Sentry configuration and integration"""

    def test_sentry_initialization_disabled(self):
        """Test Sentry doesn't initialize when disabled"""
        with patch('progression.config.ENABLE_SENTRY', False):
            with patch('sentry_sdk.init') as mock_init:
                assert init_sentry() is False
                mock_init.assert_not_called()

    def test_sentry_initialization_no_dsn(self):
        """Test Sentry handles missing DSN gracefully"""
        with patch('progression.config.ENABLE_SENTRY', True):
            with patch('progression.config.SENTRY_DSN', ''):
                with patch('sentry_sdk.init') as mock_init:
                    assert init_sentry() is False
                    mock_init.assert_not_called()

    def test_sentry_initialization_enabled(self):
        with patch('progression.config.ENABLE_SENTRY', True):
            with patch('progression.config.SENTRY_DSN', 'https://key@sentry.example/1'):
                with patch('sentry_sdk.init') as mock_init:
                    assert init_sentry() is True
                    kwargs = mock_init.call_args.kwargs
                    assert kwargs["send_default_pii"] is False
                    assert kwargs["release"].startswith("progression-engine@")

    def test_caller_errors_are_dropped(self):
        """4xx domain errors never reach Sentry"""
        error = CapacityExceeded("gym", 20)
        event = {"level": "error"}

        assert _before_send(event, {"exc_info": (type(error), error, None)}) is None

    def test_server_errors_are_sent(self):
        error = StorageError()
        event = {"level": "error"}

        assert _before_send(event, {"exc_info": (type(error), error, None)}) is event
        assert _before_send(event, {}) is event


class TestPrometheusMetrics:
    """Test Prometheus metrics tracking"""

    def test_xp_counter_increments(self):
        before = metrics.xp_awarded_total.labels(source_type="award")._value.get()
        metrics.xp_awarded_total.labels(source_type="award").inc(40)

        assert metrics.xp_awarded_total.labels(source_type="award")._value.get() == before + 40

    def test_route_template_label(self):
        request = MagicMock()
        request.scope = {"route": MagicMock(path="/api/v1/avatar/{user_id}")}
        assert _route_template(request) == "/api/v1/avatar/{user_id}"

        request.scope = {}
        assert _route_template(request) == "unmatched"


def test_domain_errors_log_at_their_level(caplog):
    with caplog.at_level(logging.INFO, logger="progression.exceptions"):
        CapacityExceeded("gym", 20)

    assert any(record.levelno == logging.INFO for record in caplog.records)
