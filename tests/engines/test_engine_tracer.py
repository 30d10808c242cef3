"""
Tests for engine tracing: EARNINGS_ENGINE_TRACE records and input fingerprints.
"""

from datetime import date
from decimal import Decimal

from earnings_engines.delivery_goals import compute_delivery_goals
from earnings_engines.tracer import compute_input_fingerprint, traced_engine
from earnings_kernel.domain.inventory import Channel

from tests.builders import CAMPAIGN_END, CAMPAIGN_START, cpm_web


def _traces(captured_logs):
    return [r for r in captured_logs() if r["message"] == "EARNINGS_ENGINE_TRACE"]


class TestFingerprint:

    def test_deterministic(self):
        kwargs = {"start_date": date(2024, 1, 1), "rate": Decimal("10")}
        first = compute_input_fingerprint(("start_date", "rate"), kwargs)
        second = compute_input_fingerprint(("start_date", "rate"), dict(kwargs))
        assert first == second
        assert len(first) == 16

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("rate",), {"rate": Decimal("10")})
        b = compute_input_fingerprint(("rate",), {"rate": Decimal("11")})
        assert a != b

    def test_dict_key_order_ignored(self):
        a = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": Channel.WEB}})
        b = compute_input_fingerprint(("m",), {"m": {"y": Channel.WEB, "x": 1}})
        assert a == b


class TestTracedEngine:

    def test_trace_record(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=21) == 42
        (trace,) = _traces(captured_logs)
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("value",), {"value": 21}
        )
        assert trace["function"].endswith("double")
        assert trace["duration_ms"] >= 0

    def test_delivery_goals_are_traced(self, channels, captured_logs):
        compute_delivery_goals(
            (cpm_web(),),
            start_date=CAMPAIGN_START,
            end_date=CAMPAIGN_END,
            channels=channels,
        )
        traces = [t for t in _traces(captured_logs) if t["engine_name"] == "delivery_goals"]
        assert len(traces) == 1
        assert traces[0]["input_fingerprint"]

    def test_exceptions_propagate_without_trace(self, captured_logs):
        @traced_engine("failing", "1.0")
        def explode():
            raise ValueError("bad input")

        try:
            explode()
        except ValueError as exc:
            assert str(exc) == "bad input"
        else:
            raise AssertionError("expected ValueError")
        assert _traces(captured_logs) == []
