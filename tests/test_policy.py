"""
Tests for TTL resolution (own retention vs. Build snapshot) and duration strings.
"""

import math

import pytest

from domain.retention.policy import EffectiveTTL, format_duration, parse_duration, resolve_ttls
from domain.retention.types import BuildRetention, ConditionStatus

HOUR = 3600.0
MINUTE = 60.0


class TestResolveTTLs:

    def test_no_retention_anywhere(self, make_run):
        ttls = resolve_ttls(make_run())
        assert ttls == EffectiveTTL()
        assert not ttls.has_any()

    def test_inherited_snapshot_only(self, make_run):
        run = make_run(inherited=BuildRetention(ttl_after_failed=2 * HOUR, ttl_after_succeeded=HOUR))
        ttls = resolve_ttls(run)
        assert ttls.ttl_after_failed == 2 * HOUR
        assert ttls.ttl_after_succeeded == HOUR

    def test_own_retention_only(self, make_run):
        run = make_run(ttl_after_failed=10 * MINUTE, ttl_after_succeeded=5 * MINUTE)
        ttls = resolve_ttls(run)
        assert ttls.ttl_after_failed == 10 * MINUTE
        assert ttls.ttl_after_succeeded == 5 * MINUTE

    def test_own_absent_falls_back_to_inherited(self, make_run):
        """Own ttlAfterFailed absent, inherited 2h -> 2h."""
        run = make_run(
            ttl_after_succeeded=MINUTE,
            inherited=BuildRetention(ttl_after_failed=2 * HOUR),
        )
        assert resolve_ttls(run).ttl_after_failed == 2 * HOUR

    def test_own_overrides_inherited(self, make_run):
        """Own ttlAfterFailed 10m wins over inherited 2h."""
        run = make_run(
            ttl_after_failed=10 * MINUTE,
            inherited=BuildRetention(ttl_after_failed=2 * HOUR),
        )
        assert resolve_ttls(run).ttl_after_failed == 10 * MINUTE

    def test_per_outcome_independence(self, make_run):
        run = make_run(
            ttl_after_failed=10 * MINUTE,
            inherited=BuildRetention(ttl_after_failed=2 * HOUR, ttl_after_succeeded=3 * HOUR),
        )
        ttls = resolve_ttls(run)
        assert ttls.ttl_after_failed == 10 * MINUTE
        assert ttls.ttl_after_succeeded == 3 * HOUR

    def test_empty_own_retention_inherits_both(self, make_run):
        run = make_run(own_retention=True, inherited=BuildRetention(ttl_after_succeeded=HOUR))
        ttls = resolve_ttls(run)
        assert ttls.ttl_after_succeeded == HOUR
        assert ttls.ttl_after_failed is None

    def test_for_condition(self):
        ttls = EffectiveTTL(ttl_after_failed=1.0, ttl_after_succeeded=2.0)
        assert ttls.for_condition(ConditionStatus.TRUE) == 2.0
        assert ttls.for_condition(ConditionStatus.FALSE) == 1.0
        assert ttls.for_condition(ConditionStatus.UNKNOWN) is None
        assert ttls.for_condition(None) is None


class TestParseDuration:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1h", HOUR),
            ("30m", 30 * MINUTE),
            ("90s", 90.0),
            ("1h30m", 90 * MINUTE),
            ("1.5h", 90 * MINUTE),
            ("500ms", 0.5),
            ("0", 0.0),
            ("120", 120.0),
            (45, 45.0),
            (2.5, 2.5),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_duration(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", "-1h", "1x", "h", "1h-5m", "abc", -3, True, None, math.inf])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_duration(raw)


class TestFormatDuration:

    def test_none(self):
        assert format_duration(None) is None

    @pytest.mark.parametrize(
        "seconds,expected",
        [(HOUR, "1h"), (90 * MINUTE, "1h30m"), (45.0, "45s"), (0.0, "0s"), (3661.0, "1h1m1s")],
    )
    def test_render(self, seconds, expected):
        assert format_duration(seconds) == expected
