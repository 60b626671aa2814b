"""Business dates come from the injected clock, in the portal's timezone."""

from datetime import UTC, date, datetime

from homestay_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_fixed_until_moved(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now() == datetime(2025, 6, 1, 6, 30, tzinfo=UTC)

    def test_advance_days_reaches_the_renewal_window(self):
        clock = DeterministicClock()
        clock.advance_days(276)
        assert clock.today("Asia/Kolkata") == date(2026, 3, 4)

    def test_kolkata_date_runs_ahead_of_utc_late_in_the_day(self):
        clock = DeterministicClock(datetime(2025, 12, 31, 20, 0, tzinfo=UTC))
        assert clock.today() == date(2025, 12, 31)
        assert clock.today("Asia/Kolkata") == date(2026, 1, 1)


class TestSystemClock:
    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
