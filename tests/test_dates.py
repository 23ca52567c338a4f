"""
Tests for SpendMe calendar helpers
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.dates import add_months, month_bounds, month_key, period_start, previous_month_keys


def test_month_bounds():
    assert month_bounds(date(2026, 2, 14)) == (date(2026, 2, 1), date(2026, 2, 28))
    assert month_bounds(date(2028, 2, 3)) == (date(2028, 2, 1), date(2028, 2, 29))
    assert month_bounds(date(2026, 12, 31)) == (date(2026, 12, 1), date(2026, 12, 31))
    print("✓ Month bounds")


def test_period_start():
    assert period_start(date(2026, 10, 19), "month") == date(2026, 10, 1)
    assert period_start(date(2026, 10, 19), "year") == date(2026, 1, 1)
    with pytest.raises(ValueError):
        period_start(date(2026, 10, 19), "week")
    print("✓ Period start")


def test_add_months_clamps_to_month_end():
    """Jan 31 + 1 month lands on the last day of February"""
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)
    assert add_months(date(2026, 3, 31), -1) == date(2026, 2, 28)
    print("✓ add_months clamps")


def test_month_keys():
    assert month_key(date(2026, 3, 9)) == "2026-03"
    assert previous_month_keys(date(2026, 2, 20), 3) == ["2026-01", "2025-12", "2025-11"]
    print("✓ Month keys")


if __name__ == "__main__":
    print("\n🧪 Running SpendMe Date Helper Tests\n")
    print("-" * 50)

    test_month_bounds()
    test_period_start()
    test_add_months_clamps_to_month_end()
    test_month_keys()

    print("-" * 50)
    print("\n✅ All tests passed!\n")
