from __future__ import annotations

from datetime import datetime

import pytest
from common.utils import now_utc, now_utc_iso, utc_after

pytestmark = pytest.mark.unit


def test_now_utc_iso_returns_parseable_utc_timestamp() -> None:
    parsed = datetime.fromisoformat(now_utc_iso())
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() is not None
    assert parsed.utcoffset().total_seconds() == 0


def test_utc_after_is_offset_from_now() -> None:
    before = now_utc()
    later = utc_after(60)
    delta = (later - before).total_seconds()
    assert 59 <= delta <= 61
    assert later.utcoffset().total_seconds() == 0
