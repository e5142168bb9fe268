from __future__ import annotations

import pytest

from helpers import make_slopes
from weekly_sma.types import SlopePoint


@pytest.fixture
def positive_slopes() -> list[SlopePoint]:
    return make_slopes([0.5] * 400)
