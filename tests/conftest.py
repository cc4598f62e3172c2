import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
src_str = str(ROOT / "src")
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    """Start every test with empty rate-limit counters and no real API keys."""
    from siterelay.security.rate_limit import reset_rate_limits

    for name in (
        "OPENROUTER_API_KEY_1",
        "OPENROUTER_API_KEY_2",
        "OPENROUTER_API_KEY_3",
        "OPENROUTER_API_KEY_4",
        "SITERELAY_RATE_LIMIT_DISABLED",
        "RATE_LIMIT_MAX_REQUESTS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_rate_limits()
    yield
    reset_rate_limits()
