# tests/conftest.py
import pytest
from builders import reading_at

@pytest.fixture
def three_readings():
    # 2.0 kW -> 2.2 kW -> 2.4 kW at half-hour steps
    return [reading_at(0, 2.0), reading_at(30, 2.2), reading_at(60, 2.4)]
