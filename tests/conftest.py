from datetime import date, time

import pytest

from examslot.models import GenerationConfig, SlotTemplate, Venue

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)


@pytest.fixture()
def one_session():
    return [SlotTemplate(start=time(9, 0), duration_min=180, label="Morning")]


@pytest.fixture()
def make_config(one_session):
    """Two-day window with a single morning session unless overridden."""
    def _make(venues, **overrides):
        params = dict(
            start_date=MONDAY,
            end_date=TUESDAY,
            venues=list(venues),
            time_slot_template=one_session,
        )
        params.update(overrides)
        return GenerationConfig(**params)
    return _make


@pytest.fixture()
def hall():
    return Venue(id="hall", capacity=100, name="Exam Hall 1")
