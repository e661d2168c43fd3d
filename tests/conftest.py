import os

# in-memory database for every test session, set before the package reads its settings
os.environ.setdefault("AU_PAYROLL_DATABASE_URL", "sqlite://")

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402

from au_payroll.models import PayFrequency, PayPeriod, TimesheetEntry  # noqa: E402
from au_payroll.providers import JsonDataStore  # noqa: E402
from au_payroll.tax_tables import TaxTableRepository  # noqa: E402

DATA_DIR = os.path.join(os.path.dirname(__file__), os.pardir, "src", "au_payroll", "data")


def make_entry(entry_id, start, end, rate=25.0, employee_id="E002", status="Approved"):
    return TimesheetEntry(
        id=entry_id,
        employee_id=employee_id,
        start=datetime.fromisoformat(start),
        end=datetime.fromisoformat(end),
        hourly_rate=rate,
        status=status,
    )


@pytest.fixture
def store():
    return JsonDataStore(os.path.join(DATA_DIR, "sample_store.json"))


@pytest.fixture
def tax_repo():
    return TaxTableRepository()


@pytest.fixture
def june_fortnight():
    return PayPeriod(start=date(2024, 6, 1), end=date(2024, 6, 14), frequency=PayFrequency.FORTNIGHTLY)
