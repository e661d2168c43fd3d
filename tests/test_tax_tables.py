from datetime import date

import pytest

from au_payroll.errors import PayrollValidationError, TaxTableNotFoundError
from au_payroll.models import PayFrequency, Residency
from au_payroll.rates import Rate
from au_payroll.tax_tables import TaxTable, TaxTableRepository, TaxThreshold, financial_year, withhold


def test_available_versions_lists_bundled_years(tax_repo):
    versions = tax_repo.available_versions()

    assert "2023-24" in versions and "2024-25" in versions
    assert versions == sorted(versions)


def test_fortnightly_78000_salary_withholding(tax_repo):
    table = tax_repo.load("2023-24", PayFrequency.FORTNIGHTLY)

    # 5092 + (78000 - 45000) * 0.325 = 15817 a year
    assert withhold(3000.0, PayFrequency.FORTNIGHTLY, table) == 608.35


def test_income_below_tax_free_threshold_withholds_nothing(tax_repo):
    table = tax_repo.load("2024-25", PayFrequency.WEEKLY)

    assert withhold(300.0, PayFrequency.WEEKLY, table) == 0.0
    assert withhold(0.0, PayFrequency.WEEKLY, table) == 0.0


def test_withholding_is_non_decreasing_and_continuous_at_boundaries(tax_repo):
    table = tax_repo.load("2024-25", PayFrequency.MONTHLY)

    amounts = [withhold(income, PayFrequency.MONTHLY, table) for income in range(0, 25000, 50)]
    assert amounts == sorted(amounts)
    for threshold in table.thresholds[1:]:
        below = table.annual_tax(threshold.lower - 0.01)
        at = table.annual_tax(threshold.lower)
        assert at - below < 1.0


def test_residency_scales_differ(tax_repo):
    resident = tax_repo.load("2023-24", PayFrequency.FORTNIGHTLY, Residency.RESIDENT)
    non_resident = tax_repo.load("2023-24", PayFrequency.FORTNIGHTLY, Residency.NON_RESIDENT)
    working_holiday = tax_repo.load("2023-24", PayFrequency.FORTNIGHTLY, Residency.WORKING_HOLIDAY)

    assert withhold(1000, PayFrequency.FORTNIGHTLY, resident) < withhold(1000, PayFrequency.FORTNIGHTLY, working_holiday)
    assert withhold(1000, PayFrequency.FORTNIGHTLY, working_holiday) < withhold(
        1000, PayFrequency.FORTNIGHTLY, non_resident
    )


def test_financial_year_label():
    assert financial_year(date(2024, 6, 30)) == "2023-24"
    assert financial_year(date(2024, 7, 1)) == "2024-25"
    assert financial_year(date(2099, 12, 1)) == "2099-00"


def test_table_with_gap_is_rejected():
    with pytest.raises(PayrollValidationError):
        TaxTable(
            financial_year="bad",
            pay_frequency=PayFrequency.WEEKLY,
            residency=Residency.RESIDENT,
            thresholds=(
                TaxThreshold(0, 18200, 0, Rate.percent(0)),
                TaxThreshold(20000, None, 0, Rate.percent(19)),
            ),
        )


def test_table_with_base_tax_jump_is_rejected():
    with pytest.raises(PayrollValidationError):
        TaxTable(
            financial_year="bad",
            pay_frequency=PayFrequency.WEEKLY,
            residency=Residency.RESIDENT,
            thresholds=(
                TaxThreshold(0, 18200, 0, Rate.percent(0)),
                TaxThreshold(18200, None, 500, Rate.percent(19)),
            ),
        )


def test_load_missing_table_version_raises(tmp_path):
    repo = TaxTableRepository(tmp_path)

    with pytest.raises(TaxTableNotFoundError):
        repo.load("1999-00", PayFrequency.WEEKLY)
