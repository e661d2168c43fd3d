from functools import lru_cache

from au_payroll.calculator import PayrollCalculator
from au_payroll.core.config import settings
from au_payroll.providers import JsonDataStore
from au_payroll.ruleset import RuleSet
from au_payroll.tax_tables import TaxTableRepository


@lru_cache
def get_store() -> JsonDataStore:
    return JsonDataStore(
        settings.store_path,
        tax_tables=TaxTableRepository(settings.tax_table_dir),
        statutory_rates_path=settings.statutory_rates_path,
    )


def calculator_for(ruleset: RuleSet) -> PayrollCalculator:
    return PayrollCalculator.from_settings(ruleset, settings)
