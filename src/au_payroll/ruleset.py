from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import AwardNotFoundError, DataError, TaxTableNotFoundError
from .models import Award, AwardRule, ContributionType, EmploymentType, PayFrequency, Residency, StatutoryRate
from .tax_tables import TaxTable

TaxTableKey = Tuple[str, PayFrequency, Residency]


@dataclass(frozen=True)
class RuleSet:
    """Read-only snapshot of awards, rules, tax tables and statutory rates.

    A payroll run loads one snapshot up front and shares it between every
    employee calculation. Reloading means building a new snapshot.
    """

    awards: Mapping[str, Award]
    rules: Mapping[str, Tuple[AwardRule, ...]]
    tax_tables: Mapping[TaxTableKey, TaxTable]
    statutory_rates: Tuple[StatutoryRate, ...] = ()
    public_holidays: FrozenSet[date] = frozenset()
    version: str = "default"
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    @classmethod
    def build(
        cls,
        awards: Iterable[Award] = (),
        rules: Iterable[AwardRule] = (),
        tax_tables: Iterable[TaxTable] = (),
        statutory_rates: Iterable[StatutoryRate] = (),
        public_holidays: Iterable[date] = (),
        version: str = "default",
    ) -> "RuleSet":
        grouped: Dict[str, List[AwardRule]] = {}
        for rule in rules:
            grouped.setdefault(rule.award_id, []).append(rule)
        frozen_rules = {
            award_id: tuple(sorted(award_rules, key=lambda r: (-r.priority, r.id)))
            for award_id, award_rules in grouped.items()
        }

        unique_rates: Dict[str, StatutoryRate] = {}
        for rate in statutory_rates:
            unique_rates.setdefault(rate.id, rate)

        return cls(
            awards=MappingProxyType({award.id: award for award in awards}),
            rules=MappingProxyType(frozen_rules),
            tax_tables=MappingProxyType(
                {(table.financial_year, table.pay_frequency, table.residency): table for table in tax_tables}
            ),
            statutory_rates=tuple(unique_rates.values()),
            public_holidays=frozenset(public_holidays),
            version=version,
        )

    def award(self, award_id: str) -> Award:
        try:
            award = self.awards[award_id]
        except KeyError:
            raise AwardNotFoundError(award_id) from None
        if not award.is_active:
            raise DataError(f"Award {award.code} is not active", award_id=award_id)
        return award

    def rules_for(self, award_id: str) -> Tuple[AwardRule, ...]:
        """Rules of one award, highest priority first."""
        return self.rules.get(award_id, ())

    def tax_table(self, financial_year: str, pay_frequency: PayFrequency, residency: Residency) -> TaxTable:
        try:
            return self.tax_tables[(financial_year, pay_frequency, residency)]
        except KeyError:
            raise TaxTableNotFoundError(
                f"No {residency.value} tax table for {financial_year} ({pay_frequency.value})",
                financial_year=financial_year,
            ) from None

    def statutory_rate(
        self,
        contribution_type: ContributionType,
        on: date,
        state: Optional[str] = None,
        industry: Optional[str] = None,
        employment_type: Optional[EmploymentType] = None,
    ) -> Optional[StatutoryRate]:
        """The statutory rate in force on ``on`` for the given scope.

        A rate restricted to the employee's industry wins over an unrestricted
        one. Among equals the most recently effective record is used.
        """
        candidates = [
            rate
            for rate in self.statutory_rates
            if rate.contribution_type == contribution_type
            and rate.in_force(on)
            and rate.applies_to(state, industry, employment_type)
        ]
        if not candidates:
            return None
        industry_specific = [rate for rate in candidates if rate.applicable_industries is not None]
        pool = industry_specific or candidates
        return max(pool, key=lambda rate: rate.effective_from)
