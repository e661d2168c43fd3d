from .calculator import PayrollCalculator
from .interpretation import AwardInterpreter, interpret_timesheet
from .providers import JsonDataStore
from .ruleset import RuleSet
from .runs import PayrollRunProcessor

__all__ = ["PayrollCalculator", "AwardInterpreter", "interpret_timesheet", "JsonDataStore", "RuleSet", "PayrollRunProcessor"]
