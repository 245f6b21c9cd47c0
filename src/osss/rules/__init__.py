from osss.rules.catalog import Rule, RuleCatalog, RuleContext, RuleOutcome, Violation

__all__ = ["Rule", "RuleCatalog", "RuleContext", "RuleOutcome", "Violation"]
