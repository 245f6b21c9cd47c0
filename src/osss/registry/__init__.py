from osss.registry.loader import RuleRegistry, load_registry
from osss.registry.param_schema import build_params_schema

__all__ = ["RuleRegistry", "build_params_schema", "load_registry"]
