from osss.validator.bundle import BundleValidation, validate_bundle
from osss.validator.compare import Comparison, compare_results
from osss.validator.instance import InstanceValidator, validate_instance
from osss.validator.result import ResultValidation, ResultValidator, validate_result

__all__ = [
    "BundleValidation",
    "Comparison",
    "InstanceValidator",
    "ResultValidation",
    "ResultValidator",
    "compare_results",
    "validate_bundle",
    "validate_instance",
    "validate_result",
]
