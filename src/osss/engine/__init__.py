from osss.engine.evaluator import ConstraintEvaluator, Evaluation
from osss.engine.rescorer import Reconciliation, Rescorer

__all__ = ["ConstraintEvaluator", "Evaluation", "Reconciliation", "Rescorer"]
