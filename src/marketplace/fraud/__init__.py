"""Fraud scorer factory.

get_fraud_scorer() / set_fraud_scorer() swap the scorer used at checkout.
The rule-based scorer is the default; tests install scorers that force a
given risk level or fail outright.
"""

from marketplace.fraud.port import FraudScorer
from marketplace.fraud.rules import RuleBasedFraudScorer

_current_scorer: FraudScorer | None = None


def get_fraud_scorer() -> FraudScorer:
    global _current_scorer
    if _current_scorer is None:
        _current_scorer = RuleBasedFraudScorer()
    return _current_scorer


def set_fraud_scorer(scorer: FraudScorer) -> None:
    global _current_scorer
    _current_scorer = scorer


def reset_fraud_scorer() -> None:
    global _current_scorer
    _current_scorer = None
