"""
Rule catalog for the action engine.

Importing this package registers every shipped rule module into
`default_catalog`.
"""

from . import compliance, leads, marketing, operations, performance  # noqa: F401
from .catalog import Rule, RuleCatalog, RulePredicate, default_catalog

__all__ = ["Rule", "RuleCatalog", "RulePredicate", "default_catalog"]
