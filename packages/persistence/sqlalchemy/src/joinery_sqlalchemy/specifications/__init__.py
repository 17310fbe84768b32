"""
QueryOptions-to-SQLAlchemy compilation.

Public API:
    - ``build_sqla_filter(selectable, conditions)``: compile filter
      conditions to a ``ColumnElement[bool]``
    - ``build_order_by(selectable, options, identity)``: ordering clauses
      with a primary-key tiebreak
    - ``DEFAULT_SQLA_REGISTRY``: the default operator registry
    - ``SQLAlchemyOperator`` / ``SQLAlchemyOperatorRegistry``: extension
      points for custom operators
"""

from .compiler import build_order_by, build_sqla_filter, resolve_column
from .operators import DEFAULT_SQLA_REGISTRY, build_default_sqla_registry
from .strategy import SQLAlchemyOperator, SQLAlchemyOperatorRegistry

__all__ = [
    "DEFAULT_SQLA_REGISTRY",
    "SQLAlchemyOperator",
    "SQLAlchemyOperatorRegistry",
    "build_default_sqla_registry",
    "build_order_by",
    "build_sqla_filter",
    "resolve_column",
]
