"""Cross-member consistency validation."""

from .service import ConsistencyValidator

__all__ = ["ConsistencyValidator"]
