"""
Visibility gate: public listing and direct-share predicates plus the service
that applies them.
"""
from .gate import is_publicly_listable, is_share_resolvable
from .service import VisibilityService, public_view

__all__ = [
    "is_publicly_listable",
    "is_share_resolvable",
    "VisibilityService",
    "public_view",
]
