"""Domain layer for reconciler application."""

_SERVICES = {
    "TransactionService": "reconciler.domain.transaction",
    "LookupService": "reconciler.domain.lookups",
    "RuleService": "reconciler.domain.rules",
    "MatchingEngine": "reconciler.domain.matching",
    "ApprovalQueue": "reconciler.domain.approval",
    "DuplicateDetector": "reconciler.domain.duplicates",
}

__all__ = list(_SERVICES)


# Services import the database layer, which imports entities from this
# package, so they are resolved lazily
def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
