from .service import EVENT_CATALOG, CatalogEvent, EventResult, LedgerService
from .state import LedgerState, merge_document, new_transaction_id

__all__ = [
    "EVENT_CATALOG",
    "CatalogEvent",
    "EventResult",
    "LedgerService",
    "LedgerState",
    "merge_document",
    "new_transaction_id",
]
