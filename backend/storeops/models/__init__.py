from .tenancy import Store
from .inventory import Product, Receipt, LedgerEntry
from .sales import Sale, SaleItem
from .customers import Customer, Closeout
from .summaries import DailySummary, ActivityEntry
from .events import OutboxEvent, ProcessedEvent, ErrorLogEvent

__all__ = [
    'Store',
    'Product', 'Receipt', 'LedgerEntry',
    'Sale', 'SaleItem',
    'Customer', 'Closeout',
    'DailySummary', 'ActivityEntry',
    'OutboxEvent', 'ProcessedEvent', 'ErrorLogEvent',
]
