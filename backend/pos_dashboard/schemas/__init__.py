from .records import CashRegister, Product, Sale, SaleItem, User, normalize_amount, parse_timestamp
from .dashboard import ChartPoint, ChartSeries, ChartSummary, PaymentMethodCount, PeriodRange, WeeklyPoint

__all__ = [
    "CashRegister", "Product", "Sale", "SaleItem", "User",
    "normalize_amount", "parse_timestamp",
    "ChartPoint", "ChartSeries", "ChartSummary", "PaymentMethodCount", "PeriodRange", "WeeklyPoint",
]
