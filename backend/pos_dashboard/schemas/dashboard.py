from pydantic import BaseModel
from typing import List, Literal, Optional

Period = Literal["7d", "30d", "90d"]
ChartType = Literal["all", "sales", "revenue", "weekly", "payment-methods"]
ActivityType = Literal["all", "sales", "users", "products"]
Trend = Literal["up", "down", "stable"]
SyncStatus = Literal["success", "warning", "error"]


class PeriodRange(BaseModel):
    start: str
    end: str
    days: int


class ChartPoint(BaseModel):
    label: str
    date: str
    value: float


class ChartSummary(BaseModel):
    total: float
    average: float
    peak: float
    trend: Trend


class ChartSeries(BaseModel):
    labels: List[str]
    points: List[ChartPoint]
    summary: ChartSummary


class WeeklyPoint(BaseModel):
    label: str
    start: str
    end: str
    sales: int
    revenue: float


class PaymentMethodCount(BaseModel):
    method: str
    count: int


class SystemSection(BaseModel):
    apiResponseTime: int
    errorRate: float
    syncStatus: SyncStatus
    lastSync: Optional[str] = None


class DataQuality(BaseModel):
    salesDataAvailable: Optional[bool] = None
    usersDataAvailable: Optional[bool] = None
    productsDataAvailable: Optional[bool] = None
    cashRegistersDataAvailable: Optional[bool] = None
