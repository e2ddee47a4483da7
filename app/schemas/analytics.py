from pydantic import BaseModel
from typing import List, Optional, Union


class MoMEntry(BaseModel):
    """Month-over-month growth for one month"""
    month: str
    active_users: int
    previous_month_users: Optional[int] = None
    growth_percentage: Optional[str] = None


class ChurnEntry(BaseModel):
    """Churn for one month"""
    month: str
    active_users: int
    churned_users: int
    churn_rate: Optional[float] = None


class EventEntry(BaseModel):
    """Usage of a single event name"""
    event_name: str
    event_count: int
    unique_users: int


class DAUEntry(BaseModel):
    """Daily Active Users for one day"""
    date: str
    active_users: int


class CohortEntry(BaseModel):
    """Retention of one cohort in one activity month"""
    cohort_month: str
    cohort_size: int
    activity_month: str
    active_users: int
    retention_rate: Optional[float] = None


class MonthsMetadata(BaseModel):
    months_analyzed: int
    timestamp: str


class DaysMetadata(BaseModel):
    days_analyzed: int
    timestamp: str


class EventsMetadata(DaysMetadata):
    filtered_events: Union[List[str], str]


class MoMResponse(BaseModel):
    success: bool = True
    data: List[MoMEntry]
    metadata: MonthsMetadata


class ChurnResponse(BaseModel):
    success: bool = True
    data: List[ChurnEntry]
    metadata: MonthsMetadata


class EventsResponse(BaseModel):
    success: bool = True
    data: List[EventEntry]
    metadata: EventsMetadata


class DAUResponse(BaseModel):
    success: bool = True
    data: List[DAUEntry]
    metadata: DaysMetadata


class CohortResponse(BaseModel):
    success: bool = True
    data: List[CohortEntry]
    metadata: MonthsMetadata


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    uptime: float
