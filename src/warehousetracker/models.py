"""
Pydantic models for warehouse shipment records and the views derived from them.

Records arrive from the store as loosely-typed documents; the normalizer turns
them into ShipmentRecord instances and everything downstream works on those.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_serializer


NOT_APPLICABLE = "N/A"


class ShipmentStatus(str, Enum):
    """The fixed set of warehouse entry statuses."""

    PENDING = "Pending"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    DELAYED = "Delayed"


class SortKey(str, Enum):
    """Selectable orderings for the entries list."""

    DATE_CREATED = "dateCreated"
    WEIGHT = "weight"
    STATUS = "status"


class Dimensions(BaseModel):
    """Package dimensions in centimeters."""

    length: float = Field(0.0, ge=0, description="Length in cm")
    width: float = Field(0.0, ge=0, description="Width in cm")
    height: float = Field(0.0, ge=0, description="Height in cm")

    model_config = ConfigDict()


class LineItem(BaseModel):
    """A single item carried by a shipment."""

    item_name: str = Field("", description="Item name")
    weight: float = Field(0.0, ge=0, description="Item weight in kg")
    dimensions: Dimensions = Field(default_factory=Dimensions)
    quantity: int = Field(0, ge=0, description="Number of units")
    value: float = Field(0.0, ge=0, description="Declared value")
    description: str = Field("", description="Free-text item description")

    model_config = ConfigDict()


class ImageRef(BaseModel):
    """An image attached to a shipment.

    Either ``url`` is set (a literal URL or URL descriptor from the document)
    or ``path`` is set (a blob storage path that must be resolved first).
    """

    url: Optional[str] = Field(None, description="Externally fetchable URL")
    path: Optional[str] = Field(None, description="Storage path awaiting resolution")

    @property
    def needs_resolution(self) -> bool:
        return self.url is None and bool(self.path)

    model_config = ConfigDict(frozen=True)


class ShipmentRecord(BaseModel):
    """A canonical (normalized) warehouse shipment entry."""

    id: str = Field(description="Opaque document id assigned by the store")
    sender_name: str = ""
    receiver_name: str = ""
    carrier_name: str = ""
    origin: str = ""
    destination: str = ""
    mode: str = ""
    weight: float = Field(0.0, ge=0, description="Declared weight in kg")
    piece_count: int = Field(0, ge=0, description="Number of pieces")
    dimensions: Dimensions = Field(default_factory=Dimensions)
    description: str = ""
    status: ShipmentStatus = ShipmentStatus.PENDING
    status_text: str = Field("", description="Status exactly as stored, before mapping")
    tracking_number: str = "-"
    delivery_days: Optional[float] = Field(
        None, gt=0, description="Recorded delivery time in days, when the document has one"
    )
    arrival_date: Optional[datetime] = None
    departure_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[LineItem] = Field(default_factory=list)
    images: List[ImageRef] = Field(default_factory=list)

    @field_serializer("arrival_date", "departure_date", "created_at")
    def _ser_dates(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        from .utils import serialize_dt

        return serialize_dt(dt)

    model_config = ConfigDict()


class FilterQuery(BaseModel):
    """Search text plus categorical filters; "all" disables a filter."""

    text: str = ""
    status: str = "all"
    origin: str = "all"

    model_config = ConfigDict(frozen=True)


class DistributionBucket(BaseModel):
    """Records sharing one categorical key."""

    key: str
    count: int
    percentage: int
    color: Optional[str] = None

    model_config = ConfigDict()


class EntryDetails(BaseModel):
    """Derived totals shown on an entry's detail view."""

    record: ShipmentRecord
    total_weight: float
    total_value: float
    total_quantity: int
    volume_m3: float
    transit_days: Union[int, str]
    item_count: int

    model_config = ConfigDict()


class ReportMetrics(BaseModel):
    total_entries: int = 0
    total_weight: float = 0.0
    delivered_orders: int = 0
    average_delivery_days: float = 0.0

    model_config = ConfigDict()


class MonthlyTrend(BaseModel):
    """Entries created in one calendar month (UTC)."""

    month: str = Field(description="YYYY-MM")
    entries: int = 0
    weight: float = 0.0
    delivered: int = 0

    model_config = ConfigDict()


class Report(BaseModel):
    """Summary of a record set for the reports view."""

    metrics: ReportMetrics
    status_distribution: List[DistributionBucket] = Field(default_factory=list)
    top_destinations: List[DistributionBucket] = Field(default_factory=list)
    mode_distribution: List[DistributionBucket] = Field(default_factory=list)
    origin_distribution: List[DistributionBucket] = Field(default_factory=list)
    carrier_distribution: List[DistributionBucket] = Field(default_factory=list)
    monthly_trends: List[MonthlyTrend] = Field(default_factory=list)
    generated_at: datetime = Field(
        default_factory=datetime.now, description="When the report was built"
    )

    @field_serializer("generated_at")
    def _ser_generated(self, dt: datetime) -> str:
        from .utils import serialize_dt

        return serialize_dt(dt)

    @property
    def has_entries(self) -> bool:
        return self.metrics.total_entries > 0

    model_config = ConfigDict()
