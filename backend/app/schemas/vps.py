"""VPS configurator schemas."""

from typing import Optional

from app.schemas.base import CamelModel


class PriceRequest(CamelModel):
    cpu_cores: int
    ram_gb: int
    storage_gb: int
    operating_system: str
    datacenter: Optional[str] = None


class PriceBreakdown(CamelModel):
    cpu: float
    ram: float
    storage: float
    operating_system: float


class PriceData(CamelModel):
    total_price: float
    breakdown: PriceBreakdown
