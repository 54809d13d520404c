"""VPS plan catalogue and monthly price calculation."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from app.core.exceptions import ValidationError


@dataclass(frozen=True)
class ResourceRange:
    min: int
    max: int
    step: int
    unit_price: Decimal

    def contains(self, value: int) -> bool:
        return self.min <= value <= self.max and (value - self.min) % self.step == 0


@dataclass(frozen=True)
class OperatingSystem:
    name: str
    price: Decimal


@dataclass(frozen=True)
class Datacenter:
    code: str
    name: str


CPU = ResourceRange(min=1, max=16, step=1, unit_price=Decimal("5"))
RAM = ResourceRange(min=1, max=64, step=1, unit_price=Decimal("4"))
STORAGE = ResourceRange(min=10, max=1000, step=10, unit_price=Decimal("0.10"))

OPERATING_SYSTEMS = (
    OperatingSystem("Ubuntu 22.04 LTS", Decimal("0")),
    OperatingSystem("Debian 11", Decimal("0")),
    OperatingSystem("CentOS Stream 9", Decimal("0")),
    OperatingSystem("Windows Server 2022", Decimal("15")),
)

DATACENTERS = (
    Datacenter("US-EAST-1", "US East - Virginia"),
    Datacenter("US-WEST-1", "US West - California"),
    Datacenter("EU-CENTRAL-1", "EU Central - Frankfurt"),
    Datacenter("EU-WEST-1", "EU West - London"),
)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class VPSConfiguration:
    cpu_cores: int
    ram_gb: int
    storage_gb: int
    operating_system: str
    datacenter: Optional[str] = None


@dataclass(frozen=True)
class PriceQuote:
    cpu: Decimal
    ram: Decimal
    storage: Decimal
    operating_system: Decimal

    @property
    def total(self) -> Decimal:
        return (self.cpu + self.ram + self.storage + self.operating_system).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )


def find_operating_system(name: str) -> Optional[OperatingSystem]:
    for os_option in OPERATING_SYSTEMS:
        if os_option.name == name:
            return os_option
    return None


def validate_configuration(config: VPSConfiguration) -> None:
    """Reject configurations outside the catalogue."""
    if not CPU.contains(config.cpu_cores):
        raise ValidationError(f"cpuCores must be between {CPU.min} and {CPU.max}")
    if not RAM.contains(config.ram_gb):
        raise ValidationError(f"ramGb must be between {RAM.min} and {RAM.max}")
    if not STORAGE.contains(config.storage_gb):
        raise ValidationError(
            f"storageGb must be between {STORAGE.min} and {STORAGE.max} "
            f"in steps of {STORAGE.step}"
        )
    if find_operating_system(config.operating_system) is None:
        raise ValidationError(f"Unknown operating system: {config.operating_system}")
    if config.datacenter is not None and config.datacenter not in {
        dc.code for dc in DATACENTERS
    }:
        raise ValidationError(f"Unknown datacenter: {config.datacenter}")


def calculate_price(config: VPSConfiguration) -> PriceQuote:
    """Monthly price of a configuration. Each term depends only on its own input."""
    validate_configuration(config)
    os_option = find_operating_system(config.operating_system)
    return PriceQuote(
        cpu=CPU.unit_price * config.cpu_cores,
        ram=RAM.unit_price * config.ram_gb,
        storage=(STORAGE.unit_price * config.storage_gb).quantize(CENTS),
        operating_system=os_option.price,
    )


def plan_catalogue() -> dict:
    """Catalogue as served by GET /api/vps/plans."""
    return {
        "cpu": {"min": CPU.min, "max": CPU.max, "step": CPU.step, "pricePerCore": float(CPU.unit_price)},
        "ram": {"min": RAM.min, "max": RAM.max, "step": RAM.step, "pricePerGb": float(RAM.unit_price)},
        "storage": {
            "min": STORAGE.min,
            "max": STORAGE.max,
            "step": STORAGE.step,
            "pricePerGb": float(STORAGE.unit_price),
        },
        "operatingSystems": [
            {"name": os_option.name, "price": float(os_option.price)} for os_option in OPERATING_SYSTEMS
        ],
        "datacenters": [{"code": dc.code, "name": dc.name} for dc in DATACENTERS],
    }
