"""
Enumerations shared across the pipeline.

Roles, intake channels and priority levels.
"""

from enum import Enum


class Role(str, Enum):
    """Actor roles that may trigger transitions."""

    EXECUTIVE = "EXECUTIVE"
    SALES = "SALES"
    CSR = "CSR"
    OPS_MANAGER = "OPS_MANAGER"
    INVENTORY = "INVENTORY"
    OPERATOR = "OPERATOR"
    QC = "QC"
    PACKAGING = "PACKAGING"
    FINANCE = "FINANCE"
    ADMIN = "ADMIN"
    GUEST = "GUEST"
    SYSTEM = "SYSTEM"

    def __str__(self) -> str:
        return self.value


class OriginChannel(str, Enum):
    """Source through which a unit of work entered the pipeline."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    WEB = "WEB"
    EDI = "EDI"
    MARKETPLACE = "MARKETPLACE"
    ECOMMERCE = "ECOMMERCE"
    INTERNAL_REORDER = "INTERNAL_REORDER"
    SIMULATION = "SIMULATION"

    def __str__(self) -> str:
        return self.value


class Priority(Enum):
    """
    Ranked priority levels.

    Lower rank means more urgent. The multiplier is informational and is
    consumed by pricing handlers outside this package.
    """

    HOT = (1, 1.5)
    RUSH = (2, 1.25)
    VIP = (3, 1.15)
    STANDARD = (4, 1.0)
    LOW = (5, 0.9)

    def __init__(self, rank: int, multiplier: float):
        self.rank = rank
        self.multiplier = multiplier

    @classmethod
    def parse(cls, value) -> "Priority":
        """
        Coerce a name (case-insensitive) or Priority into a Priority.

        Raises:
            ValueError: If the name is unknown
        """
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown priority: {value!r}") from None

    def is_more_urgent_than(self, other: "Priority") -> bool:
        return self.rank < other.rank

    def __str__(self) -> str:
        return self.name
