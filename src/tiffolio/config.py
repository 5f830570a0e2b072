from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class Settings:
    region_size: float = 300.0
    workers: Optional[int] = None
    point_precision: Decimal = Decimal("0.01")
    image_format: str = "png"
    output_suffix: str = ".pdf"

    def __post_init__(self) -> None:
        if self.region_size <= 0:
            raise ValueError(f"region_size must be positive, got {self.region_size}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.point_precision <= 0:
            raise ValueError(f"point_precision must be positive, got {self.point_precision}")
