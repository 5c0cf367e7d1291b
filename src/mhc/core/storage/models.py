"""Data models for the health persistence layer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from mhc.domains.health.domain_logic.sample_models import (
    QuantitySample,
    sample_type_for_identifier,
)


@dataclass
class CustomHealthSample:
    """A user-entered sample as stored in the data bank.

    ``value`` and ``unit`` are stored encrypted at rest; the type and dates
    are stored in the clear for indexed range queries.
    """

    id: str
    sample_type: str  # identifier, e.g. 'bloodLipids'
    value: float
    unit: str
    start_date: datetime
    end_date: datetime
    created_at: str = ""

    def to_quantity_sample(self) -> QuantitySample | None:
        """Convert to a QuantitySample; None for an unknown sample type."""
        sample_type = sample_type_for_identifier(self.sample_type)
        if sample_type is None:
            return None
        return QuantitySample(
            sample_type=sample_type,
            unit=self.unit,
            value=self.value,
            start_date=self.start_date,
            end_date=self.end_date,
            id=uuid.UUID(self.id),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "sample_type": self.sample_type,
            "value": self.value,
            "unit": self.unit,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "created_at": self.created_at,
        }
