from typing import Any, Dict, Optional
from dataclasses import dataclass, field, fields, asdict
from datetime import date, datetime


@dataclass
class UserProfile:
    """Long-term memory: who the user is."""
    name: str
    age: int
    sex: str
    height: float   # cm
    weight: float   # kg
    medical_history: str = "none"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class HealthAssessment:
    """A scored lifestyle assessment."""
    score: int
    lifestyle_data: Dict[str, Any]
    recommendations: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HealthAssessment":
        return cls(**data)


@dataclass(frozen=True)
class CyclePrediction:
    next_period: date
    ovulation_day: date
    fertile_start: date
    fertile_end: date

    def to_dict(self) -> dict:
        return {
            "next_period": self.next_period.isoformat(),
            "ovulation_day": self.ovulation_day.isoformat(),
            "fertile_window": {
                "start": self.fertile_start.isoformat(),
                "end": self.fertile_end.isoformat(),
            },
        }


def profile_or_none(data: Optional[dict]) -> Optional[UserProfile]:
    return UserProfile.from_dict(data) if data else None
