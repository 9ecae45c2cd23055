# models.py

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from typing import Optional, Union
from enum import Enum


# ─────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────

class PipelineStatus(str, Enum):
    # Avant adhésion
    BROCHURE_REQUEST = "資料請求"
    EVENT_BOOKED = "イベント予約"
    EVENT_ATTENDED = "イベント参加"

    # Avant contrat
    MEMBER = "限定会員"
    MEETING = "面談"
    APPLICATION = "建築申込"
    PLAN_SUBMITTED = "プラン提出"
    DECISION = "内定"
    LOST = "ボツ・他決"

    # Après contrat
    BEFORE_CHANGE_CONTRACT = "変更契約前"
    AFTER_CHANGE_CONTRACT = "変更契約後"

    # Propriétaire (après livraison)
    OWNER = "オーナー"


class StagnationLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def label(self) -> str:
        return LEVEL_LABELS[self]


LEVEL_LABELS = {
    StagnationLevel.NORMAL: "正常",
    StagnationLevel.WARNING: "注意",
    StagnationLevel.DANGER: "要対応",
}


# ─────────────────────────────────────────
# CORE MODELS
# ─────────────────────────────────────────

@dataclass
class Customer:
    # Identité
    id: str
    name: str = ""
    tei_name: Optional[str] = None        # nom de la maison (邸名)
    tenant_id: Optional[str] = None

    # Pipeline
    pipeline_status: str = ""

    # Dates d'entrée dans chaque étape (ISO ou "YYYY-MM-DD")
    lead_date: Optional[str] = None
    event_date: Optional[str] = None
    member_date: Optional[str] = None
    meeting_date: Optional[str] = None
    application_date: Optional[str] = None
    decision_date: Optional[str] = None
    contract_date: Optional[str] = None
    lost_date: Optional[str] = None

    # Ownership
    assigned_to: Optional[str] = None

    # Méta
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Customer":
        """
        Construit un Customer depuis une ligne Supabase.
        Les colonnes inconnues sont ignorées.
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        data.setdefault("id", "")
        return cls(**data)


# Ce que le moteur accepte : un Customer ou une ligne brute
CustomerLike = Union[Customer, dict]


@dataclass(frozen=True)
class StageThreshold:
    warning_days: int
    danger_days: int
    label: str
    recommended_actions: tuple[str, ...] = ()

    def __post_init__(self):
        if self.danger_days < self.warning_days:
            raise ValueError(
                f"danger_days ({self.danger_days}) < "
                f"warning_days ({self.warning_days}) pour {self.label}"
            )


@dataclass
class StagnationInfo:
    customer_id: str
    customer_name: str
    current_status: str
    days_in_status: int
    level: StagnationLevel
    recommended_actions: list[str] = field(default_factory=list)
    tei_name: Optional[str] = None
    last_contact_date: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.tei_name or self.customer_name

    def to_dict(self) -> dict:
        data = asdict(self)
        data["level"] = self.level.value
        data["level_label"] = self.level.label
        data["display_name"] = self.display_name
        return data


@dataclass
class StageSummary:
    status: str
    total: int = 0
    warning: int = 0
    danger: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AlertOverview:
    alerts: list[StagnationInfo] = field(default_factory=list)
    total_danger: int = 0
    total_warning: int = 0           # niveau warning uniquement
    has_more: bool = False
    computed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "total_danger": self.total_danger,
            "total_warning": self.total_warning,
            "has_more": self.has_more,
            "computed_at": (
                self.computed_at.isoformat() if self.computed_at else None
            ),
        }
