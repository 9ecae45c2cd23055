# stagnation/engine.py

"""
Moteur de détection de stagnation du pipeline.

Fonctions pures : une liste de clients + la table des seuils
→ classification par client, liste priorisée, synthèse par étape.

Aucune I/O, aucun état partagé. L'heure courante est injectable
et capturée une seule fois par appel pour tout le lot.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Mapping, Optional, Union

from dateutil.parser import isoparse

from models import (
    AlertOverview,
    CustomerLike,
    StageSummary,
    StageThreshold,
    StagnationInfo,
    StagnationLevel,
)
from stagnation.thresholds import (
    FALLBACK_ENTRY_FIELD,
    PRE_CONTRACT_STATUS_ORDER,
    STAGE_ENTRY_FIELDS,
    STAGNATION_THRESHOLDS,
)

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)

_LEVEL_RANK = {
    StagnationLevel.NORMAL: 0,
    StagnationLevel.WARNING: 1,
    StagnationLevel.DANGER: 2,
}


# ─────────────────────────────────────────
# UTILITAIRES
# ─────────────────────────────────────────

def utcnow() -> datetime:
    """Heure courante en UTC naive (convention de tout le moteur)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _capture_now(now: Optional[datetime]) -> datetime:
    return utcnow() if now is None else _to_naive_utc(now)


def parse_date(value) -> Optional[datetime]:
    """
    Parse universelle des dates clients.

    Gère :
    → datetime / date Python
    → ISO 8601 avec ou sans timezone
    → "YYYY-MM-DD" et "YYYY/MM/DD"
    → Timestamps secondes et millisecondes

    Retourne un datetime UTC naive, ou None si illisible.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return _to_naive_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    try:
        s = str(value).strip()
        if not s:
            return None

        # Timestamp millisecondes
        if s.isdigit() and len(s) == 13:
            return datetime.fromtimestamp(
                int(s) / 1000, tz=timezone.utc
            ).replace(tzinfo=None)

        # Timestamp secondes
        if s.isdigit() and len(s) == 10:
            return datetime.fromtimestamp(
                int(s), tz=timezone.utc
            ).replace(tzinfo=None)

        # Fractions de seconde de longueur variable (PostgREST)
        if "T" in s or " " in s:
            return _to_naive_utc(isoparse(s))

        # Date seule
        if len(s) == 10:
            return datetime.strptime(s.replace("/", "-"), "%Y-%m-%d")

        return None

    except (ValueError, TypeError, OverflowError, OSError):
        return None


def _field(customer: CustomerLike, name: str):
    if isinstance(customer, Mapping):
        return customer.get(name)
    return getattr(customer, name, None)


def _status_of(customer: CustomerLike) -> str:
    status = _field(customer, "pipeline_status")
    if isinstance(status, Enum):
        return status.value
    return status or ""


def _as_level(level: Union[str, StagnationLevel]) -> StagnationLevel:
    try:
        return StagnationLevel(level)
    except ValueError:
        raise ValueError(
            f"Niveau inconnu : {level!r} "
            f"(attendu : normal | warning | danger)"
        ) from None


def is_eligible(customer: CustomerLike) -> bool:
    """Un client est analysable ssi son étape est avant contrat."""
    return _status_of(customer) in PRE_CONTRACT_STATUS_ORDER


# ─────────────────────────────────────────
# DATE D'ENTRÉE DANS L'ÉTAPE
# ─────────────────────────────────────────

def resolve_stage_entry_date(
    customer: CustomerLike,
    status: Optional[str] = None,
) -> Optional[datetime]:
    """
    Date à laquelle le client est entré dans son étape actuelle.

    1. Champ date propre à l'étape (STAGE_ENTRY_FIELDS)
    2. Sinon updated_at
    3. Sinon None → client non analysable

    Une date illisible compte comme absente.
    """
    status = status or _status_of(customer)
    candidates = []

    entry_field = STAGE_ENTRY_FIELDS.get(status)
    if entry_field:
        candidates.append(entry_field)
    candidates.append(FALLBACK_ENTRY_FIELD)

    for field_name in candidates:
        raw = _field(customer, field_name)
        if raw in (None, ""):
            continue

        parsed = parse_date(raw)
        if parsed:
            return parsed

        logger.debug(
            f"[stagnation] Date illisible {field_name}={raw!r} "
            f"pour client {_field(customer, 'id')}"
        )

    return None


# ─────────────────────────────────────────
# CLASSIFICATION D'UN CLIENT
# ─────────────────────────────────────────

def calculate_stagnation(
    customer: CustomerLike,
    now: Optional[datetime] = None,
    thresholds: Mapping[str, StageThreshold] = STAGNATION_THRESHOLDS,
) -> Optional[StagnationInfo]:
    """
    Classe un client selon le temps passé dans son étape.

    Retourne None si l'étape n'est pas analysée
    ou si aucune date d'entrée n'est disponible.
    """
    if not is_eligible(customer):
        return None

    status = _status_of(customer)
    threshold = thresholds.get(status)
    if not threshold:
        return None

    entered_at = resolve_stage_entry_date(customer, status)
    if not entered_at:
        return None

    now = _capture_now(now)

    # Jours entiers, arrondis vers le bas (23h → 0 jour)
    days_in_status = (now - entered_at) // ONE_DAY

    # danger d'abord : les deux seuils atteints → danger
    if days_in_status >= threshold.danger_days:
        level = StagnationLevel.DANGER
    elif days_in_status >= threshold.warning_days:
        level = StagnationLevel.WARNING
    else:
        level = StagnationLevel.NORMAL

    last_contact = _field(customer, "updated_at")
    if isinstance(last_contact, datetime):
        last_contact = last_contact.isoformat()

    return StagnationInfo(
        customer_id=str(_field(customer, "id") or ""),
        customer_name=_field(customer, "name") or "",
        tei_name=_field(customer, "tei_name") or None,
        current_status=status,
        days_in_status=days_in_status,
        level=level,
        recommended_actions=list(threshold.recommended_actions),
        last_contact_date=last_contact or None,
    )


# ─────────────────────────────────────────
# FILTRE + TRI
# ─────────────────────────────────────────

def find_stagnant_customers(
    customers: Iterable[CustomerLike],
    min_level: Union[str, StagnationLevel] = StagnationLevel.WARNING,
    now: Optional[datetime] = None,
    thresholds: Mapping[str, StageThreshold] = STAGNATION_THRESHOLDS,
) -> list[StagnationInfo]:
    """
    Clients à traiter, triés par priorité.

    min_level :
        normal  → tous les résultats
        warning → warning + danger
        danger  → danger seulement

    Tri : danger d'abord, puis jours dans l'étape décroissants.
    """
    min_level = _as_level(min_level)
    now = _capture_now(now)
    min_rank = _LEVEL_RANK[min_level]

    results = []
    for customer in customers:
        info = calculate_stagnation(customer, now, thresholds)
        if info is None:
            continue
        if _LEVEL_RANK[info.level] >= min_rank:
            results.append(info)

    return sorted(
        results,
        key=lambda i: (i.level is not StagnationLevel.DANGER, -i.days_in_status)
    )


# ─────────────────────────────────────────
# SYNTHÈSE PAR ÉTAPE
# ─────────────────────────────────────────

def summarize_stagnation(
    customers: Iterable[CustomerLike],
    now: Optional[datetime] = None,
    thresholds: Mapping[str, StageThreshold] = STAGNATION_THRESHOLDS,
) -> list[StageSummary]:
    """
    Une ligne par étape avant contrat, dans l'ordre du pipeline,
    y compris les étapes vides.

    Un client sans date exploitable compte dans total
    mais ni dans warning ni dans danger.
    """
    now = _capture_now(now)
    summary = {
        status: StageSummary(status=status)
        for status in PRE_CONTRACT_STATUS_ORDER
    }

    for customer in customers:
        if not is_eligible(customer):
            continue

        row = summary[_status_of(customer)]
        row.total += 1

        info = calculate_stagnation(customer, now, thresholds)
        if info is None:
            continue
        if info.level is StagnationLevel.WARNING:
            row.warning += 1
        elif info.level is StagnationLevel.DANGER:
            row.danger += 1

    return [summary[status] for status in PRE_CONTRACT_STATUS_ORDER]


# ─────────────────────────────────────────
# WIDGET DASHBOARD
# ─────────────────────────────────────────

def build_alert_overview(
    customers: Iterable[CustomerLike],
    max_items: int = 5,
    now: Optional[datetime] = None,
    thresholds: Mapping[str, StageThreshold] = STAGNATION_THRESHOLDS,
) -> AlertOverview:
    """
    Données du widget "停滞アラート" :
    les max_items premiers clients warning+, et les compteurs globaux.
    """
    now = _capture_now(now)
    ranked = find_stagnant_customers(
        customers, StagnationLevel.WARNING, now, thresholds
    )

    total_danger = sum(
        1 for i in ranked if i.level is StagnationLevel.DANGER
    )
    total_warning = len(ranked) - total_danger

    return AlertOverview(
        alerts=ranked[:max(0, max_items)],
        total_danger=total_danger,
        total_warning=total_warning,
        has_more=(total_danger + total_warning) > max_items,
        computed_at=now,
    )


# Noms courts de l'interface publique
classify = calculate_stagnation
filter_and_rank = find_stagnant_customers
summarize = summarize_stagnation
