# agents/base.py

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from dataclasses import dataclass, field

from services.database import get, get_client
from stagnation.engine import utcnow

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# RÉSULTAT D'UN RUN
# ─────────────────────────────────────────

@dataclass
class AgentRunResult:
    agent:        str
    tenant_id:    str
    started_at:   datetime
    finished_at:  datetime
    actions_taken: list[dict] = field(default_factory=list)
    kpi_value:    float = 0.0
    kpi_name:     str   = ""
    errors:       list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


# ─────────────────────────────────────────
# BASE AGENT
# ─────────────────────────────────────────

class BaseAgent(ABC):

    def __init__(self, tenant_id: str, config: dict):
        self.tenant_id = tenant_id
        self.config    = config
        self.name      = self._get_name()

    @abstractmethod
    def _get_name(self) -> str:
        pass

    @abstractmethod
    def _run(self) -> AgentRunResult:
        pass

    def run(self) -> AgentRunResult:
        started_at = utcnow()
        logger.info(
            f"[{self.name}] Démarrage pour tenant {self.tenant_id}"
        )

        try:
            result = self._run()
        except Exception as e:
            logger.error(f"[{self.name}] Erreur critique : {e}")
            result = AgentRunResult(
                agent=self.name,
                tenant_id=self.tenant_id,
                started_at=started_at,
                finished_at=utcnow(),
                errors=[str(e)]
            )

        self._log_run(result)

        logger.info(
            f"[{self.name}] Terminé en {result.duration_seconds:.1f}s — "
            f"KPI: {result.kpi_value} {result.kpi_name} — "
            f"{len(result.actions_taken)} actions"
        )

        return result

    # ─────────────────────────────────────────
    # ACCÈS AUX DONNÉES
    # ─────────────────────────────────────────

    def _get_customers(self, filters: dict = None) -> list[dict]:
        return get("customers", self.tenant_id, filters)

    def _get_team_members(self) -> list[dict]:
        return get("team_members", self.tenant_id)

    # ─────────────────────────────────────────
    # PUBLICATION D'EVENTS
    # ─────────────────────────────────────────

    def _publish(self, event_type: str, payload: dict) -> None:
        from services.database import publish_event
        try:
            publish_event(
                event_type=event_type,
                tenant_id=self.tenant_id,
                payload=payload
            )
        except Exception as e:
            logger.error(f"[{self.name}] Erreur publication {event_type} : {e}")

    # ─────────────────────────────────────────
    # CONFIG
    # ─────────────────────────────────────────

    def _cfg(self, key: str, default=None):
        return self.config.get(key, default)

    # ─────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────

    def _log_run(self, result: AgentRunResult) -> None:
        try:
            client = get_client()
            client.table("agent_runs").insert({
                "agent":           result.agent,
                "tenant_id":       result.tenant_id,
                "started_at":      result.started_at.isoformat(),
                "finished_at":     result.finished_at.isoformat(),
                "duration_seconds": result.duration_seconds,
                "kpi_name":        result.kpi_name,
                "kpi_value":       result.kpi_value,
                "actions_count":   len(result.actions_taken),
                "errors":          result.errors,
                "success":         result.success
            }).execute()
        except Exception as e:
            logger.error(f"Erreur log run : {e}")
