# agents/pipeline_stagnation.py

from collections import defaultdict
from datetime import datetime
from typing import Optional
import logging

from agents.base import BaseAgent, AgentRunResult
from models import StagnationInfo, StagnationLevel
from services.notification import notify_sales_rep, send_email, send_slack
from stagnation.engine import (
    find_stagnant_customers,
    summarize_stagnation,
    utcnow,
)

logger = logging.getLogger(__name__)


class PipelineStagnationAgent(BaseAgent):
    """
    Détecte les clients qui stagnent dans leur étape
    et prévient le commercial en charge.

    Rien n'est persisté côté clients : la stagnation
    est recalculée à chaque run.
    """

    def _get_name(self) -> str:
        return "pipeline_stagnation"

    def _run(self, now: Optional[datetime] = None) -> AgentRunResult:
        started_at = utcnow()
        actions_taken = []
        errors = []

        # Une seule heure de référence pour tout le lot
        now = now or started_at

        customers = self._get_customers()

        if not customers:
            logger.info(f"[{self.name}] Aucun client pour {self.tenant_id}")
            return AgentRunResult(
                agent=self.name,
                tenant_id=self.tenant_id,
                started_at=started_at,
                finished_at=utcnow(),
                kpi_name="stagnant_customers_danger",
                kpi_value=0.0
            )

        min_level = self._notify_min_level()
        alerts = find_stagnant_customers(customers, min_level, now=now)
        summary = summarize_stagnation(customers, now=now)

        total_danger = sum(row.danger for row in summary)
        total_warning = sum(row.warning for row in summary)

        # ─────────────────────────────────────────
        # NOTIFICATIONS PAR COMMERCIAL
        # ─────────────────────────────────────────

        if alerts:
            try:
                actions_taken.extend(self._notify(alerts, customers))
            except Exception as e:
                logger.error(f"[{self.name}] Erreur notifications : {e}")
                errors.append(str(e))

        # ─────────────────────────────────────────
        # EVENT — compteurs seulement
        # ─────────────────────────────────────────

        self._publish("stagnation_detected", {
            "computed_at": now.isoformat(),
            "min_level": min_level.value,
            "alerts_count": len(alerts),
            "total_danger": total_danger,
            "total_warning": total_warning,
            "summary": [row.to_dict() for row in summary]
        })

        logger.info(
            f"[{self.name}] {len(customers)} clients analysés — "
            f"{total_danger} danger, {total_warning} warning"
        )

        return AgentRunResult(
            agent=self.name,
            tenant_id=self.tenant_id,
            started_at=started_at,
            finished_at=utcnow(),
            actions_taken=actions_taken,
            kpi_value=float(total_danger),
            kpi_name="stagnant_customers_danger",
            errors=errors
        )

    # ─────────────────────────────────────────
    # NOTIFICATIONS
    # ─────────────────────────────────────────

    def _notify(
        self, alerts: list[StagnationInfo], customers: list[dict]
    ) -> list[dict]:
        """
        Un email par commercial avec la liste de ses clients.
        Les clients sans commercial vont au manager.
        """
        actions_taken = []
        owner_by_customer = {
            str(c.get("id")): c.get("assigned_to") for c in customers
        }

        by_owner: dict[Optional[str], list[StagnationInfo]] = defaultdict(list)
        for info in alerts:
            by_owner[owner_by_customer.get(info.customer_id)].append(info)

        members = {
            m.get("id"): m for m in self._get_team_members()
        }
        slack_webhook = self._cfg("slack_webhook") or None
        manager_email = self._cfg("manager_email", "")

        for owner_id, owner_alerts in by_owner.items():
            member = members.get(owner_id) if owner_id else None
            subject = self._build_subject(owner_alerts)
            message = self._build_message(owner_alerts)

            if member and member.get("email"):
                sent = notify_sales_rep(
                    name=member.get("name", ""),
                    email=member["email"],
                    subject=subject,
                    message=message,
                    slack_webhook=slack_webhook
                )
                recipient = member["email"]
            elif manager_email:
                sent = send_email(to=manager_email, subject=subject, body=message)
                if slack_webhook:
                    send_slack(f"{subject}\n{message}", webhook_url=slack_webhook)
                recipient = manager_email
            else:
                logger.warning(
                    f"[{self.name}] {len(owner_alerts)} alertes sans destinataire "
                    f"(commercial {owner_id or 'non assigné'})"
                )
                continue

            actions_taken.append({
                "action": "notify_stagnation",
                "owner_id": owner_id,
                "recipient": recipient,
                "customer_ids": [i.customer_id for i in owner_alerts],
                "sent": sent
            })

        return actions_taken

    def _build_subject(self, alerts: list[StagnationInfo]) -> str:
        danger = sum(1 for i in alerts if i.level is StagnationLevel.DANGER)
        if danger:
            return f"⚠️ 停滞アラート : {danger}件要対応"
        return f"停滞アラート : {len(alerts)}件注意"

    def _build_message(self, alerts: list[StagnationInfo]) -> str:
        lines = ["以下のお客様が現在のステータスで停滞しています。", ""]
        for info in alerts:
            line = (
                f"・{info.display_name}（{info.current_status}）"
                f" {info.days_in_status}日経過 [{info.level.label}]"
            )
            if info.recommended_actions:
                line += f" — 推奨: {info.recommended_actions[0]}"
            lines.append(line)
        return "\n".join(lines)

    # ─────────────────────────────────────────
    # UTILITAIRES
    # ─────────────────────────────────────────

    def _notify_min_level(self) -> StagnationLevel:
        raw = self._cfg("notify_min_level", StagnationLevel.DANGER.value)
        try:
            level = StagnationLevel(raw)
        except ValueError:
            logger.warning(
                f"[{self.name}] notify_min_level invalide : {raw!r} — danger utilisé"
            )
            return StagnationLevel.DANGER

        # "normal" notifierait tout le pipeline
        if level is StagnationLevel.NORMAL:
            return StagnationLevel.WARNING
        return level
