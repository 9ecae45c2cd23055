# orchestrator/digest.py

import logging
from datetime import datetime
from typing import Optional

from models import StageSummary, StagnationInfo
from services.database import get_client, get_customers
from services.notification import send_email
from orchestrator.profile import get_tenant_profile
from stagnation.engine import (
    find_stagnant_customers,
    summarize_stagnation,
    utcnow,
)

logger = logging.getLogger(__name__)

TOP_ALERTS_IN_DIGEST = 10


# ─────────────────────────────────────────
# POINT D'ENTRÉE
# ─────────────────────────────────────────

def send_stagnation_digest(tenant_id: str, now: Optional[datetime] = None) -> bool:
    """
    Compile et envoie le récapitulatif hebdomadaire de stagnation.
    Appelé par le scheduler chaque lundi.

    Retourne True si l'email a été envoyé.
    """
    logger.info(f"[digest] Génération pour {tenant_id}")

    profile = get_tenant_profile(tenant_id)
    if not profile:
        logger.error(f"[digest] Profil introuvable : {tenant_id}")
        return False

    config = profile["agent_configs"].get("pipeline_stagnation", {})
    if not config.get("digest_enabled", True):
        logger.info(f"[digest] Désactivé pour {tenant_id}")
        return False

    manager_email = config.get("manager_email", "")
    if not manager_email:
        logger.error(f"[digest] Pas d'email manager configuré : {tenant_id}")
        return False

    try:
        customers = get_customers(tenant_id)
    except Exception as e:
        logger.error(f"[digest] Erreur lecture clients {tenant_id} : {e}")
        return False

    now = now or utcnow()
    summary = summarize_stagnation(customers, now=now)
    alerts = find_stagnant_customers(customers, "warning", now=now)

    tenant_name = profile["tenant"].get("name", "")
    subject = _build_subject(summary, tenant_name, now)
    body    = _build_body(summary, alerts, tenant_name, now)

    success = send_email(to=manager_email, subject=subject, body=body)

    if success:
        _log_digest_sent(tenant_id, subject)
        logger.info(f"[digest] Envoyé à {manager_email}")

    return success


# ─────────────────────────────────────────
# CONSTRUCTION DU SUJET
# ─────────────────────────────────────────

def _build_subject(
    summary: list[StageSummary], tenant_name: str, now: datetime
) -> str:
    danger  = sum(row.danger for row in summary)
    warning = sum(row.warning for row in summary)
    date    = now.strftime("%Y/%m/%d")

    prefix = f"{tenant_name} — " if tenant_name else ""

    if danger:
        return f"{prefix}停滞レポート {date} — ⚠️ {danger}件要対応"
    if warning:
        return f"{prefix}停滞レポート {date} — {warning}件注意"
    return f"{prefix}停滞レポート {date} — 停滞なし"


# ─────────────────────────────────────────
# CONSTRUCTION DU CORPS
# ─────────────────────────────────────────

def _build_body(
    summary: list[StageSummary],
    alerts: list[StagnationInfo],
    tenant_name: str,
    now: datetime
) -> str:
    lines = []

    lines.append(f"{tenant_name} 停滞レポート（{now.strftime('%Y/%m/%d')}）")
    lines.append("")

    # ── SYNTHÈSE PAR ÉTAPE ──
    lines.append("─" * 40)
    lines.append("ステータス別")
    lines.append("─" * 40)
    for row in summary:
        lines.append(
            f"{row.status} : {row.total}名"
            f"（注意 {row.warning} / 要対応 {row.danger}）"
        )
    lines.append("")

    # ── CLIENTS PRIORITAIRES ──
    lines.append("─" * 40)
    lines.append("優先対応のお客様")
    lines.append("─" * 40)

    if not alerts:
        lines.append("停滞しているお客様はいません。")
    else:
        for info in alerts[:TOP_ALERTS_IN_DIGEST]:
            line = (
                f"  → {info.display_name}（{info.current_status}）"
                f" {info.days_in_status}日経過 [{info.level.label}]"
            )
            if info.recommended_actions:
                line += f" 推奨: {info.recommended_actions[0]}"
            lines.append(line)

        remaining = len(alerts) - TOP_ALERTS_IN_DIGEST
        if remaining > 0:
            lines.append(f"  ほか {remaining}名")

    lines.append("")
    return "\n".join(lines)


# ─────────────────────────────────────────
# UTILITAIRES
# ─────────────────────────────────────────

def _log_digest_sent(tenant_id: str, subject: str) -> None:
    try:
        client = get_client()
        client.table("action_logs").insert({
            "action_type": "stagnation_digest_sent",
            "tenant_id": tenant_id,
            "agent": "orchestrator",
            "payload": {"subject": subject},
            "status": "success",
            "executed_at": utcnow().isoformat()
        }).execute()
    except Exception as e:
        logger.error(f"Erreur log digest : {e}")
