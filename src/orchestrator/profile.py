# orchestrator/profile.py

import logging
from datetime import datetime, timezone

from services.database import get_client

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONFIG PAR DÉFAUT
# Si un paramètre n'est pas dans le profil tenant,
# on utilise ces valeurs.
# ─────────────────────────────────────────

DEFAULT_AGENT_CONFIGS = {
    "pipeline_stagnation": {
        "enabled": True,
        "notify_min_level": "danger",     # "warning" | "danger"
        "max_alert_items": 5,             # taille du widget dashboard
        "manager_email": "",              # reçoit les non-assignés + le digest
        "slack_webhook": "",
        "digest_enabled": True
    }
}


# ─────────────────────────────────────────
# LECTURE DU PROFIL
# ─────────────────────────────────────────

def get_tenant_profile(tenant_id: str) -> dict:
    """
    Retourne le profil complet d'un tenant.
    Fusionne les configs stockées avec les defaults.

    Structure retournée :
    {
        "tenant": {...},            # données de base
        "agent_configs": {
            "pipeline_stagnation": {...}
        }
    }
    """
    try:
        client = get_client()
        result = client.table("tenants").select("*").eq(
            "id", tenant_id
        ).limit(1).execute()

        if not result.data:
            logger.error(f"Tenant introuvable : {tenant_id}")
            return {}

        tenant = result.data[0]

        stored_configs = tenant.get("agent_configs") or {}
        merged_configs = {}

        for agent_name, default_config in DEFAULT_AGENT_CONFIGS.items():
            stored = stored_configs.get(agent_name, {})
            merged_configs[agent_name] = {**default_config, **stored}

        return {
            "tenant": {
                "id": tenant["id"],
                "name": tenant.get("name", "")
            },
            "agent_configs": merged_configs
        }

    except Exception as e:
        logger.error(f"Erreur get_tenant_profile {tenant_id} : {e}")
        return {}


def get_agent_config(tenant_id: str, agent_name: str) -> dict:
    """
    Raccourci : retourne uniquement la config d'un agent.
    C'est ce que les agents appellent au démarrage.
    """
    profile = get_tenant_profile(tenant_id)
    if not profile:
        return dict(DEFAULT_AGENT_CONFIGS.get(agent_name, {}))

    return profile.get("agent_configs", {}).get(
        agent_name,
        dict(DEFAULT_AGENT_CONFIGS.get(agent_name, {}))
    )


def is_agent_enabled(tenant_id: str, agent_name: str) -> bool:
    config = get_agent_config(tenant_id, agent_name)
    return config.get("enabled", True)


def get_all_active_tenants() -> list[dict]:
    """
    Retourne tous les tenants avec au moins un agent activé.
    Utilisé par le scheduler pour savoir qui faire tourner.
    """
    try:
        client = get_client()
        result = client.table("tenants").select(
            "id, name, agent_configs"
        ).execute()

        active = []
        for tenant in (result.data or []):
            configs = tenant.get("agent_configs") or {}
            any_enabled = any(
                configs.get(agent, {}).get("enabled", True)
                for agent in DEFAULT_AGENT_CONFIGS.keys()
            )
            if any_enabled:
                active.append({
                    "id": tenant["id"],
                    "name": tenant.get("name", "")
                })

        return active

    except Exception as e:
        logger.error(f"Erreur get_all_active_tenants : {e}")
        return []


# ─────────────────────────────────────────
# MISE À JOUR DU PROFIL
# ─────────────────────────────────────────

def update_agent_config(
    tenant_id: str,
    agent_name: str,
    updates: dict
) -> bool:
    """
    Met à jour la config d'un agent pour un tenant.

    updates : dict des paramètres à modifier
              ex: {"notify_min_level": "warning"}
    """
    if agent_name not in DEFAULT_AGENT_CONFIGS:
        logger.warning(f"Agent inconnu : {agent_name}")
        return False

    try:
        client = get_client()

        result = client.table("tenants").select("agent_configs").eq(
            "id", tenant_id
        ).limit(1).execute()

        if not result.data:
            return False

        current_configs = result.data[0].get("agent_configs") or {}
        agent_config = current_configs.get(agent_name, {})
        agent_config.update(updates)
        current_configs[agent_name] = agent_config

        client.table("tenants").update({
            "agent_configs": current_configs,
            "updated_at": datetime.now(timezone.utc).isoformat()
        }).eq("id", tenant_id).execute()

        logger.info(
            f"Config {agent_name} mise à jour pour {tenant_id} : {updates}"
        )
        return True

    except Exception as e:
        logger.error(f"Erreur update_agent_config : {e}")
        return False
