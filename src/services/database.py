# services/database.py

import os
import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import create_client, Client

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONNEXION
# ─────────────────────────────────────────

def get_client() -> Client:
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_KEY"]
    return create_client(url, key)


# ─────────────────────────────────────────
# LECTURE
# ─────────────────────────────────────────

def get(table: str, tenant_id: str, filters: Optional[dict] = None) -> list:
    """
    Récupère des enregistrements pour un tenant donné.
    filters : dict optionnel de conditions supplémentaires
              ex: {"pipeline_status": "面談", "assigned_to": "abc"}
    """
    client = get_client()

    query = client.table(table).select("*").eq("tenant_id", tenant_id)

    if filters:
        for key, value in filters.items():
            query = query.eq(key, value)

    result = query.execute()
    return result.data or []


def get_one(table: str, tenant_id: str, record_id: str) -> Optional[dict]:
    """
    Récupère un enregistrement unique par son id.
    """
    client = get_client()

    result = (
        client.table(table)
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("id", record_id)
        .limit(1)
        .execute()
    )

    return result.data[0] if result.data else None


def get_customers(tenant_id: str) -> list[dict]:
    """Tous les clients d'un tenant — l'entrée du moteur de stagnation."""
    return get("customers", tenant_id)


# ─────────────────────────────────────────
# ÉVÉNEMENTS
# ─────────────────────────────────────────

def publish_event(event_type: str, tenant_id: str, payload: dict) -> dict:
    """
    Publie un événement dans la table events.
    Les consommateurs (notifications, dashboard temps réel) lisent cette table.
    """
    client = get_client()

    event = {
        "event_type": event_type,
        "tenant_id": tenant_id,
        "payload": payload,
        "processed": False,
        "created_at": datetime.now(timezone.utc).isoformat()
    }

    result = client.table("events").insert(event).execute()
    return result.data[0] if result.data else {}
