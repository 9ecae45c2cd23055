# api/routes/dashboard.py

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Depends

from api.dependencies import verify_api_key, assert_tenant_access
from models import Customer, StagnationLevel

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/stagnation/{tenant_id}")
def get_stagnation_alerts(
    tenant_id: str,
    min_level: StagnationLevel = Query(StagnationLevel.WARNING),
    limit: Optional[int] = Query(None, ge=1, le=100),
    auth_tenant_id: str = Depends(verify_api_key),
) -> dict:
    """
    Widget "停滞アラート" : clients prioritaires + compteurs.
    limit absent → max_alert_items de la config du tenant.
    """
    assert_tenant_access(tenant_id, auth_tenant_id)

    from services.database import get_customers
    from orchestrator.profile import get_agent_config
    from stagnation.engine import (
        build_alert_overview,
        find_stagnant_customers,
        utcnow,
    )

    try:
        if limit is None:
            config = get_agent_config(tenant_id, "pipeline_stagnation")
            limit = _configured_limit(config, tenant_id)

        customers = get_customers(tenant_id)
        now = utcnow()

        overview = build_alert_overview(customers, max_items=limit, now=now)

        if min_level is not StagnationLevel.WARNING:
            ranked = find_stagnant_customers(customers, min_level, now=now)
            overview.alerts = ranked[:limit]
            overview.has_more = len(ranked) > limit

        return {"min_level": min_level.value, **overview.to_dict()}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Erreur get_stagnation_alerts {tenant_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stagnation/{tenant_id}/summary")
def get_stagnation_summary(
    tenant_id: str,
    auth_tenant_id: str = Depends(verify_api_key),
) -> dict:
    """Comptes par étape, dans l'ordre du pipeline."""
    assert_tenant_access(tenant_id, auth_tenant_id)

    from services.database import get_customers
    from stagnation.engine import summarize_stagnation

    try:
        customers = get_customers(tenant_id)
        summary = summarize_stagnation(customers)

        return {
            "summary": [row.to_dict() for row in summary],
            "eligible_total": sum(row.total for row in summary),
            "total_warning": sum(row.warning for row in summary),
            "total_danger": sum(row.danger for row in summary)
        }

    except Exception as e:
        logger.error(f"Erreur get_stagnation_summary {tenant_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stagnation/{tenant_id}/customers/{customer_id}")
def get_customer_stagnation(
    tenant_id: str,
    customer_id: str,
    auth_tenant_id: str = Depends(verify_api_key),
) -> dict:
    """
    Stagnation d'un client (fiche client).
    stagnation = null si l'étape n'est pas analysée ou sans date.
    """
    assert_tenant_access(tenant_id, auth_tenant_id)

    from services.database import get_one
    from stagnation.engine import calculate_stagnation

    try:
        customer = get_one("customers", tenant_id, customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail="Client introuvable")

        info = calculate_stagnation(Customer.from_row(customer))

        return {
            "customer_id": customer_id,
            "stagnation": info.to_dict() if info else None
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Erreur get_customer_stagnation {customer_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


DEFAULT_ALERT_ITEMS = 5


def _configured_limit(config: dict, tenant_id: str) -> int:
    """max_alert_items du tenant, borné à 1..100 comme le paramètre limit."""
    raw = config.get("max_alert_items", DEFAULT_ALERT_ITEMS)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            f"max_alert_items invalide pour {tenant_id} : {raw!r} — "
            f"{DEFAULT_ALERT_ITEMS} utilisé"
        )
        return DEFAULT_ALERT_ITEMS
    return min(max(value, 1), 100)
