# api/routes/agents.py

import logging

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel

from api.dependencies import verify_api_key, assert_tenant_access
from models import StagnationLevel

router = APIRouter()
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# SCHEMAS
# ─────────────────────────────────────────

class RunAgentRequest(BaseModel):
    tenant_id: str
    agent_name: str = "pipeline_stagnation"


class AdjustConfigRequest(BaseModel):
    tenant_id: str
    agent_name: str
    parameter: str
    new_value: str | int | float | bool


# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────

@router.post("/run")
def run_agent(
    body: RunAgentRequest,
    auth_tenant_id: str = Depends(verify_api_key),
) -> dict:
    """
    Déclenche un agent manuellement pour un tenant.
    """
    assert_tenant_access(body.tenant_id, auth_tenant_id)

    tenant_id = body.tenant_id
    agent_name = body.agent_name

    from orchestrator.profile import get_agent_config, is_agent_enabled

    if agent_name not in _AGENTS:
        raise HTTPException(status_code=400, detail=f"Agent inconnu : {agent_name}")

    if not is_agent_enabled(tenant_id, agent_name):
        raise HTTPException(
            status_code=400,
            detail=f"Agent {agent_name} désactivé pour ce tenant"
        )

    config = get_agent_config(tenant_id, agent_name)

    try:
        result = _run_agent(agent_name, tenant_id, config)
        return {
            "agent": result.agent,
            "kpi_name": result.kpi_name,
            "kpi_value": result.kpi_value,
            "actions_taken": len(result.actions_taken),
            "success": result.success,
            "errors": result.errors,
            "duration_seconds": result.duration_seconds
        }
    except Exception as e:
        logger.error(f"Erreur run_agent {agent_name} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/config/adjust")
def adjust_config(
    body: AdjustConfigRequest,
    auth_tenant_id: str = Depends(verify_api_key),
) -> dict:
    """
    Ajuste un paramètre d'agent (ex: notify_min_level, max_alert_items).
    """
    assert_tenant_access(body.tenant_id, auth_tenant_id)

    from orchestrator.profile import DEFAULT_AGENT_CONFIGS, update_agent_config

    defaults = DEFAULT_AGENT_CONFIGS.get(body.agent_name)
    if defaults is None:
        raise HTTPException(status_code=400, detail=f"Agent inconnu : {body.agent_name}")
    if body.parameter not in defaults:
        raise HTTPException(
            status_code=400,
            detail=f"Paramètre inconnu : {body.parameter}"
        )

    error = _check_value(body.parameter, body.new_value, defaults[body.parameter])
    if error:
        raise HTTPException(status_code=400, detail=error)

    success = update_agent_config(
        tenant_id=body.tenant_id,
        agent_name=body.agent_name,
        updates={body.parameter: body.new_value}
    )

    if not success:
        raise HTTPException(status_code=500, detail="Erreur lors de l'ajustement")

    return {
        "status": "adjusted",
        "agent": body.agent_name,
        "parameter": body.parameter,
        "new_value": body.new_value
    }


# ─────────────────────────────────────────
# UTILITAIRES
# ─────────────────────────────────────────

_AGENTS = ("pipeline_stagnation",)


def _run_agent(agent_name: str, tenant_id: str, config: dict):
    if agent_name == "pipeline_stagnation":
        from agents.pipeline_stagnation import PipelineStagnationAgent
        return PipelineStagnationAgent(tenant_id, config).run()

    raise ValueError(f"Agent inconnu : {agent_name}")


def _check_value(parameter: str, value, default) -> str | None:
    """
    Message d'erreur si la valeur ne convient pas au paramètre, sinon None.
    Une valeur invalide stockée casserait le dashboard du tenant.
    """
    if parameter == "notify_min_level":
        if value not in {level.value for level in StagnationLevel}:
            return f"notify_min_level invalide : {value!r} (normal | warning | danger)"
        return None

    if parameter == "max_alert_items":
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 100:
            return f"max_alert_items doit être un entier entre 1 et 100 : {value!r}"
        return None

    if not isinstance(value, type(default)):
        return f"{parameter} attend un {type(default).__name__} : {value!r}"
    return None
