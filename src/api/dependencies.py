# api/dependencies.py

from fastapi import Header, HTTPException
from services.database import get_client


def verify_api_key(x_api_key: str = Header(...)) -> str:
    """
    Une API key par tenant.
    Retourne tenant_id si OK.
    Header attendu : X-API-KEY
    """
    client = get_client()
    result = (
        client.table("tenants")
        .select("id")
        .eq("api_key", x_api_key)
        .limit(1)
        .execute()
    )

    if not result.data:
        raise HTTPException(status_code=401, detail="Non autorisé")

    return result.data[0]["id"]


def assert_tenant_access(request_tenant_id: str, auth_tenant_id: str) -> None:
    """
    L'URL/body contient tenant_id. On vérifie qu'il correspond à l'API key.
    """
    if str(request_tenant_id) != str(auth_tenant_id):
        raise HTTPException(status_code=403, detail="Forbidden")
