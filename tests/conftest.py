# tests/conftest.py

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch


# ─────────────────────────────────────────
# FIXTURES — DONNÉES RÉALISTES
# Des lignes qui ressemblent à ce que renvoie
# la table customers de Supabase.
# ─────────────────────────────────────────

FIXED_NOW = datetime(2025, 3, 15, 9, 0, 0)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def tenant_id():
    return "test-tenant-uuid-123"


@pytest.fixture
def api_key():
    return "test-api-key"


def _day(now: datetime, days_ago: int) -> str:
    """Date seule, comme les colonnes *_date de Supabase."""
    return (now - timedelta(days=days_ago)).date().isoformat()


@pytest.fixture
def sample_customers(now, tenant_id):
    """
    8 clients : mix d'étapes, de dates présentes/absentes
    et de statuts hors analyse.
    """
    return [
        # 面談 depuis 20 jours → warning (14/30)
        {
            "id": "cust_001",
            "tenant_id": tenant_id,
            "name": "山田 太郎",
            "tei_name": "山田邸",
            "pipeline_status": "面談",
            "member_date": _day(now, 40),
            "meeting_date": _day(now, 20),
            "assigned_to": "rep_001",
            "updated_at": (now - timedelta(days=3)).isoformat() + "Z",
        },
        # 内定 depuis 31 jours → danger (14/30)
        {
            "id": "cust_002",
            "tenant_id": tenant_id,
            "name": "鈴木 花子",
            "tei_name": None,
            "pipeline_status": "内定",
            "decision_date": _day(now, 31),
            "assigned_to": "rep_001",
            "updated_at": (now - timedelta(days=10)).isoformat() + "Z",
        },
        # 限定会員 sans aucune date → non analysable
        {
            "id": "cust_003",
            "tenant_id": tenant_id,
            "name": "佐々木 一郎",
            "tei_name": "佐々木邸",
            "pipeline_status": "限定会員",
            "member_date": None,
            "assigned_to": "rep_002",
            "updated_at": None,
        },
        # 契約 — hors pipeline avant contrat
        {
            "id": "cust_004",
            "tenant_id": tenant_id,
            "name": "高橋 次郎",
            "tei_name": "高橋邸",
            "pipeline_status": "契約",
            "decision_date": _day(now, 200),
            "contract_date": _day(now, 100),
            "assigned_to": "rep_001",
            "updated_at": (now - timedelta(days=100)).isoformat() + "Z",
        },
        # 建築申込 depuis 50 jours, sans commercial → danger (21/45)
        {
            "id": "cust_005",
            "tenant_id": tenant_id,
            "name": "伊藤 三郎",
            "tei_name": "伊藤邸",
            "pipeline_status": "建築申込",
            "application_date": _day(now, 50),
            "assigned_to": None,
            "updated_at": (now - timedelta(days=20)).isoformat() + "Z",
        },
        # プラン提出 : application_date réutilisée, 10 jours → normal
        {
            "id": "cust_006",
            "tenant_id": tenant_id,
            "name": "渡辺 四郎",
            "tei_name": "渡辺邸",
            "pipeline_status": "プラン提出",
            "application_date": _day(now, 10),
            "assigned_to": "rep_002",
            "updated_at": (now - timedelta(days=1)).isoformat() + "Z",
        },
        # 限定会員 sans member_date → updated_at il y a 8 jours → warning (7/14)
        {
            "id": "cust_007",
            "tenant_id": tenant_id,
            "name": "中村 五月",
            "tei_name": "",
            "pipeline_status": "限定会員",
            "member_date": None,
            "assigned_to": "rep_002",
            "updated_at": (now - timedelta(days=8)).isoformat() + "Z",
        },
        # ボツ・他決 — jamais analysé
        {
            "id": "cust_008",
            "tenant_id": tenant_id,
            "name": "小林 六郎",
            "tei_name": None,
            "pipeline_status": "ボツ・他決",
            "lost_date": _day(now, 90),
            "assigned_to": "rep_001",
            "updated_at": (now - timedelta(days=90)).isoformat() + "Z",
        },
    ]


@pytest.fixture
def sample_team_members(tenant_id):
    return [
        {
            "id": "rep_001",
            "tenant_id": tenant_id,
            "name": "佐藤",
            "email": "sato@example.com",
        },
        {
            "id": "rep_002",
            "tenant_id": tenant_id,
            "name": "田中",
            "email": "tanaka@example.com",
        },
    ]


@pytest.fixture
def supabase_data(tenant_id, api_key, sample_customers, sample_team_members):
    """
    Contenu des tables, modifiable par test avant l'appel.
    """
    return {
        "tenants": [{
            "id": tenant_id,
            "name": "Gハウス",
            "api_key": api_key,
            "agent_configs": {
                "pipeline_stagnation": {
                    "manager_email": "manager@example.com"
                }
            }
        }],
        "customers": sample_customers,
        "team_members": sample_team_members,
        "agent_runs": [],
        "action_logs": [],
        "events": [],
    }


@pytest.fixture
def mock_supabase(monkeypatch, supabase_data):
    """
    Mock Supabase complet.
    Les .eq() filtrent réellement les lignes,
    les insert/update sont enregistrés sur le client.
    On ne touche jamais la vraie base pendant les tests.
    """
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test-service-key")

    with patch("services.database.create_client") as mock_create_client:
        mock_client = MagicMock()
        mock_client.inserted = {}
        mock_client.updated = {}
        mock_create_client.return_value = mock_client

        def table_mock(table_name):
            filters = {}
            query = MagicMock()

            # Chaîne de méthodes fluide
            for method in ("select", "order", "limit", "neq", "gte", "lte"):
                getattr(query, method).return_value = query

            def eq(key, value):
                filters[key] = value
                return query

            def insert(record):
                mock_client.inserted.setdefault(table_name, []).append(record)
                return query

            def update(record):
                mock_client.updated.setdefault(table_name, []).append(record)
                return query

            def execute():
                rows = [
                    row for row in supabase_data.get(table_name, [])
                    if all(row.get(k, v) == v for k, v in filters.items())
                ]
                return MagicMock(data=rows)

            query.eq.side_effect = eq
            query.insert.side_effect = insert
            query.update.side_effect = update
            query.execute.side_effect = execute

            return query

        mock_client.table.side_effect = table_mock
        yield mock_client
