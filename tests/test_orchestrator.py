# tests/test_orchestrator.py

"""
Ce qu'on teste :
→ La fusion des configs tenant avec les defaults
→ La mise à jour d'un paramètre d'agent
→ Le digest hebdomadaire : sujet, corps, conditions d'envoi
"""

import pytest
from unittest.mock import patch


class TestProfile:

    def test_default_config_merged(self, mock_supabase, tenant_id):
        """
        Le tenant ne stocke que manager_email
        → les autres paramètres viennent des defaults.
        """
        from orchestrator.profile import get_agent_config

        config = get_agent_config(tenant_id, "pipeline_stagnation")

        assert config["manager_email"] == "manager@example.com"
        assert config["notify_min_level"] == "danger"
        assert config["max_alert_items"] == 5
        assert config["enabled"] is True

    def test_tenant_config_overrides_default(self, mock_supabase, supabase_data, tenant_id):
        supabase_data["tenants"][0]["agent_configs"]["pipeline_stagnation"].update({
            "notify_min_level": "warning",
            "max_alert_items": 10,
        })

        from orchestrator.profile import get_agent_config
        config = get_agent_config(tenant_id, "pipeline_stagnation")

        assert config["notify_min_level"] == "warning"
        assert config["max_alert_items"] == 10

    def test_unknown_tenant_falls_back_to_defaults(self, mock_supabase):
        from orchestrator.profile import DEFAULT_AGENT_CONFIGS, get_agent_config

        config = get_agent_config("other-tenant", "pipeline_stagnation")

        assert config == DEFAULT_AGENT_CONFIGS["pipeline_stagnation"]

    def test_is_agent_enabled_default_true(self, mock_supabase, tenant_id):
        from orchestrator.profile import is_agent_enabled
        assert is_agent_enabled(tenant_id, "pipeline_stagnation") is True

    def test_active_tenants_skip_disabled(self, mock_supabase, supabase_data, tenant_id):
        supabase_data["tenants"].append({
            "id": "disabled-tenant",
            "name": "Off",
            "agent_configs": {"pipeline_stagnation": {"enabled": False}}
        })

        from orchestrator.profile import get_all_active_tenants
        tenants = get_all_active_tenants()

        assert [t["id"] for t in tenants] == [tenant_id]

    def test_update_agent_config(self, mock_supabase, tenant_id):
        from orchestrator.profile import update_agent_config

        ok = update_agent_config(
            tenant_id, "pipeline_stagnation", {"notify_min_level": "warning"}
        )

        assert ok is True
        written = mock_supabase.updated["tenants"][0]["agent_configs"]
        assert written["pipeline_stagnation"]["notify_min_level"] == "warning"
        # La valeur existante est conservée
        assert written["pipeline_stagnation"]["manager_email"] == "manager@example.com"

    def test_update_unknown_agent_rejected(self, mock_supabase, tenant_id):
        from orchestrator.profile import update_agent_config

        assert update_agent_config(tenant_id, "revenue_velocity", {"x": 1}) is False
        assert "tenants" not in mock_supabase.updated


class TestStagnationDigest:

    def test_sent_to_manager(self, mock_supabase, now, tenant_id):
        from orchestrator.digest import send_stagnation_digest

        with patch("orchestrator.digest.send_email", return_value=True) as mock_email:
            sent = send_stagnation_digest(tenant_id, now=now)

        assert sent is True
        kwargs = mock_email.call_args.kwargs
        assert kwargs["to"] == "manager@example.com"
        assert kwargs["subject"] == "Gハウス — 停滞レポート 2025/03/15 — ⚠️ 2件要対応"

        body = kwargs["body"]
        assert "ステータス別" in body
        assert "限定会員 : 2名（注意 1 / 要対応 0）" in body
        assert "内定 : 1名（注意 0 / 要対応 1）" in body
        # Priorité : danger le plus ancien en premier
        assert body.index("伊藤邸") < body.index("鈴木 花子") < body.index("山田邸")

        logs = mock_supabase.inserted["action_logs"]
        assert logs[0]["action_type"] == "stagnation_digest_sent"

    def test_no_manager_email(self, mock_supabase, supabase_data, now, tenant_id):
        supabase_data["tenants"][0]["agent_configs"] = {}

        from orchestrator.digest import send_stagnation_digest
        with patch("orchestrator.digest.send_email") as mock_email:
            assert send_stagnation_digest(tenant_id, now=now) is False

        mock_email.assert_not_called()

    def test_digest_disabled(self, mock_supabase, supabase_data, now, tenant_id):
        supabase_data["tenants"][0]["agent_configs"]["pipeline_stagnation"][
            "digest_enabled"] = False

        from orchestrator.digest import send_stagnation_digest
        with patch("orchestrator.digest.send_email") as mock_email:
            assert send_stagnation_digest(tenant_id, now=now) is False

        mock_email.assert_not_called()

    def test_unknown_tenant(self, mock_supabase, now):
        from orchestrator.digest import send_stagnation_digest
        assert send_stagnation_digest("other-tenant", now=now) is False

    def test_email_failure_not_logged(self, mock_supabase, now, tenant_id):
        from orchestrator.digest import send_stagnation_digest

        with patch("orchestrator.digest.send_email", return_value=False):
            assert send_stagnation_digest(tenant_id, now=now) is False

        assert "action_logs" not in mock_supabase.inserted


class TestDigestFormatting:

    @pytest.fixture
    def summary(self, sample_customers, now):
        from stagnation import summarize_stagnation
        return summarize_stagnation(sample_customers, now=now)

    def test_subject_without_stagnation(self, now):
        from orchestrator.digest import _build_subject
        from stagnation import summarize_stagnation

        subject = _build_subject(summarize_stagnation([], now=now), "", now)

        assert subject == "停滞レポート 2025/03/15 — 停滞なし"

    def test_subject_warning_only(self, now):
        from orchestrator.digest import _build_subject
        from stagnation import summarize_stagnation

        customers = [{
            "id": "c1",
            "pipeline_status": "面談",
            "meeting_date": "2025-02-20",
        }]
        subject = _build_subject(summarize_stagnation(customers, now=now), "A", now)

        assert subject == "A — 停滞レポート 2025/03/15 — 1件注意"

    def test_body_without_alerts(self, summary, now):
        from orchestrator.digest import _build_body

        body = _build_body(summary, [], "Gハウス", now)

        assert "停滞しているお客様はいません。" in body

    def test_body_truncates_alerts(self, summary, now):
        from orchestrator.digest import TOP_ALERTS_IN_DIGEST, _build_body
        from stagnation import find_stagnant_customers

        customers = [
            {
                "id": f"c{n}",
                "name": f"顧客{n}",
                "pipeline_status": "内定",
                "decision_date": "2025-01-01",
            }
            for n in range(TOP_ALERTS_IN_DIGEST + 3)
        ]
        alerts = find_stagnant_customers(customers, "warning", now=now)

        body = _build_body(summary, alerts, "Gハウス", now)

        assert "ほか 3名" in body
        assert body.count("推奨:") == TOP_ALERTS_IN_DIGEST
