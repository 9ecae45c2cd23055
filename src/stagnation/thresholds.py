# stagnation/thresholds.py

from types import MappingProxyType

from models import PipelineStatus, StageThreshold


# ─────────────────────────────────────────
# ÉTAPES ANALYSÉES
# Seules les étapes avant contrat, dans l'ordre du pipeline.
# ─────────────────────────────────────────

PRE_CONTRACT_STATUS_ORDER: tuple[str, ...] = (
    PipelineStatus.MEMBER.value,
    PipelineStatus.MEETING.value,
    PipelineStatus.APPLICATION.value,
    PipelineStatus.PLAN_SUBMITTED.value,
    PipelineStatus.DECISION.value,
)

# Valeur "infinie" : une étape avec ce seuil n'est jamais signalée
NEVER_FLAGGED_DAYS = 9999


# ─────────────────────────────────────────
# SEUILS PAR ÉTAPE
# Durée standard de séjour — au-delà, le client stagne.
# ─────────────────────────────────────────

STAGNATION_THRESHOLDS = MappingProxyType({
    PipelineStatus.MEMBER.value: StageThreshold(
        warning_days=7,
        danger_days=14,
        label="限定会員",
        recommended_actions=(
            "電話でのフォローアップ",
            "土地情報の送付",
            "イベント案内の送付",
        ),
    ),
    PipelineStatus.MEETING.value: StageThreshold(
        warning_days=14,
        danger_days=30,
        label="面談",
        recommended_actions=(
            "次回面談日程の調整",
            "土地案内の実施",
            "プラン提案の準備",
        ),
    ),
    PipelineStatus.APPLICATION.value: StageThreshold(
        warning_days=21,
        danger_days=45,
        label="建築申込",
        recommended_actions=(
            "プラン依頼の確認",
            "資金計画の見直し",
            "土地決定の確認",
        ),
    ),
    PipelineStatus.PLAN_SUBMITTED.value: StageThreshold(
        warning_days=14,
        danger_days=30,
        label="プラン提出",
        recommended_actions=(
            "プラン修正の確認",
            "見積もりの再提示",
            "競合状況の確認",
        ),
    ),
    PipelineStatus.DECISION.value: StageThreshold(
        warning_days=14,
        danger_days=30,
        label="内定",
        recommended_actions=(
            "契約日程の調整",
            "ローン審査状況の確認",
            "契約書類の準備",
        ),
    ),
    PipelineStatus.LOST.value: StageThreshold(
        warning_days=NEVER_FLAGGED_DAYS,
        danger_days=NEVER_FLAGGED_DAYS,
        label="ボツ・他決",
    ),
})


# ─────────────────────────────────────────
# ÉTAPE → CHAMP DATE D'ENTRÉE
# Pas de champ dédié pour "プラン提出" dans le modèle de données :
# on réutilise application_date tant que la table customers n'a pas
# de plan_submitted_date.
# ─────────────────────────────────────────

STAGE_ENTRY_FIELDS = MappingProxyType({
    PipelineStatus.MEMBER.value: "member_date",
    PipelineStatus.MEETING.value: "meeting_date",
    PipelineStatus.APPLICATION.value: "application_date",
    PipelineStatus.PLAN_SUBMITTED.value: "application_date",
    PipelineStatus.DECISION.value: "decision_date",
})

FALLBACK_ENTRY_FIELD = "updated_at"
