# scheduler.py

import logging
import os

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED

from orchestrator.profile import get_all_active_tenants

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s : %(message)s"
)
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# JOBS
# ─────────────────────────────────────────

def run_pipeline_stagnation() -> None:
    """7h00 quotidien."""
    for tenant in get_all_active_tenants():
        tenant_id = tenant["id"]
        try:
            from orchestrator.profile import get_agent_config, is_agent_enabled
            if not is_agent_enabled(tenant_id, "pipeline_stagnation"):
                continue

            config = get_agent_config(tenant_id, "pipeline_stagnation")
            from agents.pipeline_stagnation import PipelineStagnationAgent
            result = PipelineStagnationAgent(tenant_id, config).run()

            logger.info(
                f"[stagnation] {tenant['name']} — "
                f"{result.kpi_value:.0f} client(s) en danger"
            )
        except Exception as e:
            logger.error(f"[stagnation] {tenant['name']} : {e}")


def run_stagnation_digest() -> None:
    """7h30 — lundi uniquement."""
    from orchestrator.digest import send_stagnation_digest

    for tenant in get_all_active_tenants():
        try:
            success = send_stagnation_digest(tenant["id"])
            status  = "envoyé" if success else "non envoyé"
            logger.info(f"[digest] {tenant['name']} — {status}")
        except Exception as e:
            logger.error(f"[digest] {tenant['name']} : {e}")


# ─────────────────────────────────────────
# LISTENERS
# ─────────────────────────────────────────

def _on_job_executed(event) -> None:
    if event.exception:
        logger.error(f"[scheduler] Job {event.job_id} — exception levée")


# ─────────────────────────────────────────
# BUILD SCHEDULER
# ─────────────────────────────────────────

def build_scheduler() -> BlockingScheduler:
    timezone = os.environ.get("SCHEDULER_TIMEZONE", "Asia/Tokyo")
    scheduler = BlockingScheduler(timezone=timezone)
    scheduler.add_listener(
        _on_job_executed,
        EVENT_JOB_ERROR | EVENT_JOB_EXECUTED
    )

    # 7h00 — Détection de stagnation
    scheduler.add_job(
        run_pipeline_stagnation,
        trigger=CronTrigger(hour=7, minute=0),
        id="pipeline_stagnation",
        name="Agent — Pipeline Stagnation",
        max_instances=1,
        coalesce=True
    )

    # 7h30 lundi — Digest
    scheduler.add_job(
        run_stagnation_digest,
        trigger=CronTrigger(day_of_week="mon", hour=7, minute=30),
        id="stagnation_digest",
        name="Orchestrateur — Stagnation Digest",
        max_instances=1,
        coalesce=True
    )

    return scheduler


# ─────────────────────────────────────────
# POINT D'ENTRÉE
# ─────────────────────────────────────────

def main() -> None:
    logger.info("=" * 50)
    logger.info("Stagnation Scheduler — Démarrage")
    logger.info("=" * 50)

    scheduler = build_scheduler()

    logger.info("Jobs configurés :")
    for job in scheduler.get_jobs():
        logger.info(f"  → {job.name}")

    logger.info("En attente...")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler arrêté proprement.")


if __name__ == "__main__":
    main()
