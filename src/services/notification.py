# services/notification.py

import os
import logging
import requests
from typing import Optional

logger = logging.getLogger(__name__)

RESEND_ENDPOINT = "https://api.resend.com/emails"


# ─────────────────────────────────────────
# EMAIL (Resend, texte brut)
# Alertes commerciaux et digest manager :
# un destinataire, pas de HTML.
# ─────────────────────────────────────────

def send_email(to: str, subject: str, body: str) -> bool:
    api_key = os.environ.get("RESEND_API_KEY", "")
    if not api_key:
        logger.error("RESEND_API_KEY non configuré")
        return False

    sender = os.environ.get("RESEND_FROM_EMAIL", "alerts@example.com")

    try:
        response = requests.post(
            RESEND_ENDPOINT,
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "from": f"停滞アラート <{sender}>",
                "to": [to],
                "subject": subject,
                "text": body,
            },
            timeout=15
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Erreur envoi email à {to} : {e}")
        return False

    logger.info(f"Alerte envoyée à {to} — {subject}")
    return True


# ─────────────────────────────────────────
# SLACK (webhook du tenant ou SLACK_WEBHOOK_URL)
# ─────────────────────────────────────────

def send_slack(message: str, webhook_url: Optional[str] = None) -> bool:
    url = webhook_url or os.environ.get("SLACK_WEBHOOK_URL", "")
    if not url:
        logger.debug("Pas de webhook Slack — message ignoré")
        return False

    try:
        requests.post(url, json={"text": message}, timeout=10).raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Erreur Slack : {e}")
        return False

    return True


def notify_sales_rep(
    name: str,
    email: str,
    subject: str,
    message: str,
    slack_webhook: Optional[str] = None
) -> bool:
    """
    Email au commercial, copie Slack avec mention si le tenant a un webhook.
    Retourne True si l'email est parti.
    """
    sent = send_email(to=email, subject=subject, body=message)

    if slack_webhook:
        send_slack(f"@{name} {subject}\n{message}", webhook_url=slack_webhook)

    return sent
