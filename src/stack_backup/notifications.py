from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

from .config import NotificationsConfig

if TYPE_CHECKING:
    from .orchestrator import RunResult

LOG = logging.getLogger(__name__)


def should_notify(config: NotificationsConfig, result: "RunResult") -> bool:
    if config.notify_on == "never":
        return False
    if config.notify_on == "always":
        return True
    return not result.success


def format_summary(service_name: str, result: "RunResult") -> str:
    duration = (result.completed_at - result.started_at).total_seconds()
    if result.success:
        lines = [f":white_check_mark: Backup of *{service_name}* succeeded in {duration:.0f}s"]
        if result.archive_path:
            lines.append(f"Archive: `{result.archive_path.name}`")
    else:
        lines = [f":x: Backup of *{service_name}* failed at step `{result.failed_step}`"]
        lines.extend(f"- {error}" for error in result.errors)
        if result.service_left_down:
            lines.append(f":warning: *{service_name}* may still be stopped")
    if result.warnings:
        lines.append(f"{len(result.warnings)} warning(s) during retention cleanup")
    return "\n".join(lines)


def send_notification(config: NotificationsConfig, service_name: str, result: "RunResult") -> bool:
    if not should_notify(config, result):
        return False
    webhook = config.resolve_slack_webhook()
    if not webhook:
        if config.slack_webhook_env:
            LOG.warning("Slack webhook env %s is not set; skipping notification", config.slack_webhook_env)
        return False

    try:
        response = requests.post(webhook, json={"text": format_summary(service_name, result)}, timeout=10)
        response.raise_for_status()
    except requests.RequestException as exc:
        LOG.warning("Failed to send Slack notification: %s", exc)
        return False
    LOG.info("Slack notification sent")
    return True
