"""Push notifications to a simple pub/sub HTTP endpoint (ntfy-style topics).

Delivery is best-effort: a failed notification is logged and forgotten. It
must never influence tracking state or the retry budget.
"""

from __future__ import annotations

import logging
from typing import Iterable

import requests

from branchwatch_core.models import NotificationRequest

logger = logging.getLogger(__name__)


def notify(
    url: str | None,
    title: str,
    message: str,
    priority: str = "default",
    tags: Iterable[str] = (),
    timeout: float = 10,
) -> None:
    if not url:
        return

    body = f"{title}\n\n{message}"
    headers = {"Priority": priority}
    tag_list = [t for t in tags if t]
    if tag_list:
        headers["Tags"] = ",".join(tag_list)

    try:
        resp = requests.post(url, data=body.encode("utf-8"), headers=headers, timeout=timeout)
        if resp.status_code >= 400:
            logger.warning("Notification to %s rejected with HTTP %d", url, resp.status_code)
        else:
            logger.debug("Notification sent to %s: %s", url, title)
    except requests.RequestException as e:
        logger.warning("Notification to %s failed (%s): %s", url, type(e).__name__, e)


def send(request: NotificationRequest, timeout: float = 10) -> None:
    notify(request.url, request.title, request.message, request.priority, request.tags, timeout=timeout)
