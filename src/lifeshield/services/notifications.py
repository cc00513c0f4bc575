# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer notification delivery."""

import logging
from typing import Protocol, runtime_checkable

from ..models.notification import Notification

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSender(Protocol):
    """Delivers a notification; raises on failure so the message redelivers."""

    async def send(self, notification: Notification) -> None: ...


class LoggingNotificationSender:
    """Simulated delivery: logs the notification and keeps it in ``sent``."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        logger.info(
            f"Sending {notification.channel} to customer {notification.customer_id}: "
            f"{notification.subject}"
        )
        self.sent.append(notification)
