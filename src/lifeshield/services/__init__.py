# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Business logic service layer."""

from lifeshield.core.result_types import Err, Ok, Result

from .issuance_service import IssuanceService, generate_policy_number
from .notification_consumer import NotificationConsumer, ProcessingOutcome
from .notifications import LoggingNotificationSender, NotificationSender
from .outbox_publisher import DrainReport, OutboxPublisher
from .pricing import compute_premium, risk_multiplier

__all__ = [
    "Result",
    "Ok",
    "Err",
    "IssuanceService",
    "generate_policy_number",
    "OutboxPublisher",
    "DrainReport",
    "NotificationConsumer",
    "ProcessingOutcome",
    "NotificationSender",
    "LoggingNotificationSender",
    "compute_premium",
    "risk_multiplier",
]
