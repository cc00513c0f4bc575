# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Queue abstraction and its Redis implementation."""

from .base import DeadLetter, MessageQueue, ReceivedMessage
from .redis_queue import QueueConfig, RedisMessageQueue, create_redis_client

__all__ = [
    "DeadLetter",
    "MessageQueue",
    "QueueConfig",
    "ReceivedMessage",
    "RedisMessageQueue",
    "create_redis_client",
]
