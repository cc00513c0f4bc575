# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Persistence backends for quotes, policies, outbox rows and the consumer ledger."""

from .base import (
    POLICY_NUMBER_CONSTRAINT,
    POLICY_QUOTE_CONSTRAINT,
    ConsumedMessageLedger,
    CustomerDirectory,
    IssuanceStore,
    IssuanceTransaction,
)
from .memory import (
    InMemoryConsumedMessageLedger,
    InMemoryCustomerDirectory,
    InMemoryIssuanceStore,
)
from .postgres import (
    PostgresConsumedMessageLedger,
    PostgresCustomerDirectory,
    PostgresIssuanceStore,
)

__all__ = [
    "POLICY_NUMBER_CONSTRAINT",
    "POLICY_QUOTE_CONSTRAINT",
    "ConsumedMessageLedger",
    "CustomerDirectory",
    "IssuanceStore",
    "IssuanceTransaction",
    "InMemoryConsumedMessageLedger",
    "InMemoryCustomerDirectory",
    "InMemoryIssuanceStore",
    "PostgresConsumedMessageLedger",
    "PostgresCustomerDirectory",
    "PostgresIssuanceStore",
]
