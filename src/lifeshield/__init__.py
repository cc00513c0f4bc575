# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""LifeShield life insurance quote and policy issuance service."""

__version__ = "0.1.0"
