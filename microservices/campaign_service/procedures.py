"""
Campaign Remote Procedures

Typed wrappers over the server-side functions that own audience sizing,
promo code generation / validation / redemption and metrics rollups.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from .protocols import RemoteProcedureInvokerProtocol

logger = logging.getLogger(__name__)


class CampaignProcedures:
    """CampaignProceduresProtocol backed by named Postgres functions"""

    CALCULATE_AUDIENCE = "calculate_campaign_audience"
    GENERATE_PROMO_CODE = "generate_promo_code"
    VALIDATE_PROMO_CODE = "validate_promo_code"
    REDEEM_PROMO_CODE = "redeem_promo_code"
    UPDATE_METRICS = "update_campaign_metrics_for_campaign"

    def __init__(self, invoker: RemoteProcedureInvokerProtocol):
        self.invoker = invoker

    async def resolve_audience_size(
        self,
        restaurant_id: str,
        audience_type: str,
        audience_filter: Dict[str, Any],
    ) -> Optional[int]:
        return await self.invoker.call_procedure(self.CALCULATE_AUDIENCE, {
            "p_restaurant_id": restaurant_id,
            "p_audience_type": audience_type,
            "p_audience_filter": audience_filter,
        })

    async def generate_code(self, restaurant_id: str, prefix: str) -> str:
        return await self.invoker.call_procedure(self.GENERATE_PROMO_CODE, {
            "p_restaurant_id": restaurant_id,
            "p_prefix": prefix,
        })

    async def validate_code(
        self,
        restaurant_id: str,
        customer_id: str,
        code: str,
        order_amount: Union[Decimal, float],
    ) -> Any:
        return await self.invoker.call_procedure(self.VALIDATE_PROMO_CODE, {
            "p_restaurant_id": restaurant_id,
            "p_customer_id": customer_id,
            "p_code": code,
            "p_order_amount": float(order_amount),
        })

    async def redeem(
        self,
        promo_code_id: str,
        customer_id: str,
        restaurant_id: str,
        order_amount: Union[Decimal, float],
        discount_applied: Union[Decimal, float],
    ) -> str:
        return await self.invoker.call_procedure(self.REDEEM_PROMO_CODE, {
            "p_promo_code_id": promo_code_id,
            "p_customer_id": customer_id,
            "p_restaurant_id": restaurant_id,
            "p_order_amount": float(order_amount),
            "p_discount_applied": float(discount_applied),
        })

    async def recompute_metrics(self, campaign_id: str) -> None:
        await self.invoker.call_procedure(self.UPDATE_METRICS, {
            "p_campaign_id": campaign_id,
        })
        logger.debug(f"Metrics recomputed for campaign {campaign_id}")


__all__ = ["CampaignProcedures"]
