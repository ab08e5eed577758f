from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from src.core.deps import get_purchase_order_service
from src.core.exceptions import AuthorizationError
from src.core.security import api_key_matches
from src.schemas.procurement import ExternalPurchaseOrderCreate, ExternalPurchaseOrderCreated
from src.services.purchase_orders import PurchaseOrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/external", tags=["External"])


# PUBLIC_INTERFACE
@router.post(
    "/purchase_order",
    response_model=ExternalPurchaseOrderCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Insert purchase order header (external)",
    description=(
        "Insert a new purchase order header version on behalf of an external system. "
        "Authenticated with the shared API key, sent as api_key in the body or as X-API-Key."
    ),
)
async def create_external_purchase_order(
    payload: ExternalPurchaseOrderCreate,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
) -> ExternalPurchaseOrderCreated:
    if not api_key_matches(payload.api_key or x_api_key):
        logger.warning("External purchase order insert refused: bad API key")
        raise AuthorizationError("Forbidden")

    created = await service.create_external(payload)
    assert created.id is not None
    return ExternalPurchaseOrderCreated(id=created.id, po_number=created.po_number)
