"""Payment result callback from the payment gateway integration."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import OrderResponse, PaymentCallback
from services.store_service.services import order_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["store"])


@router.post("/callback", response_model=OrderResponse)
async def payment_callback(
    callback_in: PaymentCallback,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Record a payment result for an order.

    Called by the payments integration with a service-role token once the
    gateway has confirmed or rejected a payment.
    """
    return await order_ops.record_payment_result(
        db,
        actor=current_user,
        order_code=callback_in.order_code,
        success=callback_in.success,
        transaction_id=callback_in.transaction_id,
        provider=callback_in.provider,
        message=callback_in.message,
    )
