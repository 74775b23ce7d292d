from typing import Annotated

from fastapi import APIRouter, Depends

from handoff.core.container import GENERATE_LIMITER, VERIFY_LIMITER, get_otp_manager
from handoff.core.rate_limit import rate_limited
from handoff.schemas.otp import ErrorResponse, OtpResponse, VerifyOtpRequest
from handoff.services.otp_manager import OtpManager

router = APIRouter(tags=["OTP"])

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 404, 409, 429, 500)
}


@router.post(
    "/orders/{order_id}/otp/generate",
    response_model=OtpResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(GENERATE_LIMITER))],
)
async def generate_otp(
    order_id: str,
    manager: Annotated[OtpManager, Depends(get_otp_manager)],
) -> OtpResponse:
    """Issue a delivery OTP and send it to the customer's WhatsApp.

    The response is successful even when WhatsApp delivery fails; the failure
    is reported in ``warning``.

    Args:
        order_id: Order being delivered.

    Returns:
        OtpResponse: success flag, message and optional warning.
    """
    result = await manager.generate(order_id)
    return OtpResponse(success=result.success, message=result.message, warning=result.warning)


@router.post(
    "/orders/{order_id}/otp/verify",
    response_model=OtpResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(VERIFY_LIMITER))],
)
async def verify_otp(
    order_id: str,
    manager: Annotated[OtpManager, Depends(get_otp_manager)],
    body: VerifyOtpRequest | None = None,
) -> OtpResponse:
    """Verify the OTP relayed by the courier and mark the order COMPLETED.

    Args:
        order_id: Order being delivered.
        body: ``{"otp": "<code>"}``.

    Returns:
        OtpResponse: success flag and message.
    """
    result = await manager.verify(order_id, body.otp if body else None)
    return OtpResponse(success=result.success, message=result.message, warning=result.warning)
