import time
from urllib.parse import quote

from fastapi import APIRouter, Depends

from auth import get_current_user
from config import settings
from schemas import CurrentUser, PaymentCreateIn

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/create")
def create_payment(payload: PaymentCreateIn, current_user: CurrentUser = Depends(get_current_user)):
    """Build a UPI deep link the customer pays manually; proof is uploaded with the order."""
    payment_id = f"PAY_{int(time.time() * 1000)}"
    upi_string = (
        f"upi://pay?pa={settings.UPI_ID}"
        f"&pn={quote(settings.UPI_PAYEE_NAME)}"
        f"&am={payload.amount:.2f}"
    )
    return {"upiString": upi_string, "paymentId": payment_id}


@router.post("/confirm")
def confirm_payment(current_user: CurrentUser = Depends(get_current_user)):
    # Payments are verified by an admin reviewing the uploaded proof
    return {"success": True}
