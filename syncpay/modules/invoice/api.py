from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.dependencies import get_current_user, get_db, get_invoice_service
from syncpay.models.user_model import Users
from syncpay.modules.invoice.service import InvoiceService

router = APIRouter()


@router.get("/generate-invoice")
async def generate_invoice(
    payment_id: str = Query(...),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoice_service.generate_invoice(db, user_id=current_user.id, payment_id=payment_id)
    return Response(
        content=invoice.content,
        media_type=invoice.media_type,
        headers={"Content-Disposition": f'attachment; filename="{invoice.filename}"'},
    )
