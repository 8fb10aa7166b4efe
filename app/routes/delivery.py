from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_delivery_partner
from app.models.user import User
from app.schemas.orders_schemas import DeliveryOut, OrderOut, UpdateDeliveryStatusRequest
from app.services import fulfillment_service

router = APIRouter()


@router.get("/orders/get-assigned-delivery")
def get_assigned_deliveries(
    session: Session = Depends(get_session),
    partner: User = Depends(require_delivery_partner),
):
    deliveries = fulfillment_service.get_assigned_deliveries(session, partner)

    return {
        "message": "Assigned deliveries fetched successfully",
        "deliveries": [
            {
                **DeliveryOut.model_validate(d).model_dump(),
                "order": OrderOut.model_validate(d.order),
            }
            for d in deliveries
        ],
    }


@router.put("/orders/{delivery_id}/status")
def update_delivery_status(
    delivery_id: int,
    payload: UpdateDeliveryStatusRequest,
    session: Session = Depends(get_session),
    partner: User = Depends(require_delivery_partner),
):
    delivery = fulfillment_service.update_delivery_status(
        session, delivery_id, partner, payload.status, payload.notes
    )
    return {
        "message": "Delivery status updated successfully",
        "delivery": DeliveryOut.model_validate(delivery),
    }
