"""
SAP Server — User Routes
Payment-derived status (stamp, membership, credits) for a user.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from sap_server.core.dependencies import get_repository
from sap_server.core.records import UserStatus
from sap_server.schemas.schemas import PaymentResponse, UserStatusResponse
from sap_server.services.repository import StatsRepository, StoreError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/{user_id}",
    response_model=UserStatusResponse,
    summary="Get user status",
    description="Derive stamp, membership and credit balance from the user's payments.",
)
async def get_user_status(
    user_id: str,
    repository: StatsRepository = Depends(get_repository),
):
    """Recompute the user's status from their payment history."""
    try:
        payments = await repository.payments_for(user_id)
    except StoreError as e:
        logger.error(f"Database error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error",
        )
    except Exception as e:
        logger.error(f"Error fetching user status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch user status",
        )

    user_status = UserStatus.from_payments(payments)
    return UserStatusResponse(
        has_stamp=user_status.has_stamp,
        has_membership=user_status.has_membership,
        credits=user_status.credits,
        payments=[PaymentResponse.from_record(p) for p in payments],
    )
