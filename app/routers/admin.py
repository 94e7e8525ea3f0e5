"""Back-office endpoints (admin role only)."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.audit import AuditLog
from app.models.dispute import Dispute, DisputeStatus
from app.models.escrow import Escrow, EscrowStatus
from app.models.user import User, UserRole
from app.schemas.admin import AuditLogRead, EscrowStats
from app.schemas.dispute import DisputeRead
from app.schemas.escrow import EscrowRead
from app.schemas.user import ApiKeyIssue, ApiKeyIssued, FreezeRequest, UserCreate, UserRead
from app.security import require_role
from app.services import admin as admin_service
from app.services import effects

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role({UserRole.admin})


@router.get("/users", response_model=list[UserRead])
def list_users(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[User]:
    return admin_service.list_users(db, limit=limit, offset=offset)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> User:
    """Provision a new account."""

    return effects.run(db, admin_service.provision_user(db, payload, admin=admin))


@router.post(
    "/users/{user_id}/api-keys",
    response_model=ApiKeyIssued,
    status_code=status.HTTP_201_CREATED,
)
def issue_api_key(
    user_id: int,
    payload: ApiKeyIssue,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ApiKeyIssued:
    return effects.run(db, admin_service.issue_api_key(db, user_id, payload, admin=admin))


@router.post("/users/{user_id}/freeze", response_model=UserRead)
def freeze_user(
    user_id: int,
    payload: FreezeRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> User:
    return effects.run(db, admin_service.freeze_user(db, user_id, payload, admin=admin))


@router.post("/users/{user_id}/unfreeze", response_model=UserRead)
def unfreeze_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> User:
    return effects.run(db, admin_service.unfreeze_user(db, user_id, admin=admin))


@router.get("/escrows", response_model=list[EscrowRead])
def list_escrows(
    status_filter: EscrowStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[Escrow]:
    return admin_service.list_escrows(db, status_filter=status_filter, limit=limit, offset=offset)


@router.get("/disputes", response_model=list[DisputeRead])
def list_disputes(
    status_filter: DisputeStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[Dispute]:
    return admin_service.list_disputes(db, status_filter=status_filter, limit=limit, offset=offset)


@router.get("/stats", response_model=EscrowStats)
def stats(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> EscrowStats:
    return admin_service.escrow_stats(db)


@router.get("/audit-logs", response_model=list[AuditLogRead])
def audit_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[AuditLog]:
    return admin_service.list_audit_logs(
        db, entity_type=entity_type, entity_id=entity_id, limit=limit, offset=offset
    )
