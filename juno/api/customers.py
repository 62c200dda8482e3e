"""Tenant-scoped customer records."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, require_permission
from juno.database import get_db
from juno.models import Customer, Tenant, UserAccount
from juno.schemas import CustomerCreate, CustomerOut, CustomerPage, CustomerUpdate

router = APIRouter()
logger = logging.getLogger(__name__)

PAGE_SIZE = 10
# Columns a PATCH may change but never clear
REQUIRED_FIELDS = ("first_name", "status", "custom_fields")
CustomerIdPath = Path(..., gt=0, description="Customer ID (positive integer)")


def _get_customer(db: Session, tenant_id: int, customer_id: int) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        .first()
    )
    if not customer:
        raise HTTPException(404, "Customer not found")
    return customer


def _check_assignee(db: Session, tenant_id: int, user_id: Optional[int]) -> None:
    if user_id is None:
        return
    member = db.query(UserAccount).filter(UserAccount.id == user_id, UserAccount.tenant_id == tenant_id).first()
    if not member:
        raise HTTPException(400, "assigned_to must be a member of this organization")


@router.get("/customers", response_model=CustomerPage)
def list_customers(
    page: int = Query(1, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[str] = Query(None, max_length=32),
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("customers.read")),
    db: Session = Depends(get_db),
):
    """Page of customers, newest first, with optional name/email search and status filter."""
    q = db.query(Customer).filter(Customer.tenant_id == tenant.id)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
            Customer.email.ilike(like),
        ))
    if status:
        q = q.filter(Customer.status == status)

    total = q.count()
    rows = (
        q.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * PAGE_SIZE)
        .limit(PAGE_SIZE)
        .all()
    )
    return CustomerPage(
        customers=[CustomerOut.model_validate(c) for c in rows],
        total=total,
        page=page,
        page_size=PAGE_SIZE,
    )


@router.post("/customers", response_model=CustomerOut, status_code=201)
def create_customer(
    body: CustomerCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("customers.create")),
    db: Session = Depends(get_db),
):
    _check_assignee(db, tenant.id, body.assigned_to)
    customer = Customer(tenant_id=tenant.id, **body.model_dump())
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info("Customer %s created in tenant %s", customer.id, tenant.id)
    return customer


@router.get("/customers/{customer_id}", response_model=CustomerOut)
def get_customer(
    customer_id: int = CustomerIdPath,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("customers.read")),
    db: Session = Depends(get_db),
):
    return _get_customer(db, tenant.id, customer_id)


@router.patch("/customers/{customer_id}", response_model=CustomerOut)
def update_customer(
    body: CustomerUpdate,
    customer_id: int = CustomerIdPath,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("customers.update")),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, tenant.id, customer_id)
    changes = body.model_dump(exclude_unset=True)
    cleared = [key for key in REQUIRED_FIELDS if key in changes and changes[key] is None]
    if cleared:
        raise HTTPException(400, f"{cleared[0]} cannot be null")
    if "assigned_to" in changes:
        _check_assignee(db, tenant.id, changes["assigned_to"])
    for key, value in changes.items():
        setattr(customer, key, value)
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/customers/{customer_id}")
def delete_customer(
    customer_id: int = CustomerIdPath,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("customers.delete")),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, tenant.id, customer_id)
    db.delete(customer)
    db.commit()
    logger.info("Customer %s deleted from tenant %s by user %s", customer_id, tenant.id, user.id)
    return {"success": True}
