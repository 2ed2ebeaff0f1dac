from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from starlette import status

from app.utils.database import get_db
from app.core.exceptions import ConflictError, ValidationError
from app.core.security import Principal, get_current_principal, require_role
from app.models.loan_model import Loan
from app.models.loan_product_model import LoanProduct
from app.models.user_model import UserRole
from app.services.loan_qualification import auto_assign_product

from app.schemas.loan_product_schema import (
    LoanProductCreate,
    LoanProductUpdate,
    LoanProductOut,
    AutoAssignRequest,
    AutoAssignOut,
)

router = APIRouter(prefix="/loan-products", tags=["Loan Products"])


def get_product_or_404(db: Session, product_id: int) -> LoanProduct:
    obj = db.query(LoanProduct).filter(LoanProduct.product_id == product_id).first()
    if not obj:
        raise HTTPException(404, "Loan product not found")
    return obj


def ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    q = db.query(LoanProduct.product_id).filter(LoanProduct.product_name == name)
    if exclude_id is not None:
        q = q.filter(LoanProduct.product_id != exclude_id)
    if q.first():
        raise ConflictError("Loan product with this name already exists", requirement="Unique Product Name",
                            product_name=name)


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.post("/auto-assign", response_model=AutoAssignOut)
def auto_assign(
        payload: AutoAssignRequest,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    return auto_assign_product(db, payload.member_id)


@router.get("/active", response_model=list[LoanProductOut])
def list_active_products(db: Session = Depends(get_db)):
    return (
        db.query(LoanProduct)
        .filter(LoanProduct.is_active.is_(True))
        .order_by(LoanProduct.min_total_contributions.asc())
        .all()
    )


@router.get("", response_model=list[LoanProductOut])
def list_products(db: Session = Depends(get_db)):
    return db.query(LoanProduct).order_by(LoanProduct.min_total_contributions.asc()).all()


@router.post("", response_model=LoanProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
        payload: LoanProductCreate,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)

    name = payload.product_name.strip()
    ensure_unique_name(db, name)

    obj = LoanProduct(**payload.model_dump())
    obj.product_name = name
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Loan product with this name already exists", requirement="Unique Product Name",
                            product_name=name)
    db.refresh(obj)
    return obj


# =================================================
# 🔹 PRODUCT ROUTES
# =================================================
@router.get("/{product_id}", response_model=LoanProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=LoanProductOut)
def update_product(
        product_id: int,
        payload: LoanProductUpdate,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)
    obj = get_product_or_404(db, product_id)

    data = payload.model_dump(exclude_unset=True)
    if "product_name" in data and data["product_name"] is not None:
        data["product_name"] = data["product_name"].strip()
        ensure_unique_name(db, data["product_name"], exclude_id=product_id)

    lo = data.get("min_duration_months", obj.min_duration_months)
    hi = data.get("max_duration_months", obj.max_duration_months)
    if lo is not None and hi is not None and hi < lo:
        raise ValidationError(
            "Maximum duration must be greater than or equal to minimum duration",
            requirement="Duration Range",
            min_duration_months=lo,
            max_duration_months=hi,
        )

    # existing loans keep their own rate snapshot
    for k, v in data.items():
        if v is not None:
            setattr(obj, k, v)

    db.commit()
    db.refresh(obj)
    return obj


@router.delete("/{product_id}")
def delete_product(
        product_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)
    obj = get_product_or_404(db, product_id)

    in_use = db.query(Loan).filter(Loan.product_id == product_id).count()
    if in_use:
        raise ConflictError(
            f"Cannot delete loan product. {in_use} loan(s) are using this product. Deactivate it instead.",
            requirement="Product Not In Use",
            loan_count=in_use,
        )

    db.delete(obj)
    db.commit()
    return {"message": "deleted", "product_id": product_id}
