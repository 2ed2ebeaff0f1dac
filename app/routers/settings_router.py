from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.utils.database import get_db
from app.core.security import Principal, get_current_principal, require_role, require_staff
from app.models.system_settings_model import SystemSetting
from app.models.user_model import UserRole
from app.schemas.settings_schema import SettingPatch, SettingCreate, SettingOut

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=list[SettingOut])
def list_settings(
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return db.query(SystemSetting).order_by(SystemSetting.key.asc()).all()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_setting(
        payload: SettingCreate,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)

    existing = db.query(SystemSetting).filter(SystemSetting.key == payload.key).first()
    if existing:
        raise HTTPException(status_code=409, detail="Setting key already exists")

    obj = SystemSetting(
        key=payload.key,
        value=payload.value,
        description=(payload.description or "").strip(),
        updated_by=principal.id,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)

    return {
        "message": "created",
        "key": obj.key,
        "value": obj.value,
        "description": obj.description,
    }


@router.patch("")
def update_setting(
        payload: SettingPatch,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)

    obj = db.query(SystemSetting).filter(SystemSetting.key == payload.key).first()
    if not obj:
        raise HTTPException(404, "Setting not found")

    obj.value = payload.value
    obj.updated_by = principal.id
    db.commit()
    return {"message": "updated", "key": obj.key, "value": obj.value}
