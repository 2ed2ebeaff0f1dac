from sqlalchemy.orm import Session

from app.core import config
from app.models.system_settings_model import SystemSetting


def get_setting(db: Session, key: str, default: str) -> str:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return row.value if row else default


def get_int_setting(db: Session, key: str, default: int) -> int:
    raw = get_setting(db, key, str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def min_committee_approval(db: Session) -> int:
    return max(1, get_int_setting(db, "MIN_COMMITTEE_APPROVAL", config.MIN_COMMITTEE_APPROVAL))


def tenure_upper_tolerance(db: Session) -> int:
    return max(0, get_int_setting(db, "TENURE_UPPER_TOLERANCE_MONTHS", config.TENURE_UPPER_TOLERANCE_MONTHS))


def overpayment_policy(db: Session) -> str:
    return get_setting(db, "OVERPAYMENT_POLICY", config.OVERPAYMENT_POLICY).strip().upper()
