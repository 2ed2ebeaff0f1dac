# app/models/user_model.py
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.utils.database import Base


class UserRole(str, enum.Enum):
    MEMBER = "MEMBER"
    ACCOUNTANT = "ACCOUNTANT"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"
    COMMITTEE = "COMMITTEE"


class User(Base):
    """Principal directory. Only read here, to address notifications."""
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(150), nullable=False)
    role = Column(String(20), nullable=False, index=True)

    # set for MEMBER users
    member_id = Column(Integer, ForeignKey("members.member_id", ondelete="SET NULL"), nullable=True, index=True)

    created_on = Column(DateTime, server_default=func.now())
