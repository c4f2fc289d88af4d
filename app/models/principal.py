from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db.base import Base
from app.utils.clock import utc_now


class Principal(Base):
    """A health worker who can sign in with their UIN."""

    __tablename__ = "principal"

    id = Column(Integer, primary_key=True, index=True)
    uin = Column(String(10), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    address = Column(String(255), nullable=False)
    date_of_birth = Column(String(10), nullable=False)
    gender = Column(String(10), nullable=False)
    photo = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    employee_id = Column(String(20), unique=True, nullable=True)
    pending_transaction_id = Column(String(64), nullable=True)
    verification_requested_at = Column(DateTime, nullable=True)
    last_profile_update = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)
