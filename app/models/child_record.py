from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from app.db.base import Base
from app.utils.clock import utc_now


class ChildRecord(Base):
    __tablename__ = "child_record"

    id = Column(Integer, primary_key=True, index=True)
    # Natural key; the unique index serializes concurrent creators
    health_id = Column(String(64), unique=True, index=True, nullable=False)
    child_name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(10), nullable=False)
    weight = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    guardian_name = Column(String(100), nullable=False)
    relation = Column(String(50), nullable=False)
    phone = Column(String(20), nullable=False)
    parents_consent = Column(Boolean, nullable=False)
    id_type = Column(String(10), nullable=True)
    local_id = Column(String(50), nullable=True)
    country_code = Column(String(8), nullable=True, default="+91")
    malnutrition_signs = Column(Text, nullable=True, default="")
    recent_illnesses = Column(Text, nullable=True, default="")
    skip_malnutrition = Column(Boolean, nullable=False, default=False)
    skip_illnesses = Column(Boolean, nullable=False, default=False)
    date_collected = Column(DateTime, nullable=True)
    is_offline = Column(Boolean, nullable=False, default=False)
    location = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
