from sqlalchemy import Column, Integer, String, Boolean, Enum, ForeignKey
from sqlalchemy.orm import relationship
from ..core.permissions import Role
from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    phone = Column(String(50), nullable=True)

    user_type = Column(Enum(Role), nullable=False, default=Role.DRIVER)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    is_active = Column(Boolean, default=True)

    company = relationship("Company", back_populates="users")
    # bookings where the user is the assigned driver (names in listings)
    driver_bookings = relationship("Booking", foreign_keys="Booking.driver_id", back_populates="driver")
