from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from ..database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    # bookings of these companies start as "pending" and need an approval
    requires_approval = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, default=True)

    users = relationship("User", back_populates="company")
