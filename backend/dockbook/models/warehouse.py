from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    name = Column(String(200), nullable=False)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)

    zones = relationship("WarehouseZone", back_populates="warehouse")
    slots = relationship("TimeSlot", back_populates="warehouse")


class WarehouseZone(Base):
    __tablename__ = "warehouse_zones"

    id = Column(Integer, primary_key=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)

    warehouse = relationship("Warehouse", back_populates="zones")
