# backend/app/db/models/category_model.py
"""
Se encarga de definir el modelo de categoría para la aplicación.

`parent_id` es la referencia autoritativa al padre. `children` es un índice
derivado (lista JSON de IDs de hijos directos) que solo mantiene
CategoryService; nunca se asigna desde la entrada del cliente.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, JSON, UniqueConstraint
from app.db.database import Base


def generate_category_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(32), primary_key=True, index=True, default=generate_category_id)
    # Sin FK: el borrado de padres con hijos lo impide la capa de servicio
    parent_id = Column(String(32), nullable=True, index=True)
    name = Column(String(50), nullable=False)
    description = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False)
    stock_availability = Column(Boolean, nullable=False, default=False)
    children = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('name', name='uq_category_name'),
    )

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}', parent_id={self.parent_id})>"
