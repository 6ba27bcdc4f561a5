"""
Audit log for create/update/delete operations. Rows are immutable.
old_values / new_values hold plain JSON snapshots of the entity.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from centerdesk.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(20), nullable=False)  # create, update, delete
    entity_type = Column(String(50), nullable=False)
    # String, not UUID: bulk operations use "bulk-import"
    entity_id = Column(String(64), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    user = relationship("User", foreign_keys=[user_id])
    center = relationship("Center", foreign_keys=[center_id])
