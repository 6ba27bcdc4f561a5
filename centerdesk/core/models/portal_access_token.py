"""Issued portal tokens. Only the sha256 hash of the JWT is stored."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid

from centerdesk.db.session import Base


class PortalAccessToken(Base):
    __tablename__ = "portal_access_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)  # student, teacher, parent
    entity_id = Column(Uuid, nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_ip = Column(String(64), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    last_ip = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
