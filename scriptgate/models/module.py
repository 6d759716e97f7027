"""Module model: an administrator-defined executable operation."""

import json
from typing import List

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from scriptgate.db.base import Base
from scriptgate.executor.params import ParameterDefinition


class Module(Base):
    """Catalog entry pairing a module identifier with a script and its parameter schema."""
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    tooltip = Column(String(255), nullable=True)
    icon = Column(String(50), nullable=False, default="module")
    script_name = Column(String(255), unique=True, nullable=False)
    parameters_json = Column(Text, nullable=False, default="[]")  # ordered list of definitions
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def parameter_definitions(self) -> List[ParameterDefinition]:
        raw = json.loads(self.parameters_json or "[]")
        return [ParameterDefinition.model_validate(item) for item in raw]
