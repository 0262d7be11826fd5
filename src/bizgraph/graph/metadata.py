from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import vocabulary as v

Number = Union[int, float]


class NodeMetadata(BaseModel):
    """
    Metadata document attached to a node.

    Stored as JSON with camelCase keys. Known fields are typed per node type;
    anything else is kept as-is in the residual map (pydantic extras), so a
    document round-trips without losing unmodelled keys.

    `originalId` links a mirror node back to the primary key of the relational
    row it was created from. Nodes that do not mirror a row leave it unset.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    original_id: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class EnterpriseMetadata(NodeMetadata):
    legal_name: Optional[str] = None
    abn: Optional[str] = None
    industry: Optional[str] = None
    sector: Optional[str] = None


class FacilityMetadata(NodeMetadata):
    code: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    location: Any = None
    capacity: Optional[Number] = None


class BusinessUnitMetadata(NodeMetadata):
    code: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    budget: Optional[Number] = None


class DepartmentMetadata(NodeMetadata):
    code: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    employee_count: Optional[int] = None


class BusinessCanvasMetadata(NodeMetadata):
    description: Optional[str] = None
    industry: Optional[str] = None
    sectors: list[str] = Field(default_factory=list)
    status: Optional[str] = None


class ProcessMetadata(NodeMetadata):
    description: Optional[str] = None
    version: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None


class CriticalControlMetadata(NodeMetadata):
    description: Optional[str] = None
    risk_category: Optional[str] = None
    control_type: Optional[str] = None
    effectiveness: Optional[str] = None


NODE_METADATA_MODELS: dict[str, type[NodeMetadata]] = {
    v.ENTERPRISE: EnterpriseMetadata,
    v.FACILITY: FacilityMetadata,
    v.BUSINESS_UNIT: BusinessUnitMetadata,
    v.DEPARTMENT: DepartmentMetadata,
    v.BUSINESS_CANVAS: BusinessCanvasMetadata,
    v.PROCESS: ProcessMetadata,
    v.CRITICAL_CONTROL: CriticalControlMetadata,
}


def parse_node_metadata(node_type: str, document: Optional[Mapping[str, Any]]) -> NodeMetadata:
    """Validate a stored metadata document with the model registered for `node_type`."""
    model = NODE_METADATA_MODELS.get(node_type, NodeMetadata)
    return model.model_validate(dict(document or {}))


def metadata_document(metadata: Union[NodeMetadata, Mapping[str, Any], None]) -> dict[str, Any]:
    """Normalize what callers pass as node metadata into a JSON document."""
    if metadata is None:
        return {}
    if isinstance(metadata, NodeMetadata):
        return metadata.to_document()
    return dict(metadata)
