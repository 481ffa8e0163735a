from ddlplan.types.codes import SQLTypeCode
from ddlplan.types.logical import (
    EntityReference,
    LogicalType,
    MappingCursor,
    ParameterList,
    ParameterSink,
    RowCursor,
)
from ddlplan.types.registry import TypeRegistry

__all__ = [
    "EntityReference",
    "LogicalType",
    "MappingCursor",
    "ParameterList",
    "ParameterSink",
    "RowCursor",
    "SQLTypeCode",
    "TypeRegistry",
]
