from ddlplan.models.action import Action
from ddlplan.models.catalog import ColumnDefault, ColumnProbe, ImportedKey, IndexInfo
from ddlplan.models.descriptor import EntityDescriptor, FieldDescriptor, RelationDescriptor
from ddlplan.models.enums import ActionKind, DatabaseFunction, RelationKind
from ddlplan.models.schema import ForeignKey, Index, Table, TableField, index_name

__all__ = [
    "Action",
    "ActionKind",
    "ColumnDefault",
    "ColumnProbe",
    "DatabaseFunction",
    "EntityDescriptor",
    "FieldDescriptor",
    "ForeignKey",
    "ImportedKey",
    "Index",
    "IndexInfo",
    "RelationDescriptor",
    "RelationKind",
    "Table",
    "TableField",
    "index_name",
]
