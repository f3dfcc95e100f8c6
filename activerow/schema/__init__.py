from .catalog import SchemaCatalog
from .models import ColumnMeta, TableMeta

__all__ = ["SchemaCatalog", "ColumnMeta", "TableMeta"]
