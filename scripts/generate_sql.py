"""Print CREATE TABLE / CREATE INDEX statements for every model.

The application creates missing tables at startup; this script is for
environments where schema changes are applied by hand.

Usage:
    python scripts/generate_sql.py > create_tables.sql
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from pkg.db_util.sql_alchemy.declarative_base import Base
# Imported for their side effect of registering tables on Base
from app.chat.repository.sql_schema import conversation  # noqa: F401
from app.memory.repository.sql_schema import memory  # noqa: F401
from app.upload.repository.sql_schema import upload  # noqa: F401


def generate_sql() -> str:
    dialect = postgresql.dialect()
    tables = Base.metadata.sorted_tables
    lines = ["-- Drop existing tables (reverse order for foreign keys)"]
    lines += [f"DROP TABLE IF EXISTS {table.name} CASCADE;" for table in reversed(tables)]
    lines.append("")

    for table in tables:
        lines.append(f"-- Table: {table.name}")
        lines.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            lines.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
        lines.append("")
    return "\n".join(lines)


if __name__ == "__main__":
    print(generate_sql())
