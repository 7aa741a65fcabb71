from typing import Any, Dict, List, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def upsert_rows(
    db: Session,
    model: Any,
    rows: List[Dict[str, Any]],
    conflict_columns: Sequence[str],
) -> None:
    """
    INSERT ... ON CONFLICT (conflict_columns) DO UPDATE для списка строк.
    Обновляются только колонки, пришедшие в строках.
    """
    if not rows:
        return

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise RuntimeError(f"Upsert is not supported for dialect: {dialect}")

    statement = insert(model).values(rows)
    update_columns = [key for key in rows[0] if key not in conflict_columns]
    statement = statement.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={key: statement.excluded[key] for key in update_columns},
    )
    db.execute(statement)
