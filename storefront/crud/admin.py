from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.admin import Admin


def get_admin(db: Session, tg_user_id: int) -> Optional[Admin]:
    """Запись из allowlist админов или None."""
    return db.query(Admin).filter(Admin.tg_user_id == tg_user_id).first()
