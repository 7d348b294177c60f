"""Security access log for PIN login attempts."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import LOG_LIMIT
from data_manager.models import AccessLog

ACCESS_STATUSES = ('SUCCESS', 'FAILURE', 'LOCKOUT')
TARGET_ROLES = ('ADMIN', 'SHOPPER')

MOBILE_MARKERS = ('mobile', 'android', 'iphone')


def record_access(session: Session, status: str, target_role: str,
                  device_info: Optional[str] = None, ip_address: Optional[str] = None) -> AccessLog:
    if status not in ACCESS_STATUSES:
        raise ValueError(f"Unknown access status: {status}")
    if target_role not in TARGET_ROLES:
        raise ValueError(f"Unknown target role: {target_role}")
    entry = AccessLog(
        status=status,
        target_role=target_role,
        device_info=(device_info or '')[:512],
        ip_address=ip_address,
    )
    session.add(entry)
    session.flush()
    return entry


def list_access_logs(session: Session, limit: int = LOG_LIMIT) -> List[AccessLog]:
    stmt = select(AccessLog).order_by(AccessLog.created_at.desc(), AccessLog.id.desc()).limit(limit)
    return list(session.scalars(stmt))


def classify_device(info: Optional[str]) -> str:
    lowered = (info or '').lower()
    return 'mobile' if any(marker in lowered for marker in MOBILE_MARKERS) else 'desktop'
