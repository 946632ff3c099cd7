import hashlib
import json
import logging
from typing import Optional, Dict, Any

from ...core.clock import utc_now
from ...application.ports.audit_logger import AuditLogger


def hash_phone_number(phone: str) -> str:
    """Hash phone number for security (one-way hash)"""
    return hashlib.sha256(phone.encode()).hexdigest()


class StdAuditLogger(AuditLogger):
    def __init__(self, logger_name: str = "coursehub.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, phone: Optional[str] = None, user_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utc_now().isoformat(),
            "action": action,
            "phone_hash": hash_phone_number(phone) if phone else None,
            "user_id": user_id,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")
