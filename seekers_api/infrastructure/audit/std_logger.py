import hashlib
import json
import logging
from typing import Any, Dict, Optional

from ...application.ports.audit_logger import AuditLogger
from ...core.clock import utcnow


class StdAuditLogger(AuditLogger):
    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def log(self, action: str, email: str, user_id: Optional[int] = None, success: bool = True,
            details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utcnow().isoformat(),
            "action": action,
            "email_hash": hashlib.sha256(email.lower().encode()).hexdigest(),
            "user_id": user_id,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry)}")
