from functools import lru_cache

from ..config import settings
from ..scp.data_client import ScpDataClient
from ..scp.repository import ScpRepository
from ..security.audit_logger import AuditLogger
from ..security.rate_limiter import FixedWindowRateLimiter


@lru_cache
def get_data_client() -> ScpDataClient:
    return ScpDataClient()


@lru_cache
def get_repository() -> ScpRepository:
    return ScpRepository(get_data_client(), collections=settings.collection_list())


@lru_cache
def get_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter()


@lru_cache
def get_audit_logger() -> AuditLogger:
    return AuditLogger()
