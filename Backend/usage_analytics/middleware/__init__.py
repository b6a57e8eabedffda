# Middleware package
from .auth_middleware import AuthContext, get_current_user, get_api_key
from .rate_limiter import RateLimiter, rate_limit_headers
from .audit_log import AuditLogger, audit_log
