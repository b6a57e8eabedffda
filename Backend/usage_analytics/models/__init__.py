from .audit_log import AuditLog
from .app import App, ApiKey
from .event import AnalyticsEvent
