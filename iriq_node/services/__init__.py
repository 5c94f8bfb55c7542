"""Services package"""

from .automation_service import AutomationService
from .diagnostics import DiagnosticsService

__all__ = ['AutomationService', 'DiagnosticsService']
