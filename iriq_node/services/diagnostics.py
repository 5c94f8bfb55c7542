"""Diagnostics service - track operational metrics"""

import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class DiagnosticsService:
    """Lightweight counters logged alongside each heartbeat"""

    def __init__(self):
        """Initialize diagnostics tracker"""
        self.start_time = datetime.now()
        self.counters = {
            'readings_sent': 0,
            'reading_errors': 0,
            'status_reports': 0,
            'commands_executed': 0,
            'actuation_mismatches': 0,
            'heartbeats_sent': 0,
            'sync_errors': 0,
            'auth_failures': 0,
        }
        self.last_reading_at = None

    def record_reading_sent(self):
        self.counters['readings_sent'] += 1
        self.last_reading_at = datetime.now()

    def record_reading_error(self):
        self.counters['reading_errors'] += 1

    def record_status_report(self):
        self.counters['status_reports'] += 1

    def record_command(self):
        self.counters['commands_executed'] += 1

    def record_actuation_mismatch(self):
        self.counters['actuation_mismatches'] += 1

    def record_heartbeat(self):
        self.counters['heartbeats_sent'] += 1

    def record_sync_error(self):
        """Record a failed backend call of any kind"""
        self.counters['sync_errors'] += 1

    def record_auth_failure(self):
        self.counters['auth_failures'] += 1

    def get_uptime_seconds(self) -> int:
        """Get uptime in seconds"""
        return int((datetime.now() - self.start_time).total_seconds())

    def get_uptime_formatted(self) -> str:
        """Get uptime as formatted string"""
        seconds = self.get_uptime_seconds()
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"

    def log_summary(self):
        """Log current health summary to logger"""
        logger.info(
            f"Health Summary - Uptime: {self.get_uptime_formatted()}, "
            f"Readings: {self.counters['readings_sent']}, "
            f"Commands: {self.counters['commands_executed']}, "
            f"Mismatches: {self.counters['actuation_mismatches']}, "
            f"Sync errors: {self.counters['sync_errors']}, "
            f"Auth failures: {self.counters['auth_failures']}, "
            f"Heartbeats: {self.counters['heartbeats_sent']}"
        )
