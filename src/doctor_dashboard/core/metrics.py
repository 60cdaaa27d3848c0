"""
Prometheus metrics
"""

from prometheus_client import Counter, Gauge

patients_created = Counter('dashboard_patients_created_total', 'Patients added by doctors')
records_created = Counter('dashboard_records_created_total', 'Health records created', ['kind'])
records_deleted = Counter('dashboard_records_deleted_total', 'Health records deleted')
write_failures = Counter('dashboard_write_failures_total', 'Failed store writes', ['operation'])
delete_failures = Counter('dashboard_delete_failures_total', 'Swallowed record deletion failures')
active_subscriptions = Gauge('dashboard_active_subscriptions', 'Open live subscriptions', ['target'])
