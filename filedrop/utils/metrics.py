"""
Prometheus metrics definitions.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Upload lifecycle metrics
uploads_started_total = Counter(
    'uploads_started_total',
    'Total files for which a presigned upload was issued'
)

uploads_finished_total = Counter(
    'uploads_finished_total',
    'Total uploads confirmed against storage'
)

upload_bytes_total = Counter(
    'upload_bytes_total',
    'Total bytes of finished uploads, as observed in storage'
)

uploads_rejected_total = Counter(
    'uploads_rejected_total',
    'Total rejected upload requests',
    ['reason']
)

# Signing and token metrics
signatures_issued_total = Counter(
    'signatures_issued_total',
    'Total CDN signatures issued',
    ['kind']
)

storage_token_refreshes_total = Counter(
    'storage_token_refreshes_total',
    'Total storage download tokens minted'
)
