"""Rate limiting for the aggregation endpoints (slowapi)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Full reports pull every response_analysis row for a company, so they are throttled per client
REPORT_RATE_LIMIT = "30/minute"

limiter = Limiter(key_func=get_remote_address)
