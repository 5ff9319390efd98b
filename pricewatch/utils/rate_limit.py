"""
PriceWatch rate limiting
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from pricewatch.config import settings

limiter = Limiter(key_func=get_remote_address)

SWEEP_TRIGGER_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
