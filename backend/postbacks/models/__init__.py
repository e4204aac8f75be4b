from .houses import BettingHouse
from .affiliates import Affiliate, AffiliateLink
from .conversions import Conversion
from .idempotency import PostbackFingerprint
from .aggregates import AggregateApplication, AggregateCounter, LeadCpaAward
from .postback_logs import PostbackLog
