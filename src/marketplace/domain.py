"""Marketplace bounded context — order routing from checkout to verified delivery.

A single domain owns orders, the catalogue inputs they are priced from,
coupons, and delivery agents, so that checkout, dispatch and delivery
verification can each commit across those aggregates in one unit of work.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
