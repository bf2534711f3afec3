"""
Pydantic schemas for API request/response validation.
"""

# Re-export schemas for convenient imports.
from .facts import CommentCreate as CommentCreate
from .facts import FactResponse as FactResponse
from .facts import PrayerCommitCreate as PrayerCommitCreate
from .facts import ReactionCreate as ReactionCreate
from .facts import SoftDeleteResponse as SoftDeleteResponse
from .flags import FeatureFlagResponse as FeatureFlagResponse
from .flags import FeatureFlagUpdate as FeatureFlagUpdate
from .owners import DeleteReportResponse as DeleteReportResponse
from .owners import PrayerResponse as PrayerResponse
from .owners import PrayerStatusUpdate as PrayerStatusUpdate
from .xp import XpEventCreate as XpEventCreate
from .xp import XpEventResponse as XpEventResponse
from .xp import XpTotalsResponse as XpTotalsResponse
