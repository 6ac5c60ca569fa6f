# Models are imported in foreign key order so metadata.create_all builds
# referenced tables first.

from .user import AuthUser, AuthSessionRecord, Identity, UserProfile, UserRole, UserTier
from .campaign import Campaign, CampaignCreate, CampaignUpdate, CampaignRead, CampaignStatus
from .lead import Lead, LeadCreate, LeadUpdate, LeadRead, LeadStatus
from .earning import Earning, EarningCreate, EarningRead, EarningStatus
from .payout import Payout, PayoutRead, PayoutStatus
from .payout_method import PayoutMethod, PayoutMethodCreate, PayoutMethodRead, PayoutMethodType
from .dispute import Dispute, DisputeCreate, DisputeRead, DisputeStatus, DisputeDecision
from .activity import Activity, ActivityRead, ActivityType
