"""Dashboard metrics.

Pure functions over rows already restricted to the caller's visibility. They
never touch the database, so the same rows always give the same numbers.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from network_earnings.models.campaign import Campaign
from network_earnings.models.earning import Earning, EarningStatus
from network_earnings.models.lead import CONVERTED_STATUSES, Lead, LeadStatus
from network_earnings.models.payout import Payout, PayoutStatus, SETTLED_PAYOUT_STATUSES

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

Month = Tuple[int, int]


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def _month_of(moment: Optional[datetime]) -> Optional[Month]:
    if moment is None:
        return None
    return moment.year, moment.month


def month_window(end: date, months: int = 6) -> List[Month]:
    """Trailing ``months`` calendar months ending with the month of ``end``, oldest first."""
    if months < 1:
        raise ValueError("months must be at least 1")
    index = end.year * 12 + end.month - 1
    window = []
    for i in range(index - months + 1, index + 1):
        year, month_index = divmod(i, 12)
        window.append((year, month_index + 1))
    return window


@dataclass
class MonthBucket:
    year: int
    month: int
    label: str
    leads: int = 0
    conversions: int = 0
    value: Decimal = ZERO
    earnings: Decimal = ZERO
    pending_earnings: Decimal = ZERO
    payouts: Decimal = ZERO


def monthly_series(
    leads: Iterable[Lead],
    earnings: Iterable[Earning] = (),
    payouts: Iterable[Payout] = (),
    end: Optional[date] = None,
    months: int = 6,
) -> List[MonthBucket]:
    """Group rows by the calendar month they were created in.

    Returns one bucket per month of the window, chronological, with empty
    months zero-filled. Rows outside the window are ignored.
    """
    end = end or datetime.utcnow().date()
    buckets: "OrderedDict[Month, MonthBucket]" = OrderedDict(
        ((year, month), MonthBucket(year, month, date(year, month, 1).strftime("%b")))
        for year, month in month_window(end, months)
    )

    for lead in leads:
        bucket = buckets.get(_month_of(lead.created_at))
        if bucket is None:
            continue
        bucket.leads += 1
        bucket.value += _money(lead.value)
        if lead.status in CONVERTED_STATUSES:
            bucket.conversions += 1

    for earning in earnings:
        bucket = buckets.get(_month_of(earning.created_at))
        if bucket is None:
            continue
        bucket.earnings += _money(earning.amount)
        if earning.status == EarningStatus.PENDING:
            bucket.pending_earnings += _money(earning.amount)

    for payout in payouts:
        if payout.status not in SETTLED_PAYOUT_STATUSES:
            continue
        bucket = buckets.get(_month_of(payout.paid_at or payout.date))
        if bucket is not None:
            bucket.payouts += _money(payout.amount)

    return list(buckets.values())


@dataclass
class LeadSummary:
    total: int
    approved: int
    pending: int
    rejected: int
    conversion_rate: float
    total_value: Decimal


def lead_summary(leads: Sequence[Lead]) -> LeadSummary:
    total = len(leads)
    approved = sum(1 for lead in leads if lead.status in CONVERTED_STATUSES)
    pending = sum(1 for lead in leads if lead.status == LeadStatus.PENDING)
    rejected = sum(1 for lead in leads if lead.status == LeadStatus.REJECTED)
    rate = round(approved / total * 100, 1) if total else 0.0
    return LeadSummary(
        total=total,
        approved=approved,
        pending=pending,
        rejected=rejected,
        conversion_rate=rate,
        total_value=sum((_money(lead.value) for lead in leads), ZERO),
    )


@dataclass
class EarningsSummary:
    available_balance: Decimal
    pending_earnings: Decimal
    total_earned: Decimal
    this_month: Decimal
    withdrawn: Decimal
    pending_payouts: Decimal
    withdrawable: Decimal


def earnings_summary(
    earnings: Sequence[Earning],
    payouts: Sequence[Payout] = (),
    today: Optional[date] = None,
) -> EarningsSummary:
    """Balances of one referrer.

    The available balance counts paid earnings only; pending earnings are
    reported separately. Withdrawable is what is left of the available
    balance once requested and settled payouts are taken out.
    """
    today = today or datetime.utcnow().date()
    available = sum(
        (_money(e.amount) for e in earnings if e.status == EarningStatus.PAID), ZERO)
    pending = sum(
        (_money(e.amount) for e in earnings if e.status == EarningStatus.PENDING), ZERO)
    this_month = sum(
        (_money(e.amount) for e in earnings
         if _month_of(e.created_at) == (today.year, today.month)), ZERO)
    withdrawn = sum(
        (_money(p.amount) for p in payouts if p.status in SETTLED_PAYOUT_STATUSES), ZERO)
    pending_payouts = sum(
        (_money(p.amount) for p in payouts if p.status == PayoutStatus.PENDING), ZERO)
    return EarningsSummary(
        available_balance=available,
        pending_earnings=pending,
        total_earned=available + pending,
        this_month=this_month,
        withdrawn=withdrawn,
        pending_payouts=pending_payouts,
        withdrawable=max(available - withdrawn - pending_payouts, ZERO),
    )


@dataclass
class EarningSource:
    name: str
    amount: Decimal
    percentage: float


def earnings_by_source(
    earnings: Sequence[Earning], campaigns: Iterable[Campaign]
) -> List[EarningSource]:
    """Split earnings by campaign, largest first; unknown campaigns count as "Other"."""
    names = {campaign.id: campaign.name for campaign in campaigns}
    totals: Dict[str, Decimal] = {}
    for earning in earnings:
        name = names.get(earning.campaign_id, "Other")
        totals[name] = totals.get(name, ZERO) + _money(earning.amount)

    grand_total = sum(totals.values(), ZERO)
    sources = [
        EarningSource(
            name=name,
            amount=amount,
            percentage=round(float(amount / grand_total * 100), 1) if grand_total else 0.0,
        )
        for name, amount in totals.items()
    ]
    return sorted(sources, key=lambda source: source.amount, reverse=True)


@dataclass
class ReferralLink:
    name: str
    url: str
    code: str
    campaign_id: Optional[int] = None
    clicks: int = 0
    conversions: int = 0


def referral_code(user_id, campaign: Optional[Campaign] = None) -> str:
    code = f"USER-{str(user_id)[:4].upper()}"
    if campaign is not None:
        code += f"-{campaign.name.replace(' ', '')[:4].upper()}"
    return code


def referral_links(
    user_id, campaigns: Iterable[Campaign], leads: Sequence[Lead], base_url: str
) -> List[ReferralLink]:
    """A general link plus one per campaign, with lead counts as clicks."""
    links = [ReferralLink(
        name="General Referral Link",
        url=f"{base_url}/{user_id}",
        code=referral_code(user_id),
        clicks=len(leads),
        conversions=sum(1 for lead in leads if lead.status in CONVERTED_STATUSES),
    )]
    for campaign in campaigns:
        campaign_leads = [lead for lead in leads if lead.campaign_id == campaign.id]
        links.append(ReferralLink(
            name=campaign.name,
            url=f"{base_url}/{user_id}?c={campaign.id}",
            code=referral_code(user_id, campaign),
            campaign_id=campaign.id,
            clicks=len(campaign_leads),
            conversions=sum(
                1 for lead in campaign_leads
                if lead.status in (LeadStatus.COMPLETED, LeadStatus.SUCCESSFUL)),
        ))
    return links


@dataclass
class NetworkStats:
    referrers: int
    active_referrers: int
    total_leads: int
    this_month_payouts: Decimal
    monthly: List[MonthBucket] = field(default_factory=list)


def network_stats(
    leads: Sequence[Lead],
    payouts: Sequence[Payout],
    referrer_ids: Iterable = (),
    today: Optional[date] = None,
    months: int = 6,
) -> NetworkStats:
    """Size and activity of a referral network.

    ``referrer_ids`` are the known referrers; those who submitted at least one
    lead are active.
    """
    today = today or datetime.utcnow().date()
    known = set(referrer_ids)
    active = {lead.referrer_id for lead in leads if lead.referrer_id is not None}
    this_month = sum(
        (_money(p.amount) for p in payouts
         if p.status in SETTLED_PAYOUT_STATUSES
         and _month_of(p.paid_at or p.date) == (today.year, today.month)),
        ZERO)
    return NetworkStats(
        referrers=len(known | active),
        active_referrers=len(active),
        total_leads=len(leads),
        this_month_payouts=this_month,
        monthly=monthly_series(leads, payouts=payouts, end=today, months=months),
    )


@dataclass
class ActivityItem:
    id: str
    type: str
    title: str
    description: Optional[str]
    created_at: datetime
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None


def synthesize_activity(
    leads: Sequence[Lead], earnings: Sequence[Earning], limit: int = 5
) -> List[ActivityItem]:
    """Recent activity built from the newest leads and earnings."""
    newest_leads = sorted(leads, key=lambda lead: lead.created_at, reverse=True)[:3]
    newest_earnings = sorted(earnings, key=lambda e: e.created_at, reverse=True)[:2]

    items = [
        ActivityItem(
            id=f"lead-{lead.id}",
            type="lead",
            title=f"New lead: {lead.customer_name}",
            description=f"{lead.service} ({LeadStatus(lead.status).value})",
            created_at=lead.created_at,
            entity_type="lead",
            entity_id=str(lead.id),
        )
        for lead in newest_leads
    ]
    items += [
        ActivityItem(
            id=f"earning-{earning.id}",
            type="earning",
            title=f"Earning of {_money(earning.amount)}",
            description=f"Status: {EarningStatus(earning.status).value}",
            created_at=earning.created_at,
            entity_type="earning",
            entity_id=str(earning.id),
        )
        for earning in newest_earnings
    ]
    items.sort(key=lambda item: item.created_at, reverse=True)
    return items[:limit]
