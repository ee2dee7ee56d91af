"""
Campaign model.

A campaign collects donations towards a goal. Its current_amount is a
ledger value: it only ever grows, through an atomic F() increment issued
by donations.ledger when a donation completes, and always equals the sum
of the campaign's COMPLETED donations.

Usage:
    from campaigns.models import Campaign, CampaignStatus

    campaign = Campaign.objects.create(
        owner=user,
        title="School roof",
        goal_amount=Decimal("1000.00"),
        status=CampaignStatus.ACTIVE,
    )
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class CampaignStatus(models.TextChoices):
    """
    Lifecycle states for a campaign.

    Only ACTIVE campaigns accept new donations. COMPLETED is derived
    during reconciliation once current_amount reaches goal_amount.
    """

    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    PAUSED = "paused", "Paused"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


# Statuses a campaign may be completed from when its goal is reached
GOAL_COMPLETABLE_STATUSES = (CampaignStatus.ACTIVE, CampaignStatus.PAUSED)


class Campaign(UUIDPrimaryKeyMixin, BaseModel):
    """
    Fundraising campaign with a monetary goal.

    Fields:
        owner: User who created the campaign and receives notifications
        title: Public campaign title
        goal_amount: Target amount in major currency units
        current_amount: Sum of completed donations (ledger field)
        currency: ISO 4217 currency code
        status: Campaign lifecycle status
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="campaigns",
        help_text="User who owns the campaign and receives donation notifications",
    )

    # ==========================================================================
    # Description
    # ==========================================================================

    title = models.CharField(
        max_length=200,
        help_text="Public campaign title",
    )

    # ==========================================================================
    # Ledger
    # ==========================================================================

    goal_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Fundraising goal in major currency units",
    )

    current_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Sum of completed donations - only written by the donation ledger",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (uppercase)",
    )

    status = models.CharField(
        max_length=20,
        choices=CampaignStatus.choices,
        default=CampaignStatus.DRAFT,
        db_index=True,
        help_text="Campaign lifecycle status",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Campaign"
        verbose_name_plural = "Campaigns"
        indexes = [
            models.Index(fields=["owner", "status"], name="campaign_owner_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(goal_amount__gt=0),
                name="campaign_goal_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(current_amount__gte=0),
                name="campaign_current_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with title and progress."""
        return f"Campaign({self.title}, {self.current_amount}/{self.goal_amount} {self.currency})"

    @property
    def accepts_donations(self) -> bool:
        """Only active campaigns accept new donations."""
        return self.status == CampaignStatus.ACTIVE

    @property
    def goal_reached(self) -> bool:
        return self.current_amount >= self.goal_amount

    @property
    def progress_percentage(self) -> float:
        """Progress towards the goal, capped at 100."""
        if not self.goal_amount:
            return 0.0
        percentage = (self.current_amount / self.goal_amount) * 100
        return float(min(percentage, Decimal("100")))
