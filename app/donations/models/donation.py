"""
Donation model.

A donation is created PENDING when its PaymentIntent is issued and moves
exactly once to COMPLETED or FAILED when the payment outcome is
reconciled. Donations are never deleted; they are the ledger's source
of truth for Campaign.current_amount.

Usage:
    from donations.models import Donation
    from donations.state_machines import DonationStatus

    donation = Donation.objects.create(
        campaign=campaign,
        donor=user,
        amount=Decimal("150.00"),
        currency="USD",
        stripe_payment_intent_id="pi_123",
    )

    # State transitions using django-fsm (the save is guarded on the
    # status the instance was loaded with)
    donation.complete(charge_id="ch_123")
    donation.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from donations.state_machines import TERMINAL_DONATION_STATUSES, DonationStatus


class Donation(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    A single donation towards a campaign.

    Uses django-fsm for the status machine. ConcurrentTransitionMixin
    turns every save into UPDATE ... WHERE status = <status when loaded>,
    so two workers that both loaded a PENDING donation cannot both
    complete it: the second save matches no row and raises
    ConcurrentTransition.

    State Flow:
        PENDING -> COMPLETED (amount applied to the campaign)
        PENDING -> FAILED

    Fields:
        campaign: Campaign receiving the donation
        donor: Authenticated donor, null for anonymous checkouts
        amount: Donation amount in major currency units (> 0)
        currency: ISO 4217 currency code (uppercase)
        message: Optional message to the campaign owner
        is_anonymous: Hide the donor's identity from the campaign owner
        status: Current FSM state
        stripe_payment_intent_id: Authorization reference (pi_xxx)
        stripe_charge_id: Charge reference (ch_xxx), set on completion
        client_secret: PaymentIntent client secret handed to the browser
        processed_at: When the donation reached a terminal state
        failure_reason: Processor message if the payment failed
        metadata: Copy of the metadata attached to the PaymentIntent
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    campaign = models.ForeignKey(
        "campaigns.Campaign",
        on_delete=models.PROTECT,
        related_name="donations",
        help_text="Campaign receiving this donation",
    )

    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="donations",
        help_text="Donor account, empty for guest checkouts",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Donation amount in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (uppercase)",
    )

    # ==========================================================================
    # Donor Preferences
    # ==========================================================================

    message = models.TextField(
        blank=True,
        default="",
        help_text="Optional message to the campaign owner",
    )

    is_anonymous = models.BooleanField(
        default=False,
        help_text="Hide the donor's identity from the campaign owner",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=DonationStatus.PENDING,
        choices=DonationStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current state of the donation (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx) - the authorization reference",
    )

    stripe_charge_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Charge ID (ch_xxx) - set when the payment completes",
    )

    client_secret = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="PaymentIntent client secret for browser-side confirmation",
    )

    # ==========================================================================
    # Processing Info
    # ==========================================================================

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the donation reached a terminal state",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Processor message if the payment failed",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Metadata attached to the PaymentIntent",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Donation"
        verbose_name_plural = "Donations"
        indexes = [
            models.Index(fields=["campaign", "status"], name="donation_campaign_status_idx"),
            models.Index(fields=["donor", "created_at"], name="donation_donor_created_idx"),
            models.Index(fields=["status", "created_at"], name="donation_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="donation_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return f"Donation({self.id}, {self.status}, {self.amount} {self.currency})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DONATION_STATUSES

    @property
    def donor_display_name(self) -> str | None:
        """Name shown to the campaign owner, None when anonymous."""
        if self.is_anonymous or self.donor is None:
            return None
        return self.donor.get_full_name()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=DonationStatus.PENDING,
        target=DonationStatus.COMPLETED,
    )
    def complete(self, charge_id: str | None = None):
        """
        Mark the donation as paid.

        Transition: PENDING -> COMPLETED

        The caller is responsible for applying the amount to the
        campaign in the same transaction (see donations.ledger).
        """
        self.processed_at = timezone.now()
        if charge_id:
            self.stripe_charge_id = charge_id
        self.failure_reason = None

    @transition(
        field=status,
        source=DonationStatus.PENDING,
        target=DonationStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the donation as failed.

        Transition: PENDING -> FAILED

        The campaign is never touched.
        """
        self.processed_at = timezone.now()
        self.failure_reason = reason
