"""
Donations application.

Payment confirmation and campaign-ledger reconciliation:

- services.DonationIntentIssuer: PENDING donation + Stripe PaymentIntent
- services.ConfirmationReconciler: applies payment outcomes exactly once,
  whether they arrive by webhook, client confirm, or the pending sweep
- services.DisputeHandler: advisory dispute notifications
- ledger.LedgerService: guarded writes to Donation.status and
  Campaign.current_amount
- notifier.DonationNotifier: owner notifications, sent after commit

Note:
    Models and services are NOT imported here to avoid
    AppRegistryNotReady errors. Import them from their modules.
"""
