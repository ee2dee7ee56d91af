"""
Campaigns application.

Holds the Campaign model whose accumulated total is maintained by the
donation ledger. Campaign CRUD lives outside this service; only the
ledger fields are written here, and only by donations.ledger.

Usage:
    from campaigns.models import Campaign, CampaignStatus
"""
