"""
Grant Kernel - lifecycle core for a blockchain grant/recruitment marketplace.

- Programs posted by sponsors (draft -> under_review -> open -> closed)
- Applications submitted by builders, reviewed by sponsors
- Milestones tracking payout tranches
- Completion aggregation gating terminal transitions
- Role/ownership guards on every mutation
- On-chain contract and transaction evidence records
"""

__version__ = "0.1.0"
