"""
Proposal Engine Package

Pricing and edit-tracking engine for corporate wellness event proposals.
Costs service lines, rolls them up by date and location, applies recurring
discounts and gratuity, and records field-level changes between revisions.
"""

__version__ = "1.0.0"
