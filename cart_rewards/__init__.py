"""
Cart Rewards Service

Backend and client library for a Shopify cart-drawer rewards add-on:
- Store bootstrap: resolve or create the store record for a storefront
- Free-product milestones based on cart value
- Store directory, milestone and cart session API
"""

__version__ = "1.0.0"
__author__ = "GenAI Developer"
