"""
store_credit_service — Store credit allocation for order checkout.
"""

__version__ = "0.1.0"
