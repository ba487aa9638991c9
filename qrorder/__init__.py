"""
                QR Table Ordering

Backend for scan-to-order restaurant tables: guests and customers place
orders from a table's QR code and pay through Stripe; staff move orders
through the kitchen workflow.
"""

__version__ = "1.0.0"
