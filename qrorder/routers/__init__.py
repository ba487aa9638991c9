"""HTTP routers, mounted under /api by ``qrorder.main.create_app``."""

from qrorder.routers import auth, orders, payments, tables

__all__ = ["auth", "orders", "payments", "tables"]
