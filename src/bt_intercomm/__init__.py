"""bt_intercomm - cross-chain branded token registration daemon."""

__version__ = "0.1.0"
