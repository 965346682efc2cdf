"""
                Self-Service Ordering Kiosk

Backend for a touchscreen food-ordering kiosk: atomic daily order
numbering, order persistence and thermal receipt printing through a
vendor DLL, an ESC/POS printer or a simulated device.

Version: 1.0.0
"""

__version__ = "1.0.0"
