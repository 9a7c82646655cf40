"""
Agromed Kernel - approval decision core

Request-scoped decision engine for agricultural-medicine submissions with:
- Typed, structured errors
- Compare-and-set status transitions
- Atomic decision + audit writes
- Live stock re-validation at decision time
"""

__version__ = "0.1.0"
