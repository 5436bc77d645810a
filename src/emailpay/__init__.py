"""
EmailPay gasless transfer engine.

Send PYUSD to an email address: the sender signs an EIP-2612 permit, a
server-held relayer submits it and moves the funds with ``transferFrom``,
and the recipient is emailed once the transfer has confirmed.
"""

__version__ = "0.1.0"
