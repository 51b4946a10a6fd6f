"""
callrelay: outbound AI voice calls bridged to a telephony carrier, with a
consolidated post-call report (recording + transcript) sent downstream.
"""

__version__ = "0.1.0"
