"""
Telephony (carrier) package.

Keep package import side-effects to a minimum to avoid circular imports.
Do not import factory/adapters here.
"""

__all__ = [
    "interface",
    "config",
    "factory",
    "public_url",
    "twilio_adapter",
    "mock_adapter",
]
