# Models package (re-export feature modules for stable imports)
from .otp import OTPCode
from .business import Business

__all__ = [
    "OTPCode",
    "Business",
]
