from geoverify.models.verification import Verification

__all__ = ["Verification"]
