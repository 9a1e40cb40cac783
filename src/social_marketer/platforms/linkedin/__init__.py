"""LinkedIn connector."""

from .connector import LinkedInConnector, LinkedInProfile, jwt_subject

__all__ = ["LinkedInConnector", "LinkedInProfile", "jwt_subject"]
