from .access import AccessDecision, DataRoomAccessService, DataRoomSharingService, normalize_email

__all__ = ["AccessDecision", "DataRoomAccessService", "DataRoomSharingService", "normalize_email"]
