from idvt.models.offline import OfflineEvent, OfflineOrganisation, OfflineTheme

__all__ = [
    "OfflineEvent",
    "OfflineOrganisation",
    "OfflineTheme",
]
