from app.domains.sharing.entities import ShareLink, IssuedShareLink, Acceptance
from app.domains.sharing.schemas import (
    ShareLinkCreate, ShareLinkInfo, ShareLinkIssued, ShareLinkResolved,
    AcceptanceResponse, ShareLinkListResponse
)
from app.domains.sharing.services import ShareLinkManager

__all__ = [
    "ShareLink", "IssuedShareLink", "Acceptance",
    "ShareLinkCreate", "ShareLinkInfo", "ShareLinkIssued", "ShareLinkResolved",
    "AcceptanceResponse", "ShareLinkListResponse",
    "ShareLinkManager"
]
