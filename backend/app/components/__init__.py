# Server-side UI components

from app.components.contact_update import (
    ContactUpdateComponent,
    UpdateState,
    avatar_initials,
    selected_count_label,
    success_summary,
)

__all__ = [
    "ContactUpdateComponent",
    "UpdateState",
    "avatar_initials",
    "selected_count_label",
    "success_summary",
]
