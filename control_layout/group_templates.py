"""Static catalog used to seed new UI groups."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class GroupTemplate:
    id: str
    name: str
    icon: str
    description: str
    button_ids: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "buttonIds": list(self.button_ids),
        }


GROUP_TEMPLATES: Tuple[GroupTemplate, ...] = (
    GroupTemplate(
        id="social",
        name="Social",
        icon="users",
        description="Like, comment, share and follow",
        button_ids=("like", "comment", "share", "follow"),
    ),
    GroupTemplate(
        id="media",
        name="Media Controls",
        icon="play",
        description="Save, mute and visibility toggles",
        button_ids=("save", "mute", "visibility-toggle"),
    ),
    GroupTemplate(
        id="account",
        name="Account",
        icon="user",
        description="Profile, wallet and settings",
        button_ids=("profile", "wallet", "settings"),
    ),
    GroupTemplate(
        id="rewards",
        name="Rewards",
        icon="gift",
        description="Tips and achievements",
        button_ids=("tip", "achievements-button"),
    ),
    GroupTemplate(
        id="moderation",
        name="Moderation",
        icon="shield",
        description="Report and mute",
        button_ids=("report", "mute"),
    ),
)

_BY_ID: Dict[str, GroupTemplate] = {template.id: template for template in GROUP_TEMPLATES}


def get_template(template_id: str) -> Optional[GroupTemplate]:
    return _BY_ID.get(template_id)
