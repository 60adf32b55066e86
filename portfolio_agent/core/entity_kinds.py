"""Entity kinds the assistant knows about.

One generalized pipeline runs over a set of kinds; each kind supplies the
collection it lives in, the locale name fields the fuzzy resolver searches,
how a raw record is normalized for the UI and how it is summarized for the
LLM context. Adding a kind means adding an ``EntityKind`` here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

LOCALES = ("ar", "de", "fr", "zh")

DEFAULT_DEVELOPER_AVATAR = "https://i.ibb.co/4pDNDk1/avatar.png"
DEFAULT_PRODUCT_IMAGE = "https://via.placeholder.com/100"
DEFAULT_PROJECT_IMAGE = "https://via.placeholder.com/100"
DEFAULT_USER_AVATAR = "https://i.ibb.co/4pDNDk1/avatar.png"

SUMMARY_DESCRIPTION_CHARS = 120


def _locale_fields(base: str) -> Tuple[str, ...]:
    return (base,) + tuple(f"{base}_{locale}" for locale in LOCALES)


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` at ``limit`` characters, adding an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def resolve_image(record: Dict[str, Any], default: str, allow_photo: bool = False) -> str:
    """Pick the best image URL from a record, falling back to ``default``."""
    image = record.get("image")
    url = None
    if isinstance(image, dict):
        url = image.get("filePath") or image.get("url") or image.get("secure_url")
    elif isinstance(image, str) and image:
        url = image
    if not url and allow_photo:
        photo = record.get("photo")
        if isinstance(photo, str) and photo:
            url = photo
    return url or default


def record_id(record: Dict[str, Any]) -> Optional[str]:
    value = record.get("_id")
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class EntityKind:
    name: str
    plural: str
    collection: str
    name_fields: Tuple[str, ...]
    display_field: str
    default_name: str
    default_image: str
    summary_title: str
    list_intro: str
    summary_fields: Tuple[Tuple[str, str], ...] = ()
    prompt_fields: Tuple[str, ...] = ()
    allow_photo: bool = False
    linkable: bool = True

    def normalize(self, record: Optional[Dict[str, Any]], site_url: str) -> Optional[Dict[str, Any]]:
        """Project a raw record onto ``{id, name, image, url, description}``."""
        if not record:
            return None
        rid = record_id(record)
        return {
            "id": rid,
            "name": record.get(self.display_field) or self.default_name,
            "image": resolve_image(record, self.default_image, allow_photo=self.allow_photo),
            "url": f"{site_url}/{self.name}/{rid}" if rid else None,
            "description": record.get("description") or "",
        }

    def summarize(self, record: Optional[Dict[str, Any]]) -> str:
        """Human-readable digest of one record for the context blob."""
        if not record:
            return ""
        parts: List[str] = []
        for field, label in self.summary_fields:
            value = record.get(field)
            if value is None or value == "":
                continue
            if field == "description":
                value = truncate(str(value), SUMMARY_DESCRIPTION_CHARS)
            parts.append(f"{label}: {value}")
        return f"{self.summary_title} details: {' | '.join(parts)}."

    def link(self, record: Optional[Dict[str, Any]], site_url: str) -> Optional[Dict[str, str]]:
        """Structured link for a record that carries an identifier."""
        if not record:
            return None
        rid = record_id(record)
        if not rid:
            return None
        return {
            "type": self.name,
            "label": record.get(self.display_field) or self.summary_title,
            "url": f"{site_url}/{self.name}/{rid}" if self.linkable else "#",
        }


PRODUCT = EntityKind(
    name="product",
    plural="products",
    collection="products",
    name_fields=_locale_fields("name"),
    display_field="name",
    default_name="Unnamed product",
    default_image=DEFAULT_PRODUCT_IMAGE,
    summary_title="Product",
    list_intro="Available products include:",
    summary_fields=(
        ("name", "Name"),
        ("description", "Description"),
        ("liveDemo", "Location"),
        ("status", "Status"),
        ("itemType", "Type"),
        ("price", "Price"),
        ("beds", "Bedrooms"),
        ("baths", "Bathrooms"),
    ),
    prompt_fields=_locale_fields("name") + _locale_fields("description")
    + ("price", "beds", "baths", "itemType", "status", "isFeatured", "createdAt"),
)

PROJECT = EntityKind(
    name="project",
    plural="projects",
    collection="projects",
    name_fields=_locale_fields("name"),
    display_field="name",
    default_name="Unnamed project",
    default_image=DEFAULT_PROJECT_IMAGE,
    summary_title="Project",
    list_intro="Available projects include:",
    summary_fields=(
        ("name", "Name"),
        ("liveDemo", "Location"),
        ("status", "Status"),
        ("description", "Description"),
    ),
    prompt_fields=_locale_fields("name") + _locale_fields("description")
    + ("status", "isFeatured", "createdAt"),
)

DEVELOPER = EntityKind(
    name="developer",
    plural="developers",
    collection="developers",
    name_fields=_locale_fields("developerName"),
    display_field="developerName",
    default_name="Unnamed",
    default_image=DEFAULT_DEVELOPER_AVATAR,
    summary_title="Developer",
    list_intro="Our partner developers include:",
    summary_fields=(
        ("developerName", "Name"),
        ("description", "Description"),
    ),
    prompt_fields=_locale_fields("developerName") + _locale_fields("description")
    + ("isFeatured", "createdAt"),
    allow_photo=True,
)

USER = EntityKind(
    name="user",
    plural="users",
    collection="users",
    name_fields=("name", "email"),
    display_field="name",
    default_name="User",
    default_image=DEFAULT_USER_AVATAR,
    summary_title="User",
    list_intro="Users:",
    summary_fields=(
        ("name", "Name"),
        ("email", "Email"),
        ("role", "Role"),
    ),
    allow_photo=True,
    linkable=False,
)

# Kinds searched by the resolver and embedded in the system prompt, in order
CATALOG_KINDS: Sequence[EntityKind] = (PRODUCT, PROJECT, DEVELOPER)
