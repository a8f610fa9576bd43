"""
Catalog entities synced from Arternal into Supabase.

Each entity names its listing/detail endpoints, the destination table and how
raw API items map onto store columns. Summary columns come from the listing
endpoint and are compared for change detection; detail columns only come from
the per-record detail endpoint.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from catalog_sync.schemas.catalog import DetailRecord, RemoteRecord

Mapper = Callable[[dict[str, Any]], dict[str, Any]]
LinkMapper = Callable[[dict[str, Any]], list[dict[str, Any]]]


@dataclass(frozen=True)
class CatalogEntity:
    """
    Sync definition for one catalog entity.

    - summary_columns: columns written on every listing pass and compared by the change detector
    - timestamp_columns: summary columns compared as instants rather than strings
    - extended_table/extended_key: companion table that must hold one row per record
    - link_table/link_key/link_conflict: junction table upserted with the summary,
      one row per item returned by link_mapper
    """

    name: str
    table: str
    list_path: str
    detail_path: str
    summary_columns: tuple[str, ...]
    summary_mapper: Mapper
    detail_mapper: Mapper
    list_params: Mapping[str, str] = field(default_factory=dict)
    timestamp_columns: tuple[str, ...] = ()
    extended_table: str | None = None
    extended_key: str | None = None
    link_table: str | None = None
    link_key: str | None = None
    link_conflict: str | None = None
    link_mapper: LinkMapper | None = None

    def to_remote_record(self, item: dict[str, Any]) -> RemoteRecord:
        return RemoteRecord(
            id=str(item["id"]),
            summary=self.summary_mapper(item),
            updated_at=item.get("updated_at"),
            links=self.link_mapper(item) if self.link_mapper else [],
        )

    def to_detail_record(self, record_id: str, item: dict[str, Any]) -> DetailRecord:
        return DetailRecord(id=str(record_id), payload=self.detail_mapper(item))


# -----------------------------------------------------------------------------
# Artworks (Arternal "inventory")
# -----------------------------------------------------------------------------

_ARTWORK_PLAIN_COLUMNS = (
    "catalog_number",
    "title",
    "year",
    "medium",
    "dimensions",
    "edition",
    "price",
    "price_currency",
    "work_status",
    "status",
    "type",
    "height",
    "width",
    "depth",
    "primary_image_url",
    "url",
)

ARTWORK_SUMMARY_COLUMNS = _ARTWORK_PLAIN_COLUMNS + (
    "artist_ids",
    "arternal_created_at",
    "arternal_updated_at",
)


def _artwork_summary(item: dict[str, Any]) -> dict[str, Any]:
    row = {col: item.get(col) for col in _ARTWORK_PLAIN_COLUMNS}
    row["artist_ids"] = [a["id"] for a in item.get("artists") or []]
    row["arternal_created_at"] = item.get("created_at")
    row["arternal_updated_at"] = item.get("updated_at")
    return row


def _artwork_artists(item: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {"artist_id": a["id"], "display_name": a.get("display_name")}
        for a in item.get("artists") or []
    ]


def _artwork_detail(item: dict[str, Any]) -> dict[str, Any]:
    return {"images": item.get("images") or []}


ARTWORKS = CatalogEntity(
    name="artworks",
    table="artworks",
    list_path="/inventory",
    detail_path="/inventory",
    summary_columns=ARTWORK_SUMMARY_COLUMNS,
    summary_mapper=_artwork_summary,
    detail_mapper=_artwork_detail,
    list_params={"type": "inventory"},
    timestamp_columns=("arternal_created_at", "arternal_updated_at"),
    extended_table="artworks_extended",
    extended_key="artwork_id",
    link_table="artwork_artists",
    link_key="artwork_id",
    link_conflict="artwork_id,artist_id",
    link_mapper=_artwork_artists,
)


# -----------------------------------------------------------------------------
# Artists
# -----------------------------------------------------------------------------

ARTIST_SUMMARY_COLUMNS = (
    "first_name",
    "last_name",
    "alias",
    "display_name",
    "birth_year",
    "death_year",
    "bio",
    "country",
    "life_dates",
    "work_count",
    "catalog_count",
    "arternal_created_at",
    "arternal_updated_at",
)


def _year_text(value: Any) -> str | None:
    # The list endpoint returns numbers, the detail endpoint strings; store text.
    return str(value) if value is not None else None


def _artist_summary(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "first_name": item.get("first_name"),
        "last_name": item.get("last_name"),
        "alias": item.get("alias"),
        "display_name": item.get("display_name"),
        "birth_year": _year_text(item.get("birth_year")),
        "death_year": _year_text(item.get("death_year")),
        "bio": item.get("bio"),
        "country": item.get("country"),
        "life_dates": item.get("life_dates"),
        "work_count": item.get("work_count"),
        "catalog_count": item.get("catalog_count"),
        "arternal_created_at": item.get("created_at"),
        "arternal_updated_at": item.get("updated_at"),
    }


def _artist_detail(item: dict[str, Any]) -> dict[str, Any]:
    return {"statistics": item.get("statistics")}


ARTISTS = CatalogEntity(
    name="artists",
    table="artists",
    list_path="/artists",
    detail_path="/artists",
    summary_columns=ARTIST_SUMMARY_COLUMNS,
    summary_mapper=_artist_summary,
    detail_mapper=_artist_detail,
    timestamp_columns=("arternal_created_at", "arternal_updated_at"),
    extended_table="artists_extended",
    extended_key="artist_id",
)


# -----------------------------------------------------------------------------
# Contacts
# -----------------------------------------------------------------------------

CONTACT_SUMMARY_COLUMNS = (
    "first_name",
    "last_name",
    "display_name",
    "email",
    "phone",
    "phone_mobile",
    "type",
    "website",
    "company",
    "primary_street",
    "primary_city",
    "primary_state",
    "primary_zip",
    "primary_country",
    "primary_address_formatted",
)


def _contact_summary(item: dict[str, Any]) -> dict[str, Any]:
    address = item.get("primary_address") or {}
    return {
        "first_name": item.get("first_name"),
        "last_name": item.get("last_name"),
        "display_name": item.get("display_name"),
        "email": item.get("email"),
        "phone": item.get("phone"),
        "phone_mobile": item.get("phone_mobile"),
        "type": item.get("type"),
        "website": item.get("website"),
        "company": item.get("company"),
        "primary_street": address.get("street"),
        "primary_city": item.get("primary_city"),
        "primary_state": item.get("primary_state"),
        "primary_zip": address.get("zip"),
        "primary_country": item.get("primary_country"),
        "primary_address_formatted": address.get("formatted"),
    }


def _contact_detail(item: dict[str, Any]) -> dict[str, Any]:
    # Tags are only available here, so they are detail columns and listing never resets them.
    return {
        "tags": item.get("tags") or [],
        "notes": item.get("notes") or [],
        "recent_transactions": item.get("recent_transactions") or [],
        "recent_activities": item.get("recent_activities") or [],
    }


CONTACTS = CatalogEntity(
    name="contacts",
    table="contacts",
    list_path="/contacts",
    detail_path="/contacts",
    summary_columns=CONTACT_SUMMARY_COLUMNS,
    summary_mapper=_contact_summary,
    detail_mapper=_contact_detail,
    extended_table="contacts_extended",
    extended_key="contact_id",
)


ENTITIES: dict[str, CatalogEntity] = {e.name: e for e in (ARTWORKS, ARTISTS, CONTACTS)}


def get_entity(name: str) -> CatalogEntity:
    try:
        return ENTITIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown entity '{name}'. Must be one of: {', '.join(ENTITIES)}"
        ) from None
