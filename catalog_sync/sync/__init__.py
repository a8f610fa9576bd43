# Catalog sync engine: entities, change detection, backfill and orchestration.
# No re-exports: catalog_sync.services imports catalog_sync.sync.entities.
