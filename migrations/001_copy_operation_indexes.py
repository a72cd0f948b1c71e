"""
Indexes used by the copy job: item lookups per operation,
file link lookups per work package and archival of finished operations.
"""

async def up(db):
    await db.copy_job_items.create_index("operation_id")
    await db.file_links.create_index([("container_id", 1), ("container_type", 1)])
    await db.copy_operations.create_index([("status", 1), ("finished_at", 1)])
    await db.project_storages.create_index("storage_id")


async def down(db):
    await db.copy_job_items.drop_index("operation_id_1")
    await db.file_links.drop_index("container_id_1_container_type_1")
    await db.copy_operations.drop_index("status_1_finished_at_1")
    await db.project_storages.drop_index("storage_id_1")
