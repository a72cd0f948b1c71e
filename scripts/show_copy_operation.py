"""
Print the state and logs of a copy operation.

Usage: python scripts/show_copy_operation.py <operation_id>
"""

import asyncio
import sys

from storage_copy.db import init_db, close_db
from storage_copy.repositories import copy_operation_repo


async def show_operation(operation_id: str):
    await init_db()
    try:
        operation = await copy_operation_repo.get_operation(operation_id)
        if not operation:
            print(f"Copy operation {operation_id} NOT FOUND")
            return

        print("=" * 70)
        print(f"COPY OPERATION: {operation.id}")
        print(f"Status: {operation.status.value}  user={operation.user_id}  finished={operation.finished_at}")
        print("=" * 70)
        for item in await copy_operation_repo.list_items(operation_id):
            polling = item.polling.status.value if item.polling else "absent"
            print()
            print(f"{item.source_id} -> {item.target_id}: {item.status.value} (polling={polling}, polls={item.poll_count})")
            if item.error_summary:
                print(f"Error: {item.error_summary[:200]}")
            for line in item.logs:
                print(f"  {line}")
    finally:
        await close_db()


if __name__ == '__main__':
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(show_operation(sys.argv[1]))
