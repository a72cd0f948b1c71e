"""
Migration template

Copy this file to create a new migration:
cp migrations/template.py migrations/00X_description.py
"""

async def up(db):
    """Apply migration changes (db is a Motor AsyncIOMotorDatabase)."""
    pass


async def down(db):
    """Revert what up() did."""
    pass
