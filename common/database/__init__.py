"""
Database module - Generic async MongoDB connection using Motor.

Usage:
    from common.database import MongoDB

    db = MongoDB()
    await db.connect(uri, database_name)
    collection = db.get_collection("cachedUsers")
"""

from common.database.mongodb import MongoDB

__all__ = ["MongoDB"]
