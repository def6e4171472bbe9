from dms.databases.mongodb import mongodb

__all__ = ["mongodb"]
