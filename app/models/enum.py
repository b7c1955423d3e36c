# app/models/enum.py
from enum import Enum

class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"

class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"
    TRANSFER = "TRANSFER"
    RESTORE = "RESTORE"
    BULK_UPDATE = "BULK_UPDATE"
    BULK_DELETE = "BULK_DELETE"

class EntityType(str, Enum):
    LEAD = "lead"
    USER = "user"
    SETTINGS = "settings"
