from __future__ import annotations

from enum import Enum


class PropertyType(str, Enum):
    SINGLE_FAMILY = "Single Family"
    MULTI_FAMILY = "Multi-Family"
    APARTMENT = "Apartment"
    CONDO = "Condo"
    TOWNHOUSE = "Townhouse"
    COMMERCIAL = "Commercial"


class OccupancyStatus(str, Enum):
    OCCUPIED = "occupied"
    VACANT = "vacant"
    MAINTENANCE = "maintenance"


class MaintenanceStatus(str, Enum):
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "inProgress"
    AWAITING_PARTS = "awaitingParts"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaintenancePriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class MaintenanceCategory(str, Enum):
    PLUMBING = "Plumbing"
    ELECTRICAL = "Electrical"
    HVAC = "HVAC"
    APPLIANCE = "Appliance"
    STRUCTURAL = "Structural"
    PEST = "Pest Control"
    LANDSCAPING = "Landscaping"
    CLEANING = "Cleaning"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CHECK = "Check"
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"
    VENMO = "Venmo"
    ZELLE = "Zelle"
    PAYPAL = "PayPal"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class FeedEventType(str, Enum):
    MAINTENANCE_NEW = "maintenanceNew"
    MAINTENANCE_UPDATE = "maintenanceUpdate"
    MAINTENANCE_COMPLETED = "maintenanceCompleted"
    CONTRACTOR_ASSIGNED = "contractorAssigned"
    CONTRACTOR_ON_SITE = "contractorOnSite"
    CONTRACTOR_SCHEDULED = "contractorScheduled"
    RENT_RECEIVED = "rentReceived"
    RENT_LATE = "rentLate"
    RENT_DUE = "rentDue"
    LEASE_EXPIRING = "leaseExpiring"
    LEASE_RENEWED = "leaseRenewed"
    TENANT_MESSAGE = "tenantMessage"
    PROPERTY_INSPECTION = "propertyInspection"
    DOCUMENT_UPLOADED = "documentUploaded"
    SYSTEM_ALERT = "systemAlert"


class FeedPriority(int, Enum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    URGENT = 3
