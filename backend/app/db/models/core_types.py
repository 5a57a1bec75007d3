import enum

class Role(str, enum.Enum):
    admin = "admin"
    business_developer = "business_developer"
    stock_manager = "stock_manager"
    supplier = "supplier"
    client = "client"
    driver = "driver"

class ApprovisionnementStatus(str, enum.Enum):
    pending = "pending"
    validated_bd = "validated_bd"
    rejected = "rejected"
    received = "received"

class OrderStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"

class PaymentMethod(str, enum.Enum):
    direct = "direct"
    credit = "credit"

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"

class DeliveryStatus(str, enum.Enum):
    assigned = "assigned"
    in_transit = "in_transit"
    delivered = "delivered"
    failed = "failed"

class AuditAction(str, enum.Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"

class NotificationType(str, enum.Enum):
    email = "email"
    sms = "sms"

class NotificationStatus(str, enum.Enum):
    sent = "sent"
    failed = "failed"

# entity_type des entrées du journal d'audit
ENTITY_APPROVISIONNEMENTS = "approvisionnements"
ENTITY_ORDERS = "orders"
ENTITY_STOCKS = "stocks"
