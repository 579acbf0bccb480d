"""Order domain constants.

Defines status choices, the valid status transitions of the order state
machine, shipping options and the fee rates applied by the calculator.
"""

from decimal import Decimal

from decouple import config
from django.db import models


class OrderStatus(models.TextChoices):
    QUOTE = "orcamento", "Orçamento"
    FINALIZED = "realizado", "Realizado"
    AWAITING_PAYMENT = "pagamento_pendente", "Aguard. Pagamento"
    PREPARING = "preparacao", "Em Preparação"
    IN_TRANSIT = "transporte", "Em Trânsito"
    DELIVERED = "entregue", "Entregue"
    RETURNED = "devolucao", "Devolução"
    CANCELLED = "cancelado", "Cancelado"


# Forward path: orcamento -> [realizado ->] pagamento_pendente -> preparacao
# -> transporte -> entregue.  cancelado / devolucao from any non-terminal state.
VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.QUOTE: {
        OrderStatus.FINALIZED,
        OrderStatus.AWAITING_PAYMENT,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.FINALIZED: {
        OrderStatus.AWAITING_PAYMENT,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.AWAITING_PAYMENT: {
        OrderStatus.PREPARING,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.PREPARING: {
        OrderStatus.IN_TRANSIT,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.IN_TRANSIT: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.DELIVERED: set(),
    OrderStatus.RETURNED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
}

# Paid or shipped orders keep the total the customer was charged
COMMERCIAL_LOCKED_STATES: set[str] = {
    OrderStatus.PREPARING,
    OrderStatus.IN_TRANSIT,
} | TERMINAL_STATES

# Sales console view
ACTIVE_STATES: set[str] = {
    OrderStatus.QUOTE,
    OrderStatus.FINALIZED,
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.PREPARING,
}

# Invoice documents can be attached from preparacao onward
INVOICE_ATTACHABLE_STATES: set[str] = {
    OrderStatus.PREPARING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
}

# Transitions only an admin may perform
ADMIN_ONLY_TRANSITIONS: set[tuple[str, str]] = {
    (OrderStatus.AWAITING_PAYMENT, OrderStatus.PREPARING),
}


class ShippingMethod(models.TextChoices):
    MOTOBOY = "Motoboy", "Motoboy"
    CORREIOS = "Correios", "Correios"
    CARRIER = "Transportadora", "Transportadora"
    PICKUP = "Retirada", "Retirada"


class ShippingTarget(models.TextChoices):
    BUYER = "user", "Comprador"
    END_CUSTOMER = "end_customer", "Cliente final"


INVOICE_FEE_RATE = Decimal("0.06")
INSURANCE_FEE_RATE = Decimal("0.03")

MIN_ORDER_VALUE = config("MIN_ORDER_VALUE", default="20.00", cast=Decimal)

ORDER_NUMBER_MAX_RETRIES = 5
