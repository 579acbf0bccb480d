"""Outbound WhatsApp messages.

Builds ``https://wa.me/55<digits>?text=<message>`` deep links.  Nothing
is sent from here; staff open the link themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import quote

from decouple import config

from modules.orders.constants import OrderStatus

WHATSAPP_BASE_URL = "https://wa.me/"
COUNTRY_CODE = "55"


@dataclass(frozen=True)
class PixSettings:
    key: str = ""
    name: str = ""
    bank: str = ""

    @classmethod
    def from_env(cls) -> PixSettings:
        return cls(
            key=config("PIX_KEY", default=""),
            name=config("PIX_NAME", default=""),
            bank=config("PIX_BANK", default=""),
        )


def whatsapp_link(phone: str, message: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    return f"{WHATSAPP_BASE_URL}{COUNTRY_CODE}{digits}?text={quote(message, safe='')}"


def order_reference(order: Any) -> str:
    return order.order_number or str(order.id)[-6:]


def first_name(order: Any) -> str:
    parts = (order.customer_name or "").split()
    return parts[0] if parts else ""


def _money(value: Decimal) -> str:
    return f"R$ {Decimal(value):.2f}"


def status_message(order: Any, pix: Optional[PixSettings] = None) -> str:
    """Prewritten update for the order's current status."""
    name = first_name(order)
    ref = order_reference(order)

    if order.status == OrderStatus.QUOTE:
        return (
            f"Olá {name}! 👋\nRecebemos seu orçamento. Aguarde, em breve "
            f"confirmaremos a disponibilidade e valores."
        )
    if order.status == OrderStatus.AWAITING_PAYMENT:
        pix = pix or PixSettings.from_env()
        items = "\n".join(
            f"• {item['quantity']}x {item['name']}" for item in order.items or []
        )
        return (
            f"*PEDIDO FINALIZADO #{ref}* ✅\n"
            f"------------------------------\n"
            f"*ITENS:*\n{items}\n\n"
            f"*Total a Pagar:* {_money(order.total)}\n\n"
            f"*DADOS PIX:*\nChave: {pix.key or 'Solicite'}\n"
            f"Nome: {pix.name}\nBanco: {pix.bank}\n\n"
            f"Envie o comprovante para confirmar!"
        )
    if order.status == OrderStatus.PREPARING:
        return (
            f"Pagamento Confirmado! ✅\n\nOlá {name}, seu pedido #{ref} "
            f"já está em separação e embalagem."
        )
    if order.status == OrderStatus.IN_TRANSIT:
        tracking = f"Rastreio: {order.tracking_code}" if order.tracking_code else ""
        return (
            f"Saiu para Entrega/Envio! 🚚\n\nOlá {name}, seu pedido #{ref} "
            f"está a caminho.\n{tracking}"
        ).rstrip()
    if order.status == OrderStatus.DELIVERED:
        return (
            f"Pedido Entregue! 🎁\n\nOlá {name}, consta que seu pedido foi "
            f"entregue. Esperamos que tenha gostado!\n"
            f"Se puder, mande uma foto do produto recebido."
        )
    label = OrderStatus(order.status).label
    return f"Atualização do Pedido #{ref}: Novo status: *{label}*."


def contact_message(order: Any) -> str:
    return (
        f"Olá {order.customer_name}, gostaria de falar sobre o pedido "
        f"#{order_reference(order)}."
    )


def tracking_message(order: Any, code: Optional[str] = None) -> Optional[str]:
    """``None`` when the order has no tracking code yet."""
    code = code or order.tracking_code
    if not code:
        return None
    return f"Olá! Seu pedido já está a caminho.\nAcompanhe pelo rastreio: {code}"


def build_link(order: Any, kind: str = "status") -> Optional[str]:
    """Deep link to the order's customer for ``status``/``contact``/``tracking``.

    Raises:
        ValueError: unknown *kind*.
    """
    if kind == "status":
        message = status_message(order)
    elif kind == "contact":
        message = contact_message(order)
    elif kind == "tracking":
        message = tracking_message(order)
    else:
        raise ValueError(f"Unknown message kind '{kind}'.")
    if message is None:
        return None
    return whatsapp_link(order.customer_phone, message)
