"""
Webhook system for sending order event notifications.

Allows external systems to subscribe to order events (created, status_changed,
payment_recorded). Notifications are queued as FastAPI background tasks so
they are sent after the response; failures are logged and never reach the caller.
"""
import os
import logging
import httpx
from typing import Dict, Any, Iterable
import asyncio
from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)

# Webhook URLs (in production, these would be stored in a database)
WEBHOOK_URLS = os.getenv("WEBHOOK_URLS", "").split(",")
WEBHOOK_URLS = [url.strip() for url in WEBHOOK_URLS if url.strip()]

TIMEOUT = 5.0  # seconds


async def send_webhook(event_type: str, data: Dict[str, Any]) -> None:
    """
    Send webhook notifications to all registered URLs.

    Args:
        event_type: Type of event (e.g., "order.created", "order.status_changed")
        data: Event data payload
    """
    if not WEBHOOK_URLS:
        return

    payload = {
        "event": event_type,
        "data": data,
        "timestamp": data.get("changed_at") or data.get("created_at", ""),
    }

    async with httpx.AsyncClient(timeout=TIMEOUT) as client:
        tasks = []
        for url in WEBHOOK_URLS:
            tasks.append(send_single_webhook(client, url, payload))

        # Send all webhooks concurrently
        await asyncio.gather(*tasks, return_exceptions=True)


async def send_single_webhook(client: httpx.AsyncClient, url: str, payload: Dict[str, Any]) -> None:
    """
    Send a webhook to a single URL.

    Args:
        client: HTTP client
        url: Webhook URL
        payload: Event payload
    """
    try:
        response = await client.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"}
        )

        if response.status_code >= 400:
            logger.error(f"Webhook {payload['event']} failed for {url}: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"Webhook {payload['event']} error for {url}: {e}")


def order_payload(order) -> Dict[str, Any]:
    """Flatten an order into a JSON-safe webhook payload."""
    return {
        "order_id": order.id,
        "reference_code": order.reference_code,
        "pressing_id": order.pressing_id,
        "client_id": order.client_id,
        "plant_id": order.plant_id,
        "status": order.status,
        "total_amount": str(order.total_amount),
        "created_at": order.created_at.isoformat(),
    }


def notify_order_created(background_tasks: BackgroundTasks, order) -> None:
    """
    Notify that an order was created.

    Args:
        background_tasks: Request background tasks (injected in the route)
        order: Created order
    """
    background_tasks.add_task(send_webhook, "order.created", order_payload(order))


def notify_status_changed(background_tasks: BackgroundTasks, orders: Iterable) -> None:
    """
    Notify one status change per order, read from the tail of its history.

    Args:
        background_tasks: Request background tasks (injected in the route)
        orders: Orders that just moved
    """
    for order in orders:
        history = order.status_history
        changed_at = history[-1].changed_at if history else None
        old_status = history[-2].status if len(history) > 1 else None
        data = {
            "order_id": order.id,
            "reference_code": order.reference_code,
            "old_status": old_status,
            "new_status": order.status,
            "plant_id": order.plant_id,
            "changed_at": changed_at.isoformat() if changed_at else "",
        }
        background_tasks.add_task(send_webhook, "order.status_changed", data)


def notify_payment_recorded(background_tasks: BackgroundTasks, payment) -> None:
    """
    Notify that a delivered order was paid.

    Args:
        background_tasks: Request background tasks (injected in the route)
        payment: Recorded payment
    """
    data = {
        "order_id": payment.order_id,
        "payment_id": payment.id,
        "amount": str(payment.amount),
        "method": payment.method,
        "created_at": payment.created_at.isoformat(),
    }
    background_tasks.add_task(send_webhook, "order.payment_recorded", data)
