"""
Laundry Orders Service API

This module implements a FastAPI service for the laundry order workflow: staff
at pressings create orders for their clients, plant operators receive and
process them, and the pressing hands them back and records the payment.

Endpoints:
    GET /healthz: Health check endpoint for orchestration systems
    POST /pressings, GET /pressings: Manage pressings (admin)
    POST /plants, GET /plants: Manage plants
    POST /clients, GET /clients: Manage clients of a pressing
    /pressing-items: Per-pressing item catalog
    GET /orders, /orders/collected, /orders/pressing/{id}, /orders/plant/{id}: List orders by scope
    GET /orders/{order_id}, /orders/reference/{code}: Get a single order
    POST /orders: Create an order
    PATCH /orders/{order_id}/status: Move an order to its next status
    POST /orders/bulk-update-status: Move several orders at once
    POST /orders/{order_id}/payment: Record the payment of a delivered order
    GET /orders/{order_id}/history: Status timeline

Attributes:
    app (FastAPI): The FastAPI application instance configured with the title "laundry-orders-service"
"""
from typing import List, Optional
import logging
import os
from fastapi import FastAPI, Depends, BackgroundTasks, status
from sqlalchemy.orm import Session

from . import crud, models, schemas, auth, webhooks
from .auth import CurrentUser
from .database import engine, get_db
from .exceptions import NotFoundError, register_exception_handlers
from .workflow import OrderStatus, Role

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create database tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="laundry-orders-service")
register_exception_handlers(app)

staff_of_pressing = auth.require_roles(Role.ADMIN, Role.SUPERVISOR)


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the laundry orders service.

    This endpoint is used by orchestration systems (like Kubernetes) to verify
    that the service is running and able to respond to requests.

    Returns:
        dict: A dictionary containing the health status of the service.
            - status (str): Always returns "healthy" when the service is operational.

    Example:
        GET /healthz
        Response: {"status": "healthy"}
    """
    return {"status": "healthy"}


# ---------------------------------------------------------------------------
# Pressings, plants and clients
# ---------------------------------------------------------------------------

@app.post("/pressings", response_model=schemas.Pressing, status_code=status.HTTP_201_CREATED)
def create_pressing(
    pressing: schemas.PressingCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.require_admin)
):
    """Create a pressing, optionally with a minimum order amount (admin only)."""
    return crud.create_pressing(db, pressing)


@app.get("/pressings", response_model=List[schemas.Pressing])
def list_pressings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.require_admin)
):
    return crud.get_pressings(db, skip=skip, limit=limit)


@app.post("/plants", response_model=schemas.Plant, status_code=status.HTTP_201_CREATED)
def create_plant(
    plant: schemas.PlantCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.require_admin)
):
    """Create a plant (admin only)."""
    return crud.create_plant(db, plant)


@app.get("/plants", response_model=List[schemas.Plant])
def list_plants(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """List plants, e.g. to pick the receiving plant of a bulk update."""
    return crud.get_plants(db, skip=skip, limit=limit)


@app.post("/clients", response_model=schemas.Client, status_code=status.HTTP_201_CREATED)
def create_client(
    client: schemas.ClientCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    """
    Create a client.

    Supervisors always create in their own pressing; admins name the pressing.

    Raises:
        ForbiddenError: 403 if a supervisor targets another pressing
        NotFoundError: 404 if the pressing does not exist
    """
    return crud.create_client(db, current_user, client)


@app.get("/clients", response_model=List[schemas.Client])
def list_clients(
    pressing_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    scoped_pressing_id = crud.resolve_pressing_scope(current_user, pressing_id)
    return crud.get_clients(db, scoped_pressing_id, skip=skip, limit=limit)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _catalog_item_for_user(db: Session, item_id: int, current_user: CurrentUser) -> models.PressingItem:
    db_item = crud.get_catalog_item(db, item_id)
    if db_item is None:
        raise NotFoundError(f"Catalog item {item_id} not found")
    crud.resolve_pressing_scope(current_user, db_item.pressing_id)
    return db_item


@app.get("/pressing-items", response_model=List[schemas.PressingItem])
def list_catalog_items(
    pressing_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    """
    List the catalog of the caller's pressing (admins pass pressing_id).

    Returns:
        List of catalog items sorted by label
    """
    scoped_pressing_id = crud.resolve_pressing_scope(current_user, pressing_id)
    return crud.get_catalog_items(db, scoped_pressing_id)


@app.get("/pressing-items/pressing/{pressing_id}", response_model=List[schemas.PressingItem])
def list_catalog_items_by_pressing(
    pressing_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.require_admin)
):
    return crud.get_catalog_items(db, pressing_id)


@app.get("/pressing-items/{item_id}", response_model=schemas.PressingItem)
def get_catalog_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    return _catalog_item_for_user(db, item_id, current_user)


@app.post("/pressing-items", response_model=schemas.PressingItem, status_code=status.HTTP_201_CREATED)
def create_catalog_item(
    item: schemas.PressingItemCreate,
    pressing_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    """
    Create a catalog item in the caller's pressing (admins pass pressing_id).

    Raises:
        ValidationError: 400 if the label already exists (any case) or the price is negative
    """
    scoped_pressing_id = crud.resolve_pressing_scope(current_user, pressing_id)
    return crud.create_catalog_item(db, scoped_pressing_id, item)


@app.put("/pressing-items/{item_id}", response_model=schemas.PressingItem)
def update_catalog_item(
    item_id: int,
    item: schemas.PressingItemUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    """
    Update a catalog item. Existing orders keep the prices they were created with.
    """
    db_item = _catalog_item_for_user(db, item_id, current_user)
    return crud.update_catalog_item(db, db_item, item)


@app.delete("/pressing-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_catalog_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(staff_of_pressing)
):
    db_item = _catalog_item_for_user(db, item_id, current_user)
    crud.delete_catalog_item(db, db_item)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@app.get("/orders", response_model=List[schemas.Order])
def list_all_orders(
    order_status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    List all orders (admin only).

    Args:
        order_status: Optional status filter
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100)

    Returns:
        List of order objects, newest first
    """
    return crud.get_orders(
        db, current_user, schemas.ListScope.ALL,
        status=order_status, skip=skip, limit=limit,
    )


@app.get("/orders/collected", response_model=List[schemas.Order])
def list_collected_orders(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    List orders picked up from pressings and not yet received by any plant.

    Visible to every plant operator so whichever plant receives them can claim them.
    """
    return crud.get_orders(db, current_user, schemas.ListScope.COLLECTED, skip=skip, limit=limit)


@app.get("/orders/pressing/{pressing_id}", response_model=List[schemas.Order])
def list_pressing_orders(
    pressing_id: int,
    order_status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """List the orders of one pressing (admin, or that pressing's supervisor)."""
    return crud.get_orders(
        db, current_user, schemas.ListScope.PRESSING, scope_id=pressing_id,
        status=order_status, skip=skip, limit=limit,
    )


@app.get("/orders/plant/{plant_id}", response_model=List[schemas.Order])
def list_plant_orders(
    plant_id: int,
    order_status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """List the orders received by one plant (admin, or that plant's operators)."""
    return crud.get_orders(
        db, current_user, schemas.ListScope.PLANT, scope_id=plant_id,
        status=order_status, skip=skip, limit=limit,
    )


@app.get("/orders/reference/{reference_code}", response_model=schemas.Order)
def get_order_by_reference(
    reference_code: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Look an order up by the reference code printed on the client's ticket.

    Raises:
        NotFoundError: 404 if no order has this code
        ForbiddenError: 403 if the order is outside the caller's scope
    """
    db_order = crud.get_order_by_reference(db, reference_code)
    if db_order is None:
        raise NotFoundError(f"Order {reference_code} not found")
    crud.check_order_access(current_user, db_order)
    return db_order


@app.post("/orders", response_model=schemas.Order, status_code=status.HTTP_201_CREATED)
def create_order(
    order: schemas.OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Create a new order at the caller's pressing.

    This endpoint:
    - Validates every line (label, quantity >= 1, price >= 0)
    - Computes the total from the submitted prices
    - Enforces the pressing's minimum order amount, if any
    - Adds labels missing from the pressing's catalog
    - Assigns a reference code and starts the order at CREATED

    Args:
        order: Client and order lines
        db: Database session (injected)
        current_user: Current authenticated user (injected)

    Returns:
        Created order object

    Raises:
        ValidationError: 400 if a line or the total is invalid
        ForbiddenError: 403 for plant operators or clients of another pressing
        NotFoundError: 404 if the client does not exist
        ConflictError: 409 on a concurrent collision; safe to retry
    """
    db_order = crud.create_order(db, current_user, order)
    webhooks.notify_order_created(background_tasks, db_order)
    return db_order


@app.post("/orders/bulk-update-status", response_model=List[schemas.Order])
def bulk_update_order_status(
    request: schemas.BulkStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Move several orders to the same next status, all or nothing.

    All orders must currently share one status, and the caller's role must be
    allowed to move that status to new_status.

    Raises:
        TransitionError: 400 if the statuses differ or the move is not permitted
        ConflictError: 409 if any order changed concurrently; nothing is applied
    """
    db_orders = crud.bulk_transition_status(
        db, request.order_ids, request.new_status, current_user, plant_id=request.plant_id
    )
    webhooks.notify_status_changed(background_tasks, db_orders)
    return db_orders


@app.get("/orders/{order_id}", response_model=schemas.Order)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Get a single order by ID.

    Raises:
        NotFoundError: 404 if order not found
        ForbiddenError: 403 if not authorized
    """
    return crud.get_order_for_user(db, order_id, current_user)


@app.get("/orders/{order_id}/history", response_model=List[schemas.StatusHistoryEntry])
def get_order_history(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Get the status timeline of an order, oldest first.
    """
    crud.get_order_for_user(db, order_id, current_user)
    return crud.get_status_history(db, order_id)


@app.patch("/orders/{order_id}/status", response_model=schemas.Order)
def update_order_status(
    order_id: int,
    request: schemas.StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Move an order to its next status.

    The requested status must be exactly the next one the caller's role may
    set from the order's current status. Moving to RECEIVED_AT_PLANT assigns
    the receiving plant.

    Raises:
        NotFoundError: 404 if order not found
        ForbiddenError: 403 if the order is outside the caller's scope
        TransitionError: 400 with the allowed status if the move is not permitted
        ConflictError: 409 if the order changed concurrently
    """
    db_order = crud.transition_status(
        db, order_id, request.status, current_user, plant_id=request.plant_id
    )
    webhooks.notify_status_changed(background_tasks, [db_order])
    return db_order


@app.post("/orders/{order_id}/payment", response_model=schemas.Payment, status_code=status.HTTP_201_CREATED)
def record_payment(
    order_id: int,
    payment: schemas.PaymentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(auth.get_current_user)
):
    """
    Record the payment of a delivered order.

    The amount is always the order's total; it cannot be supplied.

    Raises:
        ForbiddenError: 403 for plant operators
        PaymentError: 400 if the order is not delivered or already paid
    """
    db_payment = crud.record_payment(db, order_id, payment.method, current_user)
    webhooks.notify_payment_recorded(background_tasks, db_payment)
    return db_payment
