"""
Database operations for the laundry orders service.

This module contains the order lifecycle (creation, status transitions,
payment), the per-pressing catalog and the reference entities orders point at.

Concurrency rules:
    - status changes are compare-and-swap updates on the persisted status;
      losing a race raises ConflictError and nothing is applied
    - catalog labels are unique per pressing at the storage layer; a lost
      race during auto-provisioning falls back to the winner's row
    - at most one payment row per order, enforced by a unique constraint
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from . import models, schemas, validators
from .auth import CurrentUser, assigned_plant_id, assigned_pressing_id
from .exceptions import (
    ConflictError, ForbiddenError, NotFoundError, PaymentError, TransitionError,
    ValidationError,
)
from .workflow import OrderStatus, Role, PLANT_ASSIGNMENT_STATUS, check_transition, is_terminal

# Set up logging
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reference entities
# ---------------------------------------------------------------------------

def get_pressing(db: Session, pressing_id: int) -> Optional[models.Pressing]:
    return db.query(models.Pressing).filter(models.Pressing.id == pressing_id).first()


def get_pressings(db: Session, skip: int = 0, limit: int = 100) -> List[models.Pressing]:
    return db.query(models.Pressing).order_by(models.Pressing.id).offset(skip).limit(limit).all()


def create_pressing(db: Session, pressing: schemas.PressingCreate) -> models.Pressing:
    if pressing.min_order_amount is not None and not validators.has_valid_scale(pressing.min_order_amount):
        raise ValidationError(
            f"Minimum order amount cannot have more than {validators.AMOUNT_DECIMAL_PLACES} decimal places"
        )

    db_pressing = models.Pressing(**pressing.model_dump())
    db.add(db_pressing)
    db.commit()
    db.refresh(db_pressing)
    logger.info(f"Created pressing {db_pressing.id} '{db_pressing.name}'")
    return db_pressing


def get_plant(db: Session, plant_id: int) -> Optional[models.Plant]:
    return db.query(models.Plant).filter(models.Plant.id == plant_id).first()


def get_plants(db: Session, skip: int = 0, limit: int = 100) -> List[models.Plant]:
    return db.query(models.Plant).order_by(models.Plant.id).offset(skip).limit(limit).all()


def create_plant(db: Session, plant: schemas.PlantCreate) -> models.Plant:
    db_plant = models.Plant(**plant.model_dump())
    db.add(db_plant)
    db.commit()
    db.refresh(db_plant)
    logger.info(f"Created plant {db_plant.id} '{db_plant.name}'")
    return db_plant


def get_client(db: Session, client_id: int) -> Optional[models.Client]:
    return db.query(models.Client).filter(models.Client.id == client_id).first()


def get_clients(db: Session, pressing_id: int, skip: int = 0, limit: int = 100) -> List[models.Client]:
    return (
        db.query(models.Client)
        .filter(models.Client.pressing_id == pressing_id)
        .order_by(models.Client.full_name, models.Client.id)
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_client(db: Session, current_user: CurrentUser, client: schemas.ClientCreate) -> models.Client:
    """
    Create a client in the caller's pressing (admins name the pressing explicitly).

    Raises:
        ValidationError: if the name is blank or an admin omits the pressing
        ForbiddenError: if a supervisor targets another pressing
        NotFoundError: if the pressing does not exist
    """
    if not client.full_name.strip():
        raise ValidationError("Client name is required")

    pressing_id = resolve_pressing_scope(current_user, client.pressing_id)
    if get_pressing(db, pressing_id) is None:
        raise NotFoundError(f"Pressing {pressing_id} not found")

    db_client = models.Client(
        full_name=client.full_name.strip(),
        phone=client.phone,
        pressing_id=pressing_id,
    )
    db.add(db_client)
    db.commit()
    db.refresh(db_client)
    return db_client


# ---------------------------------------------------------------------------
# Scoping
# ---------------------------------------------------------------------------

def resolve_pressing_scope(current_user: CurrentUser, pressing_id: Optional[int]) -> int:
    """
    Pressing a catalog or client operation applies to.

    Supervisors are pinned to the pressing in their token. Admins must name one.
    Plant operators never act on pressing data.
    """
    if current_user.is_admin:
        if pressing_id is None:
            raise ValidationError("pressing_id is required")
        return pressing_id

    if current_user.role == Role.SUPERVISOR:
        own_pressing = assigned_pressing_id(current_user)
        if pressing_id is not None and pressing_id != own_pressing:
            raise ForbiddenError("Not authorized to access this pressing")
        return own_pressing

    raise ForbiddenError("Plant operators cannot access pressing data")


def check_order_access(current_user: CurrentUser, db_order: models.Order) -> None:
    """
    Raise ForbiddenError unless the caller may see and act on the order.

    Supervisors see their pressing's orders. Plant operators see orders awaiting
    pickup by any plant (COLLECTED) and orders their own plant received.
    """
    if current_user.is_admin:
        return

    if current_user.role == Role.SUPERVISOR:
        if db_order.pressing_id != assigned_pressing_id(current_user):
            raise ForbiddenError("Not authorized to access this order")
        return

    if current_user.role == Role.PLANT_OPERATOR:
        own_plant = assigned_plant_id(current_user)
        if db_order.status == OrderStatus.COLLECTED.value or db_order.plant_id == own_plant:
            return
        raise ForbiddenError("Not authorized to access this order")

    raise ForbiddenError("Unknown role")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def get_catalog_item(db: Session, item_id: int) -> Optional[models.PressingItem]:
    return db.query(models.PressingItem).filter(models.PressingItem.id == item_id).first()


def get_catalog_item_by_label(db: Session, pressing_id: int, label: str) -> Optional[models.PressingItem]:
    """Case-insensitive catalog lookup within one pressing."""
    return (
        db.query(models.PressingItem)
        .filter(
            models.PressingItem.pressing_id == pressing_id,
            models.PressingItem.label_key == validators.normalize_label(label),
        )
        .first()
    )


def get_catalog_items(db: Session, pressing_id: int) -> List[models.PressingItem]:
    return (
        db.query(models.PressingItem)
        .filter(models.PressingItem.pressing_id == pressing_id)
        .order_by(models.PressingItem.label_key)
        .all()
    )


def create_catalog_item(db: Session, pressing_id: int, item: schemas.PressingItemCreate) -> models.PressingItem:
    """
    Create a catalog entry for a pressing.

    Raises:
        ValidationError: on a blank label, negative price or a label already in the catalog
        NotFoundError: if the pressing does not exist
        ConflictError: if a concurrent writer inserted the same label first
    """
    is_valid, error_message = validators.validate_catalog_item(item.label, item.price)
    if not is_valid:
        raise ValidationError(error_message)

    if get_pressing(db, pressing_id) is None:
        raise NotFoundError(f"Pressing {pressing_id} not found")

    if get_catalog_item_by_label(db, pressing_id, item.label) is not None:
        raise ValidationError(f"An item labelled '{item.label.strip()}' already exists for this pressing")

    db_item = models.PressingItem(
        pressing_id=pressing_id,
        label=item.label.strip(),
        label_key=validators.normalize_label(item.label),
        price=item.price,
    )
    db.add(db_item)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Lost race creating catalog item '{item.label}' for pressing {pressing_id}")
        raise ConflictError(f"An item labelled '{item.label.strip()}' was just created, please retry")
    db.refresh(db_item)
    return db_item


def update_catalog_item(
    db: Session, db_item: models.PressingItem, item: schemas.PressingItemUpdate
) -> models.PressingItem:
    """
    Update a catalog entry. Only provided fields are changed.

    Existing orders are unaffected: their line prices were captured by value.
    """
    update_data = item.model_dump(exclude_unset=True)
    label = update_data.get("label")
    price = update_data.get("price")

    if "price" in update_data and price is None:
        raise ValidationError("Price cannot be empty")

    is_valid, error_message = validators.validate_catalog_item(label, price)
    if not is_valid:
        raise ValidationError(error_message)

    if label is not None:
        clash = get_catalog_item_by_label(db, db_item.pressing_id, label)
        if clash is not None and clash.id != db_item.id:
            raise ValidationError(f"An item labelled '{label.strip()}' already exists for this pressing")
        db_item.label = label.strip()
        db_item.label_key = validators.normalize_label(label)

    if price is not None:
        db_item.price = price

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Lost race renaming catalog item {db_item.id}")
        raise ConflictError("Another item with this label was just created, please retry")
    db.refresh(db_item)
    return db_item


def delete_catalog_item(db: Session, db_item: models.PressingItem) -> None:
    db.delete(db_item)
    db.commit()


def provision_catalog_item(
    db: Session, pressing_id: int, label: str, price: Decimal
) -> Tuple[models.PressingItem, bool]:
    """
    Look up a catalog entry by label, creating it from the order line if missing.

    An existing entry is never modified, even when the submitted price differs.
    Runs inside the caller's transaction; nothing is committed here.

    Returns:
        Tuple of (catalog item, created)
    """
    existing = get_catalog_item_by_label(db, pressing_id, label)
    if existing is not None:
        return existing, False

    try:
        with db.begin_nested():
            db_item = models.PressingItem(
                pressing_id=pressing_id,
                label=label.strip(),
                label_key=validators.normalize_label(label),
                price=price,
            )
            db.add(db_item)
    except IntegrityError:
        # A concurrent order introduced the same label first
        logger.info(f"Catalog item '{label}' for pressing {pressing_id} created concurrently, reusing it")
        winner = get_catalog_item_by_label(db, pressing_id, label)
        if winner is None:
            raise ConflictError(f"Could not provision catalog item '{label}', please retry")
        return winner, False

    logger.info(f"Auto-provisioned catalog item '{db_item.label}' at {price} for pressing {pressing_id}")
    return db_item, True


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def format_reference_code(pressing_id: int, day: date, sequence: int) -> str:
    return f"P{pressing_id}-{day:%Y%m%d}-{sequence:04d}"


def allocate_reference_code(db: Session, pressing_id: int, day: date) -> str:
    """
    Next reference code for a pressing and day.

    The daily counter row is locked for the rest of the transaction so two
    creations cannot draw the same number.
    """
    def locked_sequence():
        return (
            db.query(models.OrderReferenceSequence)
            .filter(
                models.OrderReferenceSequence.pressing_id == pressing_id,
                models.OrderReferenceSequence.sequence_date == day,
            )
            .with_for_update()
            .first()
        )

    sequence = locked_sequence()
    if sequence is None:
        try:
            with db.begin_nested():
                sequence = models.OrderReferenceSequence(
                    pressing_id=pressing_id, sequence_date=day, last_value=0
                )
                db.add(sequence)
        except IntegrityError:
            sequence = locked_sequence()
            if sequence is None:
                raise ConflictError("Could not allocate an order reference, please retry")

    sequence.last_value += 1
    db.flush()
    return format_reference_code(pressing_id, day, sequence.last_value)


def _order_query(db: Session):
    return db.query(models.Order).options(
        selectinload(models.Order.items),
        selectinload(models.Order.status_history),
        selectinload(models.Order.payment),
        selectinload(models.Order.pressing),
        selectinload(models.Order.client),
        selectinload(models.Order.plant),
    )


def get_order(db: Session, order_id: int) -> Optional[models.Order]:
    """
    Retrieve a single order by ID.

    Args:
        db: Database session
        order_id: ID of the order to retrieve

    Returns:
        Order object or None if not found
    """
    return _order_query(db).filter(models.Order.id == order_id).first()


def get_order_by_reference(db: Session, reference_code: str) -> Optional[models.Order]:
    return _order_query(db).filter(models.Order.reference_code == reference_code).first()


def get_order_for_user(db: Session, order_id: int, current_user: CurrentUser) -> models.Order:
    """
    Retrieve an order the caller is allowed to see.

    Raises:
        NotFoundError: if the order does not exist
        ForbiddenError: if the order is outside the caller's scope
    """
    db_order = get_order(db, order_id)
    if db_order is None:
        raise NotFoundError(f"Order {order_id} not found")
    check_order_access(current_user, db_order)
    return db_order


def get_orders(
    db: Session,
    current_user: CurrentUser,
    scope: schemas.ListScope,
    scope_id: Optional[int] = None,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Order]:
    """
    Retrieve a page of orders for one listing scope.

    Args:
        db: Database session
        current_user: Caller; decides which scopes are open
        scope: all (admin), pressing, plant or collected
        scope_id: Pressing or plant ID for the pressing/plant scopes
        status: Optional status filter
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return

    Returns:
        List of Order objects, newest first

    Raises:
        ForbiddenError: if the scope is not open to the caller
    """
    query = _order_query(db)

    if scope == schemas.ListScope.ALL:
        if not current_user.is_admin:
            raise ForbiddenError("Admin privileges required")

    elif scope == schemas.ListScope.PRESSING:
        if not current_user.is_admin:
            if current_user.role != Role.SUPERVISOR or assigned_pressing_id(current_user) != scope_id:
                raise ForbiddenError("Not authorized to view this pressing's orders")
        query = query.filter(models.Order.pressing_id == scope_id)

    elif scope == schemas.ListScope.PLANT:
        if not current_user.is_admin:
            if current_user.role != Role.PLANT_OPERATOR or assigned_plant_id(current_user) != scope_id:
                raise ForbiddenError("Not authorized to view this plant's orders")
        query = query.filter(models.Order.plant_id == scope_id)

    elif scope == schemas.ListScope.COLLECTED:
        if not current_user.is_admin:
            if current_user.role != Role.PLANT_OPERATOR:
                raise ForbiddenError("Only plant operators can view orders awaiting a plant")
            assigned_plant_id(current_user)
        query = query.filter(models.Order.status == OrderStatus.COLLECTED.value)

    if status is not None:
        query = query.filter(models.Order.status == OrderStatus(status).value)

    return (
        query.order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_order(db: Session, current_user: CurrentUser, order: schemas.OrderCreate) -> models.Order:
    """
    Create a new order at the caller's pressing.

    Lines are validated and the minimum order amount is checked before any
    catalog write, so a rejected order never grows the catalog.

    Args:
        db: Database session
        current_user: Supervisor (own pressing) or admin (client's pressing)
        order: Client and order lines

    Returns:
        Created Order object, status CREATED

    Raises:
        ForbiddenError: for plant operators or a client from another pressing
        ValidationError: for invalid lines or a total below the pressing minimum
        NotFoundError: if the client does not exist
        ConflictError: if a concurrent creation collided on a unique key
    """
    if current_user.role not in (Role.ADMIN, Role.SUPERVISOR):
        raise ForbiddenError("Plant operators cannot create orders")

    is_valid, error_message = validators.validate_order_items(order.items)
    if not is_valid:
        raise ValidationError(error_message)

    client = get_client(db, order.client_id)
    if client is None:
        raise NotFoundError(f"Client {order.client_id} not found")

    if current_user.is_admin:
        pressing_id = client.pressing_id
    else:
        pressing_id = assigned_pressing_id(current_user)
        if client.pressing_id != pressing_id:
            raise ForbiddenError("Client belongs to another pressing")

    pressing = get_pressing(db, pressing_id)
    if pressing is None:
        raise NotFoundError(f"Pressing {pressing_id} not found")

    total = validators.calculate_order_total(order.items)
    is_valid, error_message = validators.validate_minimum_amount(total, pressing.min_order_amount)
    if not is_valid:
        raise ValidationError(error_message)

    try:
        for item in order.items:
            provision_catalog_item(db, pressing_id, item.label, item.price)

        now = models.utcnow()
        db_order = models.Order(
            reference_code=allocate_reference_code(db, pressing_id, now.date()),
            pressing_id=pressing_id,
            client_id=client.id,
            status=OrderStatus.CREATED.value,
            total_amount=total,
            created_by_user_id=current_user.id,
            created_at=now,
        )
        db_order.items = [
            models.OrderItem(
                position=position,
                label=item.label.strip(),
                quantity=item.quantity,
                unit_price=item.price,
            )
            for position, item in enumerate(order.items)
        ]
        db_order.status_history = [
            models.OrderStatusHistory(
                status=OrderStatus.CREATED.value,
                changed_by_user_id=current_user.id,
                changed_by_user_name=current_user.name,
                changed_at=now,
            )
        ]
        db.add(db_order)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Order creation for pressing {pressing_id} collided: {e}")
        raise ConflictError("Order could not be created because of a concurrent update, please retry")

    logger.info(
        f"Created order {db_order.reference_code} for client {client.id} "
        f"with {len(order.items)} items, total {total}"
    )
    return get_order(db, db_order.id)


def _resolve_plant_for_target(
    db: Session, current_user: CurrentUser, target: OrderStatus, plant_id: Optional[int]
) -> Optional[int]:
    """
    Plant to attach for a transition. Only RECEIVED_AT_PLANT takes one.

    Plant operators receive at their own plant, whether or not they name it.
    """
    if target != PLANT_ASSIGNMENT_STATUS:
        if plant_id is not None:
            raise ValidationError(f"plant_id is only accepted when moving to {PLANT_ASSIGNMENT_STATUS.value}")
        return None

    if current_user.role == Role.PLANT_OPERATOR:
        own_plant = assigned_plant_id(current_user)
        if plant_id is None:
            plant_id = own_plant
        elif plant_id != own_plant:
            raise ForbiddenError("Plant operators can only receive orders at their own plant")

    if plant_id is None:
        raise ValidationError(f"plant_id is required when moving to {PLANT_ASSIGNMENT_STATUS.value}")

    if get_plant(db, plant_id) is None:
        raise NotFoundError(f"Plant {plant_id} not found")

    return plant_id


def _check_transition(db_orders: List[models.Order], target, current_user: CurrentUser) -> OrderStatus:
    current_statuses = sorted({db_order.status for db_order in db_orders})
    if len(current_statuses) > 1:
        logger.warning(f"Rejected bulk transition to {target}: mixed statuses {current_statuses}")
        raise TransitionError(
            None,
            None,
            f"Selected orders must share one status, found: {', '.join(current_statuses)}",
        )

    try:
        return check_transition(current_statuses[0], target, current_user.role)
    except TransitionError:
        logger.warning(
            f"Rejected transition {current_statuses[0]} -> {target} "
            f"by user {current_user.id} ({current_user.role.value})"
        )
        raise


def _apply_transition(
    db: Session,
    order_ids: List[int],
    expected_status: str,
    target: OrderStatus,
    current_user: CurrentUser,
    plant_id: Optional[int],
) -> None:
    """
    Move every order in `order_ids` from `expected_status` to `target` in one transaction.

    The update only matches rows still at `expected_status`; if any order moved
    in the meantime nothing is applied.
    """
    values = {models.Order.status: target.value}
    if plant_id is not None:
        values[models.Order.plant_id] = plant_id

    updated = (
        db.query(models.Order)
        .filter(models.Order.id.in_(order_ids), models.Order.status == expected_status)
        .update(values, synchronize_session=False)
    )
    if updated != len(order_ids):
        db.rollback()
        logger.warning(
            f"Concurrent status change detected on orders {order_ids}: "
            f"{updated} of {len(order_ids)} still at {expected_status}"
        )
        raise ConflictError(
            "Order status changed concurrently, reload and retry",
            extra={"order_ids": order_ids},
        )

    for order_id in order_ids:
        db.add(
            models.OrderStatusHistory(
                order_id=order_id,
                status=target.value,
                changed_by_user_id=current_user.id,
                changed_by_user_name=current_user.name,
                changed_at=models.utcnow(),
            )
        )
    db.commit()


def _lock_orders(db: Session, order_ids: List[int]) -> List[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.id.in_(order_ids))
        .with_for_update()
        .all()
    )


def transition_status(
    db: Session,
    order_id: int,
    target: OrderStatus,
    current_user: CurrentUser,
    plant_id: Optional[int] = None,
) -> models.Order:
    """
    Move one order to its next status.

    Args:
        db: Database session
        order_id: Order to move
        target: Requested status; must be the role's permitted next status
        current_user: Acting staff member
        plant_id: Receiving plant, only for RECEIVED_AT_PLANT

    Returns:
        Updated Order object

    Raises:
        NotFoundError, ForbiddenError, TransitionError, ValidationError, ConflictError
    """
    db_orders = _lock_orders(db, [order_id])
    if not db_orders:
        raise NotFoundError(f"Order {order_id} not found")
    db_order = db_orders[0]

    check_order_access(current_user, db_order)
    old_status = db_order.status
    target = _check_transition(db_orders, target, current_user)
    plant_id = _resolve_plant_for_target(db, current_user, target, plant_id)

    _apply_transition(db, [order_id], old_status, target, current_user, plant_id)
    logger.info(
        f"Order {order_id} moved {old_status} -> {target.value} "
        f"by user {current_user.id} ({current_user.role.value})"
    )
    db.expire_all()
    return get_order(db, order_id)


def bulk_transition_status(
    db: Session,
    order_ids: List[int],
    target: OrderStatus,
    current_user: CurrentUser,
    plant_id: Optional[int] = None,
) -> List[models.Order]:
    """
    Move a set of orders sharing one status to the same next status, all or nothing.

    Returns:
        Updated Order objects, in the order they were requested

    Raises:
        ValidationError: if no order is given, or plant_id is missing/misplaced
        NotFoundError: if any order does not exist
        ForbiddenError: if any order is outside the caller's scope
        TransitionError: if statuses differ or the target is not permitted
        ConflictError: if any order changed status concurrently
    """
    unique_ids = list(dict.fromkeys(order_ids))
    if not unique_ids:
        raise ValidationError("At least one order is required")

    db_orders = _lock_orders(db, unique_ids)
    found_ids = {db_order.id for db_order in db_orders}
    missing = [order_id for order_id in unique_ids if order_id not in found_ids]
    if missing:
        raise NotFoundError(
            f"Orders not found: {', '.join(str(order_id) for order_id in missing)}",
            extra={"order_ids": missing},
        )

    for db_order in db_orders:
        check_order_access(current_user, db_order)

    old_status = db_orders[0].status
    target = _check_transition(db_orders, target, current_user)
    plant_id = _resolve_plant_for_target(db, current_user, target, plant_id)

    _apply_transition(db, unique_ids, old_status, target, current_user, plant_id)
    logger.info(
        f"Bulk moved {len(unique_ids)} orders {old_status} -> {target.value} "
        f"by user {current_user.id} ({current_user.role.value})"
    )
    db.expire_all()
    updated = {db_order.id: db_order for db_order in _order_query(db).filter(models.Order.id.in_(unique_ids)).all()}
    return [updated[order_id] for order_id in unique_ids]


def get_status_history(db: Session, order_id: int) -> List[models.OrderStatusHistory]:
    return (
        db.query(models.OrderStatusHistory)
        .filter(models.OrderStatusHistory.order_id == order_id)
        .order_by(models.OrderStatusHistory.id.asc())
        .all()
    )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def get_payment_for_order(db: Session, order_id: int) -> Optional[models.Payment]:
    return db.query(models.Payment).filter(models.Payment.order_id == order_id).first()


def record_payment(
    db: Session, order_id: int, method: schemas.PaymentMethod, current_user: CurrentUser
) -> models.Payment:
    """
    Record the payment of a delivered order. The amount is always the order total.

    Raises:
        ForbiddenError: for plant operators, before anything else is checked
        NotFoundError: if the order does not exist
        PaymentError: if the order is not delivered or already paid
    """
    if current_user.role == Role.PLANT_OPERATOR:
        raise ForbiddenError("Plant operators cannot record payments")

    db_orders = _lock_orders(db, [order_id])
    if not db_orders:
        raise NotFoundError(f"Order {order_id} not found")
    db_order = db_orders[0]
    check_order_access(current_user, db_order)

    if not is_terminal(db_order.status):
        raise PaymentError(
            f"Order {db_order.reference_code} has not been delivered yet (status {db_order.status})"
        )

    already_paid = PaymentError(f"Order {db_order.reference_code} has already been paid")
    if get_payment_for_order(db, order_id) is not None:
        raise already_paid

    now = models.utcnow()
    db_payment = models.Payment(
        order_id=order_id,
        amount=db_order.total_amount,
        method=schemas.PaymentMethod(method).value,
        status=schemas.PaymentStatus.PAID.value,
        paid_at=now,
        created_at=now,
    )
    db.add(db_payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Duplicate payment submission for order {order_id}")
        raise already_paid

    db.refresh(db_payment)
    logger.info(
        f"Recorded {db_payment.method} payment of {db_payment.amount} "
        f"for order {db_order.reference_code}"
    )
    return db_payment
