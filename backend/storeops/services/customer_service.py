# Overview: Service-layer operations for customer signups and till closeouts.

from __future__ import annotations

import uuid

from ..models import Closeout, Customer
from ..repositories import Repositories, default_repositories
from ..schemas import KIND_CUSTOMER, CreateCustomerCommand, RecordCloseoutCommand
from storeops.time_utils import Clock, current_clock
from .concurrency import begin_write, run_with_retry
from .event_service import publish_event
from .store_service import require_store


def create_customer(
    command: CreateCustomerCommand,
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """Record a customer signup and publish customer.created."""
    repos = repos or default_repositories()
    clock = clock or current_clock()
    session = repos.session

    def _op():
        begin_write(session)
        require_store(repos, command.store_id)
        now = clock.now()
        customer = repos.customers.add(Customer(
            id=uuid.uuid4().hex,
            store_id=command.store_id,
            name=command.name,
            phone=command.phone,
            email=command.email,
            created_at=now,
        ))
        publish_event(
            repos,
            kind=KIND_CUSTOMER,
            store_id=command.store_id,
            aggregate_id=customer.id,
            occurred_at=now,
        )
        session.commit()
        return {"ok": True, "customerId": customer.id}

    return run_with_retry(_op, session=session)


def record_closeout(
    command: RecordCloseoutCommand,
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """
    Record an end-of-day till count.

    Closeouts publish no event: the nightly reconciliation is the only
    writer of the summary's closeout_* fields.
    """
    repos = repos or default_repositories()
    clock = clock or current_clock()
    session = repos.session

    def _op():
        begin_write(session)
        require_store(repos, command.store_id)
        closeout = Closeout(
            id=uuid.uuid4().hex,
            store_id=command.store_id,
            counted_cash=command.counted_cash,
            expected_cash=command.expected_cash,
            notes=command.notes,
            closed_by=command.closed_by,
            closed_at=clock.now(),
        )
        session.add(closeout)
        session.commit()
        return {"ok": True, "closeoutId": closeout.id, "variance": closeout.variance}

    return run_with_retry(_op, session=session)
