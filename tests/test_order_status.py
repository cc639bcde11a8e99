"""Tests for the order status workflow and cancellation rules."""

import pytest

from freshbite.errors import ForbiddenError, InvalidTransitionError, ValidationError
from freshbite.model.order import CANCELLED, CONFIRMED, DELIVERED, PENDING, PREPARING, READY
from freshbite.services import order_service


class TestTransition:

    def test_full_forward_flow(self, admin, make_order):
        order = make_order()
        for status in (CONFIRMED, PREPARING, READY, DELIVERED):
            order_service.transition(order, status, admin)
            assert order.status == status

    def test_lowercase_status_accepted(self, admin, make_order):
        order = make_order()
        order_service.transition(order, "confirmed", admin)
        assert order.status == CONFIRMED

    @pytest.mark.parametrize("current,target", [
        (PENDING, PREPARING),
        (PENDING, DELIVERED),
        (CONFIRMED, PENDING),
        (READY, CONFIRMED),
        (PREPARING, PREPARING),
    ])
    def test_illegal_moves(self, admin, make_order, current, target):
        order = make_order(status=current)
        with pytest.raises(InvalidTransitionError):
            order_service.transition(order, target, admin)
        assert order.status == current

    @pytest.mark.parametrize("terminal", [DELIVERED, CANCELLED])
    @pytest.mark.parametrize("target", [PENDING, CONFIRMED, CANCELLED, DELIVERED])
    def test_terminal_states_are_final(self, admin, make_order, terminal, target):
        order = make_order(status=terminal)
        with pytest.raises(InvalidTransitionError):
            order_service.transition(order, target, admin)

    @pytest.mark.parametrize("current", [PENDING, CONFIRMED, PREPARING, READY])
    def test_cancel_from_any_open_state(self, admin, make_order, current):
        order = make_order(status=current)
        order_service.transition(order, CANCELLED, admin)
        assert order.status == CANCELLED

    def test_unknown_status(self, admin, make_order):
        with pytest.raises(ValidationError):
            order_service.transition(make_order(), "SHIPPED", admin)

    def test_customer_cannot_transition(self, customer, make_order):
        order = make_order(user=customer)
        with pytest.raises(ForbiddenError):
            order_service.transition(order, CONFIRMED, customer)

    def test_invalid_transition_is_validation_error(self):
        assert issubclass(InvalidTransitionError, ValidationError)
        assert InvalidTransitionError(PENDING, READY).status_code == 400


class TestCancel:

    def test_owner_cancels_pending(self, customer, make_order):
        order = make_order(user=customer)
        order_service.cancel(order, customer)
        assert order.status == CANCELLED

    def test_owner_cannot_cancel_confirmed(self, customer, make_order):
        order = make_order(user=customer, status=CONFIRMED)
        with pytest.raises(ForbiddenError, match="only pending orders can be cancelled"):
            order_service.cancel(order, customer)
        assert order.status == CONFIRMED

    def test_admin_cancels_confirmed(self, admin, customer, make_order):
        order = make_order(user=customer, status=CONFIRMED)
        order_service.cancel(order, admin)
        assert order.status == CANCELLED

    def test_admin_cannot_cancel_delivered(self, admin, make_order):
        order = make_order(status=DELIVERED)
        with pytest.raises(InvalidTransitionError):
            order_service.cancel(order, admin)

    def test_other_customer_forbidden(self, make_user, make_order):
        owner, stranger = make_user(), make_user()
        order = make_order(user=owner)
        with pytest.raises(ForbiddenError):
            order_service.cancel(order, stranger)

    def test_guest_order_not_cancellable_by_customer(self, customer, make_order):
        with pytest.raises(ForbiddenError):
            order_service.cancel(make_order(user=None), customer)


class TestReads:

    def test_customer_sees_own_orders_only(self, make_user, make_order):
        mine, other = make_user(), make_user()
        make_order(user=mine)
        make_order(user=mine)
        make_order(user=other)
        data = order_service.list_orders(mine)
        assert data["pagination"]["total"] == 2
        assert {o["user_id"] for o in data["orders"]} == {mine.id}

    def test_admin_sees_all(self, admin, make_user, make_order):
        make_order(user=make_user())
        make_order(user=None)
        assert order_service.list_orders(admin)["pagination"]["total"] == 2

    def test_status_filter(self, admin, make_order):
        make_order(status=PENDING)
        make_order(status=DELIVERED)
        data = order_service.list_orders(admin, status="delivered")
        assert [o["status"] for o in data["orders"]] == [DELIVERED]

    def test_get_order_forbidden_for_stranger(self, make_user, make_order):
        owner, stranger = make_user(), make_user()
        order = make_order(user=owner)
        with pytest.raises(ForbiddenError):
            order_service.get_order(stranger, order.id)
        assert order_service.get_order(owner, order.id).id == order.id
