"""Tests for the review gate and rating aggregation."""

import pytest

from freshbite.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from freshbite.model import Review
from freshbite.model.order import DELIVERED, PREPARING
from freshbite.services import review_service


class TestCreateReview:

    def test_delivered_purchase_can_review(self, customer, make_product, make_order):
        p = make_product()
        make_order(user=customer, status=DELIVERED, product=p)
        review = review_service.create_review(customer, p.id, 5, "  great  ")
        assert review.rating == 5
        assert review.comment == "great"

    def test_undelivered_purchase_forbidden(self, customer, make_product, make_order):
        p = make_product()
        make_order(user=customer, status=PREPARING, product=p)
        with pytest.raises(ForbiddenError):
            review_service.create_review(customer, p.id, 4)

    def test_someone_elses_delivery_does_not_count(self, make_user, make_product, make_order):
        buyer, other = make_user(), make_user()
        p = make_product()
        make_order(user=buyer, status=DELIVERED, product=p)
        with pytest.raises(ForbiddenError):
            review_service.create_review(other, p.id, 4)

    def test_second_review_conflicts(self, customer, make_product, make_order):
        p = make_product()
        make_order(user=customer, status=DELIVERED, product=p)
        review_service.create_review(customer, p.id, 4)
        with pytest.raises(ConflictError):
            review_service.create_review(customer, p.id, 5)

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "x", None, True])
    def test_bad_rating(self, customer, make_product, make_order, rating):
        p = make_product()
        make_order(user=customer, status=DELIVERED, product=p)
        with pytest.raises(ValidationError):
            review_service.create_review(customer, p.id, rating)

    def test_unknown_product(self, customer):
        with pytest.raises(NotFoundError):
            review_service.create_review(customer, 404, 5)


class TestEditDelete:

    @pytest.fixture
    def review(self, customer, make_product, make_order):
        p = make_product()
        make_order(user=customer, status=DELIVERED, product=p)
        return review_service.create_review(customer, p.id, 3, "ok")

    def test_owner_updates(self, customer, review):
        review_service.update_review(customer, review, {"rating": 5, "comment": "better"})
        assert review.rating == 5
        assert review.comment == "better"

    def test_other_user_cannot_update(self, make_user, review):
        with pytest.raises(ForbiddenError):
            review_service.update_review(make_user(), review, {"rating": 1})

    def test_admin_cannot_update_but_can_delete(self, admin, review):
        with pytest.raises(ForbiddenError):
            review_service.update_review(admin, review, {"rating": 1})
        review_service.delete_review(admin, review)
        assert Review.query.count() == 0

    def test_other_customer_cannot_delete(self, make_user, review):
        with pytest.raises(ForbiddenError):
            review_service.delete_review(make_user(), review)


class TestRating:

    def test_average_and_count(self, make_user, make_product, make_order):
        p = make_product()
        for rating in (5, 4, 4):
            u = make_user()
            make_order(user=u, status=DELIVERED, product=p)
            review_service.create_review(u, p.id, rating)
        assert review_service.product_rating(p.id) == {"average_rating": 4.3, "total_reviews": 3}

    def test_no_reviews(self, make_product):
        p = make_product()
        assert review_service.product_rating(p.id) == {"average_rating": 0, "total_reviews": 0}
        assert review_service.ratings_for([p.id]) == {p.id: {"average_rating": 0, "total_reviews": 0}}
