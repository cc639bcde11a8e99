"""Product reviews, gated on a delivered purchase."""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..model import Order, OrderItem, Product, Review
from ..model.order import DELIVERED
from ..utils.decorators import is_admin
from ..utils.logger import get_logger

log = get_logger("reviews")


def parse_rating(raw) -> int:
    if isinstance(raw, bool):
        raise ValidationError("rating must be an integer between 1 and 5")
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    if not isinstance(raw, int) or not 1 <= raw <= 5:
        raise ValidationError("rating must be an integer between 1 and 5")
    return raw

def has_delivered_purchase(user_id, product_id) -> bool:
    q = (db.session.query(OrderItem.id)
         .join(Order, Order.id == OrderItem.order_id)
         .filter(Order.user_id == user_id,
                 Order.status == DELIVERED,
                 OrderItem.product_id == product_id))
    return db.session.query(q.exists()).scalar()

def product_rating(product_id) -> dict:
    avg, count = (db.session.query(func.avg(Review.rating), func.count(Review.id))
                  .filter(Review.product_id == product_id)
                  .one())
    return {
        "average_rating": round(float(avg), 1) if avg is not None else 0,
        "total_reviews": int(count or 0),
    }

def ratings_for(product_ids) -> dict:
    """{product_id: rating dict} for a page of products, in one query."""
    ids = list(product_ids)
    out = {pid: {"average_rating": 0, "total_reviews": 0} for pid in ids}
    if not ids:
        return out
    rows = (db.session.query(Review.product_id, func.avg(Review.rating), func.count(Review.id))
            .filter(Review.product_id.in_(ids))
            .group_by(Review.product_id)
            .all())
    for pid, avg, count in rows:
        out[pid] = {"average_rating": round(float(avg), 1), "total_reviews": int(count)}
    return out

def reviews_query(product_id):
    return Review.query.filter_by(product_id=product_id).order_by(Review.created_at.desc(), Review.id.desc())


def create_review(user, product_id, rating, comment=None) -> Review:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("product not found", id=product_id)
    rating = parse_rating(rating)

    if not has_delivered_purchase(user.id, product.id):
        raise ForbiddenError("you can only review products from delivered orders")
    if Review.query.filter_by(user_id=user.id, product_id=product.id).first():
        raise ConflictError("you have already reviewed this product")

    review = Review(user_id=user.id, product_id=product.id, rating=rating,
                    comment=(comment or "").strip() or None)
    db.session.add(review)
    db.session.commit()
    log.info("review %s on product %s by user %s (rating=%s)", review.id, product.id, user.id, rating)
    return review

def get_review(review_id) -> Review:
    review = db.session.get(Review, review_id)
    if not review:
        raise NotFoundError("review not found", id=review_id)
    return review

def update_review(user, review: Review, data: dict) -> Review:
    if review.user_id != user.id:
        raise ForbiddenError("you can only edit your own review")
    if "rating" in data:
        review.rating = parse_rating(data.get("rating"))
    if "comment" in data:
        review.comment = (data.get("comment") or "").strip() or None
    db.session.commit()
    return review

def delete_review(user, review: Review) -> None:
    if review.user_id != user.id and not is_admin(user):
        raise ForbiddenError("you cannot delete this review")
    db.session.delete(review)
    db.session.commit()
    log.info("review %s deleted by user %s", review.id, user.id)
