from flask import request

from . import bp
from ..services import review_service
from ..utils.api import ok, to_int
from ..utils.decorators import current_user, login_required


@bp.post("")
@login_required
def create_review():
    """Body: { "product_id": 1, "rating": 5, "comment": "..." }"""
    data = request.get_json(silent=True) or {}
    review = review_service.create_review(
        current_user(),
        to_int(data.get("product_id"), 0),
        data.get("rating"),
        data.get("comment"),
    )
    return ok("Review created", {"review": review.as_api()}, status=201)

@bp.put("/<int:review_id>")
@login_required
def update_review(review_id):
    review = review_service.update_review(
        current_user(),
        review_service.get_review(review_id),
        request.get_json(silent=True) or {},
    )
    return ok("Review updated", {"review": review.as_api()})

@bp.delete("/<int:review_id>")
@login_required
def delete_review(review_id):
    review_service.delete_review(current_user(), review_service.get_review(review_id))
    return ok("Review deleted", {"id": review_id})
