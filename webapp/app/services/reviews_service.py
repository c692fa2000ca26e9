from typing import Optional, Sequence

from ..api_client import NEWEST_FIRST, BackendClient, Filter
from ..schemas.review import Review, ReviewCreate

REVIEWS = "reviews"


class ReviewsService:
    @staticmethod
    async def get_reviews(
        client: BackendClient,
        *,
        car_id: Optional[str] = None,
        spare_part_id: Optional[str] = None,
    ) -> list[Review]:
        conditions: list[Filter] = []
        if car_id is not None:
            conditions.append(Filter.eq("car_id", car_id))
        if spare_part_id is not None:
            conditions.append(Filter.eq("spare_part_id", spare_part_id))

        rows = await client.query(REVIEWS, conditions, order=NEWEST_FIRST)
        return [Review.model_validate(row) for row in rows]

    @staticmethod
    async def create_review(client: BackendClient, data_in: ReviewCreate) -> Review:
        row = await client.insert(REVIEWS, data_in.model_dump(mode="json", exclude_none=True))
        return Review.model_validate(row)

    @staticmethod
    def average_rating(reviews: Sequence[Review]) -> Optional[float]:
        if not reviews:
            return None
        return round(sum(r.rating for r in reviews) / len(reviews), 1)
