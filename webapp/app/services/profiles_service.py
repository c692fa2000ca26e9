from ..api_client import BackendClient, Filter
from ..schemas.profile import Profile


class ProfilesService:
    @staticmethod
    async def get_profile(client: BackendClient, user_id: str) -> Profile:
        """Профиль по id identity; NotFoundError, если строки в profiles нет."""
        row = await client.query("profiles", [Filter.eq("id", user_id)], single=True)
        return Profile.model_validate(row)
