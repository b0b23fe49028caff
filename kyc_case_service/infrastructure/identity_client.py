# Client for the external identity provider
import logging
import httpx
from pydantic import ValidationError

from kyc_case_service.app.config import settings
from kyc_case_service.app.models import User
from kyc_case_service.app.service.exceptions import IdentityServiceError

logger = logging.getLogger(__name__)


class IdentityServiceClient:
    def __init__(self, http_client: httpx.AsyncClient, base_url: str):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    async def get_current_user(self, bearer_token: str) -> User:
        """
        Resolves the caller behind `bearer_token` via GET {base_url}/me.

        Raises:
            IdentityServiceError: the token was rejected, the provider is
                unreachable, or it returned an unusable identity.
        """
        request_url = f"{self.base_url}/me"
        try:
            response = await self.http_client.get(
                request_url,
                headers={"Authorization": f"Bearer {bearer_token}"},
                timeout=settings.DEFAULT_HTTP_TIMEOUT,
            )
            response.raise_for_status()
            return User.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.warning(f"Identity provider rejected token: {e.response.status_code}")
            raise IdentityServiceError(f"Identity provider returned {e.response.status_code}.") from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling identity provider: {e}", exc_info=True)
            raise IdentityServiceError("Identity provider unreachable.") from e
        except (ValueError, ValidationError) as e:
            logger.error(f"Unusable identity payload from {request_url}: {e}")
            raise IdentityServiceError("Identity provider returned an invalid identity.") from e

