# Maps service exceptions to HTTP responses
import logging
from typing import Dict, Tuple, Type

from fastapi import HTTPException, status

from kyc_case_service.app.service.exceptions import (
    BaseCaseManagementError, NotFoundError, InvalidTransitionError, RequirementsNotMetError,
    InvalidSubmissionTransitionError, InvalidRoleError, AlreadyLinkedError, VersionConflictError,
    IdentityServiceError, KafkaProducerError,
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses go before their bases.
_STATUS_BY_ERROR: Tuple[Tuple[Type[BaseCaseManagementError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InvalidSubmissionTransitionError, status.HTTP_409_CONFLICT),
    (AlreadyLinkedError, status.HTTP_409_CONFLICT),
    (VersionConflictError, status.HTTP_409_CONFLICT),
    (RequirementsNotMetError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidRoleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (IdentityServiceError, status.HTTP_401_UNAUTHORIZED),
    (KafkaProducerError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(error: BaseCaseManagementError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: BaseCaseManagementError) -> HTTPException:
    code = status_code_for(error)
    detail: Dict[str, object] = {"error": type(error).__name__, "message": str(error)}
    if isinstance(error, RequirementsNotMetError):
        detail["unmetRequirementIds"] = error.unmet_requirement_ids
    if code >= 500:
        logger.error(f"Service error mapped to {code}: {error}", exc_info=error)
    else:
        logger.info(f"{type(error).__name__} mapped to {code}: {error}")
    return HTTPException(status_code=code, detail=detail)
