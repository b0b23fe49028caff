import logging
from fastapi import Request

from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository, AbstractPartyRepository
from kyc_case_service.app.service.interfaces.notification_publisher import AbstractNotificationPublisher

logger = logging.getLogger(__name__)


# Instances are created once at startup (see app.main) and kept on app.state.

async def get_case_repository(request: Request) -> AbstractCaseRepository:
    return request.app.state.case_repository

async def get_party_repository(request: Request) -> AbstractPartyRepository:
    return request.app.state.party_repository

async def get_notification_publisher(request: Request) -> AbstractNotificationPublisher:
    return request.app.state.notification_publisher
