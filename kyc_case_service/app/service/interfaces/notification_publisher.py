from abc import ABC, abstractmethod

from kyc_case_service.app.service.events.models import BaseEvent


class AbstractNotificationPublisher(ABC):
    @abstractmethod
    async def publish(self, event: BaseEvent) -> None:
        """
        Publishes a case event to downstream consumers.

        Args:
            event: The event to publish. Its aggregate_id is used as the message key.

        Raises:
            KafkaProducerError: the event could not be handed to the broker.
        """
        pass
