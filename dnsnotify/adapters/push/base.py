from abc import ABC, abstractmethod
from collections.abc import Mapping


class AbstractPushClient(ABC):
	"""Interface for clients that deliver a single push message."""

	@abstractmethod
	async def push(self, form: Mapping[str, str]) -> None:
		"""Deliver one message to the push service.

		Args:
			form: Form fields to send (token, user, title, message, ...).

		Raises:
			NotificationDeliveryError: If the request fails or the service
				does not answer with a success status.
		"""
		...

	async def aclose(self) -> None:
		"""Release transport resources. No-op by default."""
		return None
