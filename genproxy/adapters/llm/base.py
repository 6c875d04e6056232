from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class UpstreamResponse:
	"""An HTTP response from the upstream whose body parsed as JSON."""

	status_code: int
	body: Any

	@property
	def ok(self) -> bool:
		return 200 <= self.status_code < 300


class AbstractUpstreamClient(ABC):
	"""Interface for clients that forward a generation payload upstream."""

	model: str

	@abstractmethod
	async def generate_content(
		self,
		api_key: str,
		payload: dict[str, Any],
	) -> UpstreamResponse:
		"""Send one generation request using a single credential.

		Args:
			api_key: Credential to authenticate this attempt with.
			payload: JSON body forwarded as-is to the upstream endpoint.

		Returns:
			UpstreamResponse: Status code and decoded JSON body, whatever the status.

		Raises:
			UpstreamTransportError: If no usable response was obtained (network
				failure, timeout, or a body that is not JSON).
		"""
		...
