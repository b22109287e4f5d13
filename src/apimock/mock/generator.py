"""
apimock Response Builder

Turns the outcome of a CRUD operation into the response sent back to the
caller, running the route's response callback and simulating latency.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Union

from ..common import clone_json
from .config import ApiMockConfig
from .crud import CrudResult
from .matcher import ResourceLink
from .messages import ErrorResponse, MockRequest, MockResponse
from .routes import ResponseCallbackOptions


class ResponseBuilder:
    """
    Builds mocked responses.

    The body handed to the response callback is always a list: a single
    item is wrapped, no content becomes an empty list. Without a response
    callback that list is the response body.

    Example:
        builder = ResponseBuilder(config)
        response = builder.build(request, chain[-1], parents, result)
        await builder.deliver(response)
    """

    def __init__(self, config: ApiMockConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger("apimock.engine")

    def build(
        self,
        request: MockRequest,
        link: ResourceLink,
        parents: List[Dict[str, Any]],
        result: CrudResult
    ) -> Union[MockResponse, ErrorResponse]:
        """
        Build the response for a handled request.

        Args:
            request: Incoming request
            link: Last resource link of the resolved chain
            parents: Parent items resolved for the request
            result: CRUD outcome

        Returns:
            MockResponse, or the ErrorResponse returned by a response callback
        """
        raw_body = result.body
        if raw_body is None:
            body = []
        elif isinstance(raw_body, list):
            body = raw_body
        else:
            body = [raw_body]

        cloned_body = clone_json(body)
        response_body: Any = cloned_body

        if link.route.response_callback:
            opts = ResponseCallbackOptions(
                items=cloned_body,
                item_id=link.resource_id,
                http_method=request.method,
                parents=clone_json(parents),
                query_params=request.query_params,
                request_body=clone_json(request.body),
                request_headers=request.headers,
                response_body=clone_json(raw_body)
            )
            response_body = link.route.response_callback(opts)

        if isinstance(response_body, ErrorResponse):
            self.logger.warning(
                f"res: {request.method} {request.url} {response_body.status} {response_body.error}"
            )
            return response_body

        if isinstance(response_body, MockResponse):
            return response_body

        response = MockResponse(
            status=result.status or 200,
            headers=dict(result.headers),
            body=response_body,
            url=request.url_with_params
        )

        if self.config.show_log:
            self.logger.info(f"res: {request.method} {request.url} {response.status}")
            self.logger.debug(f"res body: {response.body}")

        return response

    async def deliver(self, response: MockResponse) -> MockResponse:
        """Hold a response for the configured delay, without blocking the loop."""
        if self.config.response_delay_ms > 0:
            await asyncio.sleep(self.config.response_delay_ms / 1000)
        return response

    def deliver_sync(self, response: MockResponse) -> MockResponse:
        """Blocking variant of deliver for synchronous clients."""
        if self.config.response_delay_ms > 0:
            time.sleep(self.config.response_delay_ms / 1000)
        return response
