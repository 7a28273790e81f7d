"""GraphQL backend: resolve the organization id, then run the queue update mutation."""

from __future__ import annotations

import logging
import os
from typing import Any

from bk_image_sdk.backends.base import ImageUpdateBackend
from bk_image_sdk.classify import NO_DATA_MESSAGE, validate_structured_response
from bk_image_sdk.errors import (
    ConfigurationError,
    MutationError,
    OrganizationNotFoundError,
    TransportError,
)
from bk_image_sdk.models import BearerCredential, UpdateOutcome, UpdateRequest

logger = logging.getLogger(__name__)

DEFAULT_GRAPHQL_URL = "https://graphql.buildkite.com/v1"
API_TOKEN_ENV_VAR = "BUILDKITE_API_TOKEN"

ORGANIZATION_NOT_FOUND_MESSAGE = "organization not found or not accessible by this credential"

ORGANIZATION_QUERY = """
query GetOrganization($slug: ID!) {
  organization(slug: $slug) {
    id
    name
  }
}
"""

UPDATE_QUEUE_IMAGE_MUTATION = """
mutation UpdateQueueAgentImage($organizationId: ID!, $queueId: ID!, $imageRef: String!) {
  clusterQueueUpdate(
    input: {
      organizationId: $organizationId
      id: $queueId
      hostedAgents: { platformSettings: { linux: { agentImageRef: $imageRef } } }
    }
  ) {
    clusterQueue {
      id
      name
      hostedAgents {
        platformSettings {
          linux {
            agentImageRef
          }
        }
      }
    }
  }
}
"""


def confirmed_image_reference(cluster_queue: dict[str, Any]) -> str | None:
    node: Any = cluster_queue
    for key in ("hostedAgents", "platformSettings", "linux", "agentImageRef"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, str) and node else None


class TokenApiBackend(ImageUpdateBackend):
    name = "graphql"

    def __init__(
        self,
        *,
        token: str | None = None,
        graphql_url: str = DEFAULT_GRAPHQL_URL,
        timeout: float | None = None,
    ) -> None:
        if token is None:
            env_token = os.getenv(API_TOKEN_ENV_VAR)
            token = env_token.strip() if env_token else None
        if not token or not token.strip():
            raise ConfigurationError(
                f"missing API token; set {API_TOKEN_ENV_VAR} to a token with GraphQL access"
            )
        self._credential = BearerCredential(token=token.strip())
        self.graphql_url = graphql_url
        super().__init__(timeout=timeout)

    def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._credential.token}",
            "Content-Type": "application/json",
        }
        response = self._send(
            "POST",
            self.graphql_url,
            json={"query": query, "variables": variables},
            headers=headers,
        )
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"GraphQL request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"GraphQL response is not JSON: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError(
                "GraphQL response is not a JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    def resolve_organization_id(self, organization_slug: str) -> str:
        payload = self._execute(ORGANIZATION_QUERY, {"slug": organization_slug})
        organization = validate_structured_response(
            payload,
            ("organization",),
            error_cls=OrganizationNotFoundError,
            missing_message=ORGANIZATION_NOT_FOUND_MESSAGE,
        )
        organization_id = organization.get("id")
        if not organization_id or not organization.get("name"):
            raise OrganizationNotFoundError(ORGANIZATION_NOT_FOUND_MESSAGE)
        logger.debug("resolved organization %s", organization["name"])
        return str(organization_id)

    def update_queue_image(
        self,
        *,
        organization_id: str,
        queue_id: str,
        image_reference: str,
    ) -> dict[str, Any]:
        payload = self._execute(
            UPDATE_QUEUE_IMAGE_MUTATION,
            {
                "organizationId": organization_id,
                "queueId": queue_id,
                "imageRef": image_reference,
            },
        )
        cluster_queue = validate_structured_response(
            payload,
            ("clusterQueueUpdate", "clusterQueue"),
        )
        if not cluster_queue.get("id") or confirmed_image_reference(cluster_queue) is None:
            raise MutationError(NO_DATA_MESSAGE)
        return cluster_queue

    def apply(self, request: UpdateRequest) -> UpdateOutcome:
        organization_id = self.resolve_organization_id(request.organization_slug)
        cluster_queue = self.update_queue_image(
            organization_id=organization_id,
            queue_id=request.queue_id,
            image_reference=request.image_reference,
        )
        confirmed = confirmed_image_reference(cluster_queue)
        queue_label = cluster_queue.get("name") or cluster_queue["id"]
        return UpdateOutcome(
            succeeded=True,
            message=f"agent image for queue {queue_label} set to {confirmed}",
            backend=self.name,
            image_reference=confirmed,
        )
